from .payment import CancelRequest, PaymentRequest, RebillControlRequest, RebillRegisterRequest

__all__ = [
    "CancelRequest",
    "PaymentRequest",
    "RebillControlRequest",
    "RebillRegisterRequest",
]
