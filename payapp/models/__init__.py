from .callback_log import CallbackLog
from .order import Order
from .status import OrderStatus, SubscriptionStatus
from .subscription import Subscription

__all__ = [
    "CallbackLog",
    "Order",
    "OrderStatus",
    "Subscription",
    "SubscriptionStatus",
]
