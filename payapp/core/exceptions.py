"""Errors raised by the services; main.py turns each into a JSON response."""


class PayAppError(Exception):
    status_code = 500
    message = "Server error."

    def __init__(self, message: str | None = None, code: str | None = None):
        self.message = message or self.message
        self.code = code
        super().__init__(self.message)


class ValidationError(PayAppError):
    """Bad or missing input. Raised before any outbound call."""

    status_code = 400
    message = "Invalid request."


class GatewayRejected(PayAppError):
    """PayApp answered state=0."""

    status_code = 400
    message = "The payment gateway rejected the request."


class GatewayUnreachable(PayAppError):
    """Network error or timeout; whether PayApp acted on the call is unknown."""

    status_code = 500
    message = "Could not reach the payment gateway."


class PersistenceError(PayAppError):
    status_code = 500
    message = "Could not save the payment record."


class AuthenticationError(PayAppError):
    status_code = 401
    message = "Unauthorized."


class Forbidden(PayAppError):
    status_code = 403
    message = "Forbidden."


class NotFound(PayAppError):
    status_code = 404
    message = "Not found."
