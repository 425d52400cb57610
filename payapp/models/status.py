"""Order and subscription states and the transitions allowed between them."""
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    WAITING = "waiting"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    STOPPED = "stopped"
    CANCELLED = "cancelled"


TERMINAL_ORDER_STATUSES = frozenset(
    {OrderStatus.COMPLETED, OrderStatus.FAILED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
)

# waiting = "awaiting confirmation" (e.g. virtual account issued); a final code follows
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {
            OrderStatus.WAITING,
            OrderStatus.COMPLETED,
            OrderStatus.CANCELLED,
            OrderStatus.REFUNDED,
            OrderStatus.FAILED,
        }
    ),
    OrderStatus.WAITING: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.FAILED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.FAILED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

# action -> status stored once PayApp accepts the control call
REBILL_ACTIONS: dict[str, SubscriptionStatus] = {
    "cancel": SubscriptionStatus.CANCELLED,
    "stop": SubscriptionStatus.STOPPED,
    "start": SubscriptionStatus.ACTIVE,
}


def can_transition(current: str, new: str) -> bool:
    return OrderStatus(new) in ORDER_TRANSITIONS[OrderStatus(current)]


def is_terminal(status: str) -> bool:
    return OrderStatus(status) in TERMINAL_ORDER_STATUSES
