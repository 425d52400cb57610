"""
PayApp feedback (callback) handling.

PayApp POSTs once per status change with the merchant's userid/linkkey/linkval,
the numeric pay_state and whatever it knows about the payment. The reply body
is read by PayApp only: SUCCESS stops its retries, anything else triggers one.
So every authenticated callback is acknowledged, including ones for unknown
orders, and only bad credentials or a failed DB write answer otherwise.
"""
import hmac
import logging
from dataclasses import dataclass

from sqlmodel import Session

from payapp.core.config import PayAppCredentials
from payapp.core.exceptions import AuthenticationError
from payapp.models import Order, OrderStatus
from payapp.models.status import can_transition, is_terminal
from payapp.services import store

logger = logging.getLogger(__name__)

ACK_SUCCESS = "SUCCESS"
ACK_UNAUTHORIZED = "UNAUTHORIZED"
ACK_FAIL = "FAIL"

# PayApp pay_state -> order status; anything missing here is a failure
PAY_STATE_STATUS: dict[str, OrderStatus] = {
    "1": OrderStatus.PENDING,  # request acknowledged
    "4": OrderStatus.COMPLETED,
    "8": OrderStatus.CANCELLED,
    "16": OrderStatus.CANCELLED,
    "31": OrderStatus.CANCELLED,
    "32": OrderStatus.CANCELLED,
    "9": OrderStatus.REFUNDED,
    "64": OrderStatus.REFUNDED,
    "10": OrderStatus.WAITING,
}

# callback field -> Order column
ECHO_FIELDS = {
    "pay_type": "pay_type",
    "pay_date": "pay_date",
    "card_name": "card_name",
    "vbank": "vbank",
    "vbankno": "vbank_no",
    "canceldate": "cancel_date",
    "cancelmemo": "cancel_memo",
    "csturl": "cst_url",
}

# Compare-and-set attempts before giving up on a hot row
_MAX_ATTEMPTS = 3


@dataclass(frozen=True)
class CallbackResult:
    outcome: str  # applied | duplicate | rejected_transition | stale | unknown_target
    order_id: str | None = None
    status: str | None = None


def map_pay_state(code: str | int | None) -> OrderStatus:
    key = str(code).strip() if code is not None else ""
    # "04" and "4" are the same code
    if key.isdigit():
        key = str(int(key))
    return PAY_STATE_STATUS.get(key, OrderStatus.FAILED)


def _same(received: str | None, expected: str) -> bool:
    if not received or not expected:
        return False
    return hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8"))


def authenticate(payload: dict[str, str], credentials: PayAppCredentials) -> None:
    """userid, linkkey and linkval must all match the merchant config exactly."""
    checks = [
        _same(payload.get("userid"), credentials.userid),
        _same(payload.get("linkkey"), credentials.linkkey),
        _same(payload.get("linkval"), credentials.linkval),
    ]
    if not all(checks):
        raise AuthenticationError(ACK_UNAUTHORIZED)


def _echo_fields(payload: dict[str, str]) -> dict[str, str | None]:
    return {column: (payload.get(field) or None) for field, column in ECHO_FIELDS.items()}


def _apply_to_order(db: Session, order: Order, payload: dict[str, str]) -> CallbackResult:
    pay_state = (payload.get("pay_state") or "").strip() or None
    new_status = map_pay_state(pay_state).value
    for _ in range(_MAX_ATTEMPTS):
        current = order.status
        if current == new_status:
            logger.info("Callback duplicate: order=%s status=%s", order.id, current)
            return CallbackResult("duplicate", order.id, current)
        if not can_transition(current, new_status):
            logger.warning(
                "Callback ignored: order=%s %s -> %s (pay_state=%s) is not allowed%s",
                order.id,
                current,
                new_status,
                pay_state,
                ", status is final" if is_terminal(current) else "",
            )
            return CallbackResult("rejected_transition", order.id, current)
        fields = _echo_fields(payload)
        # Matched through var1: keep PayApp's number so /status/{mul_no} finds it
        if not order.mul_no:
            fields["mul_no"] = (payload.get("mul_no") or "").strip() or None
        if store.update_order_status(db, order, new_status, pay_state, fields):
            logger.info("Callback applied: order=%s %s -> %s (pay_state=%s)", order.id, current, new_status, pay_state)
            return CallbackResult("applied", order.id, new_status)
        # Lost the race: the row changed under us, re-read and decide again
        db.refresh(order)
    logger.warning("Callback gave up after %s attempts: order=%s", _MAX_ATTEMPTS, order.id)
    return CallbackResult("rejected_transition", order.id, order.status)


def dispatch(db: Session, payload: dict[str, str]) -> CallbackResult:
    """Apply an authenticated callback. Raises PersistenceError if the write fails."""
    mul_no = (payload.get("mul_no") or "").strip()
    rebill_no = (payload.get("rebill_no") or "").strip()

    order = store.find_order(db, mul_no) if mul_no else None
    if order is None and payload.get("var1"):
        # var1 is our order id unless the caller supplied its own
        order = db.get(Order, payload["var1"])
    if order is not None:
        return _apply_to_order(db, order, payload)

    sub = store.find_subscription(db, rebill_no) if rebill_no else None
    if sub is not None:
        pay_state = payload.get("pay_state") or None
        if not store.record_rebill_billing(db, sub, mul_no or None, pay_state, payload.get("pay_date")):
            logger.info(
                "Rebill billing ignored, older than the last one: rebill_no=%s mul_no=%s pay_date=%s",
                rebill_no,
                mul_no,
                payload.get("pay_date"),
            )
            return CallbackResult("stale", sub.order_id, sub.status)
        logger.info("Rebill billing recorded: rebill_no=%s mul_no=%s pay_state=%s", rebill_no, mul_no, pay_state)
        return CallbackResult("applied", sub.order_id, map_pay_state(pay_state).value)

    logger.warning("Callback for unknown target: mul_no=%s rebill_no=%s var1=%s", mul_no, rebill_no, payload.get("var1"))
    return CallbackResult("unknown_target")
