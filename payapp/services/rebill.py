"""Rebill (recurring payment) registration and cancel/stop/start."""
import logging
from datetime import date

from sqlmodel import Session

from payapp.core.exceptions import PersistenceError, ValidationError
from payapp.models import Subscription, SubscriptionStatus
from payapp.models.status import REBILL_ACTIONS
from payapp.schemas import RebillRegisterRequest
from payapp.services import store
from payapp.services.gateway import PayAppClient
from payapp.services.payments import new_correlation_id, normalize_phone, require_amount, require_text

logger = logging.getLogger(__name__)

CYCLE_TYPES = ("Month", "Week", "Day")
# cycle type -> allowed cycle values (day of month / weekday, 1 = Monday)
CYCLE_RANGES = {"Month": range(1, 32), "Week": range(1, 8)}


def validate_cycle(cycle_type: str | None, cycle_value: int | None) -> tuple[str, int | None]:
    """cycle_value is required for Month/Week and dropped for Day."""
    cycle_type = require_text(cycle_type, "cycleType")
    if cycle_type not in CYCLE_TYPES:
        raise ValidationError("cycleType must be one of Month, Week, Day.")
    if cycle_type == "Day":
        return cycle_type, None
    if cycle_value is None:
        raise ValidationError(f"cycleValue is required when cycleType is {cycle_type}.")
    allowed = CYCLE_RANGES[cycle_type]
    if cycle_value not in allowed:
        raise ValidationError(f"cycleValue must be between {allowed.start} and {allowed.stop - 1} for {cycle_type}.")
    return cycle_type, cycle_value


def validate_expire_date(raw: str | None, today: date | None = None) -> date:
    raw = require_text(raw, "expireDate")
    try:
        expire = date.fromisoformat(raw)
    except ValueError:
        raise ValidationError("expireDate must be a YYYY-MM-DD date.")
    if expire <= (today or date.today()):
        raise ValidationError("expireDate must be in the future.")
    return expire


def register_rebill(db: Session, gateway: PayAppClient, body: RebillRegisterRequest) -> Subscription:
    amount = require_amount(body.amount)
    phone = normalize_phone(body.phone)
    product_name = require_text(body.product_name, "productName")
    cycle_type, cycle_value = validate_cycle(body.cycle_type, body.cycle_value)
    expire = validate_expire_date(body.expire_date)

    order_id = new_correlation_id("REBILL")
    var1 = body.var1 or order_id
    issued = gateway.issue_rebill(
        amount=amount,
        phone=phone,
        product_name=product_name,
        cycle_type=cycle_type,
        cycle_value=cycle_value,
        expire_date=expire.isoformat(),
        memo=body.memo,
        var1=var1,
        var2=body.var2,
        openpaytype=body.openpaytype,
    )
    try:
        sub = store.create_subscription(
            db,
            order_id=order_id,
            rebill_no=issued.rebill_no,
            cycle_type=cycle_type,
            cycle_value=cycle_value,
            expire_date=expire,
            amount=amount,
            phone=phone,
            product_name=product_name,
            memo=body.memo,
            var1=var1,
            var2=body.var2,
            pay_url=issued.pay_url,
        )
    except PersistenceError:
        logger.error("RECONCILE: PayApp created rebill_no=%s (order_id=%s) but it was not saved", issued.rebill_no, order_id)
        raise
    logger.info("Rebill registered: order_id=%s rebill_no=%s cycle=%s/%s", order_id, sub.rebill_no, cycle_type, cycle_value)
    return sub


def control_rebill(db: Session, gateway: PayAppClient, rebill_no: str | None, action: str) -> Subscription:
    """cancel / stop / start. A cancelled mandate is final and PayApp is not called for it."""
    if action not in REBILL_ACTIONS:
        raise ValidationError(f"Unknown rebill action: {action}")
    rebill_no = require_text(rebill_no, "rebill_no")
    sub = store.get_subscription(db, rebill_no)
    if sub.status == SubscriptionStatus.CANCELLED.value:
        raise ValidationError("This subscription is cancelled and cannot be changed.")
    gateway.rebill_control(sub.rebill_no, action)
    new_status = REBILL_ACTIONS[action].value
    try:
        sub = store.set_subscription_status(db, sub, new_status)
    except PersistenceError:
        logger.error("RECONCILE: PayApp applied %s to rebill_no=%s but it was not saved", action, rebill_no)
        raise
    logger.info("Rebill %s: rebill_no=%s status=%s", action, sub.rebill_no, new_status)
    return sub
