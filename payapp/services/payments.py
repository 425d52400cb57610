"""One-time payments: validate, call PayApp, store the pending order."""
import logging
import secrets
import time

from sqlmodel import Session

from payapp.core.exceptions import PersistenceError, ValidationError
from payapp.models import Order
from payapp.schemas import PaymentRequest
from payapp.services import store
from payapp.services.gateway import PayAppClient

logger = logging.getLogger(__name__)


def new_correlation_id(prefix: str) -> str:
    """ORDER_1718000000000_a1b2c3d4 style id; the timestamp is in milliseconds."""
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def require_amount(amount: int | None) -> int:
    if amount is None:
        raise ValidationError("amount is required.")
    if amount <= 0:
        raise ValidationError("amount must be greater than 0.")
    return amount


def require_text(value: str | None, field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} is required.")
    return value


def normalize_phone(phone: str | None) -> str:
    return require_text(phone, "phone").replace("-", "").replace(" ", "")


def request_payment(db: Session, gateway: PayAppClient, body: PaymentRequest) -> Order:
    """
    Either returns the stored pending order or raises and stores nothing.
    The one exception is PersistenceError: PayApp has the order, we do not.
    """
    amount = require_amount(body.amount)
    phone = normalize_phone(body.phone)
    product_name = require_text(body.product_name, "productName")

    order_id = new_correlation_id("ORDER")
    var1 = body.var1 or order_id
    issued = gateway.issue_payment(
        amount=amount,
        phone=phone,
        product_name=product_name,
        memo=body.memo,
        var1=var1,
        var2=body.var2,
        openpaytype=body.openpaytype,
        skip_cstpage=body.skip_cstpage,
    )
    try:
        order = store.create_order(
            db,
            order_id=order_id,
            mul_no=issued.mul_no,
            amount=amount,
            phone=phone,
            product_name=product_name,
            memo=body.memo,
            var1=var1,
            var2=body.var2,
            pay_url=issued.pay_url,
            qr_url=issued.qr_url,
        )
    except PersistenceError:
        logger.error(
            "RECONCILE: PayApp created mul_no=%s (order_id=%s, amount=%s) but it was not saved",
            issued.mul_no,
            order_id,
            amount,
        )
        raise
    logger.info("Payment requested: order_id=%s mul_no=%s amount=%s", order.id, order.mul_no, amount)
    return order


def cancel_payment(gateway: PayAppClient, mul_no: str | None, memo: str | None = None) -> str:
    """Full cancel. The order row changes when PayApp's cancel callback arrives."""
    mul_no = require_text(mul_no, "mul_no")
    gateway.cancel_payment(mul_no, memo)
    logger.info("Payment cancel requested: mul_no=%s", mul_no)
    return mul_no
