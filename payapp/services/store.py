"""Order / subscription persistence. Every write commits or raises PersistenceError."""
import json
import logging
from datetime import date

from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, func, select

from payapp.core.exceptions import NotFound, PersistenceError
from payapp.models import CallbackLog, Order, Subscription
from payapp.models.base import utcnow

logger = logging.getLogger(__name__)

# Never written to the callback log
SECRET_FIELDS = ("linkkey", "linkval")


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("DB write failed (%s): %s", what, e)
        raise PersistenceError() from e


# ---------- Orders ----------
def create_order(
    db: Session,
    *,
    order_id: str,
    mul_no: str,
    amount: int,
    phone: str,
    product_name: str,
    memo: str | None = None,
    var1: str | None = None,
    var2: str | None = None,
    pay_url: str | None = None,
    qr_url: str | None = None,
) -> Order:
    order = Order(
        id=order_id,
        mul_no=mul_no or None,
        amount=amount,
        phone=phone,
        product_name=product_name,
        memo=memo,
        var1=var1,
        var2=var2,
        pay_url=pay_url,
        qr_url=qr_url,
    )
    db.add(order)
    _commit(db, f"create order {order_id}")
    db.refresh(order)
    return order


def find_order(db: Session, order_id: str) -> Order | None:
    """By our order id first, then by PayApp's mul_no."""
    if not order_id:
        return None
    order = db.get(Order, order_id)
    if order is None:
        order = db.exec(select(Order).where(Order.mul_no == order_id)).first()
    return order


def get_order(db: Session, order_id: str) -> Order:
    order = find_order(db, order_id)
    if order is None:
        raise NotFound("Order not found.")
    return order


def update_order_status(
    db: Session,
    order: Order,
    status: str,
    pay_state: str | None,
    fields: dict[str, str | None] | None = None,
) -> bool:
    """
    Compare-and-set: the row is only written if its status is still the one
    the caller read. Returns False when another writer got there first; the
    caller re-reads and decides again.
    """
    expected = order.status
    values = {k: v for k, v in (fields or {}).items() if v is not None}
    values.update(status=status, pay_state=pay_state, updated_at=utcnow())
    table = Order.__table__
    stmt = update(table).where(table.c.id == order.id, table.c.status == expected).values(**values)
    try:
        result = db.connection().execute(stmt)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("DB write failed (order %s -> %s): %s", order.id, status, e)
        raise PersistenceError() from e
    _commit(db, f"order {order.id} -> {status}")
    return result.rowcount == 1


def list_orders(
    db: Session,
    status: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Order], int]:
    stmt = select(Order)
    count_stmt = select(func.count()).select_from(Order)
    if status:
        stmt = stmt.where(Order.status == status)
        count_stmt = count_stmt.where(Order.status == status)
    stmt = stmt.order_by(Order.created_at.desc(), Order.id.desc()).offset((page - 1) * limit).limit(limit)
    total = db.exec(count_stmt).one()
    return list(db.exec(stmt).all()), int(total)


# ---------- Subscriptions ----------
def create_subscription(
    db: Session,
    *,
    order_id: str,
    rebill_no: str,
    cycle_type: str,
    cycle_value: int | None,
    expire_date: date,
    amount: int,
    phone: str,
    product_name: str,
    memo: str | None = None,
    var1: str | None = None,
    var2: str | None = None,
    pay_url: str | None = None,
) -> Subscription:
    sub = Subscription(
        order_id=order_id,
        rebill_no=rebill_no,
        cycle_type=cycle_type,
        cycle_value=cycle_value,
        expire_date=expire_date,
        amount=amount,
        phone=phone,
        product_name=product_name,
        memo=memo,
        var1=var1,
        var2=var2,
        pay_url=pay_url,
    )
    db.add(sub)
    _commit(db, f"create subscription {order_id}")
    db.refresh(sub)
    return sub


def find_subscription(db: Session, rebill_no: str) -> Subscription | None:
    if not rebill_no:
        return None
    stmt = select(Subscription).where(
        or_(Subscription.rebill_no == rebill_no, Subscription.order_id == rebill_no)
    )
    return db.exec(stmt).first()


def get_subscription(db: Session, rebill_no: str) -> Subscription:
    sub = find_subscription(db, rebill_no)
    if sub is None:
        raise NotFound("Subscription not found.")
    return sub


def set_subscription_status(db: Session, sub: Subscription, status: str) -> Subscription:
    sub.status = status
    sub.updated_at = utcnow()
    db.add(sub)
    _commit(db, f"subscription {sub.rebill_no} -> {status}")
    db.refresh(sub)
    return sub


def record_rebill_billing(
    db: Session,
    sub: Subscription,
    mul_no: str | None,
    pay_state: str | None,
    pay_date: str | None,
) -> bool:
    """
    Returns False, writing nothing, for a late re-delivery of an older billing.
    PayApp's pay_date is "YYYY-MM-DD HH:MM:SS", so string order is time order.
    """
    if pay_date and sub.last_paid_at and pay_date < sub.last_paid_at:
        return False
    sub.last_mul_no = mul_no
    sub.last_pay_state = pay_state
    if pay_date:
        sub.last_paid_at = pay_date
    sub.updated_at = utcnow()
    db.add(sub)
    _commit(db, f"subscription {sub.rebill_no} billing {mul_no}")
    return True


# ---------- Callback audit ----------
def log_callback(db: Session, payload: dict[str, str], outcome: str, ip: str | None = None) -> None:
    safe = {k: v for k, v in payload.items() if k not in SECRET_FIELDS}
    try:
        db.add(
            CallbackLog(
                mul_no=payload.get("mul_no") or None,
                rebill_no=payload.get("rebill_no") or None,
                pay_state=payload.get("pay_state") or None,
                outcome=outcome,
                ip=ip,
                payload=json.dumps(safe, ensure_ascii=False)[:10000],
            )
        )
        db.commit()
    except SQLAlchemyError as e:
        # The audit row must never decide the answer PayApp gets
        db.rollback()
        logger.warning("CallbackLog write failed: %s", e)
