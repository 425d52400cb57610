"""Timestamps are stored timezone-aware, in UTC."""
from datetime import timedelta, timezone

from sqlmodel import Session

from payapp.core.database import engine
from payapp.models import CallbackLog, Order, Subscription
from payapp.models.base import utcnow
from payapp.services import store


def test_utcnow_is_aware():
    now = utcnow()
    assert now.tzinfo is not None
    assert now.utcoffset() == timedelta(0)


def test_timestamp_columns_are_timezone_aware():
    columns = [
        Order.__table__.c.created_at,
        Order.__table__.c.updated_at,
        Subscription.__table__.c.created_at,
        Subscription.__table__.c.updated_at,
        CallbackLog.__table__.c.created_at,
    ]
    for column in columns:
        assert column.type.timezone is True, column


def test_new_rows_get_aware_defaults():
    order = Order(id="ORDER_1_ffff", amount=100, phone="01012345678", product_name="Pen")
    assert order.created_at.tzinfo == timezone.utc
    assert order.updated_at.tzinfo == timezone.utc
    assert CallbackLog(outcome="applied").created_at.tzinfo == timezone.utc


def test_order_writes_succeed():
    with Session(engine) as db:
        order = store.create_order(
            db,
            order_id="ORDER_2_ffff",
            mul_no="777",
            amount=100,
            phone="01012345678",
            product_name="Pen",
        )
        assert store.update_order_status(db, order, "completed", "4") is True
    with Session(engine) as db:
        assert db.get(Order, "ORDER_2_ffff").status == "completed"
