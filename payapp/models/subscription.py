from datetime import date, datetime

from sqlmodel import Field, SQLModel

from payapp.models.base import timestamp_type, utcnow


class Subscription(SQLModel, table=True):
    """PayApp rebill mandate. Never deleted; cancel only marks it."""

    __tablename__ = "subscriptions"
    order_id: str = Field(primary_key=True, max_length=64)  # REBILL_<ms>_<token>
    rebill_no: str = Field(unique=True, index=True)
    cycle_type: str  # Month | Week | Day
    cycle_value: int | None = None  # day of month 1-31 / weekday 1-7
    expire_date: date
    amount: int
    phone: str
    product_name: str
    memo: str | None = None
    var1: str | None = None
    var2: str | None = None
    status: str = Field(default="active", index=True)  # active | stopped | cancelled
    pay_url: str | None = None
    last_mul_no: str | None = None
    last_pay_state: str | None = None
    last_paid_at: str | None = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=timestamp_type())
    updated_at: datetime = Field(default_factory=utcnow, sa_type=timestamp_type())
