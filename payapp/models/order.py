from datetime import datetime

from sqlmodel import Field, SQLModel

from payapp.models.base import timestamp_type, utcnow


class Order(SQLModel, table=True):
    """One-time PayApp payment. id is ours, mul_no is PayApp's; callbacks match either."""

    __tablename__ = "orders"
    id: str = Field(primary_key=True, max_length=64)  # ORDER_<ms>_<token>
    mul_no: str | None = Field(default=None, unique=True, index=True)
    amount: int  # KRW
    phone: str
    product_name: str
    memo: str | None = None
    var1: str | None = None
    var2: str | None = None
    status: str = Field(default="pending", index=True)  # see OrderStatus
    pay_state: str | None = None  # raw PayApp pay_state of the last applied callback
    pay_url: str | None = None
    qr_url: str | None = None
    # Echoed by the feedback callback
    pay_type: str | None = None
    pay_date: str | None = None
    card_name: str | None = None
    vbank: str | None = None
    vbank_no: str | None = None
    cancel_date: str | None = None
    cancel_memo: str | None = None
    cst_url: str | None = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=timestamp_type())
    updated_at: datetime = Field(default_factory=utcnow, sa_type=timestamp_type())
