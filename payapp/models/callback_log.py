"""Audit trail of PayApp feedback calls, including rejected ones."""
from datetime import datetime

from sqlmodel import Field, SQLModel

from payapp.models.base import timestamp_type, utcnow


class CallbackLog(SQLModel, table=True):
    __tablename__ = "callback_logs"
    id: int | None = Field(default=None, primary_key=True)
    mul_no: str | None = Field(default=None, index=True)
    rebill_no: str | None = Field(default=None, index=True)
    pay_state: str | None = None
    outcome: str = Field(index=True)  # applied | duplicate | rejected_transition | stale | unknown_target | unauthorized
    ip: str | None = None
    payload: str | None = None  # JSON, without linkkey/linkval
    created_at: datetime = Field(default_factory=utcnow, sa_type=timestamp_type())
