"""payapp tables

orders, subscriptions and callback_logs as defined in payapp.models.
Fresh installs also get them from SQLModel.metadata.create_all at startup.

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel


revision: str = "0001_payapp_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_str = sqlmodel.sql.sqltypes.AutoString


def upgrade() -> None:
    op.create_table(
        "orders",
        sa.Column("id", _str(length=64), primary_key=True),
        sa.Column("mul_no", _str(), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("phone", _str(), nullable=False),
        sa.Column("product_name", _str(), nullable=False),
        sa.Column("memo", _str(), nullable=True),
        sa.Column("var1", _str(), nullable=True),
        sa.Column("var2", _str(), nullable=True),
        sa.Column("status", _str(), nullable=False),
        sa.Column("pay_state", _str(), nullable=True),
        sa.Column("pay_url", _str(), nullable=True),
        sa.Column("qr_url", _str(), nullable=True),
        sa.Column("pay_type", _str(), nullable=True),
        sa.Column("pay_date", _str(), nullable=True),
        sa.Column("card_name", _str(), nullable=True),
        sa.Column("vbank", _str(), nullable=True),
        sa.Column("vbank_no", _str(), nullable=True),
        sa.Column("cancel_date", _str(), nullable=True),
        sa.Column("cancel_memo", _str(), nullable=True),
        sa.Column("cst_url", _str(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_orders_mul_no", "orders", ["mul_no"], unique=True)
    op.create_index("ix_orders_status", "orders", ["status"])

    op.create_table(
        "subscriptions",
        sa.Column("order_id", _str(length=64), primary_key=True),
        sa.Column("rebill_no", _str(), nullable=False),
        sa.Column("cycle_type", _str(), nullable=False),
        sa.Column("cycle_value", sa.Integer(), nullable=True),
        sa.Column("expire_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("phone", _str(), nullable=False),
        sa.Column("product_name", _str(), nullable=False),
        sa.Column("memo", _str(), nullable=True),
        sa.Column("var1", _str(), nullable=True),
        sa.Column("var2", _str(), nullable=True),
        sa.Column("status", _str(), nullable=False),
        sa.Column("pay_url", _str(), nullable=True),
        sa.Column("last_mul_no", _str(), nullable=True),
        sa.Column("last_pay_state", _str(), nullable=True),
        sa.Column("last_paid_at", _str(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_subscriptions_rebill_no", "subscriptions", ["rebill_no"], unique=True)
    op.create_index("ix_subscriptions_status", "subscriptions", ["status"])

    op.create_table(
        "callback_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("mul_no", _str(), nullable=True),
        sa.Column("rebill_no", _str(), nullable=True),
        sa.Column("pay_state", _str(), nullable=True),
        sa.Column("outcome", _str(), nullable=False),
        sa.Column("ip", _str(), nullable=True),
        sa.Column("payload", _str(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_callback_logs_mul_no", "callback_logs", ["mul_no"])
    op.create_index("ix_callback_logs_rebill_no", "callback_logs", ["rebill_no"])
    op.create_index("ix_callback_logs_outcome", "callback_logs", ["outcome"])


def downgrade() -> None:
    # Audit data: tables are never dropped
    pass
