"""transactions ledger

Revision ID: 0001_transactions
Revises: 
Create Date: 2025-01-01 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "0001_transactions"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("merchant_name", sa.String(length=255), nullable=False),
        sa.Column("merchant_image", sa.Text(), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
    )

    op.create_index("ix_transactions_date", "transactions", ["date"])
    op.create_index("ix_transactions_merchant_name", "transactions", ["merchant_name"])


def downgrade() -> None:
    op.drop_index("ix_transactions_merchant_name", table_name="transactions")
    op.drop_index("ix_transactions_date", table_name="transactions")
    op.drop_table("transactions")
