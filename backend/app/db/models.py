from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

TRANSACTION_STATUSES = ("completed", "pending", "failed")


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    merchant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    merchant_image: Mapped[str] = mapped_column(Text, nullable=False)
    # naive UTC
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)

    def __repr__(self) -> str:
        return f"Transaction(id={self.id!r}, date={self.date!r}, amount_cents={self.amount_cents!r})"


Index("ix_transactions_date", Transaction.date)
Index("ix_transactions_merchant_name", Transaction.merchant_name)
