from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel

from app.services.filters import format_timestamp

TransactionStatus = Literal["completed", "pending", "failed"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TransactionOut(CamelModel):
    id: str
    amount_cents: int
    merchant_name: str
    merchant_image: str
    date: datetime
    status: TransactionStatus

    @field_serializer("date")
    def _serialize_date(self, value: datetime) -> str:
        return format_timestamp(value)


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    has_next_page: bool
    total_count: int


class TransactionPage(CamelModel):
    transactions: List[TransactionOut]
    all_merchants: List[str]
    pagination: Pagination


class TransactionFeed(CamelModel):
    transactions: List[TransactionOut]
    next_cursor: Optional[str]


class DailyTotalOut(CamelModel):
    total_amount: int
    transaction_count: int


class DailyTotalsResponse(CamelModel):
    daily_totals: Dict[str, DailyTotalOut]


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[Any] = None
