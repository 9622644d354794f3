"""Offset and cursor pagination over the transaction ledger.

Offset mode honours every filter and reports total-count metadata; it is what
the paged table and the export sweep use. Cursor mode is meant for bulk
infinite scroll: it honours only the date bounds and never counts.

The cursor is the ``date`` of the last row delivered, so rows that share that
exact timestamp and fall on the far side of a page boundary are skipped by
the next fetch.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.db.models import Transaction
from app.db.session import Database
from app.errors import InvalidParameterError
from app.logging_setup import get_logger
from app.services.concurrency import fan_out
from app.services.filters import FilterCriteria, format_timestamp, parse_timestamp
from app.services.query_builder import (
    build_count_query,
    build_feed_query,
    build_merchants_query,
    build_transactions_query,
)

logger = get_logger(__name__)

PAGE_SIZE = 50
FEED_PAGE_SIZE = 500

# Largest OFFSET the store accepts (signed 64-bit)
MAX_OFFSET = 2**63 - 1


@dataclass(frozen=True)
class PageResult:
    items: List[Transaction]
    current_page: int
    total_pages: int
    has_next_page: bool
    total_count: int
    all_merchants: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CursorResult:
    items: List[Transaction]
    next_cursor: Optional[str]


def total_pages_for(total_count: int, page_size: int) -> int:
    return -(-total_count // page_size)


class OffsetPager:
    def __init__(
        self,
        database: Database,
        *,
        page_size: int = PAGE_SIZE,
        max_workers: int = 3,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be a positive integer")
        self.database = database
        self.page_size = page_size
        self.max_workers = max_workers

    def _fetch_items(self, criteria: FilterCriteria, offset: int) -> List[Transaction]:
        with self.database.session() as db:
            return (
                build_transactions_query(db, criteria)
                .limit(self.page_size)
                .offset(offset)
                .all()
            )

    def _fetch_count(self, criteria: FilterCriteria) -> int:
        with self.database.session() as db:
            return build_count_query(db, criteria).scalar() or 0

    def _fetch_merchants(self, criteria: FilterCriteria) -> List[str]:
        with self.database.session() as db:
            return [row.merchant_name for row in build_merchants_query(db, criteria).all()]

    def fetch_page(
        self,
        criteria: FilterCriteria,
        page: int = 1,
        *,
        include_merchants: bool = True,
    ) -> PageResult:
        if page < 1:
            raise InvalidParameterError("page must be 1 or greater")

        offset = (page - 1) * self.page_size
        fetch_items = offset <= MAX_OFFSET
        tasks = [lambda: self._fetch_count(criteria)]
        if include_merchants:
            tasks.append(lambda: self._fetch_merchants(criteria))
        if fetch_items:
            tasks.append(lambda: self._fetch_items(criteria, offset))

        results = fan_out(tasks, max_workers=self.max_workers)
        total_count = results[0]
        all_merchants = results[1] if include_merchants else []
        items = results[-1] if fetch_items else []

        total_pages = total_pages_for(total_count, self.page_size)
        logger.debug(
            "Fetched page %d/%d (%d rows, %d total)",
            page,
            total_pages,
            len(items),
            total_count,
        )
        return PageResult(
            items=items,
            current_page=page,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            total_count=total_count,
            all_merchants=all_merchants,
        )


def parse_cursor(cursor: Optional[str]) -> Optional[datetime]:
    if cursor is None or not cursor.strip():
        return None
    try:
        return parse_timestamp(cursor)
    except ValueError as exc:
        raise InvalidParameterError(f"Invalid cursor: {cursor!r}") from exc


class CursorPager:
    def __init__(self, db: Session, *, page_size: int = FEED_PAGE_SIZE) -> None:
        if page_size < 1:
            raise ValueError("page_size must be a positive integer")
        self.db = db
        self.page_size = page_size

    def fetch(self, criteria: FilterCriteria, cursor: Optional[str] = None) -> CursorResult:
        before = parse_cursor(cursor)
        items = (
            build_feed_query(self.db, criteria.date_scope(), before=before)
            .limit(self.page_size)
            .all()
        )
        next_cursor = format_timestamp(items[-1].date) if len(items) == self.page_size else None
        return CursorResult(items=items, next_cursor=next_cursor)
