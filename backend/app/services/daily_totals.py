from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.db.session import Database
from app.errors import InvalidParameterError
from app.services.concurrency import fan_out
from app.services.filters import FilterCriteria
from app.services.query_builder import build_daily_totals_query

MIN_YEAR = 1
MAX_YEAR = 9999
MAX_SPAN = 12


@dataclass(frozen=True)
class DailyTotal:
    day: date
    total_amount_cents: int
    transaction_count: int


def _is_whole_number(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_month_year(month, year) -> Tuple[int, int]:
    if not _is_whole_number(month) or not _is_whole_number(year):
        raise InvalidParameterError("month and year must be whole numbers")
    if not 1 <= month <= 12:
        raise InvalidParameterError("month must be between 1 and 12")
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise InvalidParameterError(f"year must be between {MIN_YEAR} and {MAX_YEAR}")
    return month, year


def month_bounds(month: int, year: int) -> Tuple[datetime, datetime]:
    """Half-open ``[start, end)`` datetime range covering the month."""
    start = datetime(year, month, 1)
    if month == 12:
        end = datetime(year + 1, 1, 1) if year < MAX_YEAR else datetime.max
    else:
        end = datetime(year, month + 1, 1)
    return start, end


def consecutive_months(month: int, year: int, span: int = 1) -> List[Tuple[int, int]]:
    validate_month_year(month, year)
    if not _is_whole_number(span) or not 1 <= span <= MAX_SPAN:
        raise InvalidParameterError(f"span must be between 1 and {MAX_SPAN}")

    months = []
    for _ in range(span):
        months.append((month, year))
        if month == 12:
            month, year = 1, year + 1
        else:
            month += 1
        if year > MAX_YEAR:
            break
    return months


def daily_totals(
    db: Session,
    month: int,
    year: int,
    criteria: Optional[FilterCriteria] = None,
) -> Dict[str, DailyTotal]:
    """Sum and count of transactions per calendar day of one month.

    Keys are ISO ``YYYY-MM-DD`` strings; days without transactions are absent.
    """
    month, year = validate_month_year(month, year)
    start, end = month_bounds(month, year)

    totals: Dict[str, DailyTotal] = {}
    for row in build_daily_totals_query(db, start=start, end=end, criteria=criteria).all():
        day = row.day
        if isinstance(day, str):
            day = date.fromisoformat(day)
        totals[day.isoformat()] = DailyTotal(
            day=day,
            total_amount_cents=int(row.total_amount or 0),
            transaction_count=int(row.transaction_count),
        )
    return totals


def collect_daily_totals(
    database: Database,
    months: Iterable[Tuple[int, int]],
    *,
    criteria: Optional[FilterCriteria] = None,
    max_workers: int = 3,
) -> Dict[str, DailyTotal]:
    """Aggregate several months concurrently and merge the per-day maps."""
    months = [validate_month_year(month, year) for month, year in months]

    def _one(month: int, year: int) -> Dict[str, DailyTotal]:
        with database.session() as db:
            return daily_totals(db, month, year, criteria)

    merged: Dict[str, DailyTotal] = {}
    tasks = [lambda m=month, y=year: _one(m, y) for month, year in months]
    for totals in fan_out(tasks, max_workers=max_workers):
        merged.update(totals)
    return merged
