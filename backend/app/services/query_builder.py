from datetime import datetime
from typing import Optional

from sqlalchemy import Date, func
from sqlalchemy.orm import Query, Session

from app.db.models import Transaction
from app.services.filters import FilterCriteria


def date_conditions(criteria: FilterCriteria) -> list:
    conditions = []
    if criteria.date_from is not None:
        conditions.append(Transaction.date >= criteria.date_from)
    if criteria.date_to is not None:
        conditions.append(Transaction.date <= criteria.date_to)
    return conditions


def filter_conditions(criteria: FilterCriteria) -> list:
    conditions = date_conditions(criteria)
    if criteria.merchant is not None:
        conditions.append(Transaction.merchant_name == criteria.merchant)
    if criteria.min_amount_cents is not None:
        conditions.append(Transaction.amount_cents >= criteria.min_amount_cents)
    if criteria.max_amount_cents is not None:
        conditions.append(Transaction.amount_cents <= criteria.max_amount_cents)
    return conditions


def build_transactions_query(db: Session, criteria: FilterCriteria) -> Query:
    # id breaks ties between equal timestamps so offset pages never overlap
    return (
        db.query(Transaction)
        .filter(*filter_conditions(criteria))
        .order_by(Transaction.date.desc(), Transaction.id.desc())
    )


def build_count_query(db: Session, criteria: FilterCriteria) -> Query:
    return db.query(func.count(Transaction.id)).filter(*filter_conditions(criteria))


def build_merchants_query(db: Session, criteria: FilterCriteria) -> Query:
    """Distinct merchant names under the date scope only.

    The merchant filter itself is left out so the selector stays populated
    once a merchant has been picked.
    """
    return (
        db.query(Transaction.merchant_name)
        .filter(*date_conditions(criteria))
        .distinct()
        .order_by(Transaction.merchant_name)
    )


def build_feed_query(
    db: Session,
    criteria: FilterCriteria,
    *,
    before: Optional[datetime] = None,
) -> Query:
    query = db.query(Transaction).filter(*date_conditions(criteria))
    if before is not None:
        query = query.filter(Transaction.date < before)
    return query.order_by(Transaction.date.desc(), Transaction.id.desc())


def build_daily_totals_query(
    db: Session,
    *,
    start: datetime,
    end: datetime,
    criteria: Optional[FilterCriteria] = None,
) -> Query:
    """Per-day sum and count over the half-open range ``[start, end)``."""
    day = func.date(Transaction.date, type_=Date)
    query = (
        db.query(
            day.label("day"),
            func.sum(Transaction.amount_cents).label("total_amount"),
            func.count(Transaction.id).label("transaction_count"),
        )
        .filter(Transaction.date >= start, Transaction.date < end)
        .group_by(day)
        .order_by(day)
    )
    if criteria is not None:
        query = query.filter(*date_conditions(criteria))
    return query
