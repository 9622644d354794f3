from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response, StreamingResponse
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.db.models import Transaction
from app.db.session import Database, get_database, get_db
from app.errors import InvalidParameterError
from app.schemas.transactions import (
    DailyTotalOut,
    DailyTotalsResponse,
    Pagination,
    TransactionFeed,
    TransactionOut,
    TransactionPage,
)
from app.services.daily_totals import collect_daily_totals, consecutive_months
from app.services.export import export_filename, export_transactions, write_csv, write_workbook
from app.services.filters import parse_filter_criteria
from app.services.pagination import CursorPager, OffsetPager

router = APIRouter()


def _transaction_out(transaction: Transaction) -> TransactionOut:
    return TransactionOut(
        id=transaction.id,
        amount_cents=transaction.amount_cents,
        merchant_name=transaction.merchant_name,
        merchant_image=transaction.merchant_image,
        date=transaction.date,
        status=transaction.status,
    )


@router.get("", response_model=TransactionPage)
def list_transactions(
    page: int = Query(1, ge=1),
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    merchant: Optional[str] = Query(None),
    min_amount: Optional[str] = Query(None, alias="minAmount"),
    max_amount: Optional[str] = Query(None, alias="maxAmount"),
    database: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
) -> TransactionPage:
    criteria = parse_filter_criteria(
        date_from=date_from,
        date_to=date_to,
        merchant=merchant,
        min_amount=min_amount,
        max_amount=max_amount,
    )
    pager = OffsetPager(database, max_workers=settings.query_workers)
    try:
        result = pager.fetch_page(criteria, page)
    except InvalidParameterError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return TransactionPage(
        transactions=[_transaction_out(item) for item in result.items],
        all_merchants=result.all_merchants,
        pagination=Pagination(
            current_page=result.current_page,
            total_pages=result.total_pages,
            has_next_page=result.has_next_page,
            total_count=result.total_count,
        ),
    )


@router.get("/feed", response_model=TransactionFeed)
def transaction_feed(
    cursor: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    db: Session = Depends(get_db),
) -> TransactionFeed:
    criteria = parse_filter_criteria(date_from=date_from, date_to=date_to)
    try:
        result = CursorPager(db).fetch(criteria, cursor)
    except InvalidParameterError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return TransactionFeed(
        transactions=[_transaction_out(item) for item in result.items],
        next_cursor=result.next_cursor,
    )


@router.get("/daily-totals", response_model=DailyTotalsResponse)
def daily_totals(
    month: int = Query(...),
    year: int = Query(...),
    span: int = Query(1),
    database: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
) -> DailyTotalsResponse:
    try:
        months = consecutive_months(month, year, span)
    except InvalidParameterError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    totals = collect_daily_totals(database, months, max_workers=settings.query_workers)
    return DailyTotalsResponse(
        daily_totals={
            day: DailyTotalOut(
                total_amount=total.total_amount_cents,
                transaction_count=total.transaction_count,
            )
            for day, total in totals.items()
        }
    )


@router.get("/export")
def export(
    export_format: Literal["csv", "xlsx"] = Query("csv", alias="format"),
    filename: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    merchant: Optional[str] = Query(None),
    min_amount: Optional[str] = Query(None, alias="minAmount"),
    max_amount: Optional[str] = Query(None, alias="maxAmount"),
    database: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
):
    criteria = parse_filter_criteria(
        date_from=date_from,
        date_to=date_to,
        merchant=merchant,
        min_amount=min_amount,
        max_amount=max_amount,
    )
    pager = OffsetPager(database, max_workers=settings.query_workers)
    transactions = export_transactions(pager, criteria)

    name = export_filename(filename, export_format)
    headers = {"Content-Disposition": f'attachment; filename="{name}"'}
    if export_format == "xlsx":
        return StreamingResponse(
            write_workbook(transactions),
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers=headers,
        )
    return Response(content=write_csv(transactions), media_type="text/csv", headers=headers)
