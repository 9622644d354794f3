"""Materialize a complete filtered result set and serialize it for download.

The sweep walks offset pages one after another: page N+1 is only requested
once page N reported ``has_next_page``. No snapshot is taken, so rows
inserted or removed mid-sweep can shift between pages.
"""

import csv
from collections.abc import Callable
from decimal import Decimal
from io import BytesIO, StringIO
from typing import List, Optional

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from app.db.models import Transaction
from app.errors import ExportSweepError
from app.logging_setup import get_logger
from app.services.filters import FilterCriteria, format_timestamp
from app.services.pagination import OffsetPager, PageResult

logger = get_logger(__name__)

DEFAULT_FILENAME = "transactions_export"

COLUMN_DEFS = {
    "id": ("Transaction id", 38),
    "date": ("Date", 28),
    "merchant_name": ("Merchant", 30),
    "amount_cents": ("Amount (cents)", 16),
    "amount": ("Amount", 14),
    "status": ("Status", 12),
    "merchant_image": ("Merchant image", 40),
}


def sweep(fetch_page: Callable[[int], PageResult]) -> List[Transaction]:
    page_number = 1
    rows: List[Transaction] = []
    while True:
        try:
            page = fetch_page(page_number)
        except Exception as exc:
            logger.warning(
                "Export sweep aborted on page %d after %d rows: %s",
                page_number,
                len(rows),
                exc,
            )
            raise ExportSweepError(page_number) from exc

        if not page.items:
            break
        rows.extend(page.items)
        logger.debug("Export sweep page %d: %d rows so far", page_number, len(rows))
        if not page.has_next_page:
            break
        page_number += 1

    return rows


def export_transactions(pager: OffsetPager, criteria: FilterCriteria) -> List[Transaction]:
    return sweep(lambda page: pager.fetch_page(criteria, page, include_merchants=False))


def _record(transaction: Transaction) -> dict:
    return {
        "id": transaction.id,
        "date": format_timestamp(transaction.date),
        "merchant_name": transaction.merchant_name,
        "amount_cents": transaction.amount_cents,
        "amount": Decimal(transaction.amount_cents) / 100,
        "status": transaction.status,
        "merchant_image": transaction.merchant_image,
    }


def write_csv(transactions: List[Transaction]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow([header for header, _width in COLUMN_DEFS.values()])
    for transaction in transactions:
        record = _record(transaction)
        writer.writerow(
            [f"{record[key]:.2f}" if key == "amount" else record[key] for key in COLUMN_DEFS]
        )
    return output.getvalue()


def write_workbook(transactions: List[Transaction]) -> BytesIO:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Transactions"
    sheet.freeze_panes = "A2"
    sheet.auto_filter.ref = f"A1:{get_column_letter(len(COLUMN_DEFS))}1"

    for column_index, (header, width) in enumerate(COLUMN_DEFS.values(), start=1):
        cell = sheet.cell(row=1, column=column_index, value=header)
        cell.font = Font(bold=True)
        sheet.column_dimensions[get_column_letter(column_index)].width = width

    for row_index, transaction in enumerate(transactions, start=2):
        record = _record(transaction)
        for column_index, key in enumerate(COLUMN_DEFS, start=1):
            cell = sheet.cell(row=row_index, column=column_index, value=record[key])
            if key == "amount":
                cell.number_format = "#,##0.00"

    output = BytesIO()
    workbook.save(output)
    output.seek(0)
    return output


def export_filename(filename: Optional[str], extension: str) -> str:
    name = (filename or DEFAULT_FILENAME).replace('"', "").strip() or DEFAULT_FILENAME
    if not name.lower().endswith(f".{extension}"):
        name = f"{name}.{extension}"
    return name
