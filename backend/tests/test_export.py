import csv
from datetime import datetime
from io import StringIO

import pytest
from openpyxl import load_workbook
from sqlalchemy.exc import OperationalError

from app.errors import ExportSweepError
from app.services.export import (
    export_filename,
    export_transactions,
    sweep,
    write_csv,
    write_workbook,
)
from app.services.filters import FilterCriteria
from app.services.pagination import OffsetPager, PageResult
from factories import expected_order, make_transaction, spread_transactions


def test_sweep_of_130_rows_takes_three_fetches(database, add_transactions):
    rows = add_transactions(spread_transactions(130))
    pager = OffsetPager(database)
    fetched_pages = []

    def fetch(page):
        fetched_pages.append(page)
        return pager.fetch_page(FilterCriteria(), page, include_merchants=False)

    result = sweep(fetch)

    assert fetched_pages == [1, 2, 3]
    assert len(result) == len({t.id for t in result}) == 130
    assert [t.id for t in result] == expected_order(rows)


def test_export_transactions_applies_filters(database, add_transactions):
    add_transactions(spread_transactions(60))
    result = export_transactions(OffsetPager(database), FilterCriteria(max_amount_cents=119))
    assert sorted(t.amount_cents for t in result) == list(range(100, 120))


def test_empty_filtered_set_exports_nothing(database):
    assert export_transactions(OffsetPager(database), FilterCriteria()) == []


def test_sweep_stops_on_empty_page_despite_has_next():
    calls = []

    def fetch(page):
        calls.append(page)
        items = [make_transaction(date=datetime(2024, 1, 1))] if page == 1 else []
        return PageResult(
            items=items, current_page=page, total_pages=5, has_next_page=True, total_count=250
        )

    assert len(sweep(fetch)) == 1
    assert calls == [1, 2]


def test_failure_mid_sweep_aborts_whole_export():
    failure = OperationalError("SELECT 1", {}, Exception("connection lost"))

    def fetch(page):
        if page == 2:
            raise failure
        return PageResult(
            items=[make_transaction(date=datetime(2024, 1, 1))],
            current_page=page,
            total_pages=3,
            has_next_page=True,
            total_count=3,
        )

    with pytest.raises(ExportSweepError) as excinfo:
        sweep(fetch)
    assert excinfo.value.page == 2
    assert excinfo.value.__cause__ is failure


def test_store_failure_surfaces_as_sweep_error(broken_database):
    with pytest.raises(ExportSweepError) as excinfo:
        export_transactions(OffsetPager(broken_database), FilterCriteria())
    assert isinstance(excinfo.value.__cause__, OperationalError)


def test_write_csv():
    transaction = make_transaction(
        date=datetime(2024, 4, 1, 9, 15, 0),
        amount_cents=1999,
        merchant_name="Corner Market",
        id="11111111-2222-3333-4444-555555555555",
    )
    rows = list(csv.reader(StringIO(write_csv([transaction]))))

    assert rows[0] == [
        "Transaction id",
        "Date",
        "Merchant",
        "Amount (cents)",
        "Amount",
        "Status",
        "Merchant image",
    ]
    assert rows[1][:6] == [
        "11111111-2222-3333-4444-555555555555",
        "2024-04-01T09:15:00.000000Z",
        "Corner Market",
        "1999",
        "19.99",
        "completed",
    ]


def test_write_workbook():
    transactions = list(spread_transactions(3))
    sheet = load_workbook(write_workbook(transactions)).active

    assert sheet.title == "Transactions"
    assert sheet.cell(row=1, column=1).value == "Transaction id"
    assert sheet.max_row == 4
    assert sheet.cell(row=2, column=4).value == 100


@pytest.mark.parametrize(
    "filename, extension, expected",
    [
        (None, "csv", "transactions_export.csv"),
        ("  ", "xlsx", "transactions_export.xlsx"),
        ("march", "csv", "march.csv"),
        ("march.CSV", "csv", "march.CSV"),
        ('bad"name', "csv", "badname.csv"),
    ],
)
def test_export_filename(filename, extension, expected):
    assert export_filename(filename, extension) == expected
