import csv
from datetime import datetime
from io import BytesIO, StringIO

from fastapi.testclient import TestClient
from openpyxl import load_workbook

from app.main import create_app
from factories import MERCHANTS, make_transaction, spread_transactions


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_list_transactions_shape(client, add_transactions):
    add_transactions(spread_transactions(60))

    response = client.get("/transaction")

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"] == {
        "currentPage": 1,
        "totalPages": 2,
        "hasNextPage": True,
        "totalCount": 60,
    }
    assert body["allMerchants"] == sorted(MERCHANTS)
    assert len(body["transactions"]) == 50
    first = body["transactions"][0]
    assert set(first) == {"id", "amountCents", "merchantName", "merchantImage", "date", "status"}
    assert first["date"] == "2024-03-31T23:00:00.000000Z"


def test_list_transactions_filters(client, add_transactions):
    add_transactions(
        [
            make_transaction(date=datetime(2024, 1, 10), amount_cents=1000, merchant_name="Blue Bottle"),
            make_transaction(date=datetime(2024, 1, 11), amount_cents=999, merchant_name="Blue Bottle"),
            make_transaction(date=datetime(2024, 1, 12), amount_cents=1500, merchant_name="Corner Market"),
            make_transaction(date=datetime(2023, 5, 1), amount_cents=1200, merchant_name="Metro Transit"),
        ]
    )

    response = client.get(
        "/transaction",
        params={
            "from": "2024-01-01T00:00:00.000Z",
            "to": "2024-01-31T23:59:59.999Z",
            "merchant": "Blue Bottle",
            "minAmount": "1000",
            "maxAmount": "2000",
        },
    )

    body = response.json()
    assert [t["amountCents"] for t in body["transactions"]] == [1000]
    assert body["pagination"]["totalCount"] == 1
    assert body["allMerchants"] == ["Blue Bottle", "Corner Market"]


def test_merchant_all_means_no_merchant_filter(client, add_transactions):
    add_transactions(spread_transactions(8))
    everything = client.get("/transaction").json()
    with_sentinel = client.get("/transaction", params={"merchant": "all"}).json()
    assert with_sentinel == everything


def test_malformed_filters_are_ignored(client, add_transactions):
    add_transactions(spread_transactions(5))
    response = client.get("/transaction", params={"from": "soon", "minAmount": "lots"})
    assert response.status_code == 200
    assert response.json()["pagination"]["totalCount"] == 5


def test_page_past_the_end_is_empty(client, add_transactions):
    add_transactions(spread_transactions(5))
    body = client.get("/transaction", params={"page": 4}).json()
    assert body["transactions"] == []
    assert body["pagination"]["hasNextPage"] is False


def test_huge_page_number_is_empty(client, add_transactions):
    add_transactions(spread_transactions(5))
    response = client.get("/transaction", params={"page": 10**18})
    assert response.status_code == 200
    body = response.json()
    assert body["transactions"] == []
    assert body["pagination"]["hasNextPage"] is False
    assert body["pagination"]["totalCount"] == 5


def test_out_of_range_amount_filter_is_ignored(client, add_transactions):
    add_transactions(spread_transactions(5))
    response = client.get(
        "/transaction", params={"minAmount": "1" + "0" * 30, "maxAmount": "1e30"}
    )
    assert response.status_code == 200
    assert response.json()["pagination"]["totalCount"] == 5


def test_invalid_page_is_a_client_error(client):
    for page in ("0", "abc"):
        response = client.get("/transaction", params={"page": page})
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"


def test_feed_follows_cursor(client, add_transactions):
    add_transactions(spread_transactions(3))

    body = client.get("/transaction/feed").json()

    assert len(body["transactions"]) == 3
    assert body["nextCursor"] is None

    cursor = body["transactions"][0]["date"]
    older = client.get("/transaction/feed", params={"cursor": cursor}).json()
    assert [t["id"] for t in older["transactions"]] == [t["id"] for t in body["transactions"][1:]]


def test_feed_rejects_malformed_cursor(client):
    response = client.get("/transaction/feed", params={"cursor": "page-2"})
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"


def test_daily_totals(client, add_transactions):
    add_transactions(
        [
            make_transaction(date=datetime(2024, 3, 9, 10, 0), amount_cents=500),
            make_transaction(date=datetime(2024, 3, 10, 10, 0), amount_cents=250),
            make_transaction(date=datetime(2024, 3, 10, 18, 0), amount_cents=250),
            make_transaction(date=datetime(2024, 4, 1, 9, 0), amount_cents=75),
        ]
    )

    response = client.get("/transaction/daily-totals", params={"month": 3, "year": 2024})

    assert response.status_code == 200
    assert response.json() == {
        "dailyTotals": {
            "2024-03-09": {"totalAmount": 500, "transactionCount": 1},
            "2024-03-10": {"totalAmount": 500, "transactionCount": 2},
        }
    }

    spanning = client.get(
        "/transaction/daily-totals", params={"month": 3, "year": 2024, "span": 2}
    ).json()
    assert spanning["dailyTotals"]["2024-04-01"] == {"totalAmount": 75, "transactionCount": 1}


def test_daily_totals_rejects_invalid_params(client):
    for params in ({"month": 13, "year": 2024}, {"month": "x", "year": 2024}, {"month": 3}):
        response = client.get("/transaction/daily-totals", params=params)
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"
        assert "dailyTotals" not in response.json()


def test_export_csv(client, add_transactions):
    add_transactions(spread_transactions(130))

    response = client.get("/transaction/export", params={"filename": "march"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"] == 'attachment; filename="march.csv"'
    rows = list(csv.reader(StringIO(response.text)))
    assert len(rows) == 131
    assert len({row[0] for row in rows[1:]}) == 130


def test_export_xlsx(client, add_transactions):
    add_transactions(spread_transactions(12))
    response = client.get(
        "/transaction/export", params={"format": "xlsx", "merchant": MERCHANTS[1]}
    )
    assert response.status_code == 200
    sheet = load_workbook(BytesIO(response.content)).active
    assert sheet.max_row == 4


def test_store_errors_are_server_errors(broken_database):
    with TestClient(create_app(database=broken_database)) as client:
        listing = client.get("/transaction")
        totals = client.get("/transaction/daily-totals", params={"month": 1, "year": 2024})
        export = client.get("/transaction/export")

    assert listing.status_code == 500
    assert listing.json()["error"] == "store_error"
    assert totals.status_code == 500
    assert totals.json()["error"] == "store_error"
    assert export.status_code == 500
    assert export.json()["error"] == "export_failed"


def test_unexpected_errors_are_internal_errors(database):
    app = create_app(database=database)

    @app.get("/explode")
    def explode():
        raise RuntimeError("boom")

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/explode")

    assert response.status_code == 500
    assert response.json() == {"error": "internal_error", "detail": "Internal Server Error"}
