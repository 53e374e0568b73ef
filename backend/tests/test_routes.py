"""
HTTP tests for the JSON API blueprints.
"""

from sqlalchemy import text

from retailcore.models import SALE_TX_RANGE_INDEX


def _record(client, weight=450, staff_id="S1", occurred_at="2024-04-03T14:00:00Z"):
    return client.post("/api/sales", json={
        "product_code": "PRD1",
        "weight_grams": weight,
        "staff_id": staff_id,
        "occurred_at": occurred_at,
    })


def test_health(client, db_session):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json["status"] == "healthy"
    assert response.json["checks"]["range_index"]["status"] == "healthy"


def test_record_sale_and_read_aggregates(client, db_session, staff, product):
    response = _record(client)
    assert response.status_code == 201
    assert response.json["transaction"]["line_value_cents"] == 4500

    daily = client.get("/api/aggregates/daily/2024-04-03").json
    assert daily["total_value_cents"] == 4500
    staff_stats = client.get("/api/aggregates/staff/2024-04-03").json["staff_stats"]
    assert staff_stats["S1"]["total_count"] == 1
    products = client.get("/api/aggregates/products/2024-04-03").json["items"]
    assert [p["product_code"] for p in products] == ["PRD1"]
    one = client.get("/api/aggregates/products/2024-04-03/PRD1").json
    assert one["total_weight_grams"] == 450


def test_record_sale_validation_errors(client, db_session, staff, product):
    assert _record(client, weight=2000).status_code == 400
    assert client.post("/api/sales", data="not json", content_type="text/plain").status_code == 400
    response = client.post("/api/sales", json={"product_code": "NOPE", "weight_grams": 100, "staff_id": "S1"})
    assert response.status_code == 404


def test_status_update_and_returns_log(client, db_session, staff, product):
    tx_id = _record(client).json["transaction"]["id"]

    response = client.put(f"/api/sales/{tx_id}/status", json={"status": "RETURNED_PRE_BILLING"})
    assert response.status_code == 200
    assert client.put(f"/api/sales/{tx_id}/status", json={"status": "RETURNED_PRE_BILLING"}).status_code == 400

    returns = client.get("/api/sales/returns?start_date=2024-04-03").json
    assert returns["count"] == 1
    assert client.get("/api/aggregates/daily/2024-04-03").json["total_count"] == 0


def test_delete_transaction(client, db_session, staff, product, make_tx):
    tx_id = _record(client).json["transaction"]["id"]

    response = client.delete(f"/api/sales/{tx_id}")
    assert response.status_code == 200
    assert response.json["aggregates_reversed"] is True
    assert client.delete(f"/api/sales/{tx_id}").status_code == 404

    incomplete = make_tx(staff_id=None)
    response = client.delete(f"/api/sales/{incomplete.id}")
    assert response.status_code == 422
    assert response.json["missing"] == ["staff_id"]


def test_reconcile_endpoints(client, db_session, staff, product, make_tx):
    make_tx()
    make_tx(minute=30)

    count = client.get("/api/reconcile/count?date=2024-04-03").json
    assert count["count"] == 2

    page = client.post("/api/reconcile/page", json={"date": "2024-04-03", "page_size": 10, "is_first_page": True})
    assert page.status_code == 200
    assert page.json["processed"] == 2
    assert page.json["has_more"] is False

    assert client.get("/api/reconcile/count?date=April").status_code == 400


def test_reconcile_page_rejects_non_boolean_first_page_flag(client, db_session, staff, product, make_tx):
    for minute in (0, 10, 20, 30):
        make_tx(minute=minute)

    page1 = client.post("/api/reconcile/page", json={"date": "2024-04-03", "page_size": 2, "is_first_page": True})
    assert page1.status_code == 200

    page2 = client.post("/api/reconcile/page", json={
        "date": "2024-04-03", "page_size": 2, "cursor": page1.json["next_cursor"], "is_first_page": "false",
    })
    assert page2.status_code == 400
    assert client.get("/api/aggregates/daily/2024-04-03").json["total_count"] == 2

    page2 = client.post("/api/reconcile/page", json={
        "date": "2024-04-03", "page_size": 2, "cursor": page1.json["next_cursor"], "is_first_page": False,
    })
    assert page2.status_code == 200
    assert client.get("/api/aggregates/daily/2024-04-03").json["total_count"] == 4


def test_reconcile_without_index_returns_500_with_details(client, db_session, staff, product, make_tx):
    make_tx()
    db_session.execute(text(f"DROP INDEX {SALE_TX_RANGE_INDEX}"))
    db_session.commit()
    try:
        response = client.post("/api/reconcile/page", json={"date": "2024-04-03"})
        assert response.status_code == 500
        assert SALE_TX_RANGE_INDEX in response.json["details"]
        assert client.get("/health").json["checks"]["range_index"]["status"] == "degraded"
    finally:
        db_session.rollback()
        db_session.execute(
            text(f"CREATE INDEX {SALE_TX_RANGE_INDEX} ON sale_transactions (status, sale_date, id)")
        )
        db_session.commit()


def test_stock_ledger_endpoints(client, db_session, staff, product, second_product):
    listing = client.get("/api/stock-ledger?month=2024-04")
    assert listing.status_code == 200
    assert len(listing.json["items"]) == 2

    response = client.post("/api/stock-ledger/restock", json={
        "product_code": "PRD1", "month": "2024-04", "quantity_kg": 10, "restock_date": "2024-04-02",
    })
    assert response.status_code == 201
    assert response.json["ledger"]["total_restocked_kg"] == 10

    bad = client.post("/api/stock-ledger/restock", json={
        "product_code": "PRD1", "month": "2024-04", "quantity_kg": 0, "restock_date": "2024-04-02",
    })
    assert bad.status_code == 400

    response = client.put("/api/stock-ledger/opening-stock", json={
        "product_code": "PRD1", "month": "2024-04", "opening_stock_kg": 2.5,
    })
    assert response.status_code == 200
    assert response.json["ledger"]["closing_stock_kg"] == 12.5

    missing = client.put("/api/stock-ledger/opening-stock", json={
        "product_code": "PRD1", "month": "2024-06", "opening_stock_kg": 1,
    })
    assert missing.status_code == 404

    _record(client, occurred_at="2024-04-05T10:00:00Z")
    synced = client.post("/api/stock-ledger/sync-sales", json={"month": "2024-04"})
    assert synced.status_code == 200
    assert client.get("/api/stock-ledger/PRD1/2024-04").json["ledger"]["total_sold_kg"] == 0.45

    export = client.get("/api/stock-ledger/export?month=2024-04")
    assert export.status_code == 200
    assert export.mimetype == "text/csv"
    assert "PRD1" in export.get_data(as_text=True)


def test_sync_sales_partial_success_is_207(client, db_session, product, second_product):
    client.get("/api/stock-ledger/PRD1/2024-04")
    response = client.post("/api/stock-ledger/sync-sales", json={"month": "2024-04"})
    assert response.status_code == 207
    assert response.json["errors"][0]["product_code"] == "PRD2"


def test_target_endpoints(client, db_session, staff, product):
    _record(client, weight=1000, occurred_at="2024-04-02T10:00:00Z")

    saved = client.put("/api/targets/2024-04", json={"weeks": {
        "week1": {"overall_target_cents": 5000, "staff": {"S1": {"target_cents": 5000, "incentive_percentage": 1}}},
    }})
    assert saved.status_code == 200
    assert client.get("/api/targets/2024-04").json["weeks"]["week1"]["overall_target_cents"] == 5000

    incentives = client.get("/api/targets/2024-04/incentives").json
    assert incentives["weeks"][0]["staff"]["S1"]["incentive_cents"] == 100
    assert incentives["total_incentives_cents"] == 100

    achievement = client.get("/api/targets/achievement?staff_id=S1&week_start=2024-04-01&week_end=2024-04-07").json
    assert achievement["total_value_cents"] == 10000

    assert client.put("/api/targets/2024-04", json={"weeks": {"week9": {}}}).status_code == 400
    assert client.get("/api/targets/24-04").status_code == 400


def test_bulk_sale_status_codes(client, db_session, staff, product):
    good = {"product_code": "PRD1", "weight_grams": 450, "staff_id": "S1", "occurred_at": "2024-04-03T14:00:00Z"}
    bad = {"product_code": "NOPE", "weight_grams": 450, "staff_id": "S1", "barcode_scanned": "X9"}

    created = client.post("/api/sales/bulk", json={"sales": [good, good]})
    assert created.status_code == 201
    assert created.json["processed"] == 2

    partial = client.post("/api/sales/bulk", json={"sales": [good, bad]})
    assert partial.status_code == 207
    assert partial.json["errors"][0]["barcode_scanned"] == "X9"

    failed = client.post("/api/sales/bulk", json={"sales": [bad]})
    assert failed.status_code == 400
    assert failed.json["processed"] == 0

    assert client.post("/api/sales/bulk", json={"sales": []}).status_code == 400
    assert client.get("/api/aggregates/daily/2024-04-03").json["total_count"] == 3
