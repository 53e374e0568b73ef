"""
Tests for the deletion compensator.
"""

import pytest

from retailcore.errors import IncompleteRecordError, NotFoundError
from retailcore.models import DailyProductSales, DailySalesSummary, DailyStaffSales, SaleTransaction, TransactionStatus
from retailcore.services import aggregate_service, deletion_service, reconcile_service, sales_service


def _state(sale_date="2024-04-03"):
    summary = aggregate_service.get_daily_summary(sale_date)
    staff = aggregate_service.get_staff_daily_summary(sale_date)
    products = aggregate_service.list_product_daily_summaries(sale_date)
    for item in [summary, staff, *products]:
        item.pop("updated_at", None)
    return summary, staff, products


def test_create_then_delete_restores_all_aggregates(db_session, staff, product):
    sales_service.record_sale(product_code="PRD1", weight_grams=450, staff_id="S1",
                              occurred_at="2024-04-03T10:00:00Z")
    before = _state()

    tx = sales_service.record_sale(product_code="PRD1", weight_grams=1205, staff_id="S2",
                                   occurred_at="2024-04-03T15:30:00Z")
    assert tx.line_value_cents == 12050
    assert aggregate_service.get_daily_summary("2024-04-03")["total_value_cents"] == 4500 + 12050

    result = deletion_service.delete_transaction(tx.id)

    assert result["aggregates_reversed"] is True
    assert _state() == before
    assert db_session.get(SaleTransaction, tx.id) is None


def test_deleting_only_sale_of_day_removes_rows(db_session, staff, product):
    tx = sales_service.record_sale(product_code="PRD1", weight_grams=1205, staff_id="S1",
                                   occurred_at="2024-04-03T15:30:00Z")

    deletion_service.delete_transaction(tx.id)

    assert db_session.get(DailySalesSummary, "2024-04-03") is None
    assert db_session.get(DailyStaffSales, "2024-04-03") is None
    assert db_session.query(DailyProductSales).count() == 0


def test_delete_after_reconcile_matches_rebuild(db_session, staff, product, make_tx):
    keep = make_tx(value_cents=4500)
    drop = make_tx(value_cents=3000, staff_id="S2", hour=16)
    reconcile_service.reconcile_day("2024-04-03")

    deletion_service.delete_transaction(drop.id)
    after_delete = _state()
    reconcile_service.reconcile_day("2024-04-03")

    assert after_delete == _state()
    assert after_delete[0]["total_value_cents"] == keep.line_value_cents


def test_returned_transaction_deleted_without_reversal(db_session, staff, product, make_tx):
    make_tx(value_cents=4500)
    returned = make_tx(value_cents=9999, status=TransactionStatus.RETURNED_PRE_BILLING)
    reconcile_service.reconcile_day("2024-04-03")
    before = _state()

    result = deletion_service.delete_transaction(returned.id)

    assert result["aggregates_reversed"] is False
    assert _state() == before


def test_unknown_transaction(db_session):
    with pytest.raises(NotFoundError):
        deletion_service.delete_transaction(424242)


def test_incomplete_sold_record_aborts_delete(db_session, staff, product, make_tx):
    tx = make_tx(product_code=None)

    with pytest.raises(IncompleteRecordError) as excinfo:
        deletion_service.delete_transaction(tx.id)

    assert "product_code" in excinfo.value.missing
    assert db_session.get(SaleTransaction, tx.id) is not None
