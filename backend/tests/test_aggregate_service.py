"""
Tests for the aggregate folds and write primitives.
"""

import pytest

from retailcore.errors import IncompleteRecordError
from retailcore.models import DailyProductSales, DailySalesSummary, DailyStaffSales
from retailcore.services import aggregate_service
from retailcore.services.aggregate_service import AggregateInput, fold_staff, fold_summary


def _input(value_cents=4500, hour="14", staff_id="S1", product_code="PRD1", weight_grams=450):
    return AggregateInput(
        transaction_id=1,
        sale_date="2024-04-03",
        hour=hour,
        staff_id=staff_id,
        product_code=product_code,
        product_name="Paneer",
        weight_grams=weight_grams,
        value_cents=value_cents,
    )


class TestFolds:
    def test_fold_summary_adds_to_hour_and_totals(self):
        state = {"total_value_cents": 0, "total_count": 0, "hourly_breakdown": {}}
        state = fold_summary(state, _input(4500), +1)
        state = fold_summary(state, _input(3000, hour="09"), +1)

        assert state["total_value_cents"] == 7500
        assert state["total_count"] == 2
        assert state["hourly_breakdown"] == {
            "14": {"value_cents": 4500, "count": 1},
            "09": {"value_cents": 3000, "count": 1},
        }

    def test_fold_summary_does_not_mutate_input(self):
        original = {"total_value_cents": 4500, "total_count": 1, "hourly_breakdown": {"14": {"value_cents": 4500, "count": 1}}}
        fold_summary(original, _input(4500), +1)
        assert original["hourly_breakdown"]["14"] == {"value_cents": 4500, "count": 1}

    def test_reversal_prunes_empty_hour(self):
        state = fold_summary({}, _input(4500), +1)
        state = fold_summary(state, _input(4500), -1)
        assert state == {"total_value_cents": 0, "total_count": 0, "hourly_breakdown": {}}

    def test_fold_staff_upgrades_unknown_name(self):
        stats = fold_staff({}, _input(), +1, None)
        assert stats["S1"]["name"] == "Unknown Staff"

        stats = fold_staff(stats, _input(), +1, "Asha")
        assert stats["S1"] == {"name": "Asha", "total_value_cents": 9000, "total_count": 2}

    def test_fold_staff_prunes_on_zero_count(self):
        stats = fold_staff({}, _input(), +1, "Asha")
        assert fold_staff(stats, _input(), -1, "Asha") == {}


class TestInputExtraction:
    def test_incomplete_record_lists_missing_fields(self, db_session, make_tx):
        tx = make_tx(staff_id=None)
        with pytest.raises(IncompleteRecordError) as excinfo:
            aggregate_service.aggregate_input_from(tx)
        assert excinfo.value.missing == ["staff_id"]
        assert excinfo.value.record_id == tx.id

    def test_hour_comes_from_business_time(self, db_session, make_tx):
        tx = make_tx(hour=7)
        assert aggregate_service.aggregate_input_from(tx).hour == "07"


class TestWritePrimitives:
    def test_merged_replace_creates_and_updates_rows(self, db_session):
        aggregate_service.apply_merged_replace("2024-04-03", [_input(4500)], +1, staff_names={"S1": "Asha"})
        db_session.commit()
        aggregate_service.apply_merged_replace("2024-04-03", [_input(3000, staff_id="S2")], +1)
        db_session.commit()

        summary = db_session.get(DailySalesSummary, "2024-04-03")
        assert summary.total_value_cents == 7500
        assert summary.total_count == 2
        staff_row = db_session.get(DailyStaffSales, "2024-04-03")
        assert staff_row.staff_stats["S1"]["name"] == "Asha"
        assert staff_row.staff_stats["S2"]["name"] == "Unknown Staff"

    def test_merged_replace_reversal_deletes_empty_rows(self, db_session):
        aggregate_service.apply_merged_replace("2024-04-03", [_input()], +1)
        db_session.commit()
        aggregate_service.apply_merged_replace("2024-04-03", [_input()], -1)
        db_session.commit()

        assert db_session.get(DailySalesSummary, "2024-04-03") is None
        assert db_session.get(DailyStaffSales, "2024-04-03") is None

    def test_additive_increment_groups_by_product(self, db_session):
        inputs = [_input(4500), _input(3000, weight_grams=300), _input(2000, product_code="PRD2", weight_grams=100)]
        touched = aggregate_service.apply_additive_increment("2024-04-03", inputs, +1)
        db_session.commit()

        assert touched == 2
        row = db_session.get(DailyProductSales, "2024-04-03_PRD1")
        assert (row.total_value_cents, row.total_weight_grams, row.total_count) == (7500, 750, 2)
        assert db_session.get(DailyProductSales, "2024-04-03_PRD2").total_value_cents == 2000

    def test_additive_increment_adds_to_existing_row(self, db_session):
        aggregate_service.apply_additive_increment("2024-04-03", [_input(4500)], +1)
        db_session.commit()
        aggregate_service.apply_additive_increment("2024-04-03", [_input(3000)], +1)
        db_session.commit()

        assert aggregate_service.get_product_daily_summary("2024-04-03", "PRD1")["total_value_cents"] == 7500

    def test_additive_decrement_to_zero_deletes_row(self, db_session):
        aggregate_service.apply_additive_increment("2024-04-03", [_input(4500)], +1)
        db_session.commit()
        aggregate_service.apply_additive_increment("2024-04-03", [_input(4500)], -1)
        db_session.commit()

        assert db_session.query(DailyProductSales).count() == 0


class TestReadSide:
    def test_absent_rows_read_as_zero(self, db_session):
        summary = aggregate_service.get_daily_summary("2030-01-01")
        assert summary["total_value_cents"] == 0
        assert summary["total_count"] == 0
        assert summary["hourly_breakdown"] == {}
        assert aggregate_service.get_staff_daily_summary("2030-01-01")["staff_stats"] == {}
        assert aggregate_service.get_product_daily_summary("2030-01-01", "PRD1")["total_weight_grams"] == 0
        assert aggregate_service.list_product_daily_summaries("2030-01-01") == []
