"""
Tests for week windows, target storage and incentive evaluation.
"""

import pytest

from retailcore.errors import ValidationError
from retailcore.services import incentive_service, sales_service
from retailcore.services.incentive_service import evaluate_staff_incentive, week_windows


def _sell(grams, day, staff_id="S1"):
    # PRD1 sells at 100.00/kg, so grams == cents / 10
    sales_service.record_sale(product_code="PRD1", weight_grams=grams, staff_id=staff_id,
                              occurred_at=f"{day}T11:00:00Z")


class TestWeekWindows:
    def test_thirty_one_day_month_has_five_windows(self):
        windows = week_windows("2024-03")
        assert [(w["start_date"][-2:], w["end_date"][-2:]) for w in windows] == [
            ("01", "07"), ("08", "14"), ("15", "21"), ("22", "28"), ("29", "31"),
        ]
        assert windows[0]["key"] == "week1"
        assert windows[4]["label"] == "Week (29-31)"

    def test_non_leap_february_has_four_windows(self):
        assert len(week_windows("2023-02")) == 4

    def test_leap_february_has_single_day_last_window(self):
        last = week_windows("2024-02")[-1]
        assert (last["start_date"], last["end_date"]) == ("2024-02-29", "2024-02-29")


class TestEligibility:
    def test_meeting_target_exactly_is_not_eligible(self):
        outcome = evaluate_staff_incentive(100000, 100000, 0.5)
        assert outcome == {"eligible": False, "incentive_cents": 0, "reason": "TARGET_NOT_MET"}

    def test_one_cent_over_target_is_eligible(self):
        outcome = evaluate_staff_incentive(100001, 100000, 0.5)
        assert outcome["eligible"] is True
        # 1000.01 * 0.5% = 5.00005 -> 5.00
        assert outcome["incentive_cents"] == 500

    def test_reason_order(self):
        assert evaluate_staff_incentive(5000, 0, 0)["reason"] == "NO_TARGET"
        assert evaluate_staff_incentive(5000, 100, 0)["reason"] == "NO_INCENTIVE_RATE"
        assert evaluate_staff_incentive(50, 100, 1)["reason"] == "TARGET_NOT_MET"


class TestTargets:
    def test_staff_in_sales_get_default_targets(self, db_session, staff, product):
        _sell(500, "2024-04-02")

        targets = incentive_service.get_monthly_targets("2024-04")

        assert targets["configured"] is False
        assert targets["weeks"]["week1"]["staff"]["S1"] == {"target_cents": 0, "incentive_percentage": 0.5}
        assert set(targets["weeks"]) == {"week1", "week2", "week3", "week4", "week5"}

    def test_save_merges_weeks(self, db_session):
        incentive_service.save_monthly_targets("2024-04", {
            "week1": {"overall_target_cents": 1000, "staff": {"S1": {"target_cents": 500, "incentive_percentage": 1}}},
        })
        saved = incentive_service.save_monthly_targets("2024-04", {
            "week2": {"overall_target_cents": 2000, "staff": {}},
        })

        assert saved["configured"] is True
        assert saved["weeks"]["week1"]["staff"]["S1"]["target_cents"] == 500
        assert saved["weeks"]["week2"]["overall_target_cents"] == 2000

    def test_save_rejects_unknown_week(self, db_session):
        with pytest.raises(ValidationError):
            incentive_service.save_monthly_targets("2023-02", {"week5": {}})

    def test_save_rejects_bad_values(self, db_session):
        with pytest.raises(ValidationError):
            incentive_service.save_monthly_targets("2024-04", {
                "week1": {"staff": {"S1": {"target_cents": -1, "incentive_percentage": 1}}},
            })
        with pytest.raises(ValidationError):
            incentive_service.save_monthly_targets("2024-04", {
                "week1": {"staff": {"S1": {"target_cents": 1, "incentive_percentage": 101}}},
            })


class TestEvaluation:
    def test_weekly_achievement_sums_window(self, db_session, staff, product):
        _sell(500, "2024-04-01")
        _sell(300, "2024-04-07")
        _sell(200, "2024-04-08")
        _sell(900, "2024-04-03", staff_id="S2")

        result = incentive_service.get_weekly_achievement("S1", "2024-04-01", "2024-04-07")

        assert result["total_value_cents"] == 8000
        assert result["total_count"] == 2
        assert result["daily_value_cents"] == {"2024-04-01": 5000, "2024-04-07": 3000}

    def test_evaluate_incentives(self, db_session, staff, product):
        _sell(1000, "2024-04-02")                  # S1: 100.00 in week1
        _sell(500, "2024-04-03", staff_id="S2")    # S2: 50.00 in week1
        _sell(1000, "2024-04-09")                  # S1: 100.00 in week2
        incentive_service.save_monthly_targets("2024-04", {
            "week1": {
                "overall_target_cents": 12000,
                "staff": {
                    "S1": {"target_cents": 9999, "incentive_percentage": 2},
                    "S2": {"target_cents": 5000, "incentive_percentage": 2},
                },
            },
            "week2": {
                "overall_target_cents": 0,
                "staff": {"S1": {"target_cents": 10000, "incentive_percentage": 2}},
            },
        })

        result = incentive_service.evaluate_incentives("2024-04")
        week1, week2 = result["weeks"][0], result["weeks"][1]

        assert week1["overall"] == {"sales_cents": 15000, "target_cents": 12000, "target_reached": True}
        assert week1["staff"]["S1"]["eligible"] is True
        assert week1["staff"]["S1"]["incentive_cents"] == 200
        assert week1["staff"]["S1"]["name"] == "Asha"
        assert week1["staff"]["S2"]["reason"] == "TARGET_NOT_MET"
        assert week1["staff"]["S2"]["target_reached"] is True
        assert week1["total_incentives_cents"] == 200

        assert week2["staff"]["S1"]["reason"] == "TARGET_NOT_MET"
        # S2 had no week2 target: default rate, target 0
        assert week2["staff"]["S2"]["reason"] == "NO_TARGET"
        assert week2["staff"]["S2"]["incentive_percentage"] == 0.5

        assert result["total_incentives_cents"] == 200
