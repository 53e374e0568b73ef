# Overview: Service-layer operations for weekly targets and staff incentives; read-only over the staff aggregates.

from __future__ import annotations

from enum import Enum

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import DailyStaffSales, MonthlyTarget
from ..time_utils import month_bounds, parse_date_key, parse_month_key, utcnow
from ..validation import percentage_of_cents, require_non_negative_cents, require_percentage
from . import event_store
from .concurrency import run_with_retry

"""
Weekly incentive rules

- A month is split into 7-day windows starting on days 1, 8, 15, 22 and 29;
  the last window is truncated at month end (February has no 29-day window
  in non-leap years).
- A staff member's weekly sales are the sum of their daily staff totals in
  the window.
- Eligible iff sales > target, target > 0 and incentive percentage > 0.
  Meeting the target exactly is not enough.
- incentive = round_half_up(sales * percentage / 100), in cents.
- Staff with sales but no configured target get target 0 and the default
  incentive percentage.
"""

WEEK_START_DAYS = (1, 8, 15, 22, 29)


class IneligibilityReason(str, Enum):
    NO_TARGET = "NO_TARGET"
    NO_INCENTIVE_RATE = "NO_INCENTIVE_RATE"
    TARGET_NOT_MET = "TARGET_NOT_MET"


def week_windows(month: str) -> list[dict]:
    month = parse_month_key(month)
    first_day, last_day = month_bounds(month)
    days_in_month = int(last_day[8:10])

    windows = []
    for index, start in enumerate(WEEK_START_DAYS, start=1):
        if start > days_in_month:
            break
        end = min(start + 6, days_in_month)
        windows.append(
            {
                "key": f"week{index}",
                "label": f"Week ({start:02d}-{end:02d})",
                "start_date": f"{month}-{start:02d}",
                "end_date": f"{month}-{end:02d}",
            }
        )
    return windows


def _default_staff_target() -> dict:
    return {
        "target_cents": 0,
        "incentive_percentage": float(current_app.config.get("DEFAULT_INCENTIVE_PERCENTAGE", 0.5)),
    }


def _staff_rows(start_date: str, end_date: str) -> list[DailyStaffSales]:
    return (
        db.session.query(DailyStaffSales)
        .filter(DailyStaffSales.date >= start_date, DailyStaffSales.date <= end_date)
        .order_by(DailyStaffSales.date.asc())
        .all()
    )


def _staff_in_sales(rows) -> dict[str, str]:
    """staff_id -> display name for everyone with sales in rows."""
    names: dict[str, str] = {}
    for row in rows:
        for staff_id, stats in (row.staff_stats or {}).items():
            name = stats.get("name")
            if name and name != event_store.UNKNOWN_STAFF_NAME:
                names[staff_id] = name
            else:
                names.setdefault(staff_id, name or event_store.UNKNOWN_STAFF_NAME)
    return names


def get_monthly_targets(month: str) -> dict:
    """
    Stored targets for a month laid over the month's week windows.

    Staff who sold during the month but have no entry get the defaults.
    """
    month = parse_month_key(month)
    first_day, last_day = month_bounds(month)
    stored = db.session.get(MonthlyTarget, month)
    stored_weeks = (stored.weeks if stored else None) or {}
    staff_in_sales = _staff_in_sales(_staff_rows(first_day, last_day))

    weeks = {}
    for window in week_windows(month):
        existing = stored_weeks.get(window["key"]) or {}
        staff = {sid: dict(v) for sid, v in (existing.get("staff") or {}).items()}
        for staff_id in staff_in_sales:
            staff.setdefault(staff_id, _default_staff_target())
        weeks[window["key"]] = {
            "label": window["label"],
            "start_date": window["start_date"],
            "end_date": window["end_date"],
            "overall_target_cents": int(existing.get("overall_target_cents") or 0),
            "staff": {sid: staff[sid] for sid in sorted(staff)},
        }

    return {
        "month": month,
        "weeks": weeks,
        "configured": stored is not None,
        "updated_at": stored.to_dict()["updated_at"] if stored else None,
    }


def _clean_week(week_key: str, payload) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError(f"{week_key} must be an object")
    staff_payload = payload.get("staff") or {}
    if not isinstance(staff_payload, dict):
        raise ValidationError(f"{week_key}.staff must be an object")

    staff = {}
    for staff_id, entry in staff_payload.items():
        if not isinstance(entry, dict):
            raise ValidationError(f"{week_key}.staff.{staff_id} must be an object")
        staff[str(staff_id)] = {
            "target_cents": require_non_negative_cents(
                entry.get("target_cents", 0), f"{week_key}.staff.{staff_id}.target_cents"
            ),
            "incentive_percentage": require_percentage(
                entry.get("incentive_percentage", 0), f"{week_key}.staff.{staff_id}.incentive_percentage"
            ),
        }
    return {
        "overall_target_cents": require_non_negative_cents(
            payload.get("overall_target_cents", 0), f"{week_key}.overall_target_cents"
        ),
        "staff": staff,
    }


def save_monthly_targets(month: str, weeks) -> dict:
    """
    Store targets for the weeks given; weeks not mentioned keep their values.

    Unknown week keys for the month are rejected.
    """
    month = parse_month_key(month)
    if not isinstance(weeks, dict):
        raise ValidationError("weeks must be an object keyed by week (week1, week2, ...)")
    valid_keys = {w["key"] for w in week_windows(month)}
    unknown = sorted(set(weeks) - valid_keys)
    if unknown:
        raise ValidationError(f"Unknown week keys for {month}: {', '.join(unknown)}")

    cleaned = {key: _clean_week(key, payload) for key, payload in weeks.items()}

    def _op():
        row = db.session.get(MonthlyTarget, month)
        if row is None:
            row = MonthlyTarget(month=month, weeks={})
            db.session.add(row)
        merged = {k: v for k, v in (row.weeks or {}).items() if k in valid_keys}
        merged.update(cleaned)
        row.weeks = merged
        row.updated_at = utcnow()
        db.session.commit()

    run_with_retry(_op, label=f"targets {month}")
    current_app.logger.info("Saved targets for %s (%s)", month, ", ".join(sorted(cleaned)) or "no weeks")
    return get_monthly_targets(month)


def get_weekly_achievement(staff_id: str, week_start: str, week_end: str) -> dict:
    """Sales of one staff member over [week_start, week_end] from the daily staff rows."""
    if not staff_id:
        raise ValidationError("staff_id is required")
    week_start = parse_date_key(week_start, "week_start")
    week_end = parse_date_key(week_end, "week_end")
    if week_end < week_start:
        raise ValidationError("week_end must not be before week_start")

    total_value = 0
    total_count = 0
    days = {}
    for row in _staff_rows(week_start, week_end):
        stats = (row.staff_stats or {}).get(staff_id)
        if not stats:
            continue
        total_value += int(stats.get("total_value_cents") or 0)
        total_count += int(stats.get("total_count") or 0)
        days[row.date] = int(stats.get("total_value_cents") or 0)

    return {
        "staff_id": staff_id,
        "week_start": week_start,
        "week_end": week_end,
        "total_value_cents": total_value,
        "total_count": total_count,
        "daily_value_cents": days,
    }


def evaluate_staff_incentive(sales_cents: int, target_cents: int, incentive_percentage) -> dict:
    """Eligibility and incentive for one staff member in one week."""
    eligible = sales_cents > target_cents and target_cents > 0 and incentive_percentage > 0
    if eligible:
        reason = None
    elif target_cents <= 0:
        reason = IneligibilityReason.NO_TARGET
    elif incentive_percentage <= 0:
        reason = IneligibilityReason.NO_INCENTIVE_RATE
    else:
        reason = IneligibilityReason.TARGET_NOT_MET
    return {
        "eligible": eligible,
        "incentive_cents": percentage_of_cents(sales_cents, incentive_percentage) if eligible else 0,
        "reason": reason.value if reason else None,
    }


def evaluate_incentives(month: str) -> dict:
    """
    Per-week sales, target attainment and incentives for every relevant staff member.

    target_reached is sales >= target; incentive eligibility needs sales > target,
    so a staff member exactly on target is reached but TARGET_NOT_MET.
    """
    targets = get_monthly_targets(month)
    month = targets["month"]
    first_day, last_day = month_bounds(month)
    rows = _staff_rows(first_day, last_day)
    names = _staff_in_sales(rows)

    configured = set()
    for week in targets["weeks"].values():
        configured.update(week["staff"])
    missing_names = [sid for sid in configured if sid not in names]
    names.update(event_store.get_staff_names(missing_names))

    weeks = []
    month_total = 0
    for window in week_windows(month):
        week_targets = targets["weeks"][window["key"]]
        sales_by_staff = {sid: 0 for sid in names}
        overall_sales = 0
        for row in rows:
            if not (window["start_date"] <= row.date <= window["end_date"]):
                continue
            for staff_id, stats in (row.staff_stats or {}).items():
                value = int(stats.get("total_value_cents") or 0)
                sales_by_staff[staff_id] = sales_by_staff.get(staff_id, 0) + value
                overall_sales += value

        staff_results = {}
        week_total = 0
        for staff_id in sorted(sales_by_staff):
            detail = week_targets["staff"].get(staff_id) or _default_staff_target()
            sales = sales_by_staff[staff_id]
            target = int(detail.get("target_cents") or 0)
            pct = float(detail.get("incentive_percentage") or 0)
            outcome = evaluate_staff_incentive(sales, target, pct)
            week_total += outcome["incentive_cents"]
            staff_results[staff_id] = {
                "name": names.get(staff_id, event_store.UNKNOWN_STAFF_NAME),
                "sales_cents": sales,
                "target_cents": target,
                "incentive_percentage": pct,
                "target_reached": sales >= target,
                **outcome,
            }

        overall_target = week_targets["overall_target_cents"]
        weeks.append(
            {
                "key": window["key"],
                "label": window["label"],
                "start_date": window["start_date"],
                "end_date": window["end_date"],
                "overall": {
                    "sales_cents": overall_sales,
                    "target_cents": overall_target,
                    "target_reached": overall_sales >= overall_target,
                },
                "staff": staff_results,
                "total_incentives_cents": week_total,
            }
        )
        month_total += week_total

    return {"month": month, "weeks": weeks, "total_incentives_cents": month_total}
