# Overview: Service-layer operations for the daily aggregate families; folds transactions into summary, staff and product rows.

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError

from ..errors import IncompleteRecordError
from ..extensions import db
from ..models import (
    DailyProductSales,
    DailySalesSummary,
    DailyStaffSales,
    SaleTransaction,
    product_day_key,
)
from ..time_utils import business_hour, hour_key, utcnow
from .concurrency import RETRYABLE_ERRORS, lock_for_update
from .event_store import UNKNOWN_STAFF_NAME

"""
Aggregate write rules (authoritative)

- Only SOLD transactions contribute. A contribution is applied with sign +1
  when a sale is recorded or reconciled and with sign -1 when it is returned
  or deleted.
- All money is integer cents; no float ever reaches an aggregate column.
- Daily summary and daily staff rows: merged replace. Read the row, fold the
  deltas into its maps, write the whole maps back. Concurrent writers are
  detected by version_id and the caller re-runs the unit of work.
- Daily product rows: additive increment. Blind UPDATE ... SET col = col + d,
  inserting the row when it does not exist yet. Never read first.
- Map entries (hours, staff) whose count drops to zero are removed, and rows
  left empty are deleted, so a reversal restores the exact prior state.
- Nothing here commits; callers own the transaction.
"""

# A concurrent first insert of the same day row surfaces as a PK violation.
MERGE_RETRY_ERRORS = RETRYABLE_ERRORS + (IntegrityError,)


@dataclass(frozen=True)
class AggregateInput:
    """The fields of one transaction that the aggregate families consume."""
    transaction_id: int | None
    sale_date: str
    hour: str
    staff_id: str
    product_code: str
    product_name: str | None
    weight_grams: int
    value_cents: int


def aggregate_input_from(tx: SaleTransaction) -> AggregateInput:
    """
    Extract the aggregate contribution of a transaction.

    Raises IncompleteRecordError when date, staff, product or value is missing.
    """
    missing = []
    if not tx.sale_date:
        missing.append("sale_date")
    if not tx.staff_id:
        missing.append("staff_id")
    if not tx.product_code:
        missing.append("product_code")
    if tx.line_value_cents is None:
        missing.append("line_value_cents")
    if tx.occurred_at is None:
        missing.append("occurred_at")
    if missing:
        raise IncompleteRecordError(
            f"Transaction {tx.id} is missing {', '.join(missing)}",
            record_id=tx.id,
            missing=missing,
        )

    return AggregateInput(
        transaction_id=tx.id,
        sale_date=tx.sale_date,
        hour=hour_key(business_hour(tx.occurred_at)),
        staff_id=tx.staff_id,
        product_code=tx.product_code,
        product_name=tx.product_name,
        weight_grams=int(tx.weight_grams or 0),
        value_cents=int(tx.line_value_cents),
    )


# =============================================================================
# PURE FOLDS
# =============================================================================

def fold_summary(state: dict, inp: AggregateInput, sign: int) -> dict:
    """
    (summary state, input, sign) -> new summary state.

    state = {"total_value_cents": int, "total_count": int, "hourly_breakdown": {...}}
    The input state is never mutated.
    """
    hourly = {h: dict(v) for h, v in (state.get("hourly_breakdown") or {}).items()}

    entry = hourly.get(inp.hour, {"value_cents": 0, "count": 0})
    entry = {
        "value_cents": int(entry.get("value_cents", 0)) + sign * inp.value_cents,
        "count": int(entry.get("count", 0)) + sign,
    }
    if entry["count"] <= 0:
        hourly.pop(inp.hour, None)
    else:
        hourly[inp.hour] = entry

    return {
        "total_value_cents": int(state.get("total_value_cents") or 0) + sign * inp.value_cents,
        "total_count": int(state.get("total_count") or 0) + sign,
        "hourly_breakdown": hourly,
    }


def fold_staff(stats: dict, inp: AggregateInput, sign: int, staff_name: str | None = None) -> dict:
    """
    (staff map, input, sign, display name) -> new staff map.

    A placeholder "Unknown Staff" name is upgraded when a real name shows up.
    """
    result = {sid: dict(v) for sid, v in (stats or {}).items()}

    entry = result.get(inp.staff_id) or {
        "name": staff_name or UNKNOWN_STAFF_NAME,
        "total_value_cents": 0,
        "total_count": 0,
    }
    name = entry.get("name") or UNKNOWN_STAFF_NAME
    if name == UNKNOWN_STAFF_NAME and staff_name and staff_name != UNKNOWN_STAFF_NAME:
        name = staff_name

    entry = {
        "name": name,
        "total_value_cents": int(entry.get("total_value_cents", 0)) + sign * inp.value_cents,
        "total_count": int(entry.get("total_count", 0)) + sign,
    }
    if entry["total_count"] <= 0:
        result.pop(inp.staff_id, None)
    else:
        result[inp.staff_id] = entry
    return result


def _product_deltas(inputs, sign: int) -> "OrderedDict[str, dict]":
    deltas: "OrderedDict[str, dict]" = OrderedDict()
    for inp in inputs:
        d = deltas.setdefault(
            inp.product_code,
            {"product_name": inp.product_name, "weight_grams": 0, "value_cents": 0, "count": 0},
        )
        if inp.product_name:
            d["product_name"] = inp.product_name
        d["weight_grams"] += sign * inp.weight_grams
        d["value_cents"] += sign * inp.value_cents
        d["count"] += sign
    return deltas


# =============================================================================
# WRITE PRIMITIVES
# =============================================================================

def apply_merged_replace(
    sale_date: str,
    inputs,
    sign: int,
    *,
    staff_names: dict[str, str] | None = None,
) -> int:
    """
    Read-modify-write the day's summary and staff rows with all inputs folded in.

    Both rows are written in the caller's transaction; a concurrent writer
    makes the flush (or commit) raise StaleDataError. Returns the number of
    rows written or deleted.
    """
    inputs = list(inputs)
    if not inputs:
        return 0
    staff_names = staff_names or {}
    now = utcnow()
    touched = 0

    summary = lock_for_update(db.session.query(DailySalesSummary).filter_by(date=sale_date)).first()
    state = {
        "total_value_cents": summary.total_value_cents if summary else 0,
        "total_count": summary.total_count if summary else 0,
        "hourly_breakdown": summary.hourly_breakdown if summary else {},
    }
    for inp in inputs:
        state = fold_summary(state, inp, sign)

    if state["total_count"] <= 0 and not state["hourly_breakdown"]:
        if summary is not None:
            db.session.delete(summary)
            touched += 1
    else:
        if summary is None:
            summary = DailySalesSummary(date=sale_date)
            db.session.add(summary)
        summary.total_value_cents = state["total_value_cents"]
        summary.total_count = state["total_count"]
        # new dict so the JSON column is flagged dirty
        summary.hourly_breakdown = state["hourly_breakdown"]
        summary.updated_at = now
        touched += 1

    staff_row = lock_for_update(db.session.query(DailyStaffSales).filter_by(date=sale_date)).first()
    stats = staff_row.staff_stats if staff_row else {}
    for inp in inputs:
        stats = fold_staff(stats, inp, sign, staff_names.get(inp.staff_id))

    if not stats:
        if staff_row is not None:
            db.session.delete(staff_row)
            touched += 1
    else:
        if staff_row is None:
            staff_row = DailyStaffSales(date=sale_date)
            db.session.add(staff_row)
        staff_row.staff_stats = stats
        staff_row.updated_at = now
        touched += 1

    db.session.flush()
    return touched


def _increment_product_row(key: str, delta: dict, now) -> int:
    values = {
        "total_weight_grams": DailyProductSales.total_weight_grams + delta["weight_grams"],
        "total_value_cents": DailyProductSales.total_value_cents + delta["value_cents"],
        "total_count": DailyProductSales.total_count + delta["count"],
        "updated_at": now,
    }
    if delta["product_name"]:
        values["product_name"] = delta["product_name"]
    stmt = (
        update(DailyProductSales)
        .where(DailyProductSales.key == key)
        .values(**values)
        .execution_options(synchronize_session="fetch")
    )
    return db.session.execute(stmt).rowcount


def apply_additive_increment(sale_date: str, inputs, sign: int) -> int:
    """
    Blind increments of the day's product rows, one row per product code.

    Creates a missing row for positive deltas (a concurrent creator of the
    same key loses the insert and falls back to the increment). Rows whose
    count reaches zero are deleted. Returns the number of product rows touched.
    """
    deltas = _product_deltas(inputs, sign)
    now = utcnow()
    touched = 0

    for product_code, delta in deltas.items():
        key = product_day_key(sale_date, product_code)

        if _increment_product_row(key, delta, now) == 0:
            if delta["count"] <= 0:
                current_app.logger.warning(
                    "No product aggregate %s to reverse; skipping decrement", key
                )
                continue
            try:
                with db.session.begin_nested():
                    db.session.add(
                        DailyProductSales(
                            key=key,
                            date=sale_date,
                            product_code=product_code,
                            product_name=delta["product_name"],
                            total_weight_grams=delta["weight_grams"],
                            total_value_cents=delta["value_cents"],
                            total_count=delta["count"],
                            updated_at=now,
                        )
                    )
            except IntegrityError:
                _increment_product_row(key, delta, now)

        if delta["count"] < 0:
            db.session.execute(
                delete(DailyProductSales)
                .where(DailyProductSales.key == key, DailyProductSales.total_count <= 0)
                .execution_options(synchronize_session="fetch")
            )
        touched += 1

    return touched


def apply_transaction_delta(tx: SaleTransaction, sign: int, *, staff_name: str | None = None) -> int:
    """Apply one transaction's contribution (sign +1/-1) to all three families."""
    inp = aggregate_input_from(tx)
    staff_names = {inp.staff_id: staff_name} if staff_name else None
    touched = apply_merged_replace(inp.sale_date, [inp], sign, staff_names=staff_names)
    touched += apply_additive_increment(inp.sale_date, [inp], sign)
    return touched


def clear_day_aggregates(sale_date: str) -> int:
    """Delete every aggregate row of a business day. Returns rows deleted."""
    deleted = 0
    for model in (DailySalesSummary, DailyStaffSales, DailyProductSales):
        deleted += db.session.execute(
            delete(model)
            .where(model.date == sale_date)
            .execution_options(synchronize_session="fetch")
        ).rowcount
    return deleted


# =============================================================================
# READ SIDE (absent rows read as zero)
# =============================================================================

def get_daily_summary(sale_date: str) -> dict:
    row = db.session.get(DailySalesSummary, sale_date)
    if row is None:
        return {
            "date": sale_date,
            "total_value_cents": 0,
            "total_count": 0,
            "hourly_breakdown": {},
            "updated_at": None,
        }
    return row.to_dict()


def get_staff_daily_summary(sale_date: str) -> dict:
    row = db.session.get(DailyStaffSales, sale_date)
    if row is None:
        return {"date": sale_date, "staff_stats": {}, "updated_at": None}
    return row.to_dict()


def get_product_daily_summary(sale_date: str, product_code: str) -> dict:
    key = product_day_key(sale_date, product_code)
    row = db.session.get(DailyProductSales, key)
    if row is None:
        return {
            "key": key,
            "date": sale_date,
            "product_code": product_code,
            "product_name": None,
            "total_weight_grams": 0,
            "total_value_cents": 0,
            "total_count": 0,
            "updated_at": None,
        }
    return row.to_dict()


def list_product_daily_summaries(sale_date: str) -> list[dict]:
    rows = (
        db.session.query(DailyProductSales)
        .filter_by(date=sale_date)
        .order_by(DailyProductSales.product_code.asc())
        .all()
    )
    return [row.to_dict() for row in rows]
