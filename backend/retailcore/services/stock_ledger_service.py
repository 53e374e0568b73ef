# Overview: Service-layer operations for the monthly stock ledger; carry-forward, restocks, sales sync and export.

from __future__ import annotations

import csv
import io

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import DailyProductSales, MonthlyStockLedger, grams_to_kg, ledger_key
from ..time_utils import (
    business_today,
    current_business_month,
    month_bounds,
    parse_date_key,
    parse_month_key,
    previous_month,
    utcnow,
)
from ..validation import kg_to_grams, require_int
from . import event_store
from .concurrency import RETRYABLE_ERRORS, lock_for_update, run_with_retry

"""
Monthly stock ledger (authoritative)

Lifecycle per (product, month):
- Absent -> Initialized on first access (listing, restock). Opening stock
  is carried forward from the previous calendar month's closing stock, one
  step back only; when that ledger does not exist opening is 0.
- Initialized -> Initialized on restock (append entry, add to restocked),
  sales sync (replace sold with the month's product aggregates) and opening
  stock correction (replace opening; the next month is not touched).

Every mutation is one read-modify-write of a single ledger row, version
checked, re-run on conflict. Quantities are grams internally and kg at the
API boundary.
"""

LEDGER_RETRY_ERRORS = RETRYABLE_ERRORS + (IntegrityError,)

EXPORT_COLUMNS = [
    "product_code",
    "product_name",
    "month",
    "opening_stock_kg",
    "total_restocked_kg",
    "total_sold_kg",
    "closing_stock_kg",
    "last_sales_sync_date",
    "restock_entries",
]


def _get_ledger(product_code: str, month: str, *, lock: bool = False) -> MonthlyStockLedger | None:
    query = db.session.query(MonthlyStockLedger).filter_by(key=ledger_key(product_code, month))
    if lock:
        query = lock_for_update(query)
    return query.first()


def _new_ledger(product_code: str, product_name: str | None, month: str) -> MonthlyStockLedger:
    prev_month = previous_month(month)
    prev = _get_ledger(product_code, prev_month)
    if prev is not None:
        opening = prev.closing_stock_grams
    else:
        opening = 0
        current_app.logger.warning(
            "No %s ledger for product %s; opening stock for %s starts at 0",
            prev_month, product_code, month,
        )

    ledger = MonthlyStockLedger(
        key=ledger_key(product_code, month),
        product_code=product_code,
        product_name=product_name,
        month=month,
        year=month[:4],
        opening_stock_grams=opening,
        total_restocked_grams=0,
        restock_entries={},
        total_sold_grams=0,
        last_sales_sync_date=None,
        updated_at=utcnow(),
    )
    db.session.add(ledger)
    db.session.flush()
    return ledger


def get_or_create_ledger(product_code: str, month: str, *, product_name: str | None = None) -> MonthlyStockLedger:
    """
    Ledger row for (product, month), created with carry-forward if absent.

    Does not commit; a concurrent creator of the same key surfaces as an
    IntegrityError at flush and the caller re-runs its unit of work.
    """
    month = parse_month_key(month)
    ledger = _get_ledger(product_code, month, lock=True)
    if ledger is not None:
        return ledger
    if product_name is None:
        product_name = event_store.get_product_metadata(product_code).name
    return _new_ledger(product_code, product_name, month)


def get_monthly_ledger(product_code: str, month: str) -> dict:
    """Read one ledger, materializing it (with carry-forward) when absent."""
    month = parse_month_key(month)

    def _op():
        ledger = get_or_create_ledger(product_code, month)
        db.session.commit()
        return ledger.to_dict()

    return run_with_retry(_op, retry_on=LEDGER_RETRY_ERRORS, label=f"ledger {product_code}_{month}")


def list_monthly_ledgers(month: str, after_code: str | None = None, limit: int | None = None) -> dict:
    """
    One page of ledgers for a month over the product catalog, by product code.

    Products without a ledger for the month get one created (carry-forward).
    next_cursor is the last product code of the page, or None at the end.
    """
    month = parse_month_key(month)
    if limit is not None:
        limit = require_int(limit, "limit", minimum=1, maximum=current_app.config.get("RECONCILE_MAX_PAGE_SIZE", 500))

    def _op():
        products = event_store.list_product_codes(after_code=after_code, limit=limit)
        items = []
        created = 0
        for product in products:
            ledger = _get_ledger(product.product_code, month)
            if ledger is None:
                ledger = _new_ledger(product.product_code, product.name, month)
                created += 1
            items.append(ledger.to_dict())
        db.session.commit()
        return items, created, products

    items, created, products = run_with_retry(_op, retry_on=LEDGER_RETRY_ERRORS, label=f"list ledgers {month}")
    if created:
        current_app.logger.info("Initialized %d ledgers for %s", created, month)

    next_cursor = None
    if limit is not None and len(items) == limit:
        next_cursor = items[-1]["product_code"]
    return {"month": month, "items": items, "next_cursor": next_cursor}


def _restock_entry_key(entries: dict) -> str:
    base = utcnow().strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    key = base
    suffix = 1
    while key in entries:
        key = f"{base}-{suffix}"
        suffix += 1
    return key


def add_restock(
    product_code: str,
    month: str,
    quantity_kg,
    restock_date: str,
    notes: str | None = None,
) -> dict:
    """
    Append a restock entry to the product's ledger for the month.

    quantity_kg must be > 0 and restock_date must fall within the month.
    Raises NotFoundError when the product does not exist.
    """
    if not product_code:
        raise ValidationError("product_code is required")
    month = parse_month_key(month)
    quantity_grams = kg_to_grams(quantity_kg, "quantity_kg", allow_zero=False)
    restock_date = parse_date_key(restock_date, "restock_date")
    first_day, last_day = month_bounds(month)
    if not (first_day <= restock_date <= last_day):
        raise ValidationError(f"restock_date {restock_date} is outside {month}")

    product = event_store.get_product_metadata(product_code)

    def _op():
        ledger = get_or_create_ledger(product.product_code, month, product_name=product.name)
        entries = dict(ledger.restock_entries or {})
        entry_key = _restock_entry_key(entries)
        entries[entry_key] = {
            "date": restock_date,
            "quantity_grams": quantity_grams,
            "notes": notes or "",
        }
        ledger.restock_entries = entries
        ledger.total_restocked_grams = (ledger.total_restocked_grams or 0) + quantity_grams
        ledger.updated_at = utcnow()
        db.session.commit()
        return ledger.to_dict()

    result = run_with_retry(_op, retry_on=LEDGER_RETRY_ERRORS, label=f"restock {product_code}_{month}")
    current_app.logger.info(
        "Restocked %s for %s: %.3f kg on %s", product_code, month, grams_to_kg(quantity_grams), restock_date
    )
    return result


def set_opening_stock(product_code: str, month: str, opening_kg) -> dict:
    """
    Manager correction of a ledger's opening stock.

    The ledger must already exist (NotFoundError otherwise). The following
    month keeps the opening it was created with.
    """
    month = parse_month_key(month)
    opening_grams = kg_to_grams(opening_kg, "opening_stock_kg")

    def _op():
        ledger = _get_ledger(product_code, month, lock=True)
        if ledger is None:
            raise NotFoundError(f"Ledger for {product_code} in {month} not found")
        ledger.opening_stock_grams = opening_grams
        ledger.updated_at = utcnow()
        db.session.commit()
        return ledger.to_dict()

    result = run_with_retry(_op, label=f"opening stock {product_code}_{month}")
    current_app.logger.info(
        "Opening stock for %s in %s set to %.3f kg", product_code, month, grams_to_kg(opening_grams)
    )
    return result


def _sold_grams_by_product(month: str, product_codes=None) -> dict[str, int]:
    first_day, last_day = month_bounds(month)
    query = (
        db.session.query(
            DailyProductSales.product_code,
            func.coalesce(func.sum(DailyProductSales.total_weight_grams), 0),
        )
        .filter(DailyProductSales.date >= first_day, DailyProductSales.date <= last_day)
    )
    if product_codes is not None:
        query = query.filter(DailyProductSales.product_code.in_(list(product_codes)))
    return {code: int(grams) for code, grams in query.group_by(DailyProductSales.product_code).all()}


def sync_sales(month: str | None = None, product_codes=None) -> dict:
    """
    Replace each ledger's total sold with the month's product aggregates.

    Defaults to the current business month and every catalog product.
    Products without a ledger for the month are reported in errors and
    left uninitialized. Idempotent.
    """
    month = parse_month_key(month) if month else current_business_month()
    if product_codes:
        codes = [str(code) for code in product_codes]
    else:
        codes = [p.product_code for p in event_store.list_product_codes()]

    result = {"month": month, "processed": 0, "skipped": 0, "errors": []}
    if not codes:
        return result

    sold = _sold_grams_by_product(month, codes)
    today = business_today()

    for code in codes:
        def _op(code=code):
            ledger = _get_ledger(code, month, lock=True)
            if ledger is None:
                db.session.rollback()
                return False
            ledger.total_sold_grams = sold.get(code, 0)
            ledger.last_sales_sync_date = today
            ledger.updated_at = utcnow()
            db.session.commit()
            return True

        if run_with_retry(_op, label=f"sync sales {code}_{month}"):
            result["processed"] += 1
        else:
            result["skipped"] += 1
            result["errors"].append(
                {
                    "product_code": code,
                    "error": "Ledger for this month does not exist; initialize it by listing the month first",
                }
            )

    current_app.logger.info(
        "Sales sync %s: processed=%d skipped=%d", month, result["processed"], result["skipped"]
    )
    return result


def export_ledgers_csv(month: str) -> str:
    """CSV of the month's existing ledgers, sorted by product name."""
    month = parse_month_key(month)
    ledgers = db.session.query(MonthlyStockLedger).filter_by(month=month).all()
    ledgers.sort(key=lambda l: ((l.product_name or "").lower(), l.product_code))

    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(EXPORT_COLUMNS)
    for ledger in ledgers:
        entries = ledger.restock_entries or {}
        restocks = "; ".join(
            f"{entries[k].get('date')}:{grams_to_kg(entries[k].get('quantity_grams')):g}kg"
            + (f" ({entries[k]['notes']})" if entries[k].get("notes") else "")
            for k in sorted(entries)
        )
        writer.writerow(
            [
                ledger.product_code,
                ledger.product_name or "",
                ledger.month,
                f"{grams_to_kg(ledger.opening_stock_grams):.3f}",
                f"{grams_to_kg(ledger.total_restocked_grams):.3f}",
                f"{grams_to_kg(ledger.total_sold_grams):.3f}",
                f"{grams_to_kg(ledger.closing_stock_grams):.3f}",
                ledger.last_sales_sync_date or "",
                restocks,
            ]
        )
    return buf.getvalue()
