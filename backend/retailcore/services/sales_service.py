# Overview: Service-layer operations for sales; records weighed sales and handles pre-billing returns.

from __future__ import annotations

from datetime import datetime, timezone

from flask import current_app

from ..errors import EngineError, ValidationError
from ..extensions import db
from ..models import SaleTransaction, TransactionStatus
from ..time_utils import business_date, parse_date_key, parse_iso_datetime, utcnow
from ..validation import line_value_cents, require_int
from . import event_store
from .aggregate_service import MERGE_RETRY_ERRORS, apply_transaction_delta
from .concurrency import run_with_retry

"""
Sale lifecycle

- record_sale creates a SOLD transaction and adds its contribution to the
  aggregate families in the same commit.
- mark_returned is the only place a status changes. SOLD ->
  RETURNED_PRE_BILLING subtracts the contribution in the same commit.
- sale_date is fixed at creation from occurred_at in the business timezone.
"""


def _parse_occurred_at(value) -> datetime:
    if value is None:
        return utcnow()
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError("occurred_at must be an ISO-8601 datetime")
        if dt is None:
            raise ValidationError("occurred_at must be an ISO-8601 datetime")
        return dt
    raise ValidationError("occurred_at must be an ISO-8601 datetime")


def _parse_status(value) -> TransactionStatus:
    if isinstance(value, TransactionStatus):
        return value
    try:
        return TransactionStatus(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(s.value for s in TransactionStatus)
        raise ValidationError(f"status must be one of: {allowed}")


def record_sale(
    *,
    product_code: str,
    weight_grams,
    staff_id: str,
    barcode_scanned: str | None = None,
    occurred_at=None,
) -> SaleTransaction:
    """
    Record a weighed sale at the point of sale.

    line value = round_half_up(weight_grams * selling rate per kg / 1000)
    """
    if not product_code or not str(product_code).strip():
        raise ValidationError("product_code is required")
    if not staff_id or not str(staff_id).strip():
        raise ValidationError("staff_id is required")
    product_code = str(product_code).strip()
    staff_id = str(staff_id).strip()

    max_weight = int(current_app.config.get("MAX_SALE_WEIGHT_GRAMS", 1500))
    weight = require_int(weight_grams, "weight_grams", minimum=1)
    if weight > max_weight:
        raise ValidationError(f"weight_grams exceeds the maximum of {max_weight} g per sale")

    occurred = _parse_occurred_at(occurred_at)

    def _op():
        product = event_store.get_product_metadata(product_code)
        if not product.is_active:
            raise ValidationError(f"Product {product_code} is not active")

        tx = SaleTransaction(
            product_code=product.product_code,
            barcode_scanned=barcode_scanned,
            weight_grams=weight,
            line_value_cents=line_value_cents(weight, product.selling_rate_per_kg_cents),
            staff_id=staff_id,
            status=TransactionStatus.SOLD.value,
            occurred_at=occurred,
            sale_date=business_date(occurred),
            product_name=product.name,
            selling_rate_per_kg_cents=product.selling_rate_per_kg_cents,
            purchase_price_per_kg_cents=product.purchase_price_per_kg_cents,
        )
        db.session.add(tx)
        db.session.flush()

        apply_transaction_delta(tx, +1, staff_name=event_store.get_staff_name(staff_id))
        db.session.commit()
        return tx

    tx = run_with_retry(_op, retry_on=MERGE_RETRY_ERRORS, label=f"record sale {product_code}")
    current_app.logger.info(
        "Recorded sale %s: product=%s weight_g=%d value_cents=%d staff=%s date=%s",
        tx.id, tx.product_code, tx.weight_grams, tx.line_value_cents, tx.staff_id, tx.sale_date,
    )
    return tx


def record_sales_bulk(sales) -> dict:
    """
    Record a batch of scanned sales, one commit per row.

    Each row goes through record_sale, so valid rows get their aggregate
    contribution exactly as single sales do. Rows that fail validation or
    product lookup are skipped and reported in errors with their index and
    barcode; the remaining rows are still recorded.
    """
    if not isinstance(sales, list) or not sales:
        raise ValidationError("sales must be a non-empty list")
    max_rows = int(current_app.config.get("BULK_SALE_MAX_ROWS", 500))
    if len(sales) > max_rows:
        raise ValidationError(f"At most {max_rows} sales can be recorded per request")

    result = {"processed": 0, "skipped": 0, "errors": [], "transactions": []}
    for index, row in enumerate(sales):
        barcode = row.get("barcode_scanned") if isinstance(row, dict) else None
        try:
            if not isinstance(row, dict):
                raise ValidationError("sale must be an object")
            tx = record_sale(
                product_code=row.get("product_code"),
                weight_grams=row.get("weight_grams"),
                staff_id=row.get("staff_id"),
                barcode_scanned=barcode,
                occurred_at=row.get("occurred_at"),
            )
        except EngineError as exc:
            result["skipped"] += 1
            result["errors"].append({"index": index, "barcode_scanned": barcode, "error": str(exc)})
            current_app.logger.warning("Bulk sale row %d skipped: %s", index, exc)
            continue
        result["processed"] += 1
        result["transactions"].append(tx.to_dict())

    current_app.logger.info(
        "Bulk sale batch: processed=%d skipped=%d", result["processed"], result["skipped"]
    )
    return result


def mark_returned(transaction_id: int, status=TransactionStatus.RETURNED_PRE_BILLING) -> SaleTransaction:
    """
    Mark a SOLD transaction as returned before billing.

    Only SOLD -> RETURNED_PRE_BILLING is allowed; anything else is a
    ValidationError. The aggregate contribution is reversed in the same commit.
    """
    new_status = _parse_status(status)

    def _op():
        tx = event_store.get_transaction(transaction_id)
        current = tx.status_enum
        if not current.can_transition_to(new_status):
            raise ValidationError(
                f"Cannot change transaction {transaction_id} from {current.value} to {new_status.value}"
            )

        apply_transaction_delta(tx, -1)
        tx.status = new_status.value
        tx.status_updated_at = utcnow()
        db.session.commit()
        return tx

    tx = run_with_retry(_op, retry_on=MERGE_RETRY_ERRORS, label=f"return transaction {transaction_id}")
    current_app.logger.info("Transaction %s marked %s", transaction_id, tx.status)
    return tx


def list_returns(start_date: str, end_date: str | None = None) -> dict:
    """Pre-billing returns between two business days (inclusive)."""
    start_date = parse_date_key(start_date, "start_date")
    end_date = parse_date_key(end_date, "end_date") if end_date else start_date
    if end_date < start_date:
        raise ValidationError("end_date must not be before start_date")

    rows = (
        db.session.query(SaleTransaction)
        .filter(
            SaleTransaction.status == TransactionStatus.RETURNED_PRE_BILLING.value,
            SaleTransaction.sale_date >= start_date,
            SaleTransaction.sale_date <= end_date,
        )
        .order_by(SaleTransaction.sale_date.asc(), SaleTransaction.id.asc())
        .all()
    )
    return {
        "start_date": start_date,
        "end_date": end_date,
        "count": len(rows),
        "total_value_cents": sum(row.line_value_cents or 0 for row in rows),
        "items": [row.to_dict() for row in rows],
    }
