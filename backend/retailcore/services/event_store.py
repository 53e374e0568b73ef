# Overview: Read/write access to the sale transaction log and catalog lookups used by the engine.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, inspect

from ..errors import IndexRequiredError, NotFoundError
from ..extensions import db
from ..models import Product, SaleTransaction, Staff, TransactionStatus, SALE_TX_RANGE_INDEX

"""
Event store contract

- Transactions are append-only: created by the point-of-sale flow, changed
  only by the single status transition, removed only through the deletion
  compensator. Nothing here commits; callers own the unit of work.
- Day scans are ordered by ascending id and use the composite index
  (status, sale_date, id). The index is an operational dependency: when it
  is missing the scan fails with IndexRequiredError instead of silently
  degrading to a full table scan.
"""

UNKNOWN_STAFF_NAME = "Unknown Staff"


def require_range_index() -> None:
    """Fail fast when the transaction range index has not been created."""
    table = SaleTransaction.__tablename__
    inspector = inspect(db.session.connection())
    index_names = {ix.get("name") for ix in inspector.get_indexes(table)}
    if SALE_TX_RANGE_INDEX not in index_names:
        raise IndexRequiredError(
            f"Range query on {table} requires index {SALE_TX_RANGE_INDEX} "
            "(status, sale_date, id); run the database migrations",
            table=table,
            index_name=SALE_TX_RANGE_INDEX,
        )


def _day_query(sale_date: str, status: TransactionStatus = TransactionStatus.SOLD):
    return db.session.query(SaleTransaction).filter(
        SaleTransaction.status == status.value,
        SaleTransaction.sale_date == sale_date,
    )


def get_transactions_by_date(
    sale_date: str,
    after_id: int | None,
    page_size: int,
) -> list[SaleTransaction]:
    """
    Next page of SOLD transactions for a day, ascending id, strictly after after_id.

    A cursor that no longer exists (deleted concurrently) restarts the scan
    from the beginning of the day.
    """
    require_range_index()

    query = _day_query(sale_date)
    if after_id is not None:
        if db.session.get(SaleTransaction, after_id) is not None:
            query = query.filter(SaleTransaction.id > after_id)
        else:
            current_app.logger.warning(
                "Cursor transaction %s not found; restarting scan of %s from the beginning",
                after_id,
                sale_date,
            )

    return query.order_by(SaleTransaction.id.asc()).limit(page_size).all()


def count_transactions(sale_date: str) -> int:
    """Number of SOLD transactions recorded for a business day."""
    require_range_index()
    return int(
        db.session.query(func.count(SaleTransaction.id))
        .filter(
            SaleTransaction.status == TransactionStatus.SOLD.value,
            SaleTransaction.sale_date == sale_date,
        )
        .scalar()
        or 0
    )


def get_transaction(transaction_id: int) -> SaleTransaction:
    tx = db.session.get(SaleTransaction, transaction_id)
    if tx is None:
        raise NotFoundError(f"Sale transaction {transaction_id} not found")
    return tx


def delete_transaction(tx: SaleTransaction) -> None:
    """Remove a transaction inside the caller's unit of work (no commit)."""
    db.session.delete(tx)
    db.session.flush()


def get_product_metadata(product_code: str) -> Product:
    product = db.session.query(Product).filter_by(product_code=product_code).first()
    if product is None:
        raise NotFoundError(f"Product {product_code} not found")
    return product


def list_product_codes(*, after_code: str | None = None, limit: int | None = None) -> list[Product]:
    """Catalog products ordered by product code, optionally paged by code cursor."""
    query = db.session.query(Product)
    if after_code:
        query = query.filter(Product.product_code > after_code)
    query = query.order_by(Product.product_code.asc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def get_staff_name(staff_id: str | None) -> str:
    if not staff_id:
        return UNKNOWN_STAFF_NAME
    staff = db.session.query(Staff).filter_by(staff_id=staff_id).first()
    return staff.name if staff and staff.name else UNKNOWN_STAFF_NAME


def get_staff_names(staff_ids) -> dict[str, str]:
    """Bulk name lookup; unknown ids map to "Unknown Staff"."""
    ids = {sid for sid in staff_ids if sid}
    if not ids:
        return {}
    rows = db.session.query(Staff.staff_id, Staff.name).filter(Staff.staff_id.in_(ids)).all()
    names = {row.staff_id: row.name for row in rows if row.name}
    return {sid: names.get(sid, UNKNOWN_STAFF_NAME) for sid in ids}
