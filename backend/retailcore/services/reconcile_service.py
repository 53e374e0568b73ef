# Overview: Service-layer operations for batch reconciliation; rebuilds a day's aggregates page by page.

from __future__ import annotations

from dataclasses import asdict, dataclass, field

from flask import current_app

from ..errors import IncompleteRecordError, ValidationError
from ..extensions import db
from ..time_utils import parse_date_key
from ..validation import require_int
from . import event_store
from .aggregate_service import (
    MERGE_RETRY_ERRORS,
    aggregate_input_from,
    apply_additive_increment,
    apply_merged_replace,
    clear_day_aggregates,
)
from .concurrency import run_with_retry

"""
Reconciliation protocol

- A run rebuilds one business day. The caller drives it page by page: the
  first page is flagged is_first_page=True, every later page passes the
  next_cursor of the previous page with is_first_page=False.
- The first page clears the day's aggregates and commits the clear before
  anything is added. Passing the flag on a later page therefore discards
  the pages already applied in this run; the run must then restart.
- Each page commits on its own. A failed page is retried by the caller with
  the same cursor; pages are never retried across one another here.
- Records with a different sale_date or missing fields are skipped and
  reported in errors[], never fatal. A missing range index is fatal.
"""


@dataclass
class PageResult:
    processed: int = 0
    skipped: int = 0
    errors: list[dict] = field(default_factory=list)
    next_cursor: int | None = None
    aggregates_touched: int = 0
    has_more: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def _page_size(page_size) -> int:
    maximum = current_app.config.get("RECONCILE_MAX_PAGE_SIZE", 500)
    if page_size is None:
        return int(current_app.config.get("RECONCILE_PAGE_SIZE", 50))
    return require_int(page_size, "page_size", minimum=1, maximum=maximum)


def reconcile_page(
    sale_date: str,
    page_size: int | None = None,
    after_id: int | None = None,
    is_first_page: bool = False,
) -> PageResult:
    """
    Apply one page of a day's SOLD transactions to the aggregate families.

    Returns a PageResult; next_cursor is the id of the last transaction read
    (skipped ones included) and has_more is True when the page came back full.
    Raises IndexRequiredError when the transaction range index is missing.
    """
    sale_date = parse_date_key(sale_date, "date")
    size = _page_size(page_size)
    if after_id is not None:
        after_id = require_int(after_id, "after_id", minimum=1)
    if not isinstance(is_first_page, bool):
        raise ValidationError("is_first_page must be a boolean")

    # Checked before the clear so a missing index never leaves the day empty
    event_store.require_range_index()

    if is_first_page:
        def _clear():
            deleted = clear_day_aggregates(sale_date)
            db.session.commit()
            return deleted

        deleted = run_with_retry(_clear, label=f"clear aggregates {sale_date}")
        current_app.logger.info(
            "Reconcile %s: cleared %d aggregate rows before first page", sale_date, deleted
        )

    transactions = event_store.get_transactions_by_date(sale_date, after_id, size)
    result = PageResult(has_more=len(transactions) == size)
    if transactions:
        result.next_cursor = transactions[-1].id

    inputs = []
    for tx in transactions:
        if tx.sale_date != sale_date:
            result.skipped += 1
            result.errors.append(
                {"id": tx.id, "error": f"sale_date {tx.sale_date} does not match {sale_date}"}
            )
            current_app.logger.warning(
                "Reconcile %s: skipping transaction %s with sale_date %s",
                sale_date, tx.id, tx.sale_date,
            )
            continue
        try:
            inputs.append(aggregate_input_from(tx))
        except IncompleteRecordError as exc:
            result.skipped += 1
            result.errors.append({"id": tx.id, "error": str(exc), "missing": exc.missing})
            current_app.logger.warning("Reconcile %s: skipping incomplete record: %s", sale_date, exc)

    if not inputs:
        db.session.rollback()
        return result

    staff_names = event_store.get_staff_names(inp.staff_id for inp in inputs)

    def _op():
        touched = apply_merged_replace(sale_date, inputs, +1, staff_names=staff_names)
        touched += apply_additive_increment(sale_date, inputs, +1)
        db.session.commit()
        return touched

    result.aggregates_touched = run_with_retry(
        _op, retry_on=MERGE_RETRY_ERRORS, label=f"reconcile {sale_date}"
    )
    result.processed = len(inputs)

    current_app.logger.info(
        "Reconcile %s: page after %s processed=%d skipped=%d next_cursor=%s",
        sale_date, after_id, result.processed, result.skipped, result.next_cursor,
    )
    return result


def reconcile_day(sale_date: str, page_size: int | None = None) -> dict:
    """Run a complete reconciliation of one day and summarize it."""
    sale_date = parse_date_key(sale_date, "date")
    size = _page_size(page_size)

    summary = {
        "date": sale_date,
        "pages": 0,
        "processed": 0,
        "skipped": 0,
        "errors": [],
        "aggregates_touched": 0,
    }

    cursor = None
    first = True
    while True:
        page = reconcile_page(sale_date, size, after_id=cursor, is_first_page=first)
        first = False
        summary["pages"] += 1
        summary["processed"] += page.processed
        summary["skipped"] += page.skipped
        summary["errors"].extend(page.errors)
        summary["aggregates_touched"] += page.aggregates_touched
        if not page.has_more or page.next_cursor is None:
            break
        cursor = page.next_cursor

    current_app.logger.info(
        "Reconcile %s finished: pages=%d processed=%d skipped=%d",
        sale_date, summary["pages"], summary["processed"], summary["skipped"],
    )
    return summary
