# Overview: Service-layer operations for deleting sale transactions while keeping aggregates consistent.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import TransactionStatus
from . import event_store
from .aggregate_service import MERGE_RETRY_ERRORS, apply_transaction_delta
from .concurrency import run_with_retry


def delete_transaction(transaction_id: int) -> dict:
    """
    Delete a sale transaction (manager correction).

    A SOLD transaction has its contribution subtracted from the daily,
    staff and product aggregates and is deleted in the same commit. Any
    other status never contributed, so the row is simply deleted.

    Raises NotFoundError if the transaction does not exist and
    IncompleteRecordError (nothing deleted) if a SOLD transaction lacks the
    fields needed to reverse it.
    """
    def _op():
        tx = event_store.get_transaction(transaction_id)
        status = tx.status_enum
        snapshot = tx.to_dict()

        reversed_rows = 0
        if status.counts_in_aggregates:
            reversed_rows = apply_transaction_delta(tx, -1)

        event_store.delete_transaction(tx)
        db.session.commit()
        return snapshot, status, reversed_rows

    snapshot, status, reversed_rows = run_with_retry(
        _op, retry_on=MERGE_RETRY_ERRORS, label=f"delete transaction {transaction_id}"
    )

    current_app.logger.info(
        "Deleted transaction %s (status=%s, aggregate rows adjusted=%d)",
        transaction_id, status.value, reversed_rows,
    )
    return {
        "deleted": snapshot,
        "aggregates_reversed": status is TransactionStatus.SOLD,
        "aggregates_touched": reversed_rows,
    }
