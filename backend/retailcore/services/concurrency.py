# Overview: Service-layer helpers for optimistic concurrency on shared aggregate and ledger rows.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError
from ..extensions import db

"""
Concurrency model (authoritative)

- There is no global lock. The database row is the point of serialization.
- Rows that are read-modify-written (daily summary, daily staff sales,
  monthly ledger, monthly targets) carry a version_id column. A concurrent
  writer that committed first makes our UPDATE match zero rows, which
  SQLAlchemy reports as StaleDataError.
- The whole unit of work is rolled back and re-run from the read, so the
  retried attempt folds its deltas into the winner's state.
- Per-product daily rows are never read before writing; they use
  commutative SQL increments and do not need a retry loop.
"""

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def _retry_settings(attempts: int | None, backoff_base: float | None) -> tuple[int, float]:
    if attempts is None:
        attempts = current_app.config.get("AGGREGATE_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("AGGREGATE_RETRY_BACKOFF", 0.1)
    return max(1, int(attempts)), float(backoff_base)


def run_with_retry(
    func,
    *,
    attempts: int | None = None,
    backoff_base: float | None = None,
    retry_on: tuple[type[BaseException], ...] = RETRYABLE_ERRORS,
    label: str | None = None,
):
    """
    Execute a DB unit of work with retry on concurrency-related failures.

    Retries on OperationalError (locks) and StaleDataError (optimistic
    locking conflicts), plus anything passed in retry_on. When every attempt
    loses its race a ConflictError is raised, chained to the last failure.
    Any other exception is rolled back and propagated untouched.
    """
    attempts, backoff_base = _retry_settings(attempts, backoff_base)
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            last_exc = exc
            current_app.logger.warning(
                "Concurrent write conflict on %s (attempt %d/%d): %s",
                label or getattr(func, "__name__", "unit of work"),
                attempt + 1,
                attempts,
                exc.__class__.__name__,
            )
            if attempt >= attempts - 1:
                break
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    raise ConflictError(
        f"{label or 'write'} lost a concurrent update {attempts} times; retry later"
    ) from last_exc
