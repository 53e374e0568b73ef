"""
Tests for the optimistic retry helper.
"""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from retailcore.errors import ConflictError
from retailcore.extensions import db
from retailcore.models import DailySalesSummary
from retailcore.services.concurrency import run_with_retry


def test_returns_result_of_first_success(db_session):
    assert run_with_retry(lambda: 42) == 42


def test_retries_stale_data_then_succeeds(db_session):
    calls = []

    def _op():
        calls.append(1)
        if len(calls) < 3:
            raise StaleDataError("version mismatch")
        return "ok"

    assert run_with_retry(_op, attempts=5, backoff_base=0) == "ok"
    assert len(calls) == 3


def test_exhausted_retries_raise_conflict(db_session):
    def _op():
        raise OperationalError("UPDATE ...", {}, Exception("database is locked"))

    with pytest.raises(ConflictError) as excinfo:
        run_with_retry(_op, attempts=2, backoff_base=0, label="unit")
    assert isinstance(excinfo.value.__cause__, OperationalError)


def test_other_errors_propagate_without_retry(db_session):
    calls = []

    def _op():
        calls.append(1)
        raise KeyError("boom")

    with pytest.raises(KeyError):
        run_with_retry(_op, attempts=5, backoff_base=0)
    assert len(calls) == 1


def test_version_conflict_on_summary_row_is_retried(db_session):
    db_session.add(DailySalesSummary(date="2024-04-03", total_value_cents=1000, total_count=1, hourly_breakdown={}))
    db_session.commit()
    attempts = []

    def _op():
        row = db.session.get(DailySalesSummary, "2024-04-03")
        if not attempts:
            # Another writer bumps the version between our read and write
            db.session.execute(text(
                "UPDATE daily_sales_summaries SET version_id = version_id + 1 WHERE date = '2024-04-03'"
            ))
        attempts.append(1)
        row.total_value_cents = row.total_value_cents + 500
        db.session.commit()
        return row.total_value_cents

    assert run_with_retry(_op, backoff_base=0) == 1500
    assert len(attempts) == 2
