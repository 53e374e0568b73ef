# Overview: Exception taxonomy shared by the aggregation and ledger services.

from __future__ import annotations


class EngineError(Exception):
    """Base class for errors raised by the sales/ledger engine."""


class NotFoundError(EngineError):
    """Referenced transaction, product or ledger does not exist."""


class IncompleteRecordError(EngineError):
    """A record the engine must aggregate is missing a required field."""

    def __init__(self, message: str, *, record_id=None, missing: list[str] | None = None):
        super().__init__(message)
        self.record_id = record_id
        self.missing = missing or []


class IndexRequiredError(EngineError):
    """
    A range query needs a composite index the database does not have.

    Deployment problem, not a transient one: never retried.
    """

    def __init__(self, message: str, *, table: str | None = None, index_name: str | None = None):
        super().__init__(message)
        self.table = table
        self.index_name = index_name


class ValidationError(EngineError, ValueError):
    """400-level input problem (bad dates, negative weights, non-positive restocks)."""


class ConflictError(EngineError):
    """Optimistic read-modify-write lost a race after exhausting its retries."""
