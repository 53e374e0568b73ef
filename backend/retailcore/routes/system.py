# backend/retailcore/routes/system.py
"""
System health endpoint.

Checks database connectivity and that the transaction range index used by
reconciliation is in place.
"""

import time

from flask import Blueprint, current_app

from ..errors import IndexRequiredError
from ..extensions import db
from ..models import Product, SaleTransaction
from ..services import event_store
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        transaction_count = db.session.query(SaleTransaction).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "sale_transactions": transaction_count,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_index_health() -> dict:
    """A missing range index degrades the service: reconciliation refuses to run."""
    try:
        event_store.require_range_index()
        return {"status": "healthy"}
    except IndexRequiredError as e:
        return {"status": "degraded", "warning": str(e)}
    except Exception:
        current_app.logger.exception("Index health check failed")
        return {"status": "unhealthy", "error": "Index inspection failed"}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    index_health = check_index_health()

    all_checks = [database_health, index_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "range_index": index_health,
        },
    }, http_status
