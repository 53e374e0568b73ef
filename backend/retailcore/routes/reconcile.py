# Overview: Flask API routes for batch reconciliation of a day's aggregates.

from flask import Blueprint, current_app, jsonify, request

from ..errors import EngineError
from ..services import event_store, reconcile_service
from ..time_utils import parse_date_key
from . import engine_error_response, json_body

reconcile_bp = Blueprint("reconcile", __name__, url_prefix="/api/reconcile")


@reconcile_bp.get("/count")
def count_route():
    """Number of SOLD transactions for ?date=YYYY-MM-DD (sizes the run)."""
    try:
        sale_date = parse_date_key(request.args.get("date"), "date")
        return jsonify({"date": sale_date, "count": event_store.count_transactions(sale_date)}), 200
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to count transactions")
        return jsonify({"error": "Internal server error"}), 500


@reconcile_bp.post("/page")
def reconcile_page_route():
    """
    Process one page of a reconciliation run.

    Request body:
    {
        "date": "2024-04-03",
        "page_size": 50,        (optional, default RECONCILE_PAGE_SIZE)
        "cursor": 1234,         (optional, next_cursor of the previous page)
        "is_first_page": true   (clears the day's aggregates first)
    }

    Returns:
        200: {processed, skipped, errors, next_cursor, aggregates_touched, has_more}
        400: Invalid input
        409: Aggregate rows kept changing under the page
        500: Range index missing (details name the index)
    """
    try:
        data = json_body()
        result = reconcile_service.reconcile_page(
            data.get("date"),
            data.get("page_size"),
            after_id=data.get("cursor"),
            is_first_page=data.get("is_first_page", False),
        )
        return jsonify(result.to_dict()), 200
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to process reconciliation page")
        return jsonify({"error": "Internal server error"}), 500
