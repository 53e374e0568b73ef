# Overview: Flask API routes for sale transactions; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import EngineError
from ..services import deletion_service, sales_service
from . import engine_error_response, json_body

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def record_sale_route():
    """
    Record a weighed sale.

    Request body:
    {
        "product_code": "PRD1",
        "weight_grams": 450,
        "staff_id": "S1",
        "barcode_scanned": "2100450...",   (optional)
        "occurred_at": "2024-04-03T08:30:00Z"  (optional, default: now)
    }

    Returns:
        201: Transaction created and aggregates updated
        400: Invalid input or weight above the per-sale maximum
        404: Unknown product
    """
    try:
        data = json_body()
        tx = sales_service.record_sale(
            product_code=data.get("product_code"),
            weight_grams=data.get("weight_grams"),
            staff_id=data.get("staff_id"),
            barcode_scanned=data.get("barcode_scanned"),
            occurred_at=data.get("occurred_at"),
        )
        return jsonify({"transaction": tx.to_dict()}), 201
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/bulk")
def record_sales_bulk_route():
    """
    Record several scanned sales in one request.

    Request body:
    {
        "sales": [
            {"product_code": "PRD1", "weight_grams": 450, "staff_id": "S1", "barcode_scanned": "..."},
            ...
        ]
    }

    Returns:
        201: Every sale recorded
        207: Some sales recorded, failures listed in errors
        400: No sale recorded, or the body is not a non-empty list of sales
    """
    try:
        data = json_body()
        result = sales_service.record_sales_bulk(data.get("sales"))
        if result["processed"] == 0:
            status = 400
        elif result["skipped"]:
            status = 207
        else:
            status = 201
        return jsonify(result), status
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record bulk sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/<int:transaction_id>/status")
def update_status_route(transaction_id: int):
    """Pre-billing return: body {"status": "RETURNED_PRE_BILLING"}."""
    try:
        data = json_body()
        if not data.get("status"):
            return jsonify({"error": "status required"}), 400
        tx = sales_service.mark_returned(transaction_id, data["status"])
        return jsonify({"transaction": tx.to_dict()}), 200
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update transaction status")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:transaction_id>")
def delete_transaction_route(transaction_id: int):
    """
    Delete a transaction (manager correction).

    SOLD transactions have their aggregate contribution reversed first.

    Returns:
        200: Deleted
        404: Unknown transaction
        422: SOLD transaction missing fields needed for the reversal
    """
    try:
        result = deletion_service.delete_transaction(transaction_id)
        return jsonify(result), 200
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete transaction")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/returns")
def list_returns_route():
    """Query: start_date (required), end_date (optional, default start_date)."""
    try:
        start_date = request.args.get("start_date")
        if not start_date:
            return jsonify({"error": "start_date required"}), 400
        result = sales_service.list_returns(start_date, request.args.get("end_date"))
        return jsonify(result), 200
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list returns")
        return jsonify({"error": "Internal server error"}), 500
