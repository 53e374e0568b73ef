# Overview: Flask API routes for the monthly stock ledger; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import EngineError
from ..services import stock_ledger_service
from . import engine_error_response, json_body

stock_ledger_bp = Blueprint("stock_ledger", __name__, url_prefix="/api/stock-ledger")


@stock_ledger_bp.get("")
def list_ledgers_route():
    """
    Ledgers for ?month=YYYY-MM over the product catalog.

    Missing ledgers are created with opening stock carried forward.
    Optional paging: ?cursor=<last product_code>&limit=N.
    """
    try:
        month = request.args.get("month")
        if not month:
            return jsonify({"error": "month required"}), 400
        result = stock_ledger_service.list_monthly_ledgers(
            month,
            after_code=request.args.get("cursor") or None,
            limit=request.args.get("limit"),
        )
        return jsonify(result), 200
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list stock ledgers")
        return jsonify({"error": "Internal server error"}), 500


@stock_ledger_bp.get("/<product_code>/<month>")
def get_ledger_route(product_code: str, month: str):
    try:
        return jsonify({"ledger": stock_ledger_service.get_monthly_ledger(product_code, month)}), 200
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to read stock ledger")
        return jsonify({"error": "Internal server error"}), 500


@stock_ledger_bp.post("/restock")
def restock_route():
    """
    Request body:
    {
        "product_code": "PRD1",
        "month": "2024-04",
        "quantity_kg": 12.5,
        "restock_date": "2024-04-03",
        "notes": "Morning delivery"   (optional)
    }
    """
    try:
        data = json_body()
        ledger = stock_ledger_service.add_restock(
            data.get("product_code"),
            data.get("month"),
            data.get("quantity_kg"),
            data.get("restock_date"),
            data.get("notes"),
        )
        return jsonify({"message": "Stock added successfully", "ledger": ledger}), 201
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add restock")
        return jsonify({"error": "Internal server error"}), 500


@stock_ledger_bp.put("/opening-stock")
def opening_stock_route():
    """Body: {"product_code", "month", "opening_stock_kg"}; the ledger must exist."""
    try:
        data = json_body()
        if "opening_stock_kg" not in data:
            return jsonify({"error": "opening_stock_kg required"}), 400
        ledger = stock_ledger_service.set_opening_stock(
            data.get("product_code"),
            data.get("month"),
            data.get("opening_stock_kg"),
        )
        return jsonify({"ledger": ledger}), 200
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to set opening stock")
        return jsonify({"error": "Internal server error"}), 500


@stock_ledger_bp.post("/sync-sales")
def sync_sales_route():
    """
    Body (all optional): {"month": "2024-04", "product_codes": ["PRD1", ...]}.

    Returns:
        200: Every ledger synced
        207: Some products had no ledger for the month (listed in errors)
    """
    try:
        data = request.get_json(silent=True) or {}
        product_codes = data.get("product_codes")
        if product_codes is not None and not isinstance(product_codes, list):
            return jsonify({"error": "product_codes must be a list"}), 400
        result = stock_ledger_service.sync_sales(data.get("month"), product_codes)
        return jsonify(result), (207 if result["errors"] else 200)
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to sync sales into stock ledger")
        return jsonify({"error": "Internal server error"}), 500


@stock_ledger_bp.get("/export")
def export_route():
    try:
        month = request.args.get("month")
        if not month:
            return jsonify({"error": "month required"}), 400
        body = stock_ledger_service.export_ledgers_csv(month)
        return current_app.response_class(
            body,
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename=stock-ledger-{month}.csv"},
        )
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to export stock ledger")
        return jsonify({"error": "Internal server error"}), 500
