# Overview: Flask API routes for reading the daily aggregate families.

from flask import Blueprint, current_app, jsonify

from ..errors import EngineError
from ..services import aggregate_service
from ..time_utils import parse_date_key
from . import engine_error_response

aggregates_bp = Blueprint("aggregates", __name__, url_prefix="/api/aggregates")


@aggregates_bp.get("/daily/<sale_date>")
def daily_summary_route(sale_date: str):
    try:
        sale_date = parse_date_key(sale_date)
        return jsonify(aggregate_service.get_daily_summary(sale_date)), 200
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to read daily summary")
        return jsonify({"error": "Internal server error"}), 500


@aggregates_bp.get("/staff/<sale_date>")
def staff_summary_route(sale_date: str):
    try:
        sale_date = parse_date_key(sale_date)
        return jsonify(aggregate_service.get_staff_daily_summary(sale_date)), 200
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to read staff summary")
        return jsonify({"error": "Internal server error"}), 500


@aggregates_bp.get("/products/<sale_date>")
def product_summaries_route(sale_date: str):
    try:
        sale_date = parse_date_key(sale_date)
        items = aggregate_service.list_product_daily_summaries(sale_date)
        return jsonify({"date": sale_date, "items": items}), 200
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to read product summaries")
        return jsonify({"error": "Internal server error"}), 500


@aggregates_bp.get("/products/<sale_date>/<product_code>")
def product_summary_route(sale_date: str, product_code: str):
    try:
        sale_date = parse_date_key(sale_date)
        return jsonify(aggregate_service.get_product_daily_summary(sale_date, product_code)), 200
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to read product summary")
        return jsonify({"error": "Internal server error"}), 500
