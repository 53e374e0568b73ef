# Overview: Flask API routes for weekly targets and staff incentives.

from flask import Blueprint, current_app, jsonify, request

from ..errors import EngineError
from ..services import incentive_service
from . import engine_error_response, json_body

targets_bp = Blueprint("targets", __name__, url_prefix="/api/targets")


@targets_bp.get("/achievement")
def achievement_route():
    """Query: staff_id, week_start, week_end (YYYY-MM-DD, inclusive)."""
    try:
        result = incentive_service.get_weekly_achievement(
            request.args.get("staff_id"),
            request.args.get("week_start"),
            request.args.get("week_end"),
        )
        return jsonify(result), 200
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to read weekly achievement")
        return jsonify({"error": "Internal server error"}), 500


@targets_bp.get("/<month>")
def get_targets_route(month: str):
    try:
        return jsonify(incentive_service.get_monthly_targets(month)), 200
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to read targets")
        return jsonify({"error": "Internal server error"}), 500


@targets_bp.put("/<month>")
def save_targets_route(month: str):
    """
    Request body:
    {
        "weeks": {
            "week1": {
                "overall_target_cents": 500000,
                "staff": {"S1": {"target_cents": 100000, "incentive_percentage": 0.5}}
            }
        }
    }
    """
    try:
        data = json_body()
        if "weeks" not in data:
            return jsonify({"error": "weeks required"}), 400
        return jsonify(incentive_service.save_monthly_targets(month, data["weeks"])), 200
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to save targets")
        return jsonify({"error": "Internal server error"}), 500


@targets_bp.get("/<month>/incentives")
def incentives_route(month: str):
    try:
        return jsonify(incentive_service.evaluate_incentives(month)), 200
    except EngineError as e:
        return engine_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to evaluate incentives")
        return jsonify({"error": "Internal server error"}), 500
