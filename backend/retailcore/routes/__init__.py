# Overview: Shared helpers for the JSON API blueprints.

from flask import jsonify, request

from ..errors import (
    ConflictError,
    EngineError,
    IncompleteRecordError,
    IndexRequiredError,
    NotFoundError,
    ValidationError,
)


def engine_error_response(exc: EngineError):
    """Map a service-layer error to a JSON error response."""
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, IncompleteRecordError):
        return jsonify({"error": str(exc), "record_id": exc.record_id, "missing": exc.missing}), 422
    if isinstance(exc, IndexRequiredError):
        return jsonify({
            "error": "Required database index is missing",
            "details": str(exc),
            "index": exc.index_name,
        }), 500
    return jsonify({"error": str(exc)}), 500


def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
