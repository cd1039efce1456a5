# Overview: Maps service-layer exceptions onto JSON error responses.

from flask import current_app, jsonify

from ..services.permission_service import PermissionDeniedError
from ..validation import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)


def json_error(exc: Exception, failure: str):
    """
    Translate exc into (response, status).

    failure completes "Failed to ..." in the log line written for
    anything that is not a known business-rule error.
    """
    if isinstance(exc, InsufficientStockError):
        return jsonify({"error": str(exc), **exc.details}), 400
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, PermissionDeniedError):
        return jsonify({"error": "Permission denied", "message": str(exc)}), 403
    current_app.logger.exception("Failed to %s", failure)
    return jsonify({"error": "Internal server error"}), 500
