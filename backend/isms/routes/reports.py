# Overview: Flask API routes for dashboard, reports and profit & loss.

"""
Reporting routes.

All figures are recomputed from the stored rows on every request.
"""

from flask import Blueprint, request, jsonify

from ..permissions import Action
from ..services import profit_loss_service, reporting_service
from ..decorators import require_auth, require_permission
from .errors import json_error


reports_bp = Blueprint("reports", __name__, url_prefix="/api")


@reports_bp.get("/dashboard")
@require_auth
@require_permission("dashboard", Action.READ)
def dashboard():
    try:
        return jsonify(reporting_service.dashboard())
    except Exception as exc:
        return json_error(exc, "load dashboard")


@reports_bp.get("/reports")
@require_auth
@require_permission("reports", Action.READ)
def reports():
    """
    Query params:
    - type: sales | returns | inventory (default sales)
    - start_date, end_date: ISO-8601
    - category_id, product_id: int
    """
    try:
        report = reporting_service.build_report(
            request.args.get("type", "sales"),
            start=request.args.get("start_date"),
            end=request.args.get("end_date"),
            category_id=request.args.get("category_id", type=int),
            product_id=request.args.get("product_id", type=int),
        )
        return jsonify(report)
    except Exception as exc:
        return json_error(exc, "build report")


@reports_bp.get("/profit-loss")
@require_auth
@require_permission("profit-loss", Action.READ)
def profit_loss():
    """
    Query params:
    - period: today | 7days | 30days | 3months | 6months | 12months | all (default all)
    """
    try:
        return jsonify(profit_loss_service.profit_and_loss(request.args.get("period", "all")))
    except Exception as exc:
        return json_error(exc, "build profit and loss report")
