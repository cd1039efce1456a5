# Overview: Flask API routes for credit sales and their payment history.

from flask import Blueprint, request, jsonify, g

from ..permissions import Action
from ..services import installment_service
from ..decorators import require_auth, require_permission
from .errors import json_error


installments_bp = Blueprint("installments", __name__, url_prefix="/api/installments")


@installments_bp.get("")
@require_auth
@require_permission("installments", Action.READ)
def list_installments():
    """
    Credit sales with their payments and a summary of outstanding balances.

    Query params:
    - status: ACTIVE | COMPLETED | OVERDUE
    """
    try:
        sales = installment_service.list_installment_sales(status=request.args.get("status"))
        return jsonify({
            "sales": [s.to_dict(include_payments=True) for s in sales],
            "summary": installment_service.installment_summary(sales),
        })
    except Exception as exc:
        return json_error(exc, "list installment sales")


@installments_bp.post("/<int:sale_id>/payments")
@require_auth
@require_permission("installments", Action.WRITE)
def record_payment(sale_id: int):
    """Request body: {"amount_cents": 1000, "notes": "..."}"""
    data = request.get_json(silent=True) or {}
    try:
        sale, payment = installment_service.record_payment(
            sale_id,
            data.get("amount_cents", data.get("amount")),
            data.get("notes"),
            user_id=g.current_user.id,
        )
        return jsonify({"sale": sale.to_dict(include_payments=True), "payment": payment.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "record installment payment")
