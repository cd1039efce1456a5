# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""
Sales API routes

SECURITY:
- pos:write to record a sale, pos:read to view sales
- installments:write to take a payment on a credit sale

Prices are always resolved server-side; any price sent by the client is ignored.
"""

from flask import Blueprint, request, jsonify, g

from ..permissions import Action
from ..services import installment_service, sales_service
from ..decorators import require_auth, require_permission
from .errors import json_error


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_permission("pos", Action.WRITE)
def create_sale_route():
    """
    Record a sale.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2, "discount_cents": 0}],
        "discount_cents": 0,
        "payment_method": "CASH" | "CARD" | "MOBILE" | "CREDIT",
        "sale_type": "RETAIL" | "WHOLESALE",
        "amount_paid_cents": 5000,
        "customer_name": "...",      (CREDIT only)
        "customer_phone": "...",     (CREDIT only)
        "idempotency_key": "..."     (optional)
    }

    Returns:
        201: Sale with items
        400: Empty cart, insufficient payment or stock, bad input
        404: Unknown product
    """
    try:
        sale = sales_service.create_sale(request.get_json(silent=True), user_id=g.current_user.id)
        return jsonify({"sale": sale.to_dict(include_payments=True)}), 201
    except Exception as exc:
        return json_error(exc, "create sale")


@sales_bp.get("")
@require_auth
@require_permission("pos", Action.READ)
def list_sales_route():
    """
    Latest 100 sales.

    Query params:
    - installment: bool - only credit sales, with their payments
    """
    installment_only = request.args.get("installment", "false").lower() == "true"
    try:
        sales = sales_service.list_sales(installment_only=installment_only)
        return jsonify({
            "sales": [s.to_dict(include_payments=installment_only) for s in sales],
            "count": len(sales),
        })
    except Exception as exc:
        return json_error(exc, "list sales")


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("pos", Action.READ)
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify({"sale": sale.to_dict(include_payments=True)})
    except Exception as exc:
        return json_error(exc, "load sale")


@sales_bp.put("/<int:sale_id>/payments")
@require_auth
@require_permission("installments", Action.WRITE)
def record_payment_route(sale_id: int):
    """
    Take a payment against a credit sale.

    Request body: {"amount_cents": 1000, "notes": "..."}
    """
    data = request.get_json(silent=True) or {}
    try:
        sale, payment = installment_service.record_payment(
            sale_id,
            data.get("amount_cents", data.get("amount")),
            data.get("notes"),
            user_id=g.current_user.id,
        )
        return jsonify({"sale": sale.to_dict(include_payments=True), "payment": payment.to_dict()})
    except Exception as exc:
        return json_error(exc, "record installment payment")
