# Overview: Flask API routes for purchase orders; parses input and returns JSON responses.

"""
Purchase order routes.

LIFECYCLE: PENDING -> ORDERED -> RECEIVED, with CANCELLED reachable from
PENDING and ORDERED. Stock is credited exactly once, on receipt.
"""

from flask import Blueprint, request, jsonify, g

from ..permissions import Action
from ..services import purchase_order_service
from ..decorators import require_auth, require_permission
from .errors import json_error


purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


@purchase_orders_bp.post("")
@require_auth
@require_permission("purchase-orders", Action.WRITE)
def create_purchase_order():
    """
    Request body:
    {
        "supplier_id": 1,
        "items": [{"product_id": 1, "quantity": 10, "unit_cost_cents": 700}],
        "expected_delivery": "2026-01-31",  (optional)
        "notes": "..."                      (optional)
    }
    """
    try:
        order = purchase_order_service.create_purchase_order(
            request.get_json(silent=True), user_id=g.current_user.id
        )
        return jsonify({"purchase_order": order.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "create purchase order")


@purchase_orders_bp.get("")
@require_auth
@require_permission("purchase-orders", Action.READ)
def list_purchase_orders():
    """Query params: status"""
    try:
        orders = purchase_order_service.list_purchase_orders(status=request.args.get("status"))
        return jsonify({
            "purchase_orders": [o.to_dict(include_items=False) for o in orders],
            "count": len(orders),
        })
    except Exception as exc:
        return json_error(exc, "list purchase orders")


@purchase_orders_bp.get("/<int:order_id>")
@require_auth
@require_permission("purchase-orders", Action.READ)
def get_purchase_order(order_id: int):
    try:
        return jsonify({"purchase_order": purchase_order_service.get_purchase_order(order_id).to_dict()})
    except Exception as exc:
        return json_error(exc, "load purchase order")


@purchase_orders_bp.put("/<int:order_id>")
@require_auth
@require_permission("purchase-orders", Action.WRITE)
def update_purchase_order(order_id: int):
    """
    Change status and/or record payment.

    Request body:
    {
        "status": "ORDERED" | "RECEIVED" | "CANCELLED",
        "paid_amount_cents": 5000,
        "received": {"<item id>": 8}   (RECEIVED only; omitted items count as fully received)
    }

    Returns:
        200: Updated order
        409: Illegal status transition
    """
    data = request.get_json(silent=True) or {}
    try:
        order = purchase_order_service.update_status(
            order_id,
            status=data.get("status"),
            paid_amount=data.get("paid_amount_cents", data.get("paidAmount")),
            received=data.get("received"),
            user_id=g.current_user.id,
        )
        return jsonify({"purchase_order": order.to_dict()})
    except Exception as exc:
        return json_error(exc, "update purchase order")


@purchase_orders_bp.delete("/<int:order_id>")
@require_auth
@require_permission("purchase-orders", Action.DELETE)
def delete_purchase_order(order_id: int):
    try:
        purchase_order_service.delete_purchase_order(order_id)
        return jsonify({"ok": True})
    except Exception as exc:
        return json_error(exc, "delete purchase order")
