# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

"""
Return Processing API Routes

DESIGN:
- One request records the whole return: every line's status, award and
  stock effect is applied in a single transaction
- PENDING lines can be resolved later through the item status endpoint
- A return can be deleted only while none of its lines has touched stock

SECURITY:
- returns:write to process and resolve, returns:delete to delete
"""

from flask import Blueprint, request, jsonify, g

from ..permissions import Action
from ..services import return_service
from ..decorators import require_auth, require_permission
from .errors import json_error


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
@require_auth
@require_permission("returns", Action.WRITE)
def create_return_route():
    """
    Request body:
    {
        "reason": "Customer complaint",
        "idempotency_key": "...",  (optional)
        "items": [{
            "product_id": 1,
            "quantity": 1,
            "status": "RESELLABLE" | "FAULTY" | "DISCARDED" | "PENDING",
            "awarded_type": "REFUND" | "REPLACEMENT" | "STORE_CREDIT" | "REPAIR",
            "refund_amount_cents": 0,
            "repair_cost_cents": 0,
            "replacement_product_id": 2,
            "original_product_value_cents": 5000
        }]
    }

    Returns:
        201: Return with items
        400: Invalid input or insufficient replacement stock
        404: Unknown product
    """
    try:
        return_doc = return_service.create_return(request.get_json(silent=True), user_id=g.current_user.id)
        return jsonify({"return": return_doc.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "create return")


@returns_bp.get("")
@require_auth
@require_permission("returns", Action.READ)
def list_returns_route():
    try:
        returns = return_service.list_returns()
        return jsonify({"returns": [r.to_dict() for r in returns], "count": len(returns)})
    except Exception as exc:
        return json_error(exc, "list returns")


@returns_bp.get("/saleable-products")
@require_auth
@require_permission("returns", Action.READ)
def saleable_products_route():
    """Products that can be issued as replacements."""
    try:
        products = return_service.saleable_products()
        return jsonify({"products": [p.to_dict() for p in products]})
    except Exception as exc:
        return json_error(exc, "list saleable products")


@returns_bp.get("/<int:return_id>")
@require_auth
@require_permission("returns", Action.READ)
def get_return_route(return_id: int):
    try:
        return jsonify({"return": return_service.get_return(return_id).to_dict()})
    except Exception as exc:
        return json_error(exc, "load return")


@returns_bp.put("/items/<int:item_id>/status")
@require_auth
@require_permission("returns", Action.WRITE)
def update_item_status_route(item_id: int):
    """
    Resolve a PENDING line.

    Request body: {"status": "RESELLABLE" | "FAULTY" | "DISCARDED"}

    Returns:
        200: Updated item
        409: Item already resolved to a different status
    """
    data = request.get_json(silent=True) or {}
    try:
        item = return_service.update_item_status(item_id, data.get("status"), user_id=g.current_user.id)
        return jsonify({"item": item.to_dict()})
    except Exception as exc:
        return json_error(exc, "update return item status")


@returns_bp.delete("/<int:return_id>")
@require_auth
@require_permission("returns", Action.DELETE)
def delete_return_route(return_id: int):
    try:
        return_service.delete_return(return_id)
        return jsonify({"ok": True})
    except Exception as exc:
        return json_error(exc, "delete return")
