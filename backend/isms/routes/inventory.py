# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

"""
Stock ledger routes.

Stock is never edited directly: every change is a movement. This blueprint
exposes the movement history and manual adjustments.
"""

from flask import Blueprint, request, jsonify, g

from ..models.inventory import MOVEMENT_TYPES
from ..permissions import Action
from ..services import stock_service
from ..validation import parse_choice
from ..decorators import require_auth, require_permission
from .errors import json_error


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")


@inventory_bp.get("/stock-movements")
@require_auth
@require_permission("inventory", Action.READ)
def list_movements():
    """
    Query params:
    - product_id: int
    - type: movement type
    - limit: int (default 200, max 1000)
    """
    try:
        movement_type = request.args.get("type")
        if movement_type:
            movement_type = parse_choice(movement_type, "type", MOVEMENT_TYPES)
        limit = min(max(request.args.get("limit", 200, type=int), 1), 1000)
        movements = stock_service.list_movements(
            product_id=request.args.get("product_id", type=int),
            movement_type=movement_type,
            limit=limit,
        )
        return jsonify({"movements": [m.to_dict() for m in movements], "count": len(movements)})
    except Exception as exc:
        return json_error(exc, "list stock movements")


@inventory_bp.post("/inventory/adjust")
@require_auth
@require_permission("inventory", Action.WRITE)
def adjust_stock():
    """
    Manual stock adjustment.

    Request body: {"product_id": 1, "delta": -2, "reason": "Damaged in storage"}
    """
    data = request.get_json(silent=True) or {}
    try:
        if data.get("product_id") is None:
            return jsonify({"error": "product_id is required"}), 400
        movement = stock_service.adjust_stock(
            product_id=data.get("product_id"),
            delta=data.get("delta"),
            reason=data.get("reason"),
            user_id=g.current_user.id,
        )
        product = stock_service.get_product(movement.product_id)
        return jsonify({"movement": movement.to_dict(), "product": product.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "adjust stock")
