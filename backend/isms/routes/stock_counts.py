# Overview: Flask API routes for physical stock counts.

from flask import Blueprint, request, jsonify, g

from ..permissions import Action
from ..services import stock_count_service
from ..decorators import require_auth, require_permission
from .errors import json_error


stock_counts_bp = Blueprint("stock_counts", __name__, url_prefix="/api/stock-counts")


@stock_counts_bp.post("")
@require_auth
@require_permission("stock-count", Action.WRITE)
def create_count():
    """
    Open a count.

    Request body: {"product_ids": [1, 2], "notes": "..."}; without product_ids
    every non-faulty product is included.
    """
    try:
        count = stock_count_service.create_count(request.get_json(silent=True) or {}, user_id=g.current_user.id)
        return jsonify({"stock_count": count.to_dict()}), 201
    except Exception as exc:
        return json_error(exc, "create stock count")


@stock_counts_bp.get("")
@require_auth
@require_permission("stock-count", Action.READ)
def list_counts():
    try:
        counts = stock_count_service.list_counts(status=request.args.get("status"))
        return jsonify({"stock_counts": [c.to_dict(include_items=False) for c in counts], "count": len(counts)})
    except Exception as exc:
        return json_error(exc, "list stock counts")


@stock_counts_bp.get("/<int:count_id>")
@require_auth
@require_permission("stock-count", Action.READ)
def get_count(count_id: int):
    try:
        return jsonify({"stock_count": stock_count_service.get_count(count_id).to_dict()})
    except Exception as exc:
        return json_error(exc, "load stock count")


@stock_counts_bp.put("/<int:count_id>/items")
@require_auth
@require_permission("stock-count", Action.WRITE)
def record_counts(count_id: int):
    """Request body: {"items": [{"id": <item id>, "counted_qty": 7, "notes": "..."}]}"""
    data = request.get_json(silent=True) or {}
    try:
        count = stock_count_service.record_counts(count_id, data.get("items"))
        return jsonify({"stock_count": count.to_dict()})
    except Exception as exc:
        return json_error(exc, "record stock counts")


@stock_counts_bp.post("/<int:count_id>/complete")
@require_auth
@require_permission("stock-count", Action.WRITE)
def complete_count(count_id: int):
    """Book ADJUSTMENT movements for every counted item and close the count."""
    try:
        count = stock_count_service.complete_count(count_id, user_id=g.current_user.id)
        return jsonify({"stock_count": count.to_dict()})
    except Exception as exc:
        return json_error(exc, "complete stock count")


@stock_counts_bp.post("/<int:count_id>/cancel")
@require_auth
@require_permission("stock-count", Action.WRITE)
def cancel_count(count_id: int):
    try:
        count = stock_count_service.cancel_count(count_id)
        return jsonify({"stock_count": count.to_dict()})
    except Exception as exc:
        return json_error(exc, "cancel stock count")


@stock_counts_bp.delete("/<int:count_id>")
@require_auth
@require_permission("stock-count", Action.DELETE)
def delete_count(count_id: int):
    try:
        stock_count_service.delete_count(count_id)
        return jsonify({"ok": True})
    except Exception as exc:
        return json_error(exc, "delete stock count")
