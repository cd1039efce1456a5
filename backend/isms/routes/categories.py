# Overview: Flask API routes for product categories.

from flask import Blueprint, request

from ..permissions import Action
from ..services import catalog_service
from ..decorators import require_auth, require_permission
from .errors import json_error

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
@require_permission("inventory", Action.READ)
def list_categories():
    categories = catalog_service.list_categories()
    return {"categories": [c.to_dict() for c in categories], "count": len(categories)}


@categories_bp.post("")
@require_auth
@require_permission("inventory", Action.WRITE)
def create_category():
    try:
        category = catalog_service.create_category(request.get_json(silent=True) or {})
    except Exception as exc:
        return json_error(exc, "create category")
    return {"category": category.to_dict()}, 201


@categories_bp.put("/<int:category_id>")
@require_auth
@require_permission("inventory", Action.WRITE)
def update_category(category_id: int):
    try:
        category = catalog_service.update_category(category_id, request.get_json(silent=True) or {})
    except Exception as exc:
        return json_error(exc, "update category")
    return {"category": category.to_dict()}


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_permission("inventory", Action.DELETE)
def delete_category(category_id: int):
    """Refused with 409 while products are filed under the category."""
    try:
        catalog_service.delete_category(category_id)
    except Exception as exc:
        return json_error(exc, "delete category")
    return {"ok": True}
