# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/isms/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Read operations require inventory:read
- Create/update require inventory:write, delete requires inventory:delete
"""
from flask import Blueprint, request, g

from ..permissions import Action
from ..services import catalog_service
from ..decorators import require_auth, require_permission
from .errors import json_error

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("inventory", Action.READ)
def list_products():
    """
    List products.

    Query params:
    - search: substring of name, sku or barcode
    - category_id: int
    - low_stock: bool - only products at or below their threshold
    """
    try:
        products = catalog_service.list_products(
            search=request.args.get("search"),
            category_id=request.args.get("category_id", type=int),
            low_stock=request.args.get("low_stock", "false").lower() == "true",
        )
        return {"products": [p.to_dict() for p in products], "count": len(products)}
    except Exception as exc:
        return json_error(exc, "list products")


@products_bp.post("")
@require_auth
@require_permission("inventory", Action.WRITE)
def create_product_route():
    """
    Create a product. An optional stock_quantity is booked as opening stock.

    Requires inventory:write.
    """
    payload = request.get_json(silent=True) or {}
    try:
        product = catalog_service.create_product(payload, user_id=g.current_user.id)
    except Exception as exc:
        return json_error(exc, "create product")
    return {"product": product.to_dict()}, 201


@products_bp.get("/barcode/<code>")
@require_auth
@require_permission("inventory", Action.READ)
def find_by_barcode(code: str):
    """Exact barcode (or SKU) lookup for the point of sale."""
    try:
        return {"product": catalog_service.find_by_barcode(code).to_dict()}
    except Exception as exc:
        return json_error(exc, "look up barcode")


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("inventory", Action.READ)
def get_product(product_id: int):
    try:
        return {"product": catalog_service.get_product(product_id).to_dict()}
    except Exception as exc:
        return json_error(exc, "load product")


@products_bp.route("/<int:product_id>", methods=["PATCH", "PUT"])
@require_auth
@require_permission("inventory", Action.WRITE)
def update_product_route(product_id: int):
    """Partial update. stock_quantity is rejected; use a stock adjustment."""
    payload = request.get_json(silent=True) or {}
    try:
        product = catalog_service.update_product(product_id, payload)
    except Exception as exc:
        return json_error(exc, "update product")
    return {"product": product.to_dict()}


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("inventory", Action.DELETE)
def delete_product_route(product_id: int):
    """
    Delete a product.

    Refused with 409 while sales, returns, purchase orders, stock counts or
    stock movements still reference it.
    """
    try:
        catalog_service.delete_product(product_id)
    except Exception as exc:
        return json_error(exc, "delete product")
    return {"ok": True}, 200
