# Overview: Flask API routes for suppliers operations; parses input and returns JSON responses.

from flask import Blueprint, request

from ..permissions import Action
from ..services import catalog_service
from ..decorators import require_auth, require_permission
from .errors import json_error

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
@require_permission("suppliers", Action.READ)
def list_suppliers():
    """
    Query params:
    - include_inactive: bool (default false)
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    suppliers = catalog_service.list_suppliers(include_inactive=include_inactive)
    return {"suppliers": [s.to_dict() for s in suppliers], "count": len(suppliers)}


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
@require_permission("suppliers", Action.READ)
def get_supplier(supplier_id: int):
    try:
        return {"supplier": catalog_service.get_supplier(supplier_id).to_dict()}
    except Exception as exc:
        return json_error(exc, "load supplier")


@suppliers_bp.post("")
@require_auth
@require_permission("suppliers", Action.WRITE)
def create_supplier():
    try:
        supplier = catalog_service.create_supplier(request.get_json(silent=True) or {})
    except Exception as exc:
        return json_error(exc, "create supplier")
    return {"supplier": supplier.to_dict()}, 201


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
@require_permission("suppliers", Action.WRITE)
def update_supplier(supplier_id: int):
    try:
        supplier = catalog_service.update_supplier(supplier_id, request.get_json(silent=True) or {})
    except Exception as exc:
        return json_error(exc, "update supplier")
    return {"supplier": supplier.to_dict()}


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_permission("suppliers", Action.DELETE)
def delete_supplier(supplier_id: int):
    """Suppliers with products or purchase orders are deactivated instead of removed."""
    try:
        catalog_service.delete_supplier(supplier_id)
    except Exception as exc:
        return json_error(exc, "delete supplier")
    return {"ok": True}
