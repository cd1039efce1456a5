# Overview: Flask API routes for reading and editing the role permission matrix.

"""
Permission matrix routes.

The matrix is replaced wholesale: POST replaces one role's rows, PUT /reset
replaces the whole table with the defaults. Every change is recorded as a
PERMISSIONS_CHANGED security event.
"""

from flask import Blueprint, request, jsonify, g

from ..extensions import db
from ..permissions import Action, MODULES, Role
from ..services import permission_service
from ..services.permission_service import PermissionMatrix
from ..decorators import require_auth, require_permission
from .errors import json_error

permissions_bp = Blueprint("permissions", __name__, url_prefix="/api/permissions")


@permissions_bp.get("")
@require_auth
@require_permission("users", Action.READ)
def get_permissions():
    """
    Query params:
    - role: return only this role's map (all modules, missing rows as false)
    """
    role = request.args.get("role")
    try:
        matrix = PermissionMatrix(db.session)
        if role:
            return jsonify({"role": Role.parse(role).value, "permissions": matrix.for_role(role)})
        return jsonify({
            "permissions": matrix.load(),
            "modules": [{"id": m, "name": n, "description": d} for m, n, d in MODULES],
            "roles": [r.value for r in Role],
        })
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception as exc:
        return json_error(exc, "load permissions")


@permissions_bp.post("")
@require_auth
@require_permission("users", Action.WRITE)
def save_permissions():
    """
    Request body:
    {
        "role": "CASHIER",
        "permissions": [{"module": "pos", "can_read": true, "can_write": true, "can_delete": false}, ...]
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        rows = PermissionMatrix(db.session).save_role(data.get("role"), data.get("permissions"))
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        return json_error(exc, "save permissions")

    role = Role.parse(data.get("role"))
    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type="PERMISSIONS_CHANGED",
        success=True,
        resource=request.path,
        action="save_role",
        reason=f"Replaced {len(rows)} rows for {role.value}",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    return jsonify({"role": role.value, "permissions": PermissionMatrix(db.session).for_role(role)})


@permissions_bp.put("/reset")
@require_auth
@require_permission("users", Action.WRITE)
def reset_permissions():
    try:
        count = PermissionMatrix(db.session).reset_defaults()
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        return json_error(exc, "reset permissions")

    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type="PERMISSIONS_CHANGED",
        success=True,
        resource=request.path,
        action="reset_defaults",
        reason=f"Matrix reset to defaults ({count} rows)",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    return jsonify({"rows": count, "permissions": PermissionMatrix(db.session).load()})
