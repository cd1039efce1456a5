# Overview: Flask API routes for staff account management.

"""
User management routes.

SECURITY:
- users:read to list, users:write to create/update, users:delete to deactivate
- Deactivation revokes every open session of the user
- Accounts are never hard-deleted; sales and payments keep their attribution
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..models import User
from ..permissions import Action
from ..services import auth_service, session_service
from ..decorators import require_auth, require_permission
from .errors import json_error

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_permission("users", Action.READ)
def list_users():
    """
    Query params:
    - include_inactive: bool (default false)
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    users = query.order_by(User.username).all()
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)})


@users_bp.post("")
@require_auth
@require_permission("users", Action.WRITE)
def create_user_route():
    """
    Request body:
    {
        "username": "jane",
        "email": "jane@shop.local",
        "name": "Jane Doe",
        "password": "Password123!",
        "role": "CASHIER"
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            username=data.get("username"),
            email=data.get("email"),
            name=data.get("name"),
            password=data.get("password"),
            role=data.get("role") or "CASHIER",
            rounds=current_app.config["BCRYPT_ROUNDS"],
        )
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        return json_error(exc, "create user")

    current_app.logger.info("User created: %s by %s", user.username, g.current_user.username)
    return jsonify({"user": user.to_dict()}), 201


@users_bp.patch("/<int:user_id>")
@require_auth
@require_permission("users", Action.WRITE)
def update_user_route(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.update_user(user_id, data, rounds=current_app.config["BCRYPT_ROUNDS"])
        if not user.is_active or data.get("password"):
            session_service.revoke_all_user_sessions(user.id, reason="Account updated by administrator")
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        return json_error(exc, "update user")

    return jsonify({"user": user.to_dict()})


@users_bp.delete("/<int:user_id>")
@require_auth
@require_permission("users", Action.DELETE)
def deactivate_user_route(user_id: int):
    if user_id == g.current_user.id:
        return jsonify({"error": "You cannot deactivate your own account"}), 400
    try:
        user = auth_service.update_user(user_id, {"is_active": False})
        revoked = session_service.revoke_all_user_sessions(user.id, reason="Account deactivated")
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        return json_error(exc, "deactivate user")

    current_app.logger.info("User deactivated: %s (%s sessions revoked)", user.username, revoked)
    return jsonify({"user": user.to_dict(), "sessions_revoked": revoked})
