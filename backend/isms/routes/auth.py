# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/isms/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- bcrypt password verification
- Opaque bearer tokens; only their hash is stored
- Failed logins are recorded as security events
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..services.permission_service import PermissionMatrix
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _user_payload(user) -> dict:
    return {
        "user": user.to_dict(),
        "permissions": PermissionMatrix(db.session).for_role(user.role),
    }


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Returns user info, the role's permission map and a session token.
    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username/email and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(username, password)
        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource=request.path,
                action="login",
                reason=f"Invalid credentials for {str(username)[:64]}",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        current_app.logger.info("User logged in: %s", user.username)

        return jsonify({
            **_user_payload(user),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """
    Revoke the caller's session token.

    WHY: Explicit logout prevents token reuse.
    """
    try:
        session_service.revoke_session(g.session_token, reason="User logout")
        return jsonify({"message": "Logout successful"}), 200
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """
    Current user plus the permission map for their role.

    WHY: The frontend hides navigation it cannot use; the server still
    enforces every permission on its own.
    """
    try:
        return jsonify(_user_payload(g.current_user)), 200
    except Exception:
        current_app.logger.exception("Failed to load current user")
        return jsonify({"error": "Internal server error"}), 500
