# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .permissions import Action
from .services import session_service, permission_service
from .services.permission_service import PermissionDeniedError


def _is_authenticated() -> bool:
    return getattr(g, "current_user", None) is not None


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer session token.

    Sets g.current_user to the authenticated User and g.session_token to the
    raw token (logout needs it).

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, revoked, idle or expired token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        g.session_token = token
        return f(*args, **kwargs)

    return decorated_function


def require_permission(module: str, action: Action = Action.READ):
    """
    Require that the current user's role holds action on module.

    Must be stacked under @require_auth. Denials are recorded as
    PERMISSION_DENIED security events by the permission service.
    """
    action = Action(action)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            try:
                permission_service.require_permission(
                    user=g.current_user,
                    module=module,
                    action=action,
                    resource=request.path,
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
            except PermissionDeniedError as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": f"{module}:{action.value}",
                    "message": str(e),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
