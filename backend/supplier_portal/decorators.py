# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service, access_service


def _is_authenticated() -> bool:
    return getattr(g, "current_user", None) is not None


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid staff session.

    Sets:
    - g.current_user: the authenticated User
    - g.session_context: the full SessionContext

    Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """
    Require a specific permission. Must be stacked under @require_auth.

    Services check again with the same code before touching the store.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if not access_service.has_permission(g.current_user, permission_code):
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                    "message": f"Role '{g.current_user.role}' lacks permission {permission_code}",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
