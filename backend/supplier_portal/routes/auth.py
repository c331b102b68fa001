# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/supplier_portal/routes/auth.py
"""
Staff authentication routes.

Accounts are created by admins only (POST /api/admin/users or
`flask users create`); there is no self-registration.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import access_service
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email") or data.get("username")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "permissions": sorted(access_service.get_user_permissions(user)),
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
    """Revoke the current session token."""
    session_service.revoke_session(bearer_token(), reason="User logout")
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user with effective permissions."""
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "permissions": sorted(access_service.get_user_permissions(user)),
        "session": g.session_context.session.to_dict(),
    }), 200
