# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/supplier_portal/routes/admin.py
"""
Admin routes for staff account management.

All endpoints require authentication and VIEW_USERS / MANAGE_USERS.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import auth_service
from ..decorators import require_auth, require_permission
from ..http_errors import DOMAIN_ERRORS, error_response
from ..permissions import ROLE_PERMISSIONS

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_permission("VIEW_USERS")
def list_users():
    """
    List staff accounts.

    Query params:
    - include_inactive: bool (default true)
    """
    include_inactive = request.args.get("include_inactive", "true").lower() == "true"
    try:
        users = auth_service.list_users(g.current_user, include_inactive=include_inactive)
        return jsonify({"users": [u.to_dict() for u in users], "count": len(users)})
    except DOMAIN_ERRORS as e:
        return error_response(e)


@admin_bp.post("/users")
@require_auth
@require_permission("MANAGE_USERS")
def create_user():
    """
    Create a staff account.

    Request body:
    - email: str (required)
    - name: str (required)
    - password: str (required)
    - role: admin | user | viewer (default user)
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.create_user_as(
            g.current_user,
            email=data.get("email"),
            name=data.get("name"),
            role=data.get("role") or "user",
            password=data.get("password") or "",
        )
        return jsonify({"user": user.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.patch("/users/<int:user_id>/status")
@require_auth
@require_permission("MANAGE_USERS")
def set_user_status(user_id: int):
    """Request body: {"status": "active" | "inactive"}"""
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.set_user_status(g.current_user, user_id, data.get("status"))
        return jsonify({"user": user.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update user status")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.delete("/users/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def delete_user(user_id: int):
    try:
        auth_service.delete_user(g.current_user, user_id)
        return jsonify({"message": f"User {user_id} deleted"})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/roles")
@require_auth
@require_permission("VIEW_USERS")
def list_roles():
    """Fixed roles and the permissions each one grants."""
    return jsonify({
        "roles": [
            {"name": role, "permissions": sorted(codes)}
            for role, codes in ROLE_PERMISSIONS.items()
        ]
    })
