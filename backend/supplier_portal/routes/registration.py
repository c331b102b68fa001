# Overview: Flask API routes for registration links; token issue, validation and public submission.

# backend/supplier_portal/routes/registration.py
"""
Registration link routes

- POST /api/registration/tokens          (staff, ISSUE_REGISTRATION_TOKEN)
- GET  /api/registration/tokens          (staff, open tokens)
- GET  /api/registration/tokens/<token>  (public, read-only check)
- POST /api/registration/submit          (public, gated by token)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import registration_service, supplier_service
from ..decorators import require_auth, require_permission
from ..http_errors import DOMAIN_ERRORS, error_response
from .suppliers import read_submission


registration_bp = Blueprint("registration", __name__, url_prefix="/api/registration")


@registration_bp.post("/tokens")
@require_auth
@require_permission("ISSUE_REGISTRATION_TOKEN")
def issue_token_route():
    """
    Issue a registration link token.

    Request body: {"cnpj": str, "email": str}
    The plaintext token is only ever returned here.
    """
    try:
        data = request.get_json(silent=True) or {}
        token, record = registration_service.issue(g.current_user, data.get("cnpj"), data.get("email"))
        return jsonify({"token": token, "registration": record.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to issue registration token")
        return jsonify({"error": "Internal server error"}), 500


@registration_bp.get("/tokens")
@require_auth
@require_permission("ISSUE_REGISTRATION_TOKEN")
def list_tokens_route():
    include_used = request.args.get("include_used", "false").lower() == "true"
    try:
        records = registration_service.list_tokens(g.current_user, include_used=include_used)
        return jsonify({"items": [r.to_dict() for r in records], "count": len(records)})
    except DOMAIN_ERRORS as e:
        return error_response(e)


@registration_bp.get("/tokens/<token>")
def validate_token_route(token: str):
    """Public: {"valid": bool}. Never consumes the token."""
    return jsonify({"valid": registration_service.validate(token)})


@registration_bp.post("/submit")
def submit_route():
    """
    Public registration form submission.

    Token comes from the "token" query parameter or the X-Registration-Token
    header. Body is JSON, or multipart with the form in "data" and "files".
    """
    token = request.args.get("token") or request.headers.get("X-Registration-Token")
    try:
        payload, files = read_submission()
        if isinstance(payload, dict) and not token:
            token = payload.get("token")
        if isinstance(payload, dict):
            payload = {k: v for k, v in payload.items() if k != "token"}

        supplier, uploaded, failed = supplier_service.submit_public(token, payload, files)
        return jsonify({
            "supplier": {"id": supplier.id, "status": supplier.status},
            "uploaded": uploaded,
            "failed": failed,
            "message": "Registration received",
        }), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to submit supplier registration")
        return jsonify({"error": "Internal server error"}), 500
