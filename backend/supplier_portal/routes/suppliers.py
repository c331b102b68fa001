# Overview: Flask API routes for supplier operations; parses input and returns JSON responses.

# backend/supplier_portal/routes/suppliers.py
"""
Supplier API routes

- GET/POST /api/suppliers, GET/PATCH/DELETE /api/suppliers/:id
- POST /api/suppliers/:id/approve | reject | resend-integration
- GET /api/suppliers/:id/sienge-preview
- POST /api/suppliers/:id/documents, GET /api/suppliers/documents/<path>

SECURITY:
- All routes require authentication and a permission
- Services re-check the permission with the acting user before writing
- The acting user always comes from the session (g.current_user), never
  from the request body
"""

import json

from flask import Blueprint, request, jsonify, g, current_app, send_file

from ..services import supplier_service, lifecycle_service, storage_service
from ..services.storage_service import StorageError
from ..validation import ValidationError
from ..decorators import require_auth, require_permission
from ..http_errors import DOMAIN_ERRORS, error_response


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


def read_submission() -> tuple[dict, list]:
    """
    Registration form from either a JSON body or multipart/form-data.

    Multipart carries the form as JSON in the "data" field and files under
    "files" (repeatable).
    """
    if request.is_json:
        return request.get_json(silent=True) or {}, []

    raw = request.form.get("data")
    if raw:
        try:
            payload = json.loads(raw)
        except ValueError as e:
            raise ValidationError("data must be a JSON object") from e
    else:
        payload = {k: v for k, v in request.form.items()}
    return payload, request.files.getlist("files")


def _upload_body(supplier, uploaded, failed) -> dict:
    return {
        "supplier": supplier.to_dict(),
        "uploaded": uploaded,
        "failed": failed,
    }


def _lifecycle_response(result):
    body = result.to_dict()
    if result.error is not None:
        body["error_kind"] = result.error.kind
        return jsonify(body), 502
    return jsonify(body), 200


@suppliers_bp.get("")
@require_auth
@require_permission("VIEW_SUPPLIERS")
def list_suppliers_route():
    """
    List suppliers, newest first.

    Query params: status, search, limit, offset
    """
    try:
        items, total = supplier_service.list_suppliers(
            g.current_user,
            status=request.args.get("status") or None,
            search=request.args.get("search") or None,
            limit=request.args.get("limit", type=int),
            offset=request.args.get("offset", 0, type=int),
        )
        return jsonify({
            "items": [s.to_dict() for s in items],
            "count": total,
        })
    except DOMAIN_ERRORS as e:
        return error_response(e)


@suppliers_bp.post("")
@require_auth
@require_permission("SUBMIT_SUPPLIER")
def create_supplier_route():
    """Staff submission of a registration form (JSON or multipart)."""
    try:
        payload, files = read_submission()
        supplier, uploaded, failed = supplier_service.submit_supplier(g.current_user, payload, files)
        return jsonify(_upload_body(supplier, uploaded, failed)), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
@require_permission("VIEW_SUPPLIERS")
def get_supplier_route(supplier_id: int):
    try:
        supplier = supplier_service.get_supplier(g.current_user, supplier_id)
        return jsonify(supplier.to_dict())
    except DOMAIN_ERRORS as e:
        return error_response(e)


@suppliers_bp.patch("/<int:supplier_id>")
@require_auth
def update_supplier_route(supplier_id: int):
    """
    Edit supplier data.

    Admins, or the original submitter; only while under review or approved.
    Ownership needs the record, so the permission check happens in the service.
    """
    try:
        payload = request.get_json(silent=True)
        supplier = supplier_service.edit_supplier(g.current_user, supplier_id, payload)
        return jsonify(supplier.to_dict())
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_permission("DELETE_SUPPLIER")
def delete_supplier_route(supplier_id: int):
    try:
        supplier_service.delete_supplier(g.current_user, supplier_id)
        return jsonify({"message": f"Supplier {supplier_id} deleted"}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.post("/<int:supplier_id>/approve")
@require_auth
@require_permission("APPROVE_SUPPLIER")
def approve_supplier_route(supplier_id: int):
    """
    Approve a supplier by registering it in Sienge.

    Response outcome:
        approved | already_exists -> 200
        integration_error -> 502 (supplier moved to integration_error)

    Error responses:
        400: supplier data cannot be mapped to a creditor
        404: supplier not found
        409: status does not allow approval, or integration in progress
        503: Sienge credentials not configured (supplier untouched)
    """
    try:
        result = lifecycle_service.approve_supplier(g.current_user, supplier_id)
        return _lifecycle_response(result)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to approve supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.post("/<int:supplier_id>/reject")
@require_auth
@require_permission("REJECT_SUPPLIER")
def reject_supplier_route(supplier_id: int):
    """Request body: {"reason": str} (required, non-empty)."""
    try:
        data = request.get_json(silent=True) or {}
        result = lifecycle_service.reject_supplier(g.current_user, supplier_id, data.get("reason"))
        return _lifecycle_response(result)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reject supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.post("/<int:supplier_id>/resend-integration")
@require_auth
@require_permission("RESEND_INTEGRATION")
def resend_integration_route(supplier_id: int):
    """Retry the Sienge push for an approved supplier. A failure keeps it approved."""
    try:
        result = lifecycle_service.resend_integration(g.current_user, supplier_id)
        return _lifecycle_response(result)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to resend supplier to Sienge")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("/<int:supplier_id>/sienge-preview")
@require_auth
@require_permission("PREVIEW_INTEGRATION")
def sienge_preview_route(supplier_id: int):
    try:
        return jsonify(lifecycle_service.preview_creditor(g.current_user, supplier_id))
    except DOMAIN_ERRORS as e:
        return error_response(e)


@suppliers_bp.post("/<int:supplier_id>/documents")
@require_auth
def upload_documents_route(supplier_id: int):
    """
    Upload one or more files (multipart field "files").

    Files are stored independently: 201 when all succeed, 207 when some failed.
    """
    try:
        files = request.files.getlist("files")
        supplier, uploaded, failed = supplier_service.add_documents(g.current_user, supplier_id, files)
        status = 207 if failed else 201
        if failed and not uploaded:
            status = 400
        return jsonify(_upload_body(supplier, uploaded, failed)), status
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to upload supplier documents")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("/documents/<path:storage_path>")
@require_auth
@require_permission("VIEW_SUPPLIERS")
def serve_document_route(storage_path: str):
    try:
        path = storage_service.get_blob_store().resolve(storage_path)
    except StorageError:
        return jsonify({"error": "Document not found"}), 404
    return send_file(path)
