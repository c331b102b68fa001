# Overview: Maps service-layer exceptions to JSON error responses for the API routes.

from flask import jsonify

from .validation import ValidationError, ConflictError
from .services.access_service import PermissionDeniedError, AuthenticationRequiredError
from .services.auth_service import PasswordValidationError, UserNotFoundError
from .services.lifecycle_service import LifecycleError, SupplierNotFoundError
from .services.sienge_service import IntegrationConfigError, IntegrationError
from .services.storage_service import StorageError


# Everything a service raises on purpose. Anything else is a 500.
DOMAIN_ERRORS = (
    ValidationError,
    ConflictError,
    LifecycleError,
    PermissionDeniedError,
    PasswordValidationError,
    UserNotFoundError,
    SupplierNotFoundError,
    IntegrationConfigError,
    IntegrationError,
    StorageError,
)


def error_response(e: Exception):
    """(json, status) for a DOMAIN_ERRORS instance. Order matters: subclasses first."""
    if isinstance(e, AuthenticationRequiredError):
        return jsonify({"error": str(e)}), 401
    if isinstance(e, PermissionDeniedError):
        return jsonify({"error": "Permission denied", "message": str(e)}), 403
    if isinstance(e, (SupplierNotFoundError, UserNotFoundError)):
        return jsonify({"error": str(e)}), 404
    if isinstance(e, (ConflictError, LifecycleError)):
        return jsonify({"error": str(e)}), 409
    if isinstance(e, (ValidationError, PasswordValidationError)):
        return jsonify({"error": str(e)}), 400
    if isinstance(e, IntegrationConfigError):
        return jsonify({"error": str(e), "error_kind": "configuration"}), 503
    if isinstance(e, IntegrationError):
        return jsonify({"error": e.message, "error_kind": e.kind, "details": e.to_record()}), 502
    if isinstance(e, StorageError):
        return jsonify({"error": str(e)}), 404
    raise e
