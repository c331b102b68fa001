# Overview: Supplier lifecycle state machine; approval, rejection and Sienge integration side effects.

"""
Supplier Lifecycle Service

================================================================================
PURPOSE: Move suppliers through review and mirror approved ones into Sienge
================================================================================

STATE MACHINE:
    pending -> under_review -> approved
                            -> rejected
                            -> integration_error -> approved (retry approve)

    under_review:       created by the registration form, editable
    approved:           present in Sienge (or Sienge gave back no id), editable
    rejected:           stable; a new registration is needed to try again
    integration_error:  approval attempted but Sienge refused or failed

RULES (NON-NEGOTIABLE):
1. approved is only reached after Sienge accepted the creditor
2. approved_at and rejection_reason are never both set
3. sienge_creditor_id is written once; once present every further push
   short-circuits to "already exists" without an HTTP call
4. Only one caller at a time may talk to Sienge for a supplier
   (compare-and-swap claim, see concurrency.claim_integration)
5. A failed resend never reverts an approval
6. Failing to record an integration error never hides that error
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Supplier, SupplierStatus, User
from ..time_utils import utcnow, to_utc_z
from ..validation import ValidationError, ConflictError
from . import access_service, sienge_service
from .concurrency import claim_integration, release_integration, run_with_retry
from .sienge_service import IntegrationError


APPROVABLE_STATUSES = {
    SupplierStatus.PENDING,
    SupplierStatus.UNDER_REVIEW,
    SupplierStatus.INTEGRATION_ERROR,
}
REJECTABLE_STATUSES = {SupplierStatus.PENDING, SupplierStatus.UNDER_REVIEW}
RESENDABLE_STATUSES = {SupplierStatus.APPROVED}
EDITABLE_STATUSES = {SupplierStatus.UNDER_REVIEW, SupplierStatus.APPROVED}


class LifecycleError(ValueError):
    """
    Raised when a transition is not allowed from the supplier's current status.

    This is a domain error, not a technical error.
    """
    pass


class SupplierNotFoundError(Exception):
    """Raised when a supplier id does not resolve."""
    pass


class IntegrationInProgressError(ConflictError):
    """Another request currently holds the Sienge claim for this supplier."""
    pass


@dataclass
class LifecycleResult:
    """
    Outcome of a lifecycle operation.

    outcome: approved | already_exists | integration_error |
             integration_resent | rejected
    supplier is None only if re-reading it after a failed write was impossible.
    """
    outcome: str
    supplier: Supplier | None
    message: str
    creditor_id: str | None = None
    error: IntegrationError | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        body = {
            "success": self.success,
            "outcome": self.outcome,
            "message": self.message,
            "sienge_creditor_id": self.creditor_id,
            "supplier": self.supplier.to_dict() if self.supplier is not None else None,
        }
        if self.error is not None:
            body["error"] = self.error.to_record()
        return body


def get_supplier_or_404(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise SupplierNotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def _claim_ttl() -> int:
    return int(current_app.config.get("SIENGE_CLAIM_TTL_SECONDS", 120))


def _mark_approved(supplier: Supplier, actor: User, now) -> None:
    supplier.status = SupplierStatus.APPROVED
    supplier.approved_at = now
    supplier.approved_by = actor.email
    supplier.approved_by_name = actor.name
    supplier.rejection_reason = None
    supplier.updated_at = now


def _already_exists(supplier: Supplier, actor: User, *, approve: bool) -> LifecycleResult:
    """Creditor id already stored: never post again."""
    if approve and supplier.status != SupplierStatus.APPROVED:
        _mark_approved(supplier, actor, utcnow())
        db.session.commit()
    return LifecycleResult(
        outcome="already_exists",
        supplier=supplier,
        message="Supplier already registered in Sienge",
        creditor_id=supplier.sienge_creditor_id,
    )


def _record_success(supplier_id: int, result, *, actor: User, approve: bool) -> Supplier:
    def _op():
        supplier = get_supplier_or_404(supplier_id)
        db.session.refresh(supplier)
        now = utcnow()
        if approve:
            _mark_approved(supplier, actor, now)
        if result.creditor_id and not supplier.sienge_creditor_id:
            supplier.sienge_creditor_id = result.creditor_id
        supplier.sent_to_sienge_at = now
        supplier.sienge_integration_status = "success"
        supplier.sienge_integration_error = None
        supplier.sienge_response = result.data or None
        supplier.integration_claimed_at = None
        supplier.updated_at = now
        db.session.commit()
        return supplier

    return run_with_retry(_op)


def _record_failure(supplier_id: int, error: IntegrationError, *, approve: bool) -> Supplier | None:
    """
    Persist the integration error. Any failure while writing is logged and
    swallowed so the caller still sees the original Sienge error.
    """
    def _op():
        supplier = get_supplier_or_404(supplier_id)
        db.session.refresh(supplier)
        now = utcnow()
        if approve and supplier.status in APPROVABLE_STATUSES:
            supplier.status = SupplierStatus.INTEGRATION_ERROR
        supplier.sienge_integration_status = "error"
        supplier.sienge_integration_error = error.to_record(to_utc_z(now))
        supplier.integration_claimed_at = None
        supplier.updated_at = now
        db.session.commit()
        return supplier

    try:
        return run_with_retry(_op)
    except (SQLAlchemyError, SupplierNotFoundError):
        db.session.rollback()
        current_app.logger.exception(
            "Could not record Sienge integration error for supplier %s", supplier_id,
        )
        return None


def _release_after_failed_record(supplier_id: int) -> None:
    """The failure write never cleared the claim, so drop it on its own."""
    try:
        release_integration(supplier_id)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(
            "Could not release Sienge claim for supplier %s", supplier_id,
        )


def _push_to_sienge(supplier: Supplier, actor: User, *, approve: bool) -> LifecycleResult:
    """
    Map, claim, call, record. Mapping and configuration problems raise
    before the claim so they never touch the supplier.
    """
    payload = sienge_service.map_with_app_defaults(supplier)
    client = sienge_service.get_client()

    supplier_id = supplier.id
    allowed = APPROVABLE_STATUSES if approve else RESENDABLE_STATUSES
    if not claim_integration(supplier_id, ttl_seconds=_claim_ttl(), statuses=allowed):
        db.session.refresh(supplier)
        if supplier.sienge_creditor_id:
            return _already_exists(supplier, actor, approve=approve)
        if supplier.status not in allowed:
            raise LifecycleError(
                f"Cannot send supplier {supplier_id} to Sienge: current status is '{supplier.status}'"
            )
        raise IntegrationInProgressError("Sienge integration already in progress for this supplier")

    try:
        result = sienge_service.send_creditor(client, supplier, payload)
    except IntegrationError as exc:
        recorded = _record_failure(supplier_id, exc, approve=approve)
        if recorded is None:
            _release_after_failed_record(supplier_id)
        if approve:
            message = f"Supplier not approved: Sienge integration failed: {exc.message}"
        else:
            message = f"Resend to Sienge failed: {exc.message}"
        return LifecycleResult(
            outcome="integration_error",
            supplier=recorded,
            message=message,
            error=exc,
        )
    except Exception:
        release_integration(supplier_id)
        raise

    supplier = _record_success(supplier_id, result, actor=actor, approve=approve)
    return LifecycleResult(
        outcome="approved" if approve else "integration_resent",
        supplier=supplier,
        message="Supplier registered in Sienge",
        creditor_id=supplier.sienge_creditor_id,
    )


def approve_supplier(actor: User, supplier_id: int) -> LifecycleResult:
    """
    Approve a supplier by registering it in Sienge.

    Success -> approved with approved_at/approved_by set.
    Sienge failure -> integration_error, approved_at stays empty.

    Raises:
        PermissionDeniedError, SupplierNotFoundError, LifecycleError,
        CreditorMappingError, IntegrationConfigError, IntegrationInProgressError
    """
    access_service.require_permission(actor, "APPROVE_SUPPLIER")
    supplier = get_supplier_or_404(supplier_id)

    if supplier.sienge_creditor_id:
        return _already_exists(supplier, actor, approve=True)

    if supplier.status == SupplierStatus.APPROVED:
        raise LifecycleError(
            f"Supplier {supplier_id} is already approved; use resend integration instead"
        )
    if supplier.status not in APPROVABLE_STATUSES:
        raise LifecycleError(
            f"Cannot approve supplier {supplier_id}: current status is '{supplier.status}'"
        )

    return _push_to_sienge(supplier, actor, approve=True)


def resend_integration(actor: User, supplier_id: int) -> LifecycleResult:
    """
    Retry the Sienge push for an already approved supplier.

    Failure only updates the error fields; the supplier stays approved.
    """
    access_service.require_permission(actor, "RESEND_INTEGRATION")
    supplier = get_supplier_or_404(supplier_id)

    if supplier.status not in RESENDABLE_STATUSES:
        raise LifecycleError(
            f"Cannot resend supplier {supplier_id}: current status is '{supplier.status}', must be 'approved'"
        )

    if supplier.sienge_creditor_id:
        return _already_exists(supplier, actor, approve=False)

    return _push_to_sienge(supplier, actor, approve=False)


def reject_supplier(actor: User, supplier_id: int, reason: str | None) -> LifecycleResult:
    """
    Reject a supplier under review.

    Raises:
        ValidationError: empty reason
        LifecycleError: supplier not pending/under review
    """
    access_service.require_permission(actor, "REJECT_SUPPLIER")

    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A rejection reason is required")

    supplier = get_supplier_or_404(supplier_id)
    if supplier.status not in REJECTABLE_STATUSES:
        raise LifecycleError(
            f"Cannot reject supplier {supplier_id}: current status is '{supplier.status}'"
        )

    supplier.status = SupplierStatus.REJECTED
    supplier.rejection_reason = reason
    supplier.approved_at = None
    supplier.updated_at = utcnow()
    db.session.commit()

    return LifecycleResult(outcome="rejected", supplier=supplier, message="Supplier rejected")


def preview_creditor(actor: User, supplier_id: int) -> dict:
    """Creditor payload that approval would send, without calling Sienge."""
    access_service.require_permission(actor, "PREVIEW_INTEGRATION")
    supplier = get_supplier_or_404(supplier_id)
    return {
        "preview": sienge_service.map_with_app_defaults(supplier),
        "supplier": {
            "id": supplier.id,
            "company_name": supplier.company_name,
            "status": supplier.status,
        },
    }
