# Overview: Service-layer operations for suppliers; registration, listing, edits, documents and deletion.

"""
Supplier Registration Service

Everything that creates or changes supplier data outside the approval
lifecycle. Status changes live in lifecycle_service.

RULES:
1. cnpj is stored as digits only and is unique on those digits
2. New suppliers always start in INITIAL_STATUS with no documents
3. Edits are allowed for admins and for the original submitter, and only
   while the supplier is under review or approved
4. Only admins may rewrite the uploaded document list; everyone else can
   only append through add_documents
5. Status and integration fields are never writable through edits
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Supplier, User, INITIAL_STATUS
from ..time_utils import utcnow
from ..validation import (
    ValidationError,
    DuplicateRecordError,
    ADMIN_PATCH_POLICY,
    SUBMITTER_PATCH_POLICY,
    SUPPLIER_CREATE_POLICY,
    enforce_rules_supplier,
    validate_supplier_payload,
)
from . import access_service, registration_service, storage_service
from .city_service import with_resolved_city
from .concurrency import run_with_retry
from .lifecycle_service import EDITABLE_STATUSES, LifecycleError, get_supplier_or_404


def _cnpj_taken(cnpj: str, *, exclude_id: int | None = None) -> bool:
    query = db.session.query(Supplier.id).filter(Supplier.cnpj == cnpj)
    if exclude_id is not None:
        query = query.filter(Supplier.id != exclude_id)
    return query.first() is not None


def _require_any_edit_permission(actor: User) -> None:
    if not access_service.has_permission(actor, "EDIT_ANY_SUPPLIER"):
        access_service.require_permission(actor, "EDIT_OWN_SUPPLIER")


def _duplicate_error() -> DuplicateRecordError:
    return DuplicateRecordError("A supplier with this CNPJ is already registered")


def _drop_stale_city_id(address: dict, changes: dict, current: dict) -> dict:
    """A new city or state invalidates the stored city_id unless one is sent with it."""
    if "city_id" in changes:
        return address
    moved = any(
        key in changes and address.get(key) != current.get(key) for key in ("city", "state")
    )
    if not moved:
        return address
    return {k: v for k, v in address.items() if k != "city_id"}


def _build_supplier(payload, *, submitted_by: str | None) -> Supplier:
    """Validate a registration form and return an unsaved Supplier."""
    patch = validate_supplier_payload(payload, policy=SUPPLIER_CREATE_POLICY, partial=False)
    enforce_rules_supplier(patch)

    if _cnpj_taken(patch["cnpj"]):
        raise _duplicate_error()

    if submitted_by is not None:
        patch["submitted_by"] = submitted_by
    patch["address"] = with_resolved_city(patch["address"])

    now = utcnow()
    return Supplier(
        **patch,
        status=INITIAL_STATUS,
        uploaded_documents=[],
        created_at=now,
        updated_at=now,
    )


def _commit_new(supplier: Supplier) -> None:
    try:
        db.session.commit()
    except IntegrityError as exc:
        # Lost a race on the unique cnpj
        db.session.rollback()
        raise _duplicate_error() from exc
    current_app.logger.info(
        "Supplier registered id=%s cnpj=%s submitted_by=%s",
        supplier.id, supplier.cnpj, supplier.submitted_by,
    )


def _append_documents(supplier_id: int, entries: list[dict]) -> Supplier:
    def _op():
        supplier = get_supplier_or_404(supplier_id)
        db.session.refresh(supplier)
        supplier.uploaded_documents = list(supplier.uploaded_documents or []) + entries
        supplier.updated_at = utcnow()
        db.session.commit()
        return supplier

    return run_with_retry(_op)


def _store_files(supplier: Supplier, files) -> tuple[Supplier, list[dict], list[dict]]:
    files = [f for f in (files or []) if f is not None]
    if not files:
        return supplier, [], []
    uploaded, failed = storage_service.upload_documents(supplier.id, files)
    if uploaded:
        supplier = _append_documents(supplier.id, uploaded)
    return supplier, uploaded, failed


def submit_supplier(actor: User, payload: dict, files=None) -> tuple[Supplier, list[dict], list[dict]]:
    """
    Staff submission of a registration form.

    submitted_by is the caller unless an admin names someone else.

    Returns (supplier, uploaded, failed).

    Raises:
        PermissionDeniedError, ValidationError, ConflictError
    """
    access_service.require_permission(actor, "SUBMIT_SUPPLIER")

    submitted_by = actor.email
    if access_service.has_permission(actor, "EDIT_ANY_SUPPLIER") and isinstance(payload, dict):
        submitted_by = payload.get("submitted_by") or actor.email

    supplier = _build_supplier(payload, submitted_by=submitted_by)
    db.session.add(supplier)
    _commit_new(supplier)
    return _store_files(supplier, files)


def submit_public(token: str | None, payload: dict, files=None) -> tuple[Supplier, list[dict], list[dict]]:
    """
    Public submission through a registration link.

    The token must be valid and issued for the same cnpj. It is consumed in
    the same transaction that creates the supplier.

    Raises:
        InvalidRegistrationTokenError, ValidationError, ConflictError
    """
    record = registration_service.get_valid(token)

    if isinstance(payload, dict) and "submitted_by" in payload:
        payload = {k: v for k, v in payload.items() if k != "submitted_by"}

    supplier = _build_supplier(payload, submitted_by=record.email)
    if supplier.cnpj != record.cnpj:
        raise ValidationError("CNPJ does not match the registration link")

    db.session.add(supplier)
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise _duplicate_error() from exc
    try:
        registration_service.consume(token)
    except registration_service.InvalidRegistrationTokenError:
        db.session.rollback()
        raise
    _commit_new(supplier)
    return _store_files(supplier, files)


def list_suppliers(
    actor: User,
    *,
    status: str | None = None,
    search: str | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> tuple[list[Supplier], int]:
    """Newest first. Returns (items, total)."""
    access_service.require_permission(actor, "VIEW_SUPPLIERS")

    query = db.session.query(Supplier)
    if status:
        query = query.filter(Supplier.status == status)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Supplier.company_name.ilike(like),
            Supplier.trade_name.ilike(like),
            Supplier.cnpj.ilike(like),
        ))

    total = query.count()
    query = query.order_by(Supplier.created_at.desc(), Supplier.id.desc())
    if offset:
        query = query.offset(offset)
    if limit:
        query = query.limit(limit)
    return query.all(), total


def get_supplier(actor: User, supplier_id: int) -> Supplier:
    access_service.require_permission(actor, "VIEW_SUPPLIERS")
    return get_supplier_or_404(supplier_id)


def edit_supplier(actor: User, supplier_id: int, payload: dict) -> Supplier:
    """
    Patch supplier data.

    Raises:
        PermissionDeniedError: not admin and not the submitter
        LifecycleError: supplier not under review or approved
        ValidationError: bad field, or status/integration fields in payload
        ConflictError: new cnpj already registered
    """
    _require_any_edit_permission(actor)
    supplier = get_supplier_or_404(supplier_id)
    as_admin = access_service.require_edit_access(actor, supplier)

    if supplier.status not in EDITABLE_STATUSES:
        raise LifecycleError(
            f"Supplier {supplier_id} cannot be edited while '{supplier.status}'"
        )

    policy = ADMIN_PATCH_POLICY if as_admin else SUBMITTER_PATCH_POLICY
    patch = validate_supplier_payload(payload, policy=policy, partial=True, existing=supplier)
    if not patch:
        raise ValidationError("No changes provided")
    enforce_rules_supplier(patch, existing=supplier)

    if "cnpj" in patch and patch["cnpj"] != supplier.cnpj and _cnpj_taken(patch["cnpj"], exclude_id=supplier.id):
        raise _duplicate_error()
    if "address" in patch:
        patch["address"] = with_resolved_city(
            _drop_stale_city_id(patch["address"], payload["address"], supplier.address or {})
        )

    for key, value in patch.items():
        setattr(supplier, key, value)
    supplier.updated_at = utcnow()

    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise _duplicate_error() from exc

    current_app.logger.info(
        "Supplier edited id=%s by=%s fields=%s", supplier.id, actor.email, sorted(patch.keys()),
    )
    return supplier


def add_documents(actor: User, supplier_id: int, files) -> tuple[Supplier, list[dict], list[dict]]:
    """
    Append uploaded files to a supplier. Each file succeeds or fails on its
    own; failures are returned, not raised.

    Returns (supplier, uploaded, failed).
    """
    _require_any_edit_permission(actor)
    supplier = get_supplier_or_404(supplier_id)
    access_service.require_edit_access(actor, supplier)

    if supplier.status not in EDITABLE_STATUSES:
        raise LifecycleError(
            f"Cannot add documents to supplier {supplier_id} while '{supplier.status}'"
        )
    if not files:
        raise ValidationError("No files provided")

    return _store_files(supplier, files)


def delete_supplier(actor: User, supplier_id: int) -> None:
    """
    Remove a supplier and, best effort, its stored documents.

    Raises:
        PermissionDeniedError: caller lacks DELETE_SUPPLIER (checked first)
        SupplierNotFoundError
    """
    access_service.require_permission(actor, "DELETE_SUPPLIER")
    supplier = get_supplier_or_404(supplier_id)

    db.session.delete(supplier)
    db.session.commit()
    current_app.logger.info("Supplier deleted id=%s by=%s", supplier_id, actor.email)

    try:
        storage_service.get_blob_store().delete_owner(supplier_id)
    except (OSError, storage_service.StorageError):
        current_app.logger.warning("Could not remove documents for supplier %s", supplier_id, exc_info=True)
