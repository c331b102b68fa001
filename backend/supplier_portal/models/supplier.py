from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class SupplierStatus:
    """Canonical supplier lifecycle states."""
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    INTEGRATION_ERROR = "integration_error"

    ALL = (PENDING, UNDER_REVIEW, APPROVED, REJECTED, INTEGRATION_ERROR)


# Form submissions skip PENDING and land directly in review
INITIAL_STATUS = SupplierStatus.UNDER_REVIEW


class Supplier(db.Model):
    """
    A registrant tracked through review and mirrored into Sienge as a creditor.

    Nested parts of the registration (address, bank data, uploaded documents,
    last integration error) are JSON documents. Their shape is checked in
    validation.py before anything is written here; always assign a new
    dict/list instead of mutating in place so SQLAlchemy sees the change.

    Invariants (enforced by lifecycle_service):
    - approved_at and rejection_reason are never both set
    - sienge_creditor_id is written once and never overwritten
    """
    __tablename__ = "suppliers"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'under_review', 'approved', 'rejected', 'integration_error')",
            name="ck_suppliers_status",
        ),
        db.CheckConstraint(
            "NOT (approved_at IS NOT NULL AND rejection_reason IS NOT NULL)",
            name="ck_suppliers_approval_xor_rejection",
        ),
        db.Index("ix_suppliers_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Company identity
    company_name = db.Column(db.String(255), nullable=False)
    trade_name = db.Column(db.String(255), nullable=True)
    # Digits only; uniqueness is what blocks duplicate registrations
    cnpj = db.Column(db.String(14), nullable=False, unique=True, index=True)
    # J = legal entity (CNPJ), F = individual (CPF)
    person_type = db.Column(db.String(1), nullable=False, default="J")

    # Fiscal
    state_registration = db.Column(db.String(64), nullable=True)
    # C = contributor, I = exempt, N = non-contributor
    state_registration_type = db.Column(db.String(1), nullable=True)
    municipal_registration = db.Column(db.String(64), nullable=True)

    # Contact
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    website = db.Column(db.String(255), nullable=True)
    submitted_by = db.Column(db.String(255), nullable=True, index=True)

    address = db.Column(db.JSON, nullable=False, default=dict)
    bank_data = db.Column(db.JSON, nullable=False, default=dict)
    uploaded_documents = db.Column(db.JSON, nullable=False, default=list)

    # Lifecycle
    status = db.Column(db.String(32), nullable=False, default=INITIAL_STATUS, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_by = db.Column(db.String(255), nullable=True)
    approved_by_name = db.Column(db.String(255), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    # Sienge integration
    sienge_creditor_id = db.Column(db.String(64), nullable=True, index=True)
    sent_to_sienge_at = db.Column(db.DateTime(timezone=True), nullable=True)
    sienge_integration_status = db.Column(db.String(16), nullable=True)
    sienge_integration_error = db.Column(db.JSON, nullable=True)
    sienge_response = db.Column(db.JSON, nullable=True)

    # Compare-and-swap claim held while an ERP call is in flight
    integration_claimed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} cnpj={self.cnpj} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_name": self.company_name,
            "trade_name": self.trade_name,
            "cnpj": self.cnpj,
            "person_type": self.person_type,
            "state_registration": self.state_registration,
            "state_registration_type": self.state_registration_type,
            "municipal_registration": self.municipal_registration,
            "email": self.email,
            "phone": self.phone,
            "website": self.website,
            "submitted_by": self.submitted_by,
            "address": dict(self.address or {}),
            "bank_data": dict(self.bank_data or {}),
            "uploaded_documents": list(self.uploaded_documents or []),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "approved_at": to_utc_z(self.approved_at),
            "approved_by": self.approved_by,
            "approved_by_name": self.approved_by_name,
            "rejection_reason": self.rejection_reason,
            "sienge_creditor_id": self.sienge_creditor_id,
            "sent_to_sienge_at": to_utc_z(self.sent_to_sienge_at),
            "sienge_integration_status": self.sienge_integration_status,
            "sienge_integration_error": self.sienge_integration_error,
            "version_id": self.version_id,
        }
