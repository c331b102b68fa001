from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .models import Supplier


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate CNPJ)."""


class DuplicateRecordError(ConflictError, ValidationError):
    """Unique business key already taken. Reported as a conflict (409)."""


_NON_DIGITS = re.compile(r"\D")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

PERSON_TYPES = {"J", "F"}
STATE_REGISTRATION_TYPES = {"C", "I", "N"}
ACCOUNT_TYPES = {"checking", "savings"}

# Tax id length per person type: CNPJ for legal entities, CPF for individuals
TAX_ID_LENGTHS = {"J": 14, "F": 11}


def only_digits(value: Any) -> str:
    if value is None:
        return ""
    return _NON_DIGITS.sub("", str(value))


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


@dataclass(frozen=True)
class DocumentSchema:
    """
    Shape of a nested JSON document stored in a JSON column.

    fields maps key -> python type accepted (str or int); every other key is
    rejected so malformed documents never reach the database.
    """
    name: str
    fields: dict[str, type]
    required: frozenset[str] = frozenset()


ADDRESS_SCHEMA = DocumentSchema(
    name="address",
    fields={
        "street": str,
        "number": str,
        "complement": str,
        "neighborhood": str,
        "city": str,
        "state": str,
        "zip_code": str,
        "city_id": int,
    },
    required=frozenset({"street", "number", "neighborhood", "city", "state", "zip_code"}),
)

BANK_DATA_SCHEMA = DocumentSchema(
    name="bank_data",
    fields={
        "bank": str,
        "bank_code": str,
        "agency": str,
        "agency_digit": str,
        "account": str,
        "account_digit": str,
        "account_type": str,
        "pix_key": str,
    },
    required=frozenset({"bank_code", "agency", "account", "account_type"}),
)

UPLOADED_DOCUMENT_SCHEMA = DocumentSchema(
    name="uploaded_documents[]",
    fields={
        "doc_name": str,
        "storage_path": str,
        "uploaded_at": str,
        "url": str,
    },
    required=frozenset({"doc_name", "storage_path"}),
)

_SUPPLIER_DATA_FIELDS = {
    "company_name",
    "trade_name",
    "cnpj",
    "person_type",
    "state_registration",
    "state_registration_type",
    "municipal_registration",
    "email",
    "phone",
    "website",
    "address",
    "bank_data",
}

# Registration form (public and staff submission)
SUPPLIER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=_SUPPLIER_DATA_FIELDS | {"submitted_by"},
    required_on_create={"company_name", "cnpj", "email", "phone", "address", "bank_data"},
)

# Edits by the original submitter: documents are append-only for them
SUBMITTER_PATCH_POLICY = ModelValidationPolicy(writable_fields=set(_SUPPLIER_DATA_FIELDS))

# Admin edit session may also curate the document list
ADMIN_PATCH_POLICY = ModelValidationPolicy(writable_fields=_SUPPLIER_DATA_FIELDS | {"uploaded_documents"})

_NESTED_SCHEMAS = {
    "address": ADDRESS_SCHEMA,
    "bank_data": BANK_DATA_SCHEMA,
}


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    # JSON columns are checked against their DocumentSchema
    return value


def validate_document(schema: DocumentSchema, value: Any, *, partial: bool = False) -> dict:
    """
    Validate and normalize one nested document.

    Blank optional strings are dropped so that "" never stands in for
    "not provided" downstream (the ERP rejects empty optional fields).
    """
    if not isinstance(value, dict):
        raise ValidationError(f"{schema.name} must be an object")

    cleaned: dict = {}
    for key, raw in value.items():
        expected = schema.fields.get(key)
        if expected is None:
            raise ValidationError(f"Unknown field in {schema.name}: {key}")
        if raw is None:
            continue
        if expected is int:
            if isinstance(raw, bool):
                raise ValidationError(f"{schema.name}.{key} must be an integer")
            if isinstance(raw, str) and raw.strip().isdigit():
                raw = int(raw.strip())
            if not isinstance(raw, int):
                raise ValidationError(f"{schema.name}.{key} must be an integer")
            cleaned[key] = raw
            continue
        if isinstance(raw, (dict, list, bool)):
            raise ValidationError(f"{schema.name}.{key} must be a string")
        text = str(raw).strip()
        if text:
            cleaned[key] = text

    if not partial:
        missing = sorted(k for k in schema.required if k not in cleaned)
        if missing:
            raise ValidationError(f"Missing required fields in {schema.name}: {', '.join(missing)}")

    return cleaned


def validate_document_list(value: Any) -> list[dict]:
    if not isinstance(value, list):
        raise ValidationError("uploaded_documents must be a list")
    return [validate_document(UPLOADED_DOCUMENT_SCHEMA, item) for item in value]


def validate_supplier_payload(
    payload: Any,
    *,
    policy: ModelValidationPolicy,
    partial: bool,
    existing: Supplier | None = None,
) -> dict:
    """
    Validates + normalizes an incoming supplier document.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics; nested address/bank_data patches are
    merged onto `existing` and the merged document must still be complete.

    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(Supplier)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if k in _NESTED_SCHEMAS:
            if raw is None:
                raise ValidationError(f"{k} cannot be null")
            merged = dict(getattr(existing, k) or {}) if (partial and existing is not None) else {}
            if not isinstance(raw, dict):
                raise ValidationError(f"{k} must be an object")
            merged.update(raw)
            patch[k] = validate_document(_NESTED_SCHEMAS[k], merged)
            continue

        if k == "uploaded_documents":
            patch[k] = validate_document_list(raw)
            continue

        if k == "cnpj" and raw is not None:
            raw = only_digits(raw)

        if raw is None or (isinstance(raw, str) and not raw.strip()):
            if not col.nullable:
                raise ValidationError(f"{k} cannot be blank")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_supplier(patch: dict, *, existing: Supplier | None = None) -> None:
    """
    Business rules that are not captured by column metadata alone.
    Evaluated against the supplier as it will look after the patch.
    """
    def effective(key):
        if key in patch:
            return patch[key]
        return getattr(existing, key, None) if existing is not None else None

    person_type = effective("person_type") or "J"
    if person_type not in PERSON_TYPES:
        raise ValidationError("person_type must be 'J' (legal entity) or 'F' (individual)")

    if "cnpj" in patch or "person_type" in patch:
        tax_id = effective("cnpj") or ""
        expected_len = TAX_ID_LENGTHS[person_type]
        if len(tax_id) != expected_len:
            label = "CNPJ" if person_type == "J" else "CPF"
            raise ValidationError(f"{label} must have {expected_len} digits")

    srt = effective("state_registration_type")
    if srt is not None and srt not in STATE_REGISTRATION_TYPES:
        raise ValidationError("state_registration_type must be one of C, I, N")

    if "email" in patch and not _EMAIL_RE.match(patch["email"] or ""):
        raise ValidationError("email is not a valid address")

    if "phone" in patch and not only_digits(patch["phone"]):
        raise ValidationError("phone must contain digits")

    bank = patch.get("bank_data")
    if bank is not None:
        if bank.get("account_type") not in ACCOUNT_TYPES:
            raise ValidationError("bank_data.account_type must be 'checking' or 'savings'")
        if not only_digits(bank.get("bank_code")):
            raise ValidationError("bank_data.bank_code must contain digits")
