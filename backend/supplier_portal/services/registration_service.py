# Overview: Registration token issuer; single-use, time-boxed links for the public supplier form.

"""
Registration Token Service

Staff issue a token for a (cnpj, email) pair and send the link to the
supplier. The public form checks it with validate() (read-only, so the page
can be reloaded) and the submission consumes it atomically.

Tokens are an anti-abuse measure; only their SHA-256 is stored.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import RegistrationToken, Supplier, User
from ..time_utils import utcnow, is_expired
from ..validation import ValidationError, DuplicateRecordError, only_digits
from . import access_service


DEFAULT_TTL_HOURS = 24


class InvalidRegistrationTokenError(ValidationError):
    """Token unknown, already used or expired."""
    pass


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _ttl() -> timedelta:
    return timedelta(hours=int(current_app.config.get("REGISTRATION_TOKEN_TTL_HOURS", DEFAULT_TTL_HOURS)))


def _find(token: str | None) -> RegistrationToken | None:
    if not token:
        return None
    return db.session.query(RegistrationToken).filter_by(token_hash=hash_token(token)).first()


def issue(actor: User, cnpj: str, email: str) -> tuple[str, RegistrationToken]:
    """
    Issue a registration token.

    Returns (plaintext_token, record). The plaintext is never stored.

    Raises:
        PermissionDeniedError: caller may not issue tokens
        ValidationError: cnpj/email missing
        DuplicateRecordError: a supplier with this cnpj already exists
    """
    access_service.require_permission(actor, "ISSUE_REGISTRATION_TOKEN")

    cnpj = only_digits(cnpj)
    email = (email or "").strip()
    if not cnpj or not email:
        raise ValidationError("cnpj and email are required")
    if len(cnpj) not in (11, 14):
        raise ValidationError("cnpj must have 14 digits (or 11 for a CPF)")

    if db.session.query(Supplier.id).filter_by(cnpj=cnpj).first() is not None:
        raise DuplicateRecordError("A supplier with this CNPJ is already registered")

    token = secrets.token_urlsafe(32)
    now = utcnow()
    record = RegistrationToken(
        cnpj=cnpj,
        email=email,
        token_hash=hash_token(token),
        created_at=now,
        created_by=actor.email,
        expires_at=now + _ttl(),
        used=False,
    )
    db.session.add(record)
    db.session.commit()

    current_app.logger.info("Registration token issued cnpj=%s by=%s", cnpj, actor.email)
    return token, record


def validate(token: str | None) -> bool:
    """True iff the token exists, is unused and has not expired."""
    record = _find(token)
    if record is None or record.used:
        return False
    return not is_expired(record.expires_at)


def get_valid(token: str | None) -> RegistrationToken:
    """Record behind a usable token. Raises InvalidRegistrationTokenError."""
    record = _find(token)
    if record is None or record.used or is_expired(record.expires_at):
        raise InvalidRegistrationTokenError("Invalid or expired registration link")
    return record


def consume(token: str | None) -> RegistrationToken:
    """
    Mark a token used. Single conditional UPDATE, so two submissions racing
    on the same token cannot both succeed.

    Does not commit: the caller commits together with the supplier it creates.

    Raises:
        InvalidRegistrationTokenError: unknown, used or expired
    """
    if not token:
        raise InvalidRegistrationTokenError("Invalid or expired registration link")

    now = utcnow()
    updated = db.session.query(RegistrationToken).filter(
        RegistrationToken.token_hash == hash_token(token),
        RegistrationToken.used.is_(False),
        RegistrationToken.expires_at > now,
    ).update(
        {RegistrationToken.used: True, RegistrationToken.used_at: now},
        synchronize_session=False,
    )
    if updated != 1:
        raise InvalidRegistrationTokenError("Invalid or expired registration link")
    return db.session.query(RegistrationToken).filter_by(
        token_hash=hash_token(token),
    ).populate_existing().one()


def list_tokens(actor: User, *, include_used: bool = False) -> list[RegistrationToken]:
    access_service.require_permission(actor, "ISSUE_REGISTRATION_TOKEN")
    query = db.session.query(RegistrationToken)
    if not include_used:
        query = query.filter(RegistrationToken.used.is_(False))
    return query.order_by(RegistrationToken.created_at.desc(), RegistrationToken.id.desc()).all()
