# Overview: Service-layer operations for staff sessions; encapsulates token issue, validation and revocation.

"""
Session Token Management Service

WHY: Staff identity for every authenticated request. Tokens are
cryptographically secure, hashed in database, and time-limited.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute timeout SESSION_TTL_HOURS (default 24h)
- Idle timeout SESSION_IDLE_MINUTES (default 2h)
- Revoked on logout and when the user is deactivated
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow, as_utc_naive


DEFAULT_TTL_HOURS = 24
DEFAULT_IDLE_MINUTES = 120


def _absolute_timeout() -> timedelta:
    return timedelta(hours=int(current_app.config.get("SESSION_TTL_HOURS", DEFAULT_TTL_HOURS)))


def _idle_timeout() -> timedelta:
    return timedelta(minutes=int(current_app.config.get("SESSION_IDLE_MINUTES", DEFAULT_IDLE_MINUTES)))


@dataclass
class SessionContext:
    """Session context returned by validate_session."""
    user: User
    session: SessionToken


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy (unlike passwords), so a fast hash is
    sufficient. Returns hex-encoded hash string.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.

    Raises ValueError if the user is missing or inactive.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")
    if not user.is_active:
        raise ValueError("User account is inactive")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str, now) -> None:
    session.is_revoked = True
    session.revoked_at = now
    session.revoked_reason = reason


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if:
    - Token is invalid, expired, or revoked
    - User account is inactive or gone

    Updates last_used_at on successful validation (activity tracking).
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if as_utc_naive(session.expires_at) < now:
        return None

    if now - as_utc_naive(session.last_used_at) > _idle_timeout():
        _revoke(session, "Idle timeout", now)
        db.session.commit()
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated", now)
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """
    Revoke session token.

    Returns True if session was revoked, False if not found.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    _revoke(session, reason, utcnow())
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions", *, commit: bool = True) -> int:
    """
    Revoke all active sessions for a user.

    Returns count of sessions revoked.
    """
    now = utcnow()

    sessions = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False
    ).all()

    for session in sessions:
        _revoke(session, reason, now)

    if commit:
        db.session.commit()
    return len(sessions)
