# Overview: Service-layer operations for staff accounts; password hashing, login and admin user management.

"""
Authentication and Staff Account Service

WHY: Every review action must be attributable to a staff account. Uses
bcrypt for password hashing and validates password strength.

Accounts are created by admins only (there is no self sign-up for staff);
suppliers never log in, they use registration tokens instead.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, upper, lower, digit and special char
- Deactivating or deleting an account revokes its sessions
"""

import re

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..models import User, USER_ROLES, USER_STATUSES
from ..time_utils import utcnow
from ..validation import ValidationError, ConflictError
from . import access_service
from .session_service import revoke_all_user_sessions


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class UserNotFoundError(Exception):
    """Raised when a staff account is not found."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def _bcrypt_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", 12))
    return 12


def hash_password(password: str) -> str:
    """Hash password using bcrypt. Password is validated for strength before hashing."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. Malformed hashes verify as False.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate an active user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        User.email == normalize_email(email),
        User.status == "active",
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def create_user(
    *,
    email: str,
    name: str,
    role: str,
    password: str,
    created_by: str | None = None,
) -> User:
    """
    Create a staff account. No permission check: callers are the admin route
    (via create_user_as) and the bootstrap CLI.

    Raises:
        ValidationError: bad email/name/role
        ConflictError: email already registered
        PasswordValidationError: weak password
    """
    email = normalize_email(email)
    name = (name or "").strip()

    if not _EMAIL_RE.match(email):
        raise ValidationError("A valid email is required")
    if not name:
        raise ValidationError("name is required")
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")

    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise ConflictError("Email already registered")

    user = User(
        email=email,
        name=name,
        role=role,
        status="active",
        password_hash=hash_password(password),
        created_at=utcnow(),
        created_by=created_by,
    )

    db.session.add(user)
    db.session.commit()
    return user


def create_user_as(actor: User, **fields) -> User:
    """Admin-gated wrapper around create_user; attributes the account to actor."""
    access_service.require_permission(actor, "MANAGE_USERS")
    fields.setdefault("created_by", actor.email)
    return create_user(**fields)


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise UserNotFoundError(f"User {user_id} not found")
    return user


def list_users(actor: User, *, include_inactive: bool = True) -> list[User]:
    """Staff accounts, newest first."""
    access_service.require_permission(actor, "VIEW_USERS")
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.status == "active")
    return query.order_by(User.created_at.desc(), User.id.desc()).all()


def set_user_status(actor: User, user_id: int, status: str) -> User:
    """
    Activate or deactivate an account (soft toggle).

    Deactivation revokes every open session of the account.
    """
    access_service.require_permission(actor, "MANAGE_USERS")
    if status not in USER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(USER_STATUSES)}")

    user = get_user(user_id)
    if user.id == actor.id and status != "active":
        raise ValidationError("You cannot deactivate your own account")

    user.status = status
    if status != "active":
        revoke_all_user_sessions(user.id, reason="User account deactivated", commit=False)

    db.session.commit()
    return user


def set_user_role(user_id: int, role: str) -> User:
    """Change role without an actor check (CLI only)."""
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")
    user = get_user(user_id)
    user.role = role
    db.session.commit()
    return user


def delete_user(actor: User, user_id: int) -> None:
    """Hard delete of a staff account (admin only, irreversible)."""
    access_service.require_permission(actor, "MANAGE_USERS")
    user = get_user(user_id)
    if user.id == actor.id:
        raise ValidationError("You cannot delete your own account")

    db.session.delete(user)
    db.session.commit()
