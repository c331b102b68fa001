# Overview: Role-based access checks shared by route decorators and services.

"""
Access Control Gate

Classifies the caller as admin / user / viewer and decides which lifecycle
transitions and destructive operations it may perform.

Every mutating service operation calls require_permission() with the acting
user before it touches the database, independently of the route decorator.

DESIGN PRINCIPLES:
- Fail closed: deny unknown roles, inactive users and missing actors
- Ownership (submitted_by) only widens EDIT rights, never DELETE
"""

from __future__ import annotations

from ..models import User, Supplier
from ..permissions import get_permissions_for_role


class PermissionDeniedError(Exception):
    """Raised when the caller lacks the role required for an operation."""
    pass


class AuthenticationRequiredError(PermissionDeniedError):
    """Raised when an operation that needs a caller is invoked without one."""
    pass


def get_user_permissions(user: User | None) -> frozenset:
    if user is None or not user.is_active:
        return frozenset()
    return get_permissions_for_role(user.role)


def has_permission(user: User | None, permission_code: str) -> bool:
    return permission_code in get_user_permissions(user)


def require_permission(user: User | None, permission_code: str) -> None:
    """
    Raise unless user holds permission_code.

    Raises:
        AuthenticationRequiredError: no caller
        PermissionDeniedError: caller inactive or role lacks the permission
    """
    if user is None:
        raise AuthenticationRequiredError("Authentication required")
    if not user.is_active:
        raise PermissionDeniedError("User account is inactive")
    if not has_permission(user, permission_code):
        raise PermissionDeniedError(
            f"Role '{user.role}' lacks permission {permission_code}"
        )


def is_submitter(user: User | None, supplier: Supplier) -> bool:
    if user is None or not supplier.submitted_by:
        return False
    return supplier.submitted_by.strip().lower() == user.email.strip().lower()


def require_edit_access(user: User | None, supplier: Supplier) -> bool:
    """
    Admins may edit any supplier; users only the ones they submitted.

    Returns True when the caller edits with admin rights (which unlocks the
    document list).
    """
    if has_permission(user, "EDIT_ANY_SUPPLIER"):
        return True
    require_permission(user, "EDIT_OWN_SUPPLIER")
    if not is_submitter(user, supplier):
        raise PermissionDeniedError("Only the original submitter or an admin can edit this supplier")
    return False
