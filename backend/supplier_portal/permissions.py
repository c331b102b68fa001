"""
Permission Constants and Role Mappings

Centralized permission definitions: every route and every mutating service
operation names one of these codes, and a role grants a fixed set of them.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Roles are fixed (admin, user, viewer); there is no per-user override
- Admin has all permissions
"""

# =============================================================================
# PERMISSION CATEGORIES
# =============================================================================

class PermissionCategory:
    """Permission categories for organization."""
    SUPPLIERS = "SUPPLIERS"
    INTEGRATION = "INTEGRATION"
    REGISTRATION = "REGISTRATION"
    USERS = "USERS"


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, name, description, category)
PERMISSION_DEFINITIONS = [
    # SUPPLIER PERMISSIONS
    (
        "VIEW_SUPPLIERS",
        "View Suppliers",
        "List suppliers and open supplier details on the dashboard",
        PermissionCategory.SUPPLIERS
    ),
    (
        "SUBMIT_SUPPLIER",
        "Submit Supplier",
        "Register a new supplier and upload its documents",
        PermissionCategory.SUPPLIERS
    ),
    (
        "EDIT_OWN_SUPPLIER",
        "Edit Own Supplier",
        "Edit suppliers you submitted while they are under review or approved",
        PermissionCategory.SUPPLIERS
    ),
    (
        "EDIT_ANY_SUPPLIER",
        "Edit Any Supplier",
        "Edit any supplier, including its document list",
        PermissionCategory.SUPPLIERS
    ),
    (
        "APPROVE_SUPPLIER",
        "Approve Supplier",
        "Approve a supplier (pushes it to Sienge as a creditor)",
        PermissionCategory.SUPPLIERS
    ),
    (
        "REJECT_SUPPLIER",
        "Reject Supplier",
        "Reject a supplier with a reason",
        PermissionCategory.SUPPLIERS
    ),
    (
        "DELETE_SUPPLIER",
        "Delete Supplier",
        "Permanently delete a supplier (irreversible)",
        PermissionCategory.SUPPLIERS
    ),

    # INTEGRATION PERMISSIONS
    (
        "RESEND_INTEGRATION",
        "Resend Integration",
        "Retry sending an approved supplier to Sienge",
        PermissionCategory.INTEGRATION
    ),
    (
        "PREVIEW_INTEGRATION",
        "Preview Integration",
        "See the creditor payload that would be sent to Sienge",
        PermissionCategory.INTEGRATION
    ),

    # REGISTRATION PERMISSIONS
    (
        "ISSUE_REGISTRATION_TOKEN",
        "Issue Registration Token",
        "Invite a supplier to the public registration form",
        PermissionCategory.REGISTRATION
    ),

    # USER PERMISSIONS
    (
        "VIEW_USERS",
        "View Users",
        "List staff accounts",
        PermissionCategory.USERS
    ),
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create, activate, deactivate and delete staff accounts",
        PermissionCategory.USERS
    ),
]

ALL_PERMISSION_CODES = frozenset(code for code, _, _, _ in PERMISSION_DEFINITIONS)


# =============================================================================
# ROLE MAPPINGS
# =============================================================================

ROLE_PERMISSIONS = {
    "admin": ALL_PERMISSION_CODES,
    "user": frozenset({
        "VIEW_SUPPLIERS",
        "SUBMIT_SUPPLIER",
        "EDIT_OWN_SUPPLIER",
        "ISSUE_REGISTRATION_TOKEN",
    }),
    "viewer": frozenset({
        "VIEW_SUPPLIERS",
    }),
}


def get_permissions_for_role(role: str) -> frozenset:
    """Unknown roles get nothing (fail closed)."""
    return ROLE_PERMISSIONS.get(role, frozenset())
