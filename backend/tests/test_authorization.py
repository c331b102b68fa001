"""
Authorization tests for the supplier portal.

Verifies:
- Unauthenticated requests return 401
- Viewer role is read-only
- User role cannot approve, reject, delete or manage accounts (403)
- Admin role can perform privileged operations
- Public endpoints stay public
"""

import pytest

from supplier_portal.permissions import ALL_PERMISSION_CODES, get_permissions_for_role
from supplier_portal.services import access_service
from supplier_portal.services.access_service import AuthenticationRequiredError, PermissionDeniedError


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/suppliers"),
            ("POST", "/api/suppliers"),
            ("GET", "/api/suppliers/1"),
            ("PATCH", "/api/suppliers/1"),
            ("DELETE", "/api/suppliers/1"),
            ("POST", "/api/suppliers/1/approve"),
            ("POST", "/api/suppliers/1/reject"),
            ("POST", "/api/suppliers/1/resend-integration"),
            ("GET", "/api/suppliers/1/sienge-preview"),
            ("POST", "/api/suppliers/1/documents"),
            ("GET", "/api/registration/tokens"),
            ("POST", "/api/registration/tokens"),
            ("GET", "/api/admin/users"),
            ("POST", "/api/admin/users"),
            ("GET", "/api/admin/roles"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/suppliers", headers={"Authorization": "Bearer not-a-session"})
        assert resp.status_code == 401

    def test_logout_invalidates_token(self, client, staff_headers):
        assert client.get("/api/auth/me", headers=staff_headers).status_code == 200

        resp = client.post("/api/auth/logout", headers=staff_headers)
        assert resp.status_code == 200

        assert client.get("/api/auth/me", headers=staff_headers).status_code == 401


# =============================================================================
# VIEWER IS READ-ONLY (403)
# =============================================================================


class TestViewerReadOnly:

    def test_can_list(self, client, viewer_headers):
        resp = client.get("/api/suppliers", headers=viewer_headers)
        assert resp.status_code == 200

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/suppliers"),
            ("POST", "/api/suppliers/{id}/approve"),
            ("POST", "/api/suppliers/{id}/reject"),
            ("DELETE", "/api/suppliers/{id}"),
            ("PATCH", "/api/suppliers/{id}"),
            ("POST", "/api/registration/tokens"),
        ],
    )
    def test_cannot_write(self, client, viewer_headers, make_supplier, method, path):
        supplier = make_supplier()
        resp = getattr(client, method.lower())(
            path.format(id=supplier.id), json={"reason": "x", "trade_name": "x"}, headers=viewer_headers,
        )
        assert resp.status_code == 403


# =============================================================================
# USER DENIED HIGH-RISK OPERATIONS (403)
# =============================================================================


class TestUserDeniedHighRisk:
    """User role cannot perform privileged operations."""

    def test_cannot_approve(self, client, staff_headers, make_supplier):
        supplier = make_supplier()
        resp = client.post(f"/api/suppliers/{supplier.id}/approve", headers=staff_headers)
        assert resp.status_code == 403
        assert resp.json["required_permission"] == "APPROVE_SUPPLIER"

    def test_cannot_reject(self, client, staff_headers, make_supplier):
        supplier = make_supplier()
        resp = client.post(f"/api/suppliers/{supplier.id}/reject", json={"reason": "x"}, headers=staff_headers)
        assert resp.status_code == 403

    def test_cannot_delete(self, client, staff_headers, make_supplier):
        supplier = make_supplier()
        resp = client.delete(f"/api/suppliers/{supplier.id}", headers=staff_headers)
        assert resp.status_code == 403

    def test_cannot_resend(self, client, staff_headers, make_supplier):
        supplier = make_supplier(status="approved", sienge_creditor_id="1")
        resp = client.post(f"/api/suppliers/{supplier.id}/resend-integration", headers=staff_headers)
        assert resp.status_code == 403

    def test_cannot_preview(self, client, staff_headers, make_supplier):
        supplier = make_supplier()
        resp = client.get(f"/api/suppliers/{supplier.id}/sienge-preview", headers=staff_headers)
        assert resp.status_code == 403

    def test_cannot_list_users(self, client, staff_headers):
        resp = client.get("/api/admin/users", headers=staff_headers)
        assert resp.status_code == 403

    def test_cannot_create_user(self, client, staff_headers):
        resp = client.post(
            "/api/admin/users",
            json={"email": "x@portal.test", "name": "X", "password": "P@ssw0rd123!"},
            headers=staff_headers,
        )
        assert resp.status_code == 403

    def test_can_submit_and_issue(self, client, staff_headers):
        resp = client.post(
            "/api/registration/tokens",
            json={"cnpj": "12345678000199", "email": "x@example.com"},
            headers=staff_headers,
        )
        assert resp.status_code == 201


# =============================================================================
# ADMIN ACCESS
# =============================================================================


class TestAdminAccess:

    def test_can_list_users(self, client, admin_headers):
        resp = client.get("/api/admin/users", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1

    def test_can_list_roles(self, client, admin_headers):
        resp = client.get("/api/admin/roles", headers=admin_headers)
        assert resp.status_code == 200
        roles = {r["name"]: r["permissions"] for r in resp.json["roles"]}
        assert set(roles) == {"admin", "user", "viewer"}
        assert roles["viewer"] == ["VIEW_SUPPLIERS"]

    def test_can_preview(self, client, admin_headers, make_supplier):
        supplier = make_supplier()
        resp = client.get(f"/api/suppliers/{supplier.id}/sienge-preview", headers=admin_headers)
        assert resp.status_code == 200

    def test_me_lists_permissions(self, client, admin_headers):
        resp = client.get("/api/auth/me", headers=admin_headers)
        assert resp.status_code == 200
        assert set(resp.json["permissions"]) == set(ALL_PERMISSION_CODES)


# =============================================================================
# ACCESS GATE (service level)
# =============================================================================


class TestAccessGate:

    def test_missing_actor(self):
        with pytest.raises(AuthenticationRequiredError):
            access_service.require_permission(None, "VIEW_SUPPLIERS")

    def test_inactive_user_has_nothing(self, admin_user):
        admin_user.status = "inactive"
        assert access_service.get_user_permissions(admin_user) == frozenset()
        with pytest.raises(PermissionDeniedError):
            access_service.require_permission(admin_user, "VIEW_SUPPLIERS")

    def test_unknown_role_fails_closed(self):
        assert get_permissions_for_role("superuser") == frozenset()

    def test_submitter_match_ignores_case(self, staff_user, make_supplier):
        supplier = make_supplier(submitted_by="  BRUNO@portal.test ")
        assert access_service.is_submitter(staff_user, supplier) is True
        assert access_service.require_edit_access(staff_user, supplier) is False

    def test_admin_edit_access(self, admin_user, make_supplier):
        supplier = make_supplier()
        assert access_service.require_edit_access(admin_user, supplier) is True


# =============================================================================
# PUBLIC ENDPOINTS
# =============================================================================


class TestPublicEndpoints:

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"
        assert set(resp.json["checks"]) == {"database", "sienge_integration", "storage"}

    def test_registration_token_check(self, client, db_session):
        resp = client.get("/api/registration/tokens/whatever")
        assert resp.status_code == 200
