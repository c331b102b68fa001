"""
Registration link tests.

Verifies:
- Tokens are valid only while unused and unexpired
- Only the hash is stored
- Public submission consumes the token exactly once
- The token is bound to the cnpj it was issued for
"""

from datetime import timedelta

import pytest

from supplier_portal.extensions import db
from supplier_portal.models import RegistrationToken, Supplier
from supplier_portal.services import registration_service, supplier_service
from supplier_portal.services.access_service import PermissionDeniedError
from supplier_portal.services.registration_service import InvalidRegistrationTokenError
from supplier_portal.time_utils import utcnow
from supplier_portal.validation import ConflictError, ValidationError

from conftest import supplier_payload


class TestIssue:

    def test_issue_stores_hash_only(self, staff_user):
        token, record = registration_service.issue(staff_user, "12.345.678/0001-99", "contato@limpatudo.com.br")

        assert token
        assert record.token_hash == registration_service.hash_token(token)
        assert record.token_hash != token
        assert record.cnpj == "12345678000199"
        assert record.used is False
        assert record.created_by == staff_user.email
        assert record.expires_at - record.created_at == timedelta(hours=24)

    def test_existing_supplier_cnpj_refused(self, staff_user, make_supplier):
        supplier = make_supplier()
        with pytest.raises(ConflictError):
            registration_service.issue(staff_user, supplier.cnpj, "x@example.com")

    def test_viewer_cannot_issue(self, viewer_user):
        with pytest.raises(PermissionDeniedError):
            registration_service.issue(viewer_user, "12345678000199", "x@example.com")

    def test_missing_fields(self, staff_user):
        with pytest.raises(ValidationError):
            registration_service.issue(staff_user, "", "x@example.com")


class TestValidate:

    def test_fresh_token_is_valid(self, staff_user):
        token, _ = registration_service.issue(staff_user, "12345678000199", "x@example.com")
        assert registration_service.validate(token) is True
        # read-only: still valid on the next check
        assert registration_service.validate(token) is True

    def test_expired_one_second_ago_is_invalid(self, staff_user):
        token, record = registration_service.issue(staff_user, "12345678000199", "x@example.com")
        record.expires_at = utcnow() - timedelta(seconds=1)
        db.session.commit()

        assert registration_service.validate(token) is False

    def test_used_token_is_invalid(self, staff_user):
        token, record = registration_service.issue(staff_user, "12345678000199", "x@example.com")
        record.used = True
        db.session.commit()

        assert registration_service.validate(token) is False

    @pytest.mark.parametrize("token", ["", None, "not-a-token"])
    def test_unknown_token(self, db_session, token):
        assert registration_service.validate(token) is False


class TestConsume:

    def test_consume_once(self, staff_user):
        token, _ = registration_service.issue(staff_user, "12345678000199", "x@example.com")

        record = registration_service.consume(token)
        db.session.commit()

        assert record.used is True
        assert record.used_at is not None
        with pytest.raises(InvalidRegistrationTokenError):
            registration_service.consume(token)

    def test_expired_token_cannot_be_consumed(self, staff_user):
        token, record = registration_service.issue(staff_user, "12345678000199", "x@example.com")
        record.expires_at = utcnow() - timedelta(seconds=1)
        db.session.commit()

        with pytest.raises(InvalidRegistrationTokenError):
            registration_service.consume(token)


class TestPublicSubmission:

    def test_submission_creates_supplier_and_burns_token(self, staff_user):
        token, _ = registration_service.issue(staff_user, "12345678000199", "contato@limpatudo.com.br")

        supplier, uploaded, failed = supplier_service.submit_public(token, supplier_payload())

        assert supplier.status == "under_review"
        assert supplier.cnpj == "12345678000199"
        assert supplier.submitted_by == "contato@limpatudo.com.br"
        assert supplier.uploaded_documents == []
        assert (uploaded, failed) == ([], [])
        assert registration_service.validate(token) is False

        with pytest.raises(InvalidRegistrationTokenError):
            supplier_service.submit_public(token, supplier_payload(cnpj="98765432000110"))

    def test_cnpj_must_match_token(self, staff_user):
        token, _ = registration_service.issue(staff_user, "12345678000199", "x@example.com")

        with pytest.raises(ValidationError):
            supplier_service.submit_public(token, supplier_payload(cnpj="98765432000110"))

        assert db.session.query(Supplier).count() == 0
        assert registration_service.validate(token) is True

    def test_invalid_form_keeps_token_usable(self, staff_user):
        token, _ = registration_service.issue(staff_user, "12345678000199", "x@example.com")

        with pytest.raises(ValidationError):
            supplier_service.submit_public(token, supplier_payload(email="not-an-email"))

        assert registration_service.validate(token) is True


class TestRegistrationRoutes:

    def test_issue_and_validate(self, client, staff_headers):
        resp = client.post(
            "/api/registration/tokens",
            json={"cnpj": "12.345.678/0001-99", "email": "x@example.com"},
            headers=staff_headers,
        )
        assert resp.status_code == 201
        token = resp.json["token"]

        check = client.get(f"/api/registration/tokens/{token}")
        assert check.status_code == 200
        assert check.json == {"valid": True}

    def test_validate_unknown(self, client, db_session):
        resp = client.get("/api/registration/tokens/nope")
        assert resp.json == {"valid": False}

    def test_public_submit_json(self, client, staff_user):
        token, _ = registration_service.issue(staff_user, "12345678000199", "x@example.com")

        resp = client.post(f"/api/registration/submit?token={token}", json=supplier_payload())

        assert resp.status_code == 201
        assert resp.json["supplier"]["status"] == "under_review"

        again = client.post(f"/api/registration/submit?token={token}", json=supplier_payload())
        assert again.status_code == 400

    def test_public_submit_without_token(self, client, db_session):
        resp = client.post("/api/registration/submit", json=supplier_payload())
        assert resp.status_code == 400
        assert db.session.query(RegistrationToken).count() == 0

    def test_issue_requires_auth(self, client, db_session):
        resp = client.post("/api/registration/tokens", json={"cnpj": "12345678000199", "email": "x@example.com"})
        assert resp.status_code == 401
