"""
Pytest fixtures for supplier portal backend tests.

Provides test database setup, staff accounts per role, a Sienge stub on
httpx.MockTransport, and test client.
"""

import httpx
import pytest
from supplier_portal import create_app
from supplier_portal.extensions import db
from supplier_portal.models import Supplier
from supplier_portal.services import auth_service
from supplier_portal.services.sienge_service import SiengeClient
from supplier_portal.time_utils import utcnow


PASSWORD = "Password123!"
SIENGE_BASE_URL = "https://api.sienge.test/acme/public/api/v1"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp("uploads")),
        'SIENGE_BASE_URL': SIENGE_BASE_URL,
        'SIENGE_USERNAME': 'api-user',
        'SIENGE_PASSWORD': 'api-secret',
        'CITIES_DATASET_PATH': None,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        db.session.rollback()
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(email: str, role: str, name: str):
    return auth_service.create_user(email=email, name=name, role=role, password=PASSWORD)


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user("admin@portal.test", "admin", "Ana Admin")


@pytest.fixture(scope='function')
def staff_user(db_session):
    """Role 'user': submits suppliers and issues registration links."""
    return _make_user("bruno@portal.test", "user", "Bruno Buyer")


@pytest.fixture(scope='function')
def other_staff_user(db_session):
    return _make_user("carla@portal.test", "user", "Carla Buyer")


@pytest.fixture(scope='function')
def viewer_user(db_session):
    return _make_user("vera@portal.test", "viewer", "Vera Viewer")


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email))


@pytest.fixture
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, staff_user.email))


@pytest.fixture
def viewer_headers(client, viewer_user):
    return auth_headers(get_auth_token(client, viewer_user.email))


def supplier_payload(**overrides) -> dict:
    """A complete, valid registration form."""
    payload = {
        "company_name": "Limpa Tudo Servicos Ltda",
        "trade_name": "Limpa Tudo",
        "cnpj": "12.345.678/0001-99",
        "person_type": "J",
        "state_registration": "254789631",
        "state_registration_type": "C",
        "email": "contato@limpatudo.com.br",
        "phone": "(11) 98765-4321",
        "address": {
            "street": "Rua das Flores",
            "number": "120",
            "neighborhood": "Centro",
            "city": "Sao Paulo",
            "state": "SP",
            "zip_code": "01001-000",
        },
        "bank_data": {
            "bank": "Banco do Brasil",
            "bank_code": "1",
            "agency": "1234",
            "agency_digit": "5",
            "account": "98765",
            "account_digit": "0",
            "account_type": "checking",
        },
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_supplier(db_session):
    """Insert a supplier row directly, bypassing the services."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "company_name": f"Fornecedor {counter['n']} Ltda",
            "cnpj": f"{11222333000100 + counter['n']:014d}",
            "person_type": "J",
            "email": f"fornecedor{counter['n']}@example.com",
            "phone": "11987654321",
            "address": {
                "street": "Av. Brasil",
                "number": "500",
                "neighborhood": "Jardim America",
                "city": "Sao Paulo",
                "state": "SP",
                "zip_code": "01430000",
            },
            "bank_data": {
                "bank_code": "341",
                "agency": "0001",
                "account": "12345",
                "account_type": "checking",
            },
            "uploaded_documents": [],
            "submitted_by": "bruno@portal.test",
            "status": "under_review",
            "created_at": utcnow(),
        }
        fields.update(overrides)
        supplier = Supplier(**fields)
        db_session.add(supplier)
        db_session.commit()
        return supplier

    return _make


class SiengeStub:
    """
    Records creditor POSTs and answers from a queue of canned responses.

    Each queued item is (status_code, json_body) or an exception instance to
    raise from the transport. Default answer: 201 with a fresh id.
    """

    def __init__(self):
        self.requests = []
        self._queue = []
        self._next_id = 9000

    def respond(self, status_code: int, body=None):
        self._queue.append((status_code, body))

    def fail_with(self, exc: Exception):
        self._queue.append(exc)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self._queue.pop(0) if self._queue else None
        if isinstance(item, Exception):
            raise item
        if item is None:
            self._next_id += 1
            item = (201, {"id": self._next_id})
        status_code, body = item
        if body is None:
            return httpx.Response(status_code)
        return httpx.Response(status_code, json=body)


@pytest.fixture
def sienge(app):
    """Install a Sienge client backed by SiengeStub for the duration of a test."""
    stub = SiengeStub()
    app.extensions["sienge_client"] = SiengeClient(
        SIENGE_BASE_URL,
        "api-user",
        "api-secret",
        timeout=5,
        transport=httpx.MockTransport(stub.handler),
    )
    yield stub
    app.extensions.pop("sienge_client", None)
