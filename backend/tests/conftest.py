"""
Pytest fixtures for portal backend tests.

Every app-level test runs once per storage backend (database on in-memory
SQLite, and the dict-backed memory backend). Freshbooks is replaced by an
httpx.MockTransport so no test touches the network.
"""

import json
from datetime import timedelta

import httpx
import pytest

from portal import create_app
from portal.extensions import db
from portal.services import auth_service
from portal.services.freshbooks_service import PROVIDER
from portal.time_utils import utcnow

ACCOUNT_ID = "acct1"
PASSWORD = "pw123456"


class FakeFreshbooksApi:
    """
    In-process stand-in for api.freshbooks.com.

    Set clients/projects/invoices to control what the collection endpoints
    return; put a path in `failures` to make it answer with that status.
    """

    def __init__(self):
        self.clients = []
        self.projects = []
        self.invoices = []
        self.failures = {}
        self.requests = []
        self.token_grants = []
        self.issued = 0
        self.transport = httpx.MockTransport(self.handle)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path in self.failures:
            return httpx.Response(self.failures[path], json={"error": "failure"})

        if path == "/auth/oauth/token":
            body = json.loads(request.content)
            self.token_grants.append(body["grant_type"])
            self.issued += 1
            return httpx.Response(200, json={
                "access_token": f"access-{self.issued}",
                "refresh_token": f"refresh-{self.issued}",
                "expires_in": 3600,
                "token_type": "Bearer",
            })

        if path == "/auth/api/v1/users/me":
            return httpx.Response(200, json={
                "response": {"business_memberships": [{"business": {"account_id": ACCOUNT_ID}}]}
            })

        if path == f"/accounting/account/{ACCOUNT_ID}/clients/clients":
            return httpx.Response(200, json={"response": {"result": {"clients": self.clients}}})

        if path == "/projects/api/v1/projects":
            return httpx.Response(200, json={"projects": self.projects})

        if path == f"/accounting/account/{ACCOUNT_ID}/invoices/invoices":
            return httpx.Response(200, json={"response": {"result": {"invoices": self.invoices}}})

        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def freshbooks_api():
    return FakeFreshbooksApi()


@pytest.fixture(params=["database", "memory"])
def app(request, freshbooks_api):
    """Create application for testing, once per storage backend."""
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test",
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "STORAGE_BACKEND": request.param,
            "FRESHBOOKS_CLIENT_ID": "fb-client",
            "FRESHBOOKS_CLIENT_SECRET": "fb-secret",
            "FRESHBOOKS_REDIRECT_URI": "https://portal.example.com/api/freshbooks/callback",
        },
        http_client=httpx.Client(transport=freshbooks_api.transport),
    )

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def storage(app):
    return app.extensions["portal.storage"]


@pytest.fixture
def freshbooks(app):
    return app.extensions["portal.freshbooks"]


def make_user(storage, username, role="client", password=PASSWORD):
    return auth_service.register_user(storage, {
        "username": username,
        "password": password,
        "email": f"{username}@example.com",
        "name": username.title(),
        "role": role,
    })


@pytest.fixture
def admin_user(storage):
    return make_user(storage, "admin", role="admin")


@pytest.fixture
def client_user(storage):
    return make_user(storage, "carol", role="client")


def login(client, username, password=PASSWORD):
    return client.post("/api/login", json={"username": username, "password": password})


@pytest.fixture
def admin_client(client, admin_user):
    response = login(client, admin_user.username)
    assert response.status_code == 200
    return client


@pytest.fixture
def connected(storage):
    """A stored, unexpired Freshbooks credential."""
    return storage.save_api_connection(
        PROVIDER,
        access_token="stored-access",
        refresh_token="stored-refresh",
        account_id=ACCOUNT_ID,
        expires_at=utcnow() + timedelta(hours=1),
        is_active=True,
    )
