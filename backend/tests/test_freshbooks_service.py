"""
Freshbooks client: OAuth token lifecycle and entity sync.
"""

from datetime import datetime, timedelta
from urllib.parse import parse_qs, urlparse

import pytest

from portal.errors import NotConnected, UpstreamError, ValidationError
from portal.services.freshbooks_service import PROVIDER, SCOPES, map_invoice_status

from tests.conftest import ACCOUNT_ID

NOW = datetime(2026, 3, 1, 12, 0, 0)


def remote_client(fb_id="c1", name="Acme"):
    return {
        "id": fb_id,
        "name": name,
        "email": f"{fb_id}@acme.test",
        "phone": "555-0100",
        "organization": "Acme",
        "address": {
            "street": "1 Main St",
            "city": "Springfield",
            "province": "IL",
            "country": "US",
            "postal_code": "62701",
        },
    }


def remote_project(fb_id="p1", client_id="c1"):
    return {
        "id": fb_id,
        "title": "Website",
        "description": "Rebuild",
        "client_id": client_id,
        "due_date": "2026-06-30",
        "budget": {"amount": "5000.00", "currency_code": "USD"},
    }


def remote_invoice(fb_id="i1", client_id="c1", project_id=None, status="sent"):
    invoice = {
        "id": fb_id,
        "invoice_number": f"INV-{fb_id}",
        "client_id": client_id,
        "amount": {"amount": "1250.50", "currency_code": "USD"},
        "status": status,
        "create_date": "2026-02-01",
        "due_date": "2026-03-01",
    }
    if project_id:
        invoice["project_id"] = project_id
    return invoice


@pytest.fixture
def frozen(freshbooks):
    freshbooks.clock = lambda: NOW
    return freshbooks


class TestAuthorizationUrl:

    def test_contains_client_redirect_and_scopes(self, freshbooks):
        url = urlparse(freshbooks.authorization_url())
        query = parse_qs(url.query)

        assert url.netloc == "api.freshbooks.com"
        assert url.path == "/auth/oauth/authorize"
        assert query["client_id"] == ["fb-client"]
        assert query["response_type"] == ["code"]
        assert query["redirect_uri"] == ["https://portal.example.com/api/freshbooks/callback"]
        assert query["scope"] == [SCOPES]
        assert "state" not in query

    def test_state_is_appended(self, freshbooks):
        query = parse_qs(urlparse(freshbooks.authorization_url(state="xyz")).query)
        assert query["state"] == ["xyz"]


class TestExchangeCode:

    def test_stores_credential(self, frozen, freshbooks_api, storage):
        connection = frozen.exchange_code("auth-code")

        assert freshbooks_api.token_grants == ["authorization_code"]
        assert connection.access_token == "access-1"
        assert connection.refresh_token == "refresh-1"
        assert connection.account_id == ACCOUNT_ID
        assert connection.expires_at == NOW + timedelta(seconds=3600)
        assert frozen.is_connected()

    def test_replaces_prior_credential(self, frozen, connected, storage):
        connection = frozen.exchange_code("auth-code")
        assert connection.id == connected.id
        assert storage.get_api_connection(PROVIDER).access_token == "access-1"

    def test_sends_client_credentials(self, frozen, freshbooks_api):
        frozen.exchange_code("auth-code")
        body = freshbooks_api.requests[0].read()
        assert b'"client_secret":"fb-secret"' in body.replace(b" ", b"")
        assert b'"code":"auth-code"' in body.replace(b" ", b"")

    def test_token_failure_stores_nothing(self, frozen, freshbooks_api, storage):
        freshbooks_api.failures["/auth/oauth/token"] = 400
        with pytest.raises(UpstreamError):
            frozen.exchange_code("bad-code")
        assert storage.get_api_connection(PROVIDER) is None

    def test_profile_failure_stores_nothing(self, frozen, freshbooks_api, storage):
        freshbooks_api.failures["/auth/api/v1/users/me"] = 500
        with pytest.raises(UpstreamError):
            frozen.exchange_code("auth-code")
        assert storage.get_api_connection(PROVIDER) is None


class TestEnsureFreshToken:

    def test_not_connected(self, freshbooks):
        with pytest.raises(NotConnected):
            freshbooks.ensure_fresh_token()

    def test_valid_token_makes_no_request(self, freshbooks, freshbooks_api, connected):
        assert freshbooks.ensure_fresh_token() == "stored-access"
        assert freshbooks_api.requests == []

    def test_expired_token_refreshes_once(self, frozen, freshbooks_api, storage, connected):
        storage.save_api_connection(PROVIDER, expires_at=NOW - timedelta(seconds=1))

        assert frozen.ensure_fresh_token() == "access-1"
        assert freshbooks_api.token_grants == ["refresh_token"]

        stored = storage.get_api_connection(PROVIDER)
        assert stored.expires_at == NOW + timedelta(seconds=3600)
        assert stored.refresh_token == "refresh-1"
        assert stored.account_id == ACCOUNT_ID

        # Now fresh: no further refresh
        assert frozen.ensure_fresh_token() == "access-1"
        assert freshbooks_api.token_grants == ["refresh_token"]

    def test_expiry_boundary_counts_as_expired(self, frozen, freshbooks_api, storage, connected):
        storage.save_api_connection(PROVIDER, expires_at=NOW)
        frozen.ensure_fresh_token()
        assert freshbooks_api.token_grants == ["refresh_token"]

    def test_refresh_is_audited(self, frozen, storage, connected):
        storage.save_api_connection(PROVIDER, expires_at=NOW - timedelta(minutes=5))
        frozen.ensure_fresh_token()
        assert storage.list_recent_activities(1)[0].action == "API Connection Refreshed"

    def test_rejected_refresh_disconnects(self, frozen, freshbooks_api, storage, connected):
        storage.save_api_connection(PROVIDER, expires_at=NOW - timedelta(seconds=1))
        freshbooks_api.failures["/auth/oauth/token"] = 401

        with pytest.raises(UpstreamError):
            frozen.ensure_fresh_token()

        assert not frozen.is_connected()
        assert storage.list_recent_activities(5) == []
        with pytest.raises(NotConnected):
            frozen.ensure_fresh_token()

    def test_server_error_on_refresh_keeps_connection(self, frozen, freshbooks_api, storage, connected):
        storage.save_api_connection(PROVIDER, expires_at=NOW - timedelta(seconds=1))
        freshbooks_api.failures["/auth/oauth/token"] = 503

        with pytest.raises(UpstreamError):
            frozen.ensure_fresh_token()
        assert frozen.is_connected()


class TestStatusMapping:

    @pytest.mark.parametrize("remote,local", [
        ("draft", "pending"),
        ("sent", "pending"),
        ("viewed", "pending"),
        ("paid", "paid"),
        ("overdue", "overdue"),
        ("PAID", "paid"),
        ("disputed", "pending"),
        ("", "pending"),
        (None, "pending"),
    ])
    def test_map_invoice_status(self, remote, local):
        assert map_invoice_status(remote) == local


class TestSyncClients:

    def test_creates_clients(self, freshbooks, freshbooks_api, storage, connected):
        freshbooks_api.clients = [remote_client("c1"), remote_client("c2", "Globex")]

        result = freshbooks.sync_clients()

        assert (result.created, result.updated) == (2, 0)
        acme = storage.get_client_by_freshbooks_id("c1")
        assert acme.name == "Acme"
        assert acme.address == "1 Main St, Springfield, IL, US, 62701"
        assert acme.notes == ""
        assert acme.user_id is None

    def test_idempotent(self, freshbooks, freshbooks_api, storage, connected):
        freshbooks_api.clients = [remote_client("c1"), remote_client("c2", "Globex")]

        freshbooks.sync_clients()
        first_count = len(storage.list_clients())
        result = freshbooks.sync_clients()

        assert len(storage.list_clients()) == first_count == 2
        assert (result.created, result.updated) == (0, 2)

    def test_updates_in_place(self, freshbooks, freshbooks_api, storage, connected):
        freshbooks_api.clients = [remote_client("c1")]
        freshbooks.sync_clients()
        local_id = storage.get_client_by_freshbooks_id("c1").id

        freshbooks_api.clients = [remote_client("c1", "Acme Holdings")]
        freshbooks.sync_clients()

        client = storage.get_client(local_id)
        assert client.name == "Acme Holdings"
        assert len(storage.list_clients()) == 1

    def test_sends_bearer_token(self, freshbooks, freshbooks_api, connected):
        freshbooks.sync_clients()
        assert freshbooks_api.requests[-1].headers["Authorization"] == "Bearer stored-access"

    def test_not_connected(self, freshbooks):
        with pytest.raises(NotConnected):
            freshbooks.sync_clients()


class TestSyncProjects:

    def test_creates_project_under_local_client(self, frozen, freshbooks_api, storage, connected):
        freshbooks_api.clients = [remote_client("c1")]
        freshbooks_api.projects = [remote_project("p1", "c1")]
        frozen.sync_clients()

        result = frozen.sync_projects()

        assert result.created == 1
        project = storage.get_project_by_freshbooks_id("p1")
        assert project.client_id == storage.get_client_by_freshbooks_id("c1").id
        assert project.name == "Website"
        assert project.budget == 5000.0
        assert project.currency_code == "USD"
        assert project.status == "in_progress"
        assert project.progress == 0
        assert project.start_date == NOW
        assert project.due_date == datetime(2026, 6, 30)

    def test_skips_project_without_local_client(self, freshbooks, freshbooks_api, storage, connected):
        freshbooks_api.projects = [remote_project("p1", "unknown")]

        result = freshbooks.sync_projects()

        assert result.skipped == 1
        assert storage.list_projects() == []

    def test_update_keeps_status_and_progress(self, freshbooks, freshbooks_api, storage, connected):
        freshbooks_api.clients = [remote_client("c1")]
        freshbooks_api.projects = [remote_project("p1", "c1")]
        freshbooks.sync_all()
        project = storage.get_project_by_freshbooks_id("p1")
        storage.update_project(project.id, status="completed", progress=100)

        freshbooks.sync_projects()

        project = storage.get_project(project.id)
        assert (project.status, project.progress) == ("completed", 100)
        assert len(storage.list_projects()) == 1


class TestSyncInvoices:

    def test_skips_invoice_without_local_client(self, freshbooks, freshbooks_api, storage, connected):
        freshbooks_api.invoices = [remote_invoice("i1", client_id="nobody")]

        result = freshbooks.sync_invoices()

        assert result.skipped == 1
        assert storage.list_invoices() == []

    def test_links_project_when_present(self, freshbooks, freshbooks_api, storage, connected):
        freshbooks_api.clients = [remote_client("c1")]
        freshbooks_api.projects = [remote_project("p1", "c1")]
        freshbooks_api.invoices = [
            remote_invoice("i1", project_id="p1", status="paid"),
            remote_invoice("i2", project_id="p-missing", status="draft"),
        ]
        freshbooks.sync_all()

        linked = storage.get_invoice_by_freshbooks_id("i1")
        unlinked = storage.get_invoice_by_freshbooks_id("i2")
        assert linked.project_id == storage.get_project_by_freshbooks_id("p1").id
        assert linked.status == "paid"
        assert unlinked.project_id is None
        assert unlinked.status == "pending"

    def test_invoice_fields(self, freshbooks, freshbooks_api, storage, connected):
        freshbooks_api.clients = [remote_client("c1")]
        invoice = remote_invoice("i1", status="paid")
        invoice["payment_date"] = "2026-02-15"
        freshbooks_api.invoices = [invoice]
        freshbooks.sync_all()

        stored = storage.get_invoice_by_freshbooks_id("i1")
        assert stored.invoice_number == "INV-i1"
        assert stored.amount == 1250.50
        assert stored.currency_code == "USD"
        assert stored.issue_date == datetime(2026, 2, 1)
        assert stored.due_date == datetime(2026, 3, 1)
        assert stored.paid_date == datetime(2026, 2, 15)

    def test_status_change_updates_in_place(self, freshbooks, freshbooks_api, storage, connected):
        freshbooks_api.clients = [remote_client("c1")]
        freshbooks_api.invoices = [remote_invoice("i1", status="sent")]
        freshbooks.sync_all()

        freshbooks_api.invoices = [remote_invoice("i1", status="overdue")]
        freshbooks.sync_invoices()

        invoices = storage.list_invoices()
        assert len(invoices) == 1
        assert invoices[0].status == "overdue"


class TestSyncAll:

    def test_runs_in_dependency_order(self, freshbooks, freshbooks_api, storage, connected):
        freshbooks_api.clients = [remote_client("c1")]
        freshbooks_api.projects = [remote_project("p1", "c1")]
        freshbooks_api.invoices = [remote_invoice("i1", project_id="p1")]

        summary = freshbooks.sync_all()

        assert freshbooks_api.paths() == [
            f"/accounting/account/{ACCOUNT_ID}/clients/clients",
            "/projects/api/v1/projects",
            f"/accounting/account/{ACCOUNT_ID}/invoices/invoices",
        ]
        assert summary.to_dict() == {
            "clients": {"entity": "clients", "created": 1, "updated": 0, "skipped": 0},
            "projects": {"entity": "projects", "created": 1, "updated": 0, "skipped": 0},
            "invoices": {"entity": "invoices", "created": 1, "updated": 0, "skipped": 0},
        }

    def test_failure_aborts_and_rerun_is_idempotent(self, freshbooks, freshbooks_api, storage, connected):
        freshbooks_api.clients = [remote_client("c1")]
        freshbooks_api.projects = [remote_project("p1", "c1")]
        freshbooks_api.invoices = [remote_invoice("i1")]
        freshbooks_api.failures["/projects/api/v1/projects"] = 500

        with pytest.raises(UpstreamError):
            freshbooks.sync_all()

        assert len(storage.list_clients()) == 1
        assert storage.list_projects() == []
        assert storage.list_invoices() == []

        del freshbooks_api.failures["/projects/api/v1/projects"]
        freshbooks.sync_all()
        freshbooks.sync_all()

        assert len(storage.list_clients()) == 1
        assert len(storage.list_projects()) == 1
        assert len(storage.list_invoices()) == 1

    def test_expired_token_refreshed_once_per_sync(self, frozen, freshbooks_api, storage, connected):
        storage.save_api_connection(PROVIDER, expires_at=NOW - timedelta(seconds=1))
        freshbooks_api.clients = [remote_client("c1")]

        frozen.sync_all()

        assert freshbooks_api.token_grants == ["refresh_token"]
        collection_calls = [r for r in freshbooks_api.requests if r.url.path != "/auth/oauth/token"]
        assert all(r.headers["Authorization"] == "Bearer access-1" for r in collection_calls)

    def test_single_entity(self, freshbooks, freshbooks_api, connected):
        summary = freshbooks.sync("clients")
        assert list(summary.to_dict()) == ["clients"]
        assert len(freshbooks_api.requests) == 1

    def test_unknown_entity(self, freshbooks, connected):
        with pytest.raises(ValidationError):
            freshbooks.sync("payments")
