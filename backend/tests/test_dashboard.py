"""
Admin and client dashboards over synced data.
"""

from portal.services import dashboard_service

from tests.conftest import login


def seed(storage, user_id=None):
    acme = storage.create_client(name="Acme", freshbooks_id="c1", user_id=user_id)
    globex = storage.create_client(name="Globex", freshbooks_id="c2")
    storage.create_project(name="Site", client_id=acme.id, status="in_progress", progress=10)
    storage.create_project(name="Logo", client_id=acme.id, status="completed", progress=100)
    storage.create_project(name="Audit", client_id=globex.id, status="in_progress", progress=0)
    storage.create_invoice(invoice_number="1", client_id=acme.id, amount=100.0, status="pending")
    storage.create_invoice(invoice_number="2", client_id=acme.id, amount=50.5, status="overdue")
    storage.create_invoice(invoice_number="3", client_id=acme.id, amount=999.0, status="paid")
    storage.create_invoice(invoice_number="4", client_id=globex.id, amount=25.0, status="pending")
    return acme, globex


class TestAdminDashboard:

    def test_stats(self, admin_client, storage):
        seed(storage)

        resp = admin_client.get("/api/dashboard/admin")

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["stats"] == {
            "active_projects": 2,
            "total_clients": 2,
            "outstanding_invoices": 175.5,
        }
        assert [p["name"] for p in body["recent_projects"]] == ["Site", "Logo", "Audit"]
        assert body["recent_activities"][0]["action"] == "User Login"

    def test_empty(self, admin_client):
        body = admin_client.get("/api/dashboard/admin").get_json()
        assert body["stats"]["outstanding_invoices"] == 0
        assert body["recent_projects"] == []

    def test_client_forbidden(self, client, client_user):
        login(client, client_user.username)
        assert client.get("/api/dashboard/admin").status_code == 403

    def test_requires_session(self, client):
        assert client.get("/api/dashboard/admin").status_code == 401


class TestClientDashboard:

    def test_own_profile_only(self, client, client_user, storage):
        acme, _ = seed(storage, user_id=client_user.id)
        login(client, client_user.username)

        resp = client.get("/api/dashboard/client")

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["client"]["id"] == acme.id
        assert sorted(p["name"] for p in body["projects"]) == ["Logo", "Site"]
        assert sorted(i["invoice_number"] for i in body["invoices"]) == ["1", "2", "3"]
        assert body["outstanding_invoices"] == 150.5

    def test_no_linked_profile(self, client, client_user, storage):
        seed(storage)
        login(client, client_user.username)

        resp = client.get("/api/dashboard/client")

        assert resp.status_code == 404
        assert resp.get_json()["message"] == "Client profile not found"

    def test_admin_forbidden(self, admin_client):
        assert admin_client.get("/api/dashboard/client").status_code == 403


def test_outstanding_counts_pending_and_overdue_only(storage):
    seed(storage)
    assert dashboard_service.outstanding_total(storage.list_invoices()) == 175.5
