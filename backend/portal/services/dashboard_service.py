# Overview: Read-side summaries of synced clients, projects and invoices for the two dashboards.

from ..errors import NotFoundError
from ..storage import Storage
from . import activity_service

OUTSTANDING_STATUSES = ("pending", "overdue")
RECENT_ACTIVITY_LIMIT = 10
RECENT_PROJECT_LIMIT = 5


def outstanding_total(invoices) -> float:
    """Sum of pending and overdue invoice amounts. Currencies are not converted."""
    return sum(i.amount or 0.0 for i in invoices if i.status in OUTSTANDING_STATUSES)


def admin_summary(storage: Storage) -> dict:
    """
    Headline numbers for the admin dashboard.

    stats:
    - active_projects: projects in progress
    - total_clients
    - outstanding_invoices: pending + overdue amount
    """
    clients = storage.list_clients()
    projects = storage.list_projects()
    invoices = storage.list_invoices()

    return {
        "stats": {
            "active_projects": sum(1 for p in projects if p.status == "in_progress"),
            "total_clients": len(clients),
            "outstanding_invoices": outstanding_total(invoices),
        },
        "recent_activities": [
            a.to_dict() for a in activity_service.recent_activities(storage, RECENT_ACTIVITY_LIMIT)
        ],
        "recent_projects": [p.to_dict() for p in projects[:RECENT_PROJECT_LIMIT]],
    }


def client_summary(storage: Storage, user_id: int) -> dict:
    """Client profile linked to the user, with its projects and invoices."""
    client = storage.get_client_by_user_id(user_id)
    if client is None:
        raise NotFoundError("Client profile not found")

    invoices = storage.list_invoices_by_client(client.id)
    return {
        "client": client.to_dict(),
        "projects": [p.to_dict() for p in storage.list_projects_by_client(client.id)],
        "invoices": [i.to_dict() for i in invoices],
        "outstanding_invoices": outstanding_total(invoices),
    }
