# Overview: Storage interface shared by the in-memory and database backends.

"""
Storage interface.

Services talk to storage only through the named methods below. Concrete
backends implement a handful of primitives (_get, _find, _insert, _update,
list_recent_activities) plus a SessionStore. Both backends hand out the same
record classes (the SQLAlchemy models in portal.models); the memory backend
simply never attaches them to a database session.

There are no cross-entity transactions: every create/update commits on its own.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from ..models import User, Client, Project, Invoice, Activity, ApiConnection, SessionRecord
from portal.time_utils import utcnow


class SessionStore(ABC):
    """Server-side session records keyed by token hash."""

    @abstractmethod
    def create(self, token_hash: str, user_id: int, created_at: datetime, expires_at: datetime) -> SessionRecord:
        ...

    @abstractmethod
    def get(self, token_hash: str) -> SessionRecord | None:
        ...

    @abstractmethod
    def delete(self, token_hash: str) -> bool:
        ...

    @abstractmethod
    def delete_expired(self, now: datetime) -> int:
        ...


class Storage(ABC):
    name = "abstract"
    session_store: SessionStore

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def _get(self, model, record_id: int):
        ...

    @abstractmethod
    def _find(self, model, **filters) -> list:
        """All records of `model` whose attributes equal `filters`, ordered by id."""

    @abstractmethod
    def _insert(self, model, fields: dict):
        ...

    @abstractmethod
    def _update(self, record, fields: dict):
        ...

    @abstractmethod
    def list_recent_activities(self, limit: int = 20) -> list[Activity]:
        ...

    def _find_one(self, model, **filters):
        found = self._find(model, **filters)
        return found[0] if found else None

    def _update_by_id(self, model, record_id: int, fields: dict):
        record = self._get(model, record_id)
        if record is None:
            return None
        fields = dict(fields)
        if hasattr(model, "updated_at"):
            fields.setdefault("updated_at", utcnow())
        return self._update(record, fields)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_user(self, user_id: int) -> User | None:
        return self._get(User, user_id)

    def get_user_by_username(self, username: str) -> User | None:
        return self._find_one(User, username=username)

    def get_user_by_email(self, email: str) -> User | None:
        return self._find_one(User, email=email)

    def create_user(self, **fields) -> User:
        return self._insert(User, fields)

    def update_user(self, user_id: int, **fields) -> User | None:
        return self._update_by_id(User, user_id, fields)

    def list_users(self) -> list[User]:
        return self._find(User)

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    def get_client(self, client_id: int) -> Client | None:
        return self._get(Client, client_id)

    def get_client_by_freshbooks_id(self, freshbooks_id: str) -> Client | None:
        return self._find_one(Client, freshbooks_id=freshbooks_id)

    def get_client_by_user_id(self, user_id: int) -> Client | None:
        return self._find_one(Client, user_id=user_id)

    def create_client(self, **fields) -> Client:
        return self._insert(Client, fields)

    def update_client(self, client_id: int, **fields) -> Client | None:
        return self._update_by_id(Client, client_id, fields)

    def list_clients(self) -> list[Client]:
        return self._find(Client)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def get_project(self, project_id: int) -> Project | None:
        return self._get(Project, project_id)

    def get_project_by_freshbooks_id(self, freshbooks_id: str) -> Project | None:
        return self._find_one(Project, freshbooks_id=freshbooks_id)

    def create_project(self, **fields) -> Project:
        return self._insert(Project, fields)

    def update_project(self, project_id: int, **fields) -> Project | None:
        return self._update_by_id(Project, project_id, fields)

    def list_projects(self) -> list[Project]:
        return self._find(Project)

    def list_projects_by_client(self, client_id: int) -> list[Project]:
        return self._find(Project, client_id=client_id)

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    def get_invoice_by_freshbooks_id(self, freshbooks_id: str) -> Invoice | None:
        return self._find_one(Invoice, freshbooks_id=freshbooks_id)

    def create_invoice(self, **fields) -> Invoice:
        return self._insert(Invoice, fields)

    def update_invoice(self, invoice_id: int, **fields) -> Invoice | None:
        return self._update_by_id(Invoice, invoice_id, fields)

    def list_invoices(self) -> list[Invoice]:
        return self._find(Invoice)

    def list_invoices_by_client(self, client_id: int) -> list[Invoice]:
        return self._find(Invoice, client_id=client_id)

    # ------------------------------------------------------------------
    # Activities (append-only)
    # ------------------------------------------------------------------

    def create_activity(self, **fields) -> Activity:
        fields.setdefault("created_at", utcnow())
        return self._insert(Activity, fields)

    # ------------------------------------------------------------------
    # API connections
    # ------------------------------------------------------------------

    def get_api_connection(self, provider: str) -> ApiConnection | None:
        return self._find_one(ApiConnection, provider=provider)

    def save_api_connection(self, provider: str, **fields) -> ApiConnection:
        """Insert the provider's credential, or rewrite the existing row in place."""
        fields["updated_at"] = utcnow()
        existing = self.get_api_connection(provider)
        if existing is None:
            return self._insert(ApiConnection, dict(fields, provider=provider))
        return self._update(existing, fields)
