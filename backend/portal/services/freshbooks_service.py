# Overview: Freshbooks OAuth token lifecycle and client/project/invoice sync into local storage.

"""
Freshbooks Sync Client

One FreshbooksClient is built per app in create_app() from config and handed
to handlers through the app (see extensions.get_freshbooks). Nothing here is
global.

TOKEN LIFECYCLE:
    unconnected --authorize--> exchanging --exchange_code--> connected
    connected --expired--> refreshing --> connected | unconnected

Refresh is lazy: ensure_fresh_token() is called before every provider call
and only talks to the token endpoint when now >= expires_at. A rejected
refresh deactivates the stored credential; someone has to authorize again.

SYNC:
Each sync fetches the full remote collection and upserts by freshbooks_id.
Projects and invoices whose parent client is not present locally are skipped
without error. sync_all() runs clients, projects, invoices in that order
because later steps look up parents created by earlier ones.

Any HTTP failure aborts the running sync and propagates as UpstreamError.
Records already written stay written; re-running is idempotent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from urllib.parse import urlencode

import httpx

from ..errors import NotConnected, UpstreamError, ValidationError
from ..models import ApiConnection
from ..storage import Storage
from . import activity_service
from portal.time_utils import parse_iso_datetime, utcnow

logger = logging.getLogger(__name__)

PROVIDER = "freshbooks"
DEFAULT_BASE_URL = "https://api.freshbooks.com"
SCOPES = "user:profile:read project:clients:read project:projects:read invoice:read"

INVOICE_STATUS_MAP = {
    "draft": "pending",
    "sent": "pending",
    "viewed": "pending",
    "paid": "paid",
    "overdue": "overdue",
}


def map_invoice_status(status: str | None) -> str:
    """
    Collapse a Freshbooks invoice status onto pending / paid / overdue.

    draft, sent and viewed all become pending; unknown values become pending.
    The mapping is one-way.
    """
    return INVOICE_STATUS_MAP.get((status or "").lower(), "pending")


def format_address(address: dict | None) -> str | None:
    if not address:
        return None
    parts = [
        address.get("street"),
        address.get("city"),
        address.get("province"),
        address.get("country"),
        address.get("postal_code"),
    ]
    return ", ".join(p or "" for p in parts)


def _money(value: dict | None) -> tuple[float | None, str | None]:
    if not value or value.get("amount") in (None, ""):
        return None, None
    return float(value["amount"]), value.get("currency_code")


@dataclass
class SyncResult:
    entity: str
    created: int = 0
    updated: int = 0
    skipped: int = 0

    def to_dict(self) -> dict:
        return {
            "entity": self.entity,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
        }


@dataclass
class SyncSummary:
    results: list[SyncResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {r.entity: r.to_dict() for r in self.results}


class FreshbooksClient:
    def __init__(
        self,
        storage: Storage,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        base_url: str = DEFAULT_BASE_URL,
        http_client: httpx.Client | None = None,
        clock=utcnow,
    ):
        self.storage = storage
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.base_url = base_url.rstrip("/")
        self.http = http_client or httpx.Client(base_url=self.base_url)
        self.clock = clock

    @classmethod
    def from_config(cls, config, storage: Storage, http_client: httpx.Client | None = None) -> "FreshbooksClient":
        return cls(
            storage=storage,
            client_id=config.get("FRESHBOOKS_CLIENT_ID", ""),
            client_secret=config.get("FRESHBOOKS_CLIENT_SECRET", ""),
            redirect_uri=config.get("FRESHBOOKS_REDIRECT_URI", ""),
            base_url=config.get("FRESHBOOKS_BASE_URL", DEFAULT_BASE_URL),
            http_client=http_client,
        )

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    def authorization_url(self, state: str | None = None) -> str:
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "scope": SCOPES,
        }
        if state:
            params["state"] = state
        return f"{self.base_url}/auth/oauth/authorize?{urlencode(params)}"

    def exchange_code(self, code: str) -> ApiConnection:
        """
        Trade an authorization code for tokens and store the credential.

        Replaces any stored Freshbooks credential. Not retried on failure.
        """
        tokens = self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        }, "exchange code for token")
        expires_at = self.clock() + timedelta(seconds=int(tokens["expires_in"]))

        account_id = self._current_account_id(tokens["access_token"])

        connection = self.storage.save_api_connection(
            PROVIDER,
            access_token=tokens["access_token"],
            refresh_token=tokens["refresh_token"],
            account_id=account_id,
            expires_at=expires_at,
            is_active=True,
        )
        logger.info("Freshbooks connected for account %s", account_id)
        return connection

    def refresh_access_token(self) -> ApiConnection:
        """
        Exchange the stored refresh token for a new token pair.

        A 4xx from the token endpoint means the grant is gone: the credential
        is marked inactive before the error propagates.
        """
        connection = self._require_connection()
        if not connection.refresh_token:
            raise NotConnected("Freshbooks refresh token missing; authorize again")
        try:
            tokens = self._token_request({
                "grant_type": "refresh_token",
                "refresh_token": connection.refresh_token,
            }, "refresh token")
        except UpstreamError as e:
            if e.upstream_status is not None and 400 <= e.upstream_status < 500:
                logger.warning("Freshbooks rejected the refresh token; marking connection inactive")
                self.storage.save_api_connection(PROVIDER, is_active=False)
            raise

        expires_at = self.clock() + timedelta(seconds=int(tokens["expires_in"]))
        connection = self.storage.save_api_connection(
            PROVIDER,
            access_token=tokens["access_token"],
            refresh_token=tokens["refresh_token"],
            account_id=connection.account_id,
            expires_at=expires_at,
            is_active=True,
        )
        activity_service.log_activity(
            self.storage,
            user_id=None,
            action="API Connection Refreshed",
            details="Freshbooks access token refreshed",
            entity_type="api_connection",
            entity_id=connection.id,
        )
        logger.info("Freshbooks access token refreshed; expires at %s", expires_at)
        return connection

    def ensure_fresh_token(self) -> str:
        """
        Return a usable access token, refreshing first if it has expired.

        Callers ask again before every provider call; never cache the result.
        """
        connection = self._require_connection()
        if connection.is_expired(self.clock()):
            connection = self.refresh_access_token()
        return connection.access_token

    def is_connected(self) -> bool:
        connection = self.storage.get_api_connection(PROVIDER)
        return bool(connection and connection.is_active and connection.access_token)

    def _require_connection(self) -> ApiConnection:
        connection = self.storage.get_api_connection(PROVIDER)
        if connection is None or not connection.is_active:
            raise NotConnected()
        return connection

    def _token_request(self, grant: dict, what: str) -> dict:
        body = dict(grant, client_id=self.client_id, client_secret=self.client_secret)
        response = self._send("POST", "/auth/oauth/token", what, json=body)
        return response.json()

    def _current_account_id(self, access_token: str) -> str:
        response = self._send(
            "GET",
            "/auth/api/v1/users/me",
            "get user profile",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        data = response.json()
        try:
            # First business membership is the default account
            return data["response"]["business_memberships"][0]["business"]["account_id"]
        except (KeyError, IndexError, TypeError):
            raise UpstreamError("Freshbooks profile has no business account") from None

    def _send(self, method: str, path: str, what: str, **kwargs) -> httpx.Response:
        try:
            response = self.http.request(method, f"{self.base_url}{path}", **kwargs)
        except httpx.HTTPError as e:
            logger.error("Freshbooks request failed (%s): %s", what, e)
            raise UpstreamError(f"Failed to {what}: {e}") from e

        if not response.is_success:
            logger.error("Freshbooks %s %s returned %s: %s", method, path, response.status_code, response.text)
            raise UpstreamError(
                f"Failed to {what}: {response.reason_phrase}",
                upstream_status=response.status_code,
            )
        return response

    # ------------------------------------------------------------------
    # Remote collections
    # ------------------------------------------------------------------

    def _get_collection(self, path: str, what: str) -> dict:
        access_token = self.ensure_fresh_token()
        response = self._send(
            "GET",
            path,
            what,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
        )
        return response.json()

    def _account_id(self) -> str:
        return self._require_connection().account_id

    def get_clients(self) -> list[dict]:
        data = self._get_collection(
            f"/accounting/account/{self._account_id()}/clients/clients", "get clients"
        )
        return data["response"]["result"]["clients"]

    def get_projects(self) -> list[dict]:
        data = self._get_collection(
            f"/projects/api/v1/projects?account_id={self._account_id()}", "get projects"
        )
        return data["projects"]

    def get_invoices(self) -> list[dict]:
        data = self._get_collection(
            f"/accounting/account/{self._account_id()}/invoices/invoices", "get invoices"
        )
        return data["response"]["result"]["invoices"]

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def sync_clients(self) -> SyncResult:
        result = SyncResult("clients")
        for remote in self.get_clients():
            freshbooks_id = str(remote["id"])
            fields = {
                "name": remote.get("name") or remote.get("organization") or "",
                "email": remote.get("email"),
                "phone": remote.get("phone"),
                "address": format_address(remote.get("address")),
            }
            existing = self.storage.get_client_by_freshbooks_id(freshbooks_id)
            if existing:
                self.storage.update_client(existing.id, **fields)
                result.updated += 1
            else:
                self.storage.create_client(freshbooks_id=freshbooks_id, notes="", user_id=None, **fields)
                result.created += 1
        return result

    def sync_projects(self) -> SyncResult:
        result = SyncResult("projects")
        for remote in self.get_projects():
            client = self.storage.get_client_by_freshbooks_id(str(remote.get("client_id")))
            if client is None:
                # Parent not synced (yet); picked up on a later run if it appears
                result.skipped += 1
                continue

            budget, currency = _money(remote.get("budget"))
            fields = {
                "name": remote.get("title") or "",
                "description": remote.get("description"),
                "budget": budget,
                "currency_code": currency,
                "due_date": parse_iso_datetime(remote.get("due_date")),
            }
            freshbooks_id = str(remote["id"])
            existing = self.storage.get_project_by_freshbooks_id(freshbooks_id)
            if existing:
                self.storage.update_project(existing.id, **fields)
                result.updated += 1
            else:
                self.storage.create_project(
                    freshbooks_id=freshbooks_id,
                    client_id=client.id,
                    status="in_progress",
                    progress=0,
                    start_date=self.clock(),
                    **fields,
                )
                result.created += 1
        return result

    def sync_invoices(self) -> SyncResult:
        result = SyncResult("invoices")
        for remote in self.get_invoices():
            client = self.storage.get_client_by_freshbooks_id(str(remote.get("client_id")))
            if client is None:
                result.skipped += 1
                continue

            project_id = None
            if remote.get("project_id"):
                project = self.storage.get_project_by_freshbooks_id(str(remote["project_id"]))
                if project:
                    project_id = project.id

            amount, currency = _money(remote.get("amount"))
            fields = {
                "amount": amount if amount is not None else 0.0,
                "currency_code": currency,
                "status": map_invoice_status(remote.get("status")),
                "paid_date": parse_iso_datetime(remote.get("payment_date")),
            }
            freshbooks_id = str(remote["id"])
            existing = self.storage.get_invoice_by_freshbooks_id(freshbooks_id)
            if existing:
                self.storage.update_invoice(existing.id, **fields)
                result.updated += 1
            else:
                self.storage.create_invoice(
                    freshbooks_id=freshbooks_id,
                    client_id=client.id,
                    project_id=project_id,
                    invoice_number=str(remote.get("invoice_number") or freshbooks_id),
                    issue_date=parse_iso_datetime(remote.get("create_date")),
                    due_date=parse_iso_datetime(remote.get("due_date")),
                    **fields,
                )
                result.created += 1
        return result

    def sync_all(self) -> SyncSummary:
        """Clients, then projects, then invoices. Order matters."""
        summary = SyncSummary()
        summary.results.append(self.sync_clients())
        summary.results.append(self.sync_projects())
        summary.results.append(self.sync_invoices())
        logger.info("Freshbooks sync finished: %s", summary.to_dict())
        return summary

    def sync(self, entity: str = "all") -> SyncSummary:
        """Run one named sync step, or all of them."""
        if entity == "all":
            return self.sync_all()
        steps = {
            "clients": self.sync_clients,
            "projects": self.sync_projects,
            "invoices": self.sync_invoices,
        }
        if entity not in steps:
            raise ValidationError(f"Unknown sync entity '{entity}'", field="entity")
        return SyncSummary(results=[steps[entity]()])

    def close(self) -> None:
        self.http.close()
