# Overview: Flask API routes for the Freshbooks connection; credential status, OAuth and sync.

# backend/portal/routes/integrations.py
"""
Freshbooks integration routes (admin only).

- GET  /api/api-connections/freshbooks   stored credential status, no tokens
- PUT  /api/api-connections/freshbooks   edit credential fields, or {"refresh": true}
- GET  /api/freshbooks/authorize         consent URL (stores an OAuth state in the session)
- GET  /api/freshbooks/callback          exchange ?code= for tokens
- POST /api/freshbooks/sync              run sync_all, or one step with ?entity=
"""

import secrets

from flask import Blueprint, current_app, g, jsonify, request, session

from ..decorators import require_role
from ..errors import ValidationError
from ..extensions import get_freshbooks, get_storage
from ..models import ROLE_ADMIN
from ..services import activity_service
from ..services.freshbooks_service import PROVIDER
from portal.time_utils import parse_iso_datetime

integrations_bp = Blueprint("integrations", __name__, url_prefix="/api")

OAUTH_STATE_KEY = "freshbooks_oauth_state"
EDITABLE_FIELDS = ("access_token", "refresh_token", "account_id", "expires_at", "is_active")
SYNC_ENTITIES = ("all", "clients", "projects", "invoices")


def _connection_status() -> dict:
    connection = get_storage().get_api_connection(PROVIDER)
    if connection is None:
        return {"provider": PROVIDER, "connected": False}
    return connection.to_dict()


@integrations_bp.get("/api-connections/freshbooks")
@require_role(ROLE_ADMIN)
def get_connection_route():
    return jsonify(_connection_status())


@integrations_bp.put("/api-connections/freshbooks")
@require_role(ROLE_ADMIN)
def update_connection_route():
    """
    Manually edit the stored credential.

    Body (all optional): access_token, refresh_token, account_id,
    expires_at (ISO-8601), is_active, refresh (bool; forces a token refresh
    after the edits are saved).
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    fields = {key: data[key] for key in EDITABLE_FIELDS if key in data}
    force_refresh = data.get("refresh", False)
    if not isinstance(force_refresh, bool):
        raise ValidationError("refresh must be a boolean", field="refresh")

    if not fields and not force_refresh:
        raise ValidationError("No editable fields supplied")

    if "expires_at" in fields:
        if fields["expires_at"] is not None and not isinstance(fields["expires_at"], str):
            raise ValidationError("expires_at must be an ISO-8601 datetime", field="expires_at")
        try:
            fields["expires_at"] = parse_iso_datetime(fields["expires_at"])
        except (TypeError, ValueError):
            raise ValidationError("expires_at must be an ISO-8601 datetime", field="expires_at") from None

    if "is_active" in fields and not isinstance(fields["is_active"], bool):
        raise ValidationError("is_active must be a boolean", field="is_active")

    storage = get_storage()
    if fields:
        storage.save_api_connection(PROVIDER, **fields)

    if force_refresh:
        get_freshbooks().refresh_access_token()

    connection = storage.get_api_connection(PROVIDER)
    activity_service.log_activity(
        storage,
        user_id=g.current_user.id,
        action="API Connection Updated",
        details="Freshbooks API connection was updated"
        + (" and its token refreshed" if force_refresh else ""),
        entity_type="api_connection",
        entity_id=connection.id,
    )
    return jsonify(connection.to_dict())


@integrations_bp.get("/freshbooks/authorize")
@require_role(ROLE_ADMIN)
def authorize_route():
    state = secrets.token_urlsafe(32)
    session[OAUTH_STATE_KEY] = state
    return jsonify({"url": get_freshbooks().authorization_url(state=state), "state": state})


@integrations_bp.get("/freshbooks/callback")
@require_role(ROLE_ADMIN)
def callback_route():
    code = request.args.get("code")
    if not code:
        raise ValidationError("Missing authorization code", field="code")

    expected_state = session.pop(OAUTH_STATE_KEY, None)
    if not expected_state or not secrets.compare_digest(expected_state, request.args.get("state", "")):
        raise ValidationError("OAuth state mismatch", field="state")

    connection = get_freshbooks().exchange_code(code)

    activity_service.log_activity(
        get_storage(),
        user_id=g.current_user.id,
        action="Freshbooks Connected",
        details=f"Freshbooks account {connection.account_id} connected",
        entity_type="api_connection",
        entity_id=connection.id,
    )
    return jsonify(connection.to_dict())


@integrations_bp.post("/freshbooks/sync")
@require_role(ROLE_ADMIN)
def sync_route():
    entity = request.args.get("entity", "all")
    if entity not in SYNC_ENTITIES:
        raise ValidationError(f"entity must be one of: {', '.join(SYNC_ENTITIES)}", field="entity")

    summary = get_freshbooks().sync(entity)
    # List keeps execution order: clients, projects, invoices
    result = [r.to_dict() for r in summary.results]
    current_app.logger.info("Freshbooks sync (%s) by user %s: %s", entity, g.current_user.id, result)

    activity_service.log_activity(
        get_storage(),
        user_id=g.current_user.id,
        action="Freshbooks Sync",
        details=", ".join(
            f"{r.entity}: {r.created} created, {r.updated} updated, {r.skipped} skipped"
            for r in summary.results
        ),
        entity_type="api_connection",
    )
    return jsonify({"entity": entity, "results": result})
