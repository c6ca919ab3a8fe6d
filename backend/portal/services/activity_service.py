# Overview: Append-only audit trail of successful mutating actions.

from ..models import Activity
from ..storage import Storage


def log_activity(
    storage: Storage,
    user_id: int | None,
    action: str,
    details: str | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
) -> Activity:
    """
    Append an audit record.

    Called only after the action succeeded; failures are not recorded here.

    action examples:
    - User Registration
    - User Login
    - User Logout
    - User Role Changed
    - API Connection Updated
    - API Connection Refreshed
    - Freshbooks Connected
    - Freshbooks Sync
    - Client Linked
    """
    return storage.create_activity(
        user_id=user_id,
        action=action,
        details=details,
        entity_type=entity_type,
        entity_id=entity_id,
    )


def recent_activities(storage: Storage, limit: int = 20) -> list[Activity]:
    return storage.list_recent_activities(limit)
