# Overview: Service-layer operations for sessions; create, resolve and revoke server-side sessions.

"""
Session Management Service

A session is a server-side record keyed by the SHA-256 hash of an opaque
random id. The plaintext id is handed to the browser (inside the signed Flask
session cookie) and never stored.

Resolution is two plain steps: session store lookup gives a user id, then the
user repository loads the principal. See decorators.current_principal().

SECURITY FEATURES:
- Cryptographically secure random ids (32 bytes)
- Ids hashed with SHA-256 before storage
- Fixed one-week lifetime from creation (SESSION_MAX_AGE)
- Logout deletes the record
"""

import hashlib
import secrets
from datetime import timedelta

from ..models import SessionRecord
from ..storage import SessionStore
from portal.time_utils import utcnow

SESSION_MAX_AGE = timedelta(days=7)


def generate_token() -> str:
    """
    Return a 64-character hex session id (32 bytes of entropy).

    This is the plaintext id sent to the client.
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash a session id for storage.

    Session ids are already high-entropy, so a fast hash is enough.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(store: SessionStore, user_id: int) -> tuple[SessionRecord, str]:
    """
    Create a session for user_id.

    Returns (session_record, plaintext_token).
    """
    token = generate_token()
    now = utcnow()
    record = store.create(
        token_hash=hash_token(token),
        user_id=user_id,
        created_at=now,
        expires_at=now + SESSION_MAX_AGE,
    )
    return record, token


def resolve_session(store: SessionStore, token: str | None) -> int | None:
    """
    Return the user id behind a session id, or None.

    None when the id is missing, unknown or expired. Expired records are
    deleted on sight.
    """
    if not token:
        return None

    token_hash = hash_token(token)
    record = store.get(token_hash)
    if record is None:
        return None

    if record.expires_at <= utcnow():
        store.delete(token_hash)
        return None

    return record.user_id


def revoke_session(store: SessionStore, token: str | None) -> bool:
    """Delete a session. Returns False if it did not exist."""
    if not token:
        return False
    return store.delete(hash_token(token))


def cleanup_expired_sessions(store: SessionStore) -> int:
    """
    Delete every expired session record.

    Returns count of sessions deleted. Run periodically (CLI).
    """
    return store.delete_expired(utcnow())
