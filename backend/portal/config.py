# backend/portal/config.py
from __future__ import annotations
import logging
import os
import secrets
from datetime import timedelta

logger = logging.getLogger(__name__)


def _session_secret() -> str:
    secret = os.environ.get("SESSION_SECRET")
    if secret:
        return secret
    # Known weakness: an ephemeral secret invalidates every session on restart.
    logger.warning("SESSION_SECRET not set, using a generated one")
    return "portal-secret-key-" + secrets.token_hex(8)


class Config:
    SECRET_KEY = _session_secret()

    # SQLite DB stored next to the backend by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///portal.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "database" for production, "memory" for throwaway development servers
    STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "database")

    # Session cookie carries only the opaque session id
    SESSION_COOKIE_NAME = "portal_session"
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.environ.get("SESSION_COOKIE_SECURE", "false").lower() == "true"
    PERMANENT_SESSION_LIFETIME = timedelta(days=7)

    FRESHBOOKS_CLIENT_ID = os.environ.get("FRESHBOOKS_CLIENT_ID", "")
    FRESHBOOKS_CLIENT_SECRET = os.environ.get("FRESHBOOKS_CLIENT_SECRET", "")
    FRESHBOOKS_REDIRECT_URI = os.environ.get("FRESHBOOKS_REDIRECT_URI", "")
    FRESHBOOKS_BASE_URL = os.environ.get("FRESHBOOKS_BASE_URL", "https://api.freshbooks.com")
