# Overview: Request decorators for authentication and role checks on API routes.

from functools import wraps
from flask import g, session

from .errors import AuthenticationError, AuthorizationError
from .extensions import get_storage
from .models import User
from .services import session_service

SESSION_KEY = "sid"


def current_session_token() -> str | None:
    """Opaque session id carried by the signed session cookie."""
    return session.get(SESSION_KEY)


def current_principal() -> User:
    """
    Resolve the request's session to a user.

    Two steps: the session store maps the session id to a user id, then the
    user is loaded from storage. Raises AuthenticationError (401) when there
    is no valid, unexpired session or the user is gone/disabled.
    """
    storage = get_storage()
    user_id = session_service.resolve_session(storage.session_store, current_session_token())
    if user_id is None:
        raise AuthenticationError("Authentication required")

    user = storage.get_user(user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Authentication required")
    return user


def require_auth(f):
    """
    Require an authenticated session.

    Sets g.current_user for the handler.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.current_user = current_principal()
        return f(*args, **kwargs)

    return decorated_function


def require_role(role: str):
    """
    Require an authenticated user whose role is exactly `role`.

    Roles are flat: admin does not imply client and client never implies admin.
    401 when unauthenticated, 403 on a role mismatch.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = current_principal()
            if user.role != role:
                raise AuthorizationError(f"Requires role: {role}")
            g.current_user = user
            return f(*args, **kwargs)

        return decorated_function
    return decorator
