# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/portal/routes/auth.py
"""
Authentication API routes

- POST /api/register  create a principal and log it in
- POST /api/login     verify credentials, start a session
- POST /api/logout    end the session
- GET  /api/user      current principal (password never included)

The session id travels in the signed Flask session cookie; the session record
itself lives in the configured session store.
"""

from flask import Blueprint, g, jsonify, request, session

from ..decorators import SESSION_KEY, current_session_token, require_auth
from ..errors import ValidationError
from ..extensions import get_storage
from ..services import activity_service, auth_service, session_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _start_session(user) -> None:
    storage = get_storage()
    # Drop whatever session this browser had before
    session_service.revoke_session(storage.session_store, current_session_token())
    session.clear()

    _, token = session_service.create_session(storage.session_store, user.id)
    session[SESSION_KEY] = token
    session.permanent = True


@auth_bp.post("/register")
def register_route():
    """
    Register a new user and log them in.

    Body: username, password, email, name, optional role ("client" default).
    """
    storage = get_storage()
    user = auth_service.register_user(storage, _json_body())

    activity_service.log_activity(
        storage,
        user_id=user.id,
        action="User Registration",
        details=f"User {user.username} registered with role {user.role}",
        entity_type="user",
        entity_id=user.id,
    )

    _start_session(user)
    return jsonify(user.to_dict()), 201


@auth_bp.post("/login")
def login_route():
    """Authenticate username/password and establish a session."""
    data = _json_body()
    username = data.get("username")
    password = data.get("password")

    if not username or not password:
        raise ValidationError("Username and password are required")
    for key, value in (("username", username), ("password", password)):
        if not isinstance(value, str):
            raise ValidationError(f"{key} must be a string", field=key)

    storage = get_storage()
    user = auth_service.authenticate(storage, username, password)

    _start_session(user)

    activity_service.log_activity(
        storage,
        user_id=user.id,
        action="User Login",
        details=f"User {user.username} logged in",
        entity_type="user",
        entity_id=user.id,
    )

    return jsonify(user.to_dict()), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Destroy the session; the old id resolves as unauthenticated afterwards."""
    storage = get_storage()
    user = g.current_user

    session_service.revoke_session(storage.session_store, current_session_token())
    session.clear()

    activity_service.log_activity(
        storage,
        user_id=user.id,
        action="User Logout",
        details=f"User {user.username} logged out",
        entity_type="user",
        entity_id=user.id,
    )

    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/user")
@require_auth
def current_user_route():
    return jsonify(g.current_user.to_dict())
