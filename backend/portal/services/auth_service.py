# Overview: Service-layer operations for auth; password hashing, authentication, registration.

"""
Authentication Service

Passwords are hashed with scrypt (memory-hard) using a fresh 16-byte salt per
password. The stored value is "<hex derived key>.<hex salt>", so verification
needs nothing but the stored string.

SECURITY NOTES:
- Derived keys are compared with hmac.compare_digest, never with ==
- Unknown usernames and wrong passwords fail with the same error
- The password hash never leaves this layer (User.to_dict omits it)
"""

import hashlib
import hmac
import re
import secrets

from ..errors import InvalidCredentials, ValidationError
from ..models import User, ROLES, ROLE_CLIENT
from ..storage import Storage

SALT_BYTES = 16
KEY_LENGTH = 64

# scrypt cost parameters (N=2**14, r=8, p=1)
SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _derive(password: str, salt: str) -> bytes:
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt.encode("utf-8"),
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
        dklen=KEY_LENGTH,
    )


def hash_password(password: str) -> str:
    """
    Hash password with scrypt and a random salt.

    Two calls with the same password return different strings.
    A failure in the KDF propagates; the request fails with a 500.
    """
    salt = secrets.token_hex(SALT_BYTES)
    derived = _derive(password, salt)
    return f"{derived.hex()}.{salt}"


def verify_password(password: str, stored: str) -> bool:
    """
    Check password against a stored "<key>.<salt>" value.

    Malformed stored values never match.
    """
    hashed, sep, salt = stored.partition(".")
    if not sep or not hashed or not salt:
        return False
    try:
        expected = bytes.fromhex(hashed)
    except ValueError:
        return False

    supplied = _derive(password, salt)
    return hmac.compare_digest(expected, supplied)


def authenticate(storage: Storage, username: str, password: str) -> User:
    """
    Return the user for a valid username/password pair.

    Raises InvalidCredentials when the user is unknown, disabled, or the
    password does not match.
    """
    user = storage.get_user_by_username(username)
    if user is None or not user.is_active:
        raise InvalidCredentials()
    if not verify_password(password, user.password):
        raise InvalidCredentials()
    return user


def register_user(storage: Storage, data: dict) -> User:
    """
    Create a new principal from a registration body.

    Required: username, password, email, name. role defaults to "client".

    Raises:
        ValidationError: missing fields, unknown role, bad email,
                         or username/email already taken
    """
    for key in ("username", "password", "email", "name", "role"):
        if data.get(key) is not None and not isinstance(data[key], str):
            raise ValidationError(f"{key} must be a string", field=key)

    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    email = (data.get("email") or "").strip()
    name = (data.get("name") or "").strip()
    role = data.get("role") or ROLE_CLIENT

    if not all([username, password, email, name]):
        raise ValidationError("All fields are required")

    if role not in ROLES:
        raise ValidationError(f"Role must be one of: {', '.join(ROLES)}", field="role")

    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email address", field="email")

    if storage.get_user_by_username(username):
        raise ValidationError("Username already exists", field="username")

    if storage.get_user_by_email(email):
        raise ValidationError("Email already exists", field="email")

    return storage.create_user(
        username=username,
        password=hash_password(password),
        email=email,
        name=name,
        role=role,
    )


def change_role(storage: Storage, username: str, role: str) -> User:
    """Set a user's role. Used by the operator CLI."""
    if role not in ROLES:
        raise ValidationError(f"Role must be one of: {', '.join(ROLES)}", field="role")
    user = storage.get_user_by_username(username)
    if user is None:
        raise ValidationError(f"User '{username}' not found", field="username")
    return storage.update_user(user.id, role=role)
