# Overview: Portal exception taxonomy; every class maps to one HTTP status.

"""
Errors raised by services and decorators.

Each exception carries the HTTP status it becomes. A single error handler
registered in create_app() turns them into JSON responses, so route code
raises at the point of detection and never builds error responses itself.
"""


class PortalError(Exception):
    """Base class for errors that map directly onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        payload = {"message": self.message}
        payload.update(self.extra)
        return payload


class AuthenticationError(PortalError):
    """No valid session, or credentials did not check out."""

    status_code = 401


class InvalidCredentials(AuthenticationError):
    def __init__(self, message: str = "Invalid username or password"):
        super().__init__(message)


class AuthorizationError(PortalError):
    """Authenticated principal lacks the required role."""

    status_code = 403


class ValidationError(PortalError):
    """Malformed request body. `field` names the offending input when known."""

    status_code = 400

    def __init__(self, message: str, field: str | None = None):
        if field:
            super().__init__(message, field=field)
        else:
            super().__init__(message)
        self.field = field


class UpstreamError(PortalError):
    """Freshbooks returned a non-2xx response or could not be reached."""

    status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class NotConnected(PortalError):
    """No stored Freshbooks credential; a human has to authorize again."""

    status_code = 409

    def __init__(self, message: str = "Freshbooks is not connected"):
        super().__init__(message, code="not_connected")


class NotFoundError(PortalError):
    status_code = 404
