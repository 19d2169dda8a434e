"""Domain errors, rendered as JSON by the handler registered in main.py."""

from __future__ import annotations


class MiniDriveError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = 500
    default_detail: str = "Internal error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class AuthenticationFailed(MiniDriveError):
    """Bad credentials on login."""

    status_code = 401
    default_detail = "Invalid credentials"


class TokenInvalid(MiniDriveError):
    """Malformed token, wrong algorithm, bad signature or wrong token type."""

    status_code = 401
    default_detail = "invalid token"


class TokenExpired(TokenInvalid):
    default_detail = "token has expired"


class UnknownUser(TokenInvalid):
    """Refresh subject no longer exists in the identity store."""

    default_detail = "user not found"


class Forbidden(MiniDriveError):
    status_code = 403
    default_detail = "Admin access required"


class NotFound(MiniDriveError):
    status_code = 404
    default_detail = "File not found"


class BadRequest(MiniDriveError):
    status_code = 400
    default_detail = "Bad request"


class InvalidPath(BadRequest):
    default_detail = "Invalid path"


class StorageUnavailable(MiniDriveError):
    """Object store I/O failure. Not retried; the caller resubmits."""

    status_code = 503
    default_detail = "Storage operation failed"
