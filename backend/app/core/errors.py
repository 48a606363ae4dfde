"""Client-facing error taxonomy for auth flows.

Each error carries a stable ``code`` (rendered as ``error`` in the JSON body),
a message safe to show to clients and the HTTP status the API maps it to.
"""

from __future__ import annotations

from typing import Any


class AuthError(Exception):
    code = "AuthError"
    message = "Authentication error"
    status_code = 400

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message


class RequestValidationFailed(AuthError):
    code = "ValidationError"
    message = "Request validation failed"
    status_code = 400

    def __init__(self, errors: list[dict[str, Any]], message: str | None = None) -> None:
        super().__init__(message)
        self.errors = errors


class EmailAlreadyRegistered(AuthError):
    code = "EmailAlreadyRegistered"
    message = "This email is associated with an existing account"
    status_code = 400


class AuthenticationFailed(AuthError):
    """Bad credentials. Never says whether the email or the password was wrong."""

    code = "AuthenticationError"
    message = "Invalid email or password"
    status_code = 401


class AccessTokenRequired(AuthError):
    code = "AccessTokenRequired"
    message = "Access token is required"
    status_code = 401


class AccessTokenExpired(AuthError):
    code = "TokenExpired"
    message = "Access token expired"
    status_code = 401


class AccessTokenInvalid(AuthError):
    code = "TokenInvalid"
    message = "Invalid access token"
    status_code = 403


class InvalidRefreshToken(AuthError):
    code = "InvalidRefreshToken"
    message = "Invalid refresh token"
    status_code = 403


class RefreshTokenExpired(AuthError):
    code = "RefreshTokenExpired"
    message = "Refresh token expired"
    status_code = 403


class RefreshTokenRevokedOrUnknown(AuthError):
    code = "RefreshTokenRevokedOrUnknown"
    message = "Refresh token not found or revoked"
    status_code = 403


class StoreUnavailable(AuthError):
    """Backing store could not be reached or rejected the request."""

    code = "StoreUnavailable"
    message = "Service temporarily unavailable"
    status_code = 500
