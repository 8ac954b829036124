"""
Errors raised while running the sign-in flow.

Every error carries the HTTP status the error page is rendered with. Nothing
is retried automatically; `retryable` only tells the user-facing page whether
trying again could help.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for sign-in failures."""

    status_code = 500
    retryable = False


class AuthorizationUrlError(AuthError):
    """MSAL could not build the authorization request URL."""

    status_code = 502


class SessionStateError(AuthError):
    """The session holds no (or a stale) pending login: replayed callback or expired session."""

    status_code = 400


class StateMismatchError(SessionStateError):
    """The callback's state was issued for a different login attempt."""


class ExchangeError(AuthError):
    """The identity provider rejected the authorization code (or the sign-in itself)."""

    status_code = 400

    def __init__(self, error: str, description: str | None = None):
        self.error = error
        self.description = description
        message = f"{error}: {description}" if description else error
        super().__init__(message)


class DecodeError(AuthError):
    """Malformed state parameter."""

    status_code = 400


class MetadataFetchError(AuthError):
    """OIDC discovery document could not be retrieved or parsed."""

    status_code = 502


class NetworkError(AuthError):
    """Timeout or connectivity failure talking to the identity provider."""

    status_code = 504
    retryable = True
