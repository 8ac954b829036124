"""
Authentication configuration.

All secrets are sourced from environment variables (a local `.env` file is
loaded first when present). This module validates presence of required
settings and exposes a single `init_auth(app)` entrypoint.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from dotenv import load_dotenv
from flask import Flask

if TYPE_CHECKING:
    from .provider import AuthProvider

DEFAULT_REDIRECT_URI = "http://localhost:3000/auth/redirect"
DEFAULT_POST_LOGOUT_REDIRECT_URI = "http://localhost:3000"
DEFAULT_HTTP_TIMEOUT = 10.0


@dataclass(frozen=True)
class AuthSettings:
    """Configuration needed for CIAM / MSAL auth."""

    tenant_subdomain: str
    client_id: str
    client_secret: str
    redirect_uri: str = DEFAULT_REDIRECT_URI
    post_logout_redirect_uri: str = DEFAULT_POST_LOGOUT_REDIRECT_URI
    scopes: list[str] = field(default_factory=list)
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    pii_logging: bool = False

    @property
    def authority(self) -> str:
        return f"https://{self.tenant_subdomain}.ciamlogin.com/"

    @property
    def tenant_authority(self) -> str:
        return f"{self.authority}{self.tenant_subdomain}.onmicrosoft.com"

    @property
    def discovery_endpoint(self) -> str:
        return f"{self.tenant_authority}/v2.0/.well-known/openid-configuration"

    @property
    def logout_url(self) -> str:
        return (
            f"{self.tenant_authority}/oauth2/v2.0/logout"
            f"?post_logout_redirect_uri={self.post_logout_redirect_uri}"
        )


def _parse_timeout(raw: str) -> float:
    try:
        timeout = float(raw)
    except ValueError:
        raise RuntimeError(f"AUTH_HTTP_TIMEOUT must be a number of seconds, got {raw!r}.") from None
    if timeout <= 0:
        raise RuntimeError("AUTH_HTTP_TIMEOUT must be greater than zero.")
    return timeout


def load_auth_settings() -> AuthSettings:
    """
    Load auth settings from environment variables.

    Required:
      - TENANT_SUBDOMAIN
      - CLIENT_ID
      - CLIENT_SECRET

    Optional:
      - REDIRECT_URI (default: http://localhost:3000/auth/redirect)
      - POST_LOGOUT_REDIRECT_URI (default: http://localhost:3000)
      - AUTH_SCOPES (space separated, default: none; MSAL adds openid/profile)
      - AUTH_HTTP_TIMEOUT (seconds, default: 10)
      - MSAL_PII_LOGGING (default: false)
    """

    load_dotenv()

    tenant_subdomain = os.environ.get("TENANT_SUBDOMAIN", "").strip()
    client_id = os.environ.get("CLIENT_ID", "").strip()
    client_secret = os.environ.get("CLIENT_SECRET", "").strip()

    missing = [
        k
        for k, v in [("TENANT_SUBDOMAIN", tenant_subdomain), ("CLIENT_ID", client_id), ("CLIENT_SECRET", client_secret)]
        if not v
    ]
    if missing:
        raise RuntimeError(
            "Missing required auth environment variables: "
            + ", ".join(missing)
            + ". Set them in your environment or a local .env file before starting the app."
        )

    redirect_uri = os.environ.get("REDIRECT_URI", "").strip() or DEFAULT_REDIRECT_URI
    post_logout = os.environ.get("POST_LOGOUT_REDIRECT_URI", "").strip() or DEFAULT_POST_LOGOUT_REDIRECT_URI

    scopes_raw = os.environ.get("AUTH_SCOPES", "").strip()
    scopes = [s for s in scopes_raw.split() if s]

    timeout_raw = os.environ.get("AUTH_HTTP_TIMEOUT", "").strip()
    http_timeout = _parse_timeout(timeout_raw) if timeout_raw else DEFAULT_HTTP_TIMEOUT

    pii_logging = os.environ.get("MSAL_PII_LOGGING", "false").strip().lower() == "true"

    return AuthSettings(
        tenant_subdomain=tenant_subdomain,
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=redirect_uri,
        post_logout_redirect_uri=post_logout,
        scopes=scopes,
        http_timeout=http_timeout,
        pii_logging=pii_logging,
    )


def init_auth(app: Flask, settings: AuthSettings | None = None, provider: AuthProvider | None = None):
    """
    Validate and attach auth settings to Flask `app.config`, and build the
    `AuthProvider` the routes use (stored in `app.extensions["auth_provider"]`).

    `provider` lets callers (tests) inject a provider wired to fakes.
    Returns the provider for convenience.
    """

    from .provider import build_auth_provider

    settings = settings or load_auth_settings()
    app.config["AUTH_SETTINGS"] = settings
    provider = provider or build_auth_provider(settings)
    app.extensions["auth_provider"] = provider
    return provider
