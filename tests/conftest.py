# tests/conftest.py
import base64
import hashlib
import sys
from pathlib import Path
from urllib.parse import urlencode

import pytest

# Ensure project root is importable for 'app' / 'auth' when tests run from any cwd
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app import create_app
from auth.config import AuthSettings
from auth.metadata import AuthorityMetadataFetcher
from auth.msal_auth import AuthCodeFlow
from auth.provider import AuthProvider
from auth.session import AuthCodeRequest, AuthCodeUrlRequest, PkceCodes, TokenResult

DISCOVERY_DOC = {
    "issuer": "https://contoso.ciamlogin.com/tid/v2.0",
    "authorization_endpoint": "https://contoso.ciamlogin.com/contoso.onmicrosoft.com/oauth2/v2.0/authorize",
    "token_endpoint": "https://contoso.ciamlogin.com/contoso.onmicrosoft.com/oauth2/v2.0/token",
    "end_session_endpoint": "https://contoso.ciamlogin.com/contoso.onmicrosoft.com/oauth2/v2.0/logout",
}


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self._text = text

    def json(self):
        if self._text is not None:
            raise ValueError("not json")
        return self._payload


class FakeHttp:
    """Stands in for requests.Session in AuthorityMetadataFetcher."""

    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse(200, DISCOVERY_DOC)
        self.error = error
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        if self.error is not None:
            raise self.error
        return self.response


class FakeIdentityClient:
    """Plays MSAL's part: makes the PKCE pair and URL, redeems codes."""

    def __init__(self, settings):
        self.settings = settings
        self.flows = []
        self.exchanges = []
        self.exchange_error = None
        self.claims = {"oid": "user-oid", "name": "Ada Lovelace", "preferred_username": "ada@contoso.com"}

    def initiate_auth_code_flow(self, state, scopes, redirect_uri, response_mode):
        n = len(self.flows)
        verifier = f"verifier-{n}-" + "x" * 40
        challenge = base64.urlsafe_b64encode(hashlib.sha256(verifier.encode("ascii")).digest()).decode().rstrip("=")
        granted = ["openid", "profile", "offline_access", *scopes]
        query = urlencode(
            {
                "client_id": self.settings.client_id,
                "response_type": "code",
                "redirect_uri": redirect_uri,
                "scope": " ".join(granted),
                "state": state,
                "code_challenge": challenge,
                "code_challenge_method": "S256",
                "nonce": f"nonce-{n}",
                "response_mode": response_mode,
            }
        )
        flow = AuthCodeFlow(
            auth_uri=f"{DISCOVERY_DOC['authorization_endpoint']}?{query}",
            pkce_codes=PkceCodes(verifier=verifier, challenge=challenge),
            url_request=AuthCodeUrlRequest(
                state=state,
                scopes=granted,
                redirect_uri=redirect_uri,
                response_mode=response_mode,
                code_challenge=challenge,
                code_challenge_method="S256",
            ),
            request=AuthCodeRequest(state=state, scopes=granted, redirect_uri=redirect_uri, nonce=f"nonce-{n}"),
        )
        self.flows.append(flow)
        return flow

    def acquire_token_by_code(self, request, code_verifier, token_cache):
        self.exchanges.append((request, code_verifier, token_cache))
        if self.exchange_error is not None:
            raise self.exchange_error
        return TokenResult(
            id_token="header.payload.signature",
            id_token_claims=dict(self.claims),
            account={"username": "ada@contoso.com", "local_account_id": "user-oid", "home_account_id": "user-oid.tid"},
            token_cache='{"AccessToken": {}}',
        )


@pytest.fixture()
def settings():
    return AuthSettings(
        tenant_subdomain="contoso",
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri="http://localhost:3000/auth/redirect",
        post_logout_redirect_uri="http://localhost:3000",
    )


@pytest.fixture()
def metadata_http():
    return FakeHttp()


@pytest.fixture()
def identity(settings):
    return FakeIdentityClient(settings)


@pytest.fixture()
def provider(settings, identity, metadata_http):
    metadata = AuthorityMetadataFetcher(settings.discovery_endpoint, settings.http_timeout, http=metadata_http)
    return AuthProvider(settings, identity, metadata)


@pytest.fixture()
def app(settings, provider, tmp_path):
    return create_app(
        settings=settings,
        provider=provider,
        config_overrides={
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "SESSION_FILE_DIR": str(tmp_path / "sessions"),
        },
    )


@pytest.fixture()
def client(app):
    return app.test_client()
