"""
MSAL helpers.

This wraps MSAL (Microsoft Authentication Library) for the two calls the
sign-in flow needs from it: starting the Authorization Code Flow (MSAL makes
the PKCE pair and the authorization URL) and redeeming the code. MSAL errors
are translated into `auth.errors`.

MSAL downloads the tenant's OIDC discovery document when a client app is
built. The HTTP client handed to MSAL answers that request from
`AuthorityMetadataFetcher`, so the document is fetched once per process.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, urlsplit

import msal
import requests

from .config import AuthSettings
from .errors import AuthError, AuthorizationUrlError, ExchangeError, NetworkError
from .metadata import AuthorityMetadataFetcher
from .session import AuthCodeRequest, AuthCodeUrlRequest, PkceCodes, TokenResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthCodeFlow:
    """What starting a flow produces: where to send the browser, and what to remember."""

    auth_uri: str
    pkce_codes: PkceCodes
    url_request: AuthCodeUrlRequest
    request: AuthCodeRequest


def _url_key(url: str) -> tuple:
    parts = urlsplit(url)
    port = parts.port or (443 if parts.scheme == "https" else 80)
    return parts.scheme, (parts.hostname or "").lower(), port, parts.path.rstrip("/")


def _json_response(url: str, document: dict[str, Any]) -> requests.Response:
    resp = requests.Response()
    resp.status_code = 200
    resp.url = url
    resp.headers["Content-Type"] = "application/json"
    resp._content = json.dumps(document).encode("utf-8")
    resp.encoding = "utf-8"
    return resp


class MetadataAwareHttpClient(requests.Session):
    """
    requests session for MSAL: serves the discovery document from the
    metadata cache and puts a timeout on every other call.
    """

    def __init__(self, metadata: AuthorityMetadataFetcher, timeout: float):
        super().__init__()
        self._metadata = metadata
        self._discovery_key = _url_key(metadata.endpoint)
        self.timeout = timeout

    def get(self, url, **kwargs):
        if _url_key(url) == self._discovery_key:
            return _json_response(url, self._metadata.get())
        return super().get(url, **kwargs)

    def request(self, method, url, **kwargs):
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = self.timeout
        return super().request(method, url, **kwargs)


def _pick_account(accounts: list[dict[str, Any]], claims: dict[str, Any]) -> dict[str, Any] | None:
    oid = claims.get("oid")
    for account in accounts:
        if oid and account.get("local_account_id") == oid:
            return account
    return accounts[0] if accounts else None


class MsalIdentityClient:
    """The identity capability `AuthProvider` talks to, backed by MSAL."""

    def __init__(self, settings: AuthSettings, metadata: AuthorityMetadataFetcher):
        self.settings = settings
        self.metadata = metadata
        self.http_client = MetadataAwareHttpClient(metadata, settings.http_timeout)

    def build_msal_app(self, cache: msal.SerializableTokenCache | None = None) -> msal.ConfidentialClientApplication:
        """Create an MSAL confidential client app."""

        s = self.settings
        return msal.ConfidentialClientApplication(
            client_id=s.client_id,
            client_credential=s.client_secret,
            authority=s.tenant_authority,
            token_cache=cache,
            http_client=self.http_client,
            instance_discovery=False,
            enable_pii_log=s.pii_logging,
        )

    def initiate_auth_code_flow(self, state: str, scopes: list[str], redirect_uri: str, response_mode: str) -> AuthCodeFlow:
        try:
            flow = self.build_msal_app().initiate_auth_code_flow(
                scopes=list(scopes),
                redirect_uri=redirect_uri,
                state=state,
                response_mode=response_mode,
            )
        except AuthError:
            raise
        except (requests.Timeout, requests.ConnectionError) as e:
            raise NetworkError(f"Identity provider unreachable: {e}") from e
        except Exception as e:
            logger.exception("MSAL could not build the authorization URL")
            raise AuthorizationUrlError(str(e)) from e

        auth_uri = flow.get("auth_uri")
        verifier = flow.get("code_verifier")
        query = parse_qs(urlsplit(auth_uri or "").query)
        challenge = (query.get("code_challenge") or [None])[0]
        method = (query.get("code_challenge_method") or ["S256"])[0]
        if not auth_uri or not verifier or not challenge:
            raise AuthorizationUrlError("MSAL returned an incomplete auth code flow")

        pkce = PkceCodes(verifier=verifier, challenge=challenge, challenge_method=method)
        granted_scopes = list(flow.get("scope") or scopes)
        return AuthCodeFlow(
            auth_uri=auth_uri,
            pkce_codes=pkce,
            url_request=AuthCodeUrlRequest(
                state=state,
                scopes=granted_scopes,
                redirect_uri=redirect_uri,
                response_mode=response_mode,
                code_challenge=pkce.challenge,
                code_challenge_method=pkce.challenge_method,
            ),
            request=AuthCodeRequest(
                state=state,
                scopes=granted_scopes,
                redirect_uri=redirect_uri,
                code="",
                nonce=flow.get("nonce"),
            ),
        )

    def acquire_token_by_code(self, request: AuthCodeRequest, code_verifier: str, token_cache: str | None) -> TokenResult:
        cache = msal.SerializableTokenCache()
        if token_cache:
            cache.deserialize(token_cache)

        auth_code_flow = {
            "state": request.state,
            "redirect_uri": request.redirect_uri,
            "scope": list(request.scopes),
            "code_verifier": code_verifier,
        }
        if request.nonce:
            auth_code_flow["nonce"] = request.nonce
        auth_response = {"code": request.code, "state": request.state}

        app = self.build_msal_app(cache)
        try:
            result = app.acquire_token_by_auth_code_flow(auth_code_flow, auth_response)
        except AuthError:
            raise
        except (requests.Timeout, requests.ConnectionError) as e:
            raise NetworkError(f"Token endpoint unreachable: {e}") from e
        except (ValueError, RuntimeError) as e:
            raise ExchangeError("invalid_grant", str(e)) from e

        if not isinstance(result, dict) or "error" in result:
            result = result if isinstance(result, dict) else {}
            raise ExchangeError(result.get("error") or "unknown_error", result.get("error_description"))

        claims = result.get("id_token_claims") or {}
        return TokenResult(
            id_token=result.get("id_token"),
            id_token_claims=claims,
            account=_pick_account(app.get_accounts(), claims),
            token_cache=cache.serialize(),
        )
