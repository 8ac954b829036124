"""
Sign-in flow sequencing.

`AuthProvider` drives the Authorization Code Flow with PKCE:

  login           -> new CSRF token + state, MSAL starts the flow, the flow
                     is recorded in the session, the caller redirects
  handle_redirect -> state checked against the session, pending exchange
                     consumed, code redeemed, session marked authenticated
  logout          -> session destroyed, caller redirects to the tenant's
                     end-session endpoint

The provider is built once per app by `init_auth` with its collaborators
passed in; tests hand it a fake identity client.
"""

from __future__ import annotations

import hmac
import logging
import uuid
from collections.abc import Mapping, MutableMapping

from .config import AuthSettings
from .errors import DecodeError, ExchangeError, SessionStateError, StateMismatchError
from .metadata import AuthorityMetadataFetcher
from .msal_auth import MsalIdentityClient
from .redemptions import RedemptionRegistry
from .session import AuthCodeRequest, AuthSession
from .state import decode_state, encode_state

logger = logging.getLogger(__name__)

RESPONSE_MODE = "form_post"


def safe_redirect_target(target: str | None, default: str = "/") -> str:
    """Only local absolute paths are allowed as post-login targets."""
    if not target or not target.startswith("/") or target.startswith("//") or "\\" in target:
        return default
    return target


class AuthProvider:
    def __init__(
        self,
        settings: AuthSettings,
        identity,
        metadata: AuthorityMetadataFetcher,
        redemptions: RedemptionRegistry | None = None,
    ):
        self.settings = settings
        self.identity = identity
        self.metadata = metadata
        self.redemptions = redemptions or RedemptionRegistry()

    def login(self, store: MutableMapping, redirect_to: str = "/") -> str:
        """Start a login attempt and return the authorization URL to redirect to."""

        session = AuthSession(store)
        csrf_token = str(uuid.uuid4())
        state = encode_state(csrf_token, safe_redirect_target(redirect_to))

        self.metadata.get()

        flow = self.identity.initiate_auth_code_flow(
            state=state,
            scopes=list(self.settings.scopes),
            redirect_uri=self.settings.redirect_uri,
            response_mode=RESPONSE_MODE,
        )
        session.begin_login(csrf_token, flow.pkce_codes, flow.url_request, flow.request)
        logger.info("Login started; redirecting to authorization endpoint")
        return flow.auth_uri

    def handle_redirect(self, store: MutableMapping, form: Mapping) -> str:
        """
        Finish the flow from the provider's form post. Returns the local path
        to redirect to. Raises an `AuthError` on any failure, leaving the
        session unauthenticated.
        """

        error = form.get("error")
        if error:
            raise ExchangeError(error, form.get("error_description"))

        code = form.get("code")
        state = form.get("state")
        if not state:
            raise DecodeError("Callback carries no state")
        if not code:
            raise ExchangeError("invalid_request", "Callback carries no authorization code")

        session = AuthSession(store)
        if not session.has_pending_exchange:
            raise SessionStateError("No pending sign-in for this session (expired or already used).")

        decoded = decode_state(state)
        expected = session.csrf_token
        if not expected or not hmac.compare_digest(decoded.csrf_token.encode("utf-8"), expected.encode("utf-8")):
            logger.warning("Callback state does not match this session's login attempt")
            raise StateMismatchError("State does not match the pending sign-in.")

        # Another request for this login got here first; leave the session alone.
        if not self.redemptions.claim(expected):
            logger.warning("Duplicate callback for a login attempt that is already being redeemed")
            raise SessionStateError("This sign-in is already being completed.")

        pending = session.take_pending_exchange()

        request = AuthCodeRequest(
            state=pending.request.state,
            scopes=pending.request.scopes,
            redirect_uri=pending.request.redirect_uri,
            code=code,
            nonce=pending.request.nonce,
        )
        result = self.identity.acquire_token_by_code(request, pending.pkce_codes.verifier, session.token_cache)

        session.complete_login(result)
        logger.info("Login completed")
        return safe_redirect_target(decoded.redirect_to)

    def logout(self, store: MutableMapping) -> str:
        """Destroy the local session and return the end-session URL."""
        AuthSession(store).destroy()
        return self.settings.logout_url


def build_auth_provider(settings: AuthSettings) -> AuthProvider:
    metadata = AuthorityMetadataFetcher(settings.discovery_endpoint, settings.http_timeout)
    identity = MsalIdentityClient(settings, metadata)
    return AuthProvider(settings, identity, metadata)
