"""
Typed view over the server-side session.

Flask-Session keeps the data on the server, keyed by the session cookie.
`AuthSession` is the only code that touches the auth keys; each flow step has
exactly one mutation method, so a half-written login can never be read back.
Only plain JSON-compatible values are stored.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from dataclasses import asdict, dataclass, field
from typing import Any

from .errors import SessionStateError

CSRF_TOKEN = "csrf_token"
PKCE_CODES = "pkce_codes"
AUTH_CODE_URL_REQUEST = "auth_code_url_request"
AUTH_CODE_REQUEST = "auth_code_request"
TOKEN_CACHE = "token_cache"
ID_TOKEN = "id_token"
ID_TOKEN_CLAIMS = "id_token_claims"
ACCOUNT = "account"
IS_AUTHENTICATED = "is_authenticated"


@dataclass(frozen=True)
class PkceCodes:
    verifier: str
    challenge: str
    challenge_method: str = "S256"


@dataclass(frozen=True)
class AuthCodeUrlRequest:
    """Snapshot of what was sent to the authorization endpoint."""

    state: str
    scopes: list[str]
    redirect_uri: str
    response_mode: str
    code_challenge: str
    code_challenge_method: str


@dataclass(frozen=True)
class AuthCodeRequest:
    """Template of the pending code redemption; `code` stays blank until the callback."""

    state: str
    scopes: list[str]
    redirect_uri: str
    code: str = ""
    nonce: str | None = None


@dataclass(frozen=True)
class PendingExchange:
    pkce_codes: PkceCodes
    request: AuthCodeRequest


@dataclass(frozen=True)
class TokenResult:
    id_token: str | None
    id_token_claims: dict[str, Any] = field(default_factory=dict)
    account: dict[str, Any] | None = None
    token_cache: str | None = None


class AuthSession:
    """Wraps a session mapping (normally `flask.session`)."""

    def __init__(self, store: MutableMapping):
        self._store = store

    # ---- reads ----

    @property
    def csrf_token(self) -> str | None:
        return self._store.get(CSRF_TOKEN)

    @property
    def pkce_codes(self) -> PkceCodes | None:
        raw = self._store.get(PKCE_CODES)
        if not isinstance(raw, dict):
            return None
        try:
            return PkceCodes(**raw)
        except TypeError:
            return None

    @property
    def auth_code_url_request(self) -> AuthCodeUrlRequest | None:
        raw = self._store.get(AUTH_CODE_URL_REQUEST)
        if not isinstance(raw, dict):
            return None
        try:
            return AuthCodeUrlRequest(**raw)
        except TypeError:
            return None

    @property
    def has_pending_exchange(self) -> bool:
        pkce = self.pkce_codes
        return bool(pkce and pkce.verifier) and isinstance(self._store.get(AUTH_CODE_REQUEST), dict)

    @property
    def token_cache(self) -> str | None:
        return self._store.get(TOKEN_CACHE)

    @property
    def is_authenticated(self) -> bool:
        return bool(self._store.get(IS_AUTHENTICATED))

    @property
    def account(self) -> dict[str, Any] | None:
        return self._store.get(ACCOUNT)

    @property
    def id_token_claims(self) -> dict[str, Any]:
        return self._store.get(ID_TOKEN_CLAIMS) or {}

    @property
    def username(self) -> str | None:
        """Account username if set, otherwise the `name` claim."""
        account = self.account or {}
        username = account.get("username")
        if username:
            return username
        return self.id_token_claims.get("name") or account.get("name")

    # ---- flow steps ----

    def begin_login(
        self,
        csrf_token: str,
        pkce_codes: PkceCodes,
        auth_code_url_request: AuthCodeUrlRequest,
        auth_code_request: AuthCodeRequest,
    ) -> None:
        """Record a new login attempt, replacing any stale one."""
        self._store[CSRF_TOKEN] = csrf_token
        self._store[PKCE_CODES] = asdict(pkce_codes)
        self._store[AUTH_CODE_URL_REQUEST] = asdict(auth_code_url_request)
        self._store[AUTH_CODE_REQUEST] = asdict(auth_code_request)

    def take_pending_exchange(self) -> PendingExchange:
        """
        Remove and return the PKCE codes and exchange template of the pending
        login. They are single-use: a replayed callback finds nothing.
        """
        pkce = self.pkce_codes
        raw_request = self._store.get(AUTH_CODE_REQUEST)
        if pkce is None or not pkce.verifier or not isinstance(raw_request, dict):
            raise SessionStateError("No pending sign-in for this session (expired or already used).")
        try:
            request = AuthCodeRequest(**raw_request)
        except TypeError as e:
            raise SessionStateError(f"Pending sign-in is malformed: {e}") from e

        self._store.pop(CSRF_TOKEN, None)
        self._store.pop(PKCE_CODES, None)
        self._store.pop(AUTH_CODE_REQUEST, None)
        return PendingExchange(pkce_codes=pkce, request=request)

    def complete_login(self, result: TokenResult) -> None:
        self._store[TOKEN_CACHE] = result.token_cache
        self._store[ID_TOKEN] = result.id_token
        self._store[ID_TOKEN_CLAIMS] = dict(result.id_token_claims)
        self._store[ACCOUNT] = result.account
        self._store[IS_AUTHENTICATED] = True

    def destroy(self) -> None:
        self._store.clear()
