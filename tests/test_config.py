import pytest

from auth.config import AuthSettings, load_auth_settings

ENV = {
    "TENANT_SUBDOMAIN": "contoso",
    "CLIENT_ID": "client-id",
    "CLIENT_SECRET": "client-secret",
}


@pytest.fixture()
def env(monkeypatch):
    for key in ("REDIRECT_URI", "POST_LOGOUT_REDIRECT_URI", "AUTH_SCOPES", "AUTH_HTTP_TIMEOUT", "MSAL_PII_LOGGING"):
        monkeypatch.delenv(key, raising=False)
    for key, value in ENV.items():
        monkeypatch.setenv(key, value)
    return monkeypatch


def test_defaults(env):
    s = load_auth_settings()
    assert s.redirect_uri == "http://localhost:3000/auth/redirect"
    assert s.post_logout_redirect_uri == "http://localhost:3000"
    assert s.scopes == []
    assert s.http_timeout == 10.0
    assert s.pii_logging is False


def test_optional_values(env):
    env.setenv("AUTH_SCOPES", " User.Read  api://x/read ")
    env.setenv("AUTH_HTTP_TIMEOUT", "2.5")
    env.setenv("REDIRECT_URI", "https://app.example.com/auth/redirect")
    s = load_auth_settings()
    assert s.scopes == ["User.Read", "api://x/read"]
    assert s.http_timeout == 2.5
    assert s.redirect_uri == "https://app.example.com/auth/redirect"


def test_missing_required(env):
    env.delenv("CLIENT_ID")
    env.delenv("CLIENT_SECRET")
    with pytest.raises(RuntimeError) as exc:
        load_auth_settings()
    assert "CLIENT_ID" in str(exc.value) and "CLIENT_SECRET" in str(exc.value)


@pytest.mark.parametrize("raw", ["soon", "0", "-1"])
def test_bad_timeout(env, raw):
    env.setenv("AUTH_HTTP_TIMEOUT", raw)
    with pytest.raises(RuntimeError):
        load_auth_settings()


def test_derived_urls():
    s = AuthSettings(tenant_subdomain="contoso", client_id="c", client_secret="s")
    assert s.authority == "https://contoso.ciamlogin.com/"
    assert s.tenant_authority == "https://contoso.ciamlogin.com/contoso.onmicrosoft.com"
    assert s.discovery_endpoint == (
        "https://contoso.ciamlogin.com/contoso.onmicrosoft.com/v2.0/.well-known/openid-configuration"
    )
    assert s.logout_url == (
        "https://contoso.ciamlogin.com/contoso.onmicrosoft.com/oauth2/v2.0/logout"
        "?post_logout_redirect_uri=http://localhost:3000"
    )
