"""
Flask web app: sign in to a Microsoft Entra External ID (CIAM) tenant.

This app includes:
  - Authorization Code Flow with PKCE via MSAL (see `auth/`)
  - Server-side sessions (filesystem) via Flask-Session
  - A home page showing the sign-in status and a page listing the ID token claims
"""

from __future__ import annotations

import logging
import os
import sys

from flask import Flask, render_template, session
from flask_session import Session
from werkzeug.middleware.proxy_fix import ProxyFix

import app_config
from auth.config import AuthSettings, init_auth
from auth.decorators import login_required
from auth.errors import AuthError
from auth.provider import AuthProvider
from auth.routes import auth_bp
from auth.session import AuthSession

__version__ = "1.0.0"

logger = logging.getLogger("app")

LOG_HANDLER_NAME = "app"


def configure_logging(level: str = "INFO") -> None:
    """
    Plain text logs to stderr. MSAL logs through the `msal` logger; PII in
    its messages stays off unless MSAL_PII_LOGGING is set.
    """
    root = logging.getLogger()
    if not any(h.get_name() == LOG_HANDLER_NAME for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
        handler.set_name(LOG_HANDLER_NAME)
        root.addHandler(handler)
    root.setLevel(getattr(logging, level, logging.INFO))

    logging.getLogger("msal").setLevel(logging.INFO)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def create_app(
    settings: AuthSettings | None = None,
    provider: AuthProvider | None = None,
    config_overrides: dict | None = None,
) -> Flask:
    """
    Application factory.

    `settings` / `provider` are passed on to `init_auth` (tests inject fakes);
    `config_overrides` is applied on top of `app_config`.
    """
    app = Flask(__name__)
    app.config.from_object(app_config)
    if config_overrides:
        app.config.update(config_overrides)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Respect proxy headers when running behind a reverse proxy (App Service).
    app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)  # type: ignore[assignment]

    if not app.config.get("SECRET_KEY"):
        raise RuntimeError(
            "Missing FLASK_SECRET_KEY. Set it as an environment variable (or in .env) before starting."
        )

    os.makedirs(app.config["SESSION_FILE_DIR"], exist_ok=True)
    Session(app)

    # ---- Authentication ----
    init_auth(app, settings=settings, provider=provider)
    app.register_blueprint(auth_bp)

    @app.errorhandler(AuthError)
    def handle_auth_error(error: AuthError):
        logger.warning("Sign-in failed: %s: %s", type(error).__name__, error)
        return (
            render_template(
                "error.html",
                title="Sign-in failed",
                error_type=type(error).__name__,
                message=str(error),
                retryable=error.retryable,
            ),
            error.status_code,
        )

    @app.route("/")
    def index():
        auth_session = AuthSession(session)
        return render_template(
            "index.html",
            title=f"MSAL Python & Flask Web App v{__version__}",
            is_authenticated=auth_session.is_authenticated,
            username=auth_session.username,
        )

    @app.route("/users/id")
    @login_required
    def id_token_claims():
        auth_session = AuthSession(session)
        return render_template(
            "id.html",
            title="ID token claims",
            claims=auth_session.id_token_claims,
        )

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=int(os.environ.get("PORT", "3000")))
