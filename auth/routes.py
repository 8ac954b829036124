"""
Auth routes (MSAL / Entra External ID).

Endpoints:
  - GET  /auth/signin
  - POST /auth/redirect
  - GET  /auth/signout

Implementation notes:
  - The provider built by `init_auth` does the work; routes only move values
    between the request, the server-side session and the redirect.
  - The callback arrives as a form post (`response_mode=form_post`).
  - Failures are `AuthError`s and end up at the app's error handler.
"""

from __future__ import annotations

from flask import Blueprint, current_app, redirect, request, session

from .provider import AuthProvider

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _provider() -> AuthProvider:
    provider = current_app.extensions.get("auth_provider")
    if not isinstance(provider, AuthProvider):
        raise RuntimeError("Auth provider not initialized. Call auth.config.init_auth(app) at startup.")
    return provider


@auth_bp.get("/signin")
def signin():
    """
    Start the login flow by redirecting the user to the tenant.

    Optional query param:
      - next: local path to land on after successful login
    """

    auth_url = _provider().login(session, redirect_to=request.args.get("next") or "/")
    return redirect(auth_url)


@auth_bp.post("/redirect")
def handle_redirect():
    """Handle the form post from the tenant and mark the session authenticated."""

    target = _provider().handle_redirect(session, request.form)
    return redirect(target)


@auth_bp.get("/signout")
def signout():
    """Clear the local session and redirect to the tenant's logout endpoint."""

    return redirect(_provider().logout(session))
