"""
Route decorators for authentication.

- `login_required`: the session must have completed a sign-in.
"""

from __future__ import annotations

from functools import wraps
from typing import Callable, TypeVar

from flask import redirect, request, session, url_for

from .session import AuthSession

F = TypeVar("F", bound=Callable[..., object])


def login_required(fn: F) -> F:
    """Ensure the user is logged in; otherwise redirect to sign-in."""

    @wraps(fn)
    def wrapper(*args, **kwargs):  # type: ignore[no-untyped-def]
        if AuthSession(session).is_authenticated:
            return fn(*args, **kwargs)
        return redirect(url_for("auth.signin", next=request.full_path.rstrip("?")))

    return wrapper  # type: ignore[return-value]
