"""
Round-trip `state` parameter.

The state carries the per-login CSRF token and the page to land on after
sign-in. It is URL-safe base64 of a small JSON object:

    {"csrfToken": "...", "redirectTo": "/"}
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass

from .errors import DecodeError


@dataclass(frozen=True)
class AuthState:
    csrf_token: str
    redirect_to: str


def encode_state(csrf_token: str, redirect_to: str) -> str:
    payload = json.dumps({"csrfToken": csrf_token, "redirectTo": redirect_to}, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def decode_state(value: str) -> AuthState:
    """Decode a state produced by `encode_state`; raise `DecodeError` otherwise."""

    if not isinstance(value, str) or not value:
        raise DecodeError("state is missing")

    try:
        raw = base64.urlsafe_b64decode(value.encode("ascii"))
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise DecodeError(f"state is not valid encoded JSON: {e}") from e

    if not isinstance(payload, dict):
        raise DecodeError("state payload is not an object")

    csrf_token = payload.get("csrfToken")
    redirect_to = payload.get("redirectTo")
    if not isinstance(csrf_token, str) or not csrf_token:
        raise DecodeError("state has no csrfToken")
    if not isinstance(redirect_to, str):
        raise DecodeError("state has no redirectTo")

    return AuthState(csrf_token=csrf_token, redirect_to=redirect_to)
