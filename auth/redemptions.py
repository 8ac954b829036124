"""
Process-wide record of login attempts whose code is being (or was) redeemed.

Flask-Session loads a copy of the session per request and writes it back at
the end, so two callbacks for the same login arriving together would both
see the pending exchange. The first callback to claim the attempt's CSRF
token wins; later ones are refused before any session write or token call.
Entries expire after `ttl` seconds to keep the map bounded.
"""

from __future__ import annotations

import threading
import time

DEFAULT_TTL = 600.0


class RedemptionRegistry:
    def __init__(self, ttl: float = DEFAULT_TTL, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._claimed: dict[str, float] = {}

    def claim(self, key: str) -> bool:
        """Return True for the first claim of `key` within the TTL, False afterwards."""
        now = self._clock()
        with self._lock:
            self._prune(now)
            if key in self._claimed:
                return False
            self._claimed[key] = now
            return True

    def __len__(self) -> int:
        with self._lock:
            self._prune(self._clock())
            return len(self._claimed)

    def _prune(self, now: float) -> None:
        expired = [k for k, at in self._claimed.items() if now - at > self.ttl]
        for k in expired:
            del self._claimed[k]
