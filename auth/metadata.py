"""
OIDC discovery metadata for the tenant authority.

The document is fetched once per process and kept in memory. First requests
may race; the lock makes sure only one of them hits the network.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

import requests

from .errors import MetadataFetchError, NetworkError

logger = logging.getLogger(__name__)


class AuthorityMetadataFetcher:
    def __init__(self, endpoint: str, timeout: float, http: requests.Session | None = None):
        self.endpoint = endpoint
        self.timeout = timeout
        self._http = http or requests.Session()
        self._lock = threading.Lock()
        self._metadata: dict[str, Any] | None = None

    @property
    def cached(self) -> dict[str, Any] | None:
        return self._metadata

    def get(self) -> dict[str, Any]:
        """Return the discovery document, fetching it on first use."""
        metadata = self._metadata
        if metadata is not None:
            return metadata
        with self._lock:
            if self._metadata is None:
                self._metadata = self._fetch()
            return self._metadata

    def clear(self) -> None:
        with self._lock:
            self._metadata = None

    def _fetch(self) -> dict[str, Any]:
        logger.info("Fetching authority metadata from %s", self.endpoint)
        try:
            resp = self._http.get(self.endpoint, timeout=self.timeout)
        except (requests.Timeout, requests.ConnectionError) as e:
            logger.warning("Authority metadata fetch failed (network): %s", e)
            raise NetworkError(f"Could not reach {self.endpoint}: {e}") from e
        except requests.RequestException as e:
            logger.warning("Authority metadata fetch failed: %s", e)
            raise MetadataFetchError(f"Could not fetch {self.endpoint}: {e}") from e

        if resp.status_code != 200:
            logger.warning("Authority metadata fetch returned HTTP %s", resp.status_code)
            raise MetadataFetchError(f"HTTP {resp.status_code} fetching {self.endpoint}")

        try:
            document = resp.json()
        except ValueError as e:
            raise MetadataFetchError(f"Metadata at {self.endpoint} is not JSON") from e
        if not isinstance(document, dict):
            raise MetadataFetchError(f"Metadata at {self.endpoint} is not a JSON object")
        return document
