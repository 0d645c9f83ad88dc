"""Detect once per session whether a live backend is reachable."""

from __future__ import annotations

import asyncio
import logging
import urllib.error
import urllib.parse
import urllib.request

logger = logging.getLogger(__name__)

HEALTH_ENDPOINT = "/health"
DEFAULT_HEALTH_TIMEOUT_SECONDS = 1.2

_NETWORK_SCHEMES = {"http", "https"}


class BackendDetector:
    """Memoised health probe.

    A non-network origin (no base URL, or a ``file:`` URL) means static
    mode without any request.  Otherwise one ``GET /health`` decides;
    every failure just means "no backend".
    """

    def __init__(self, base_url: str, timeout: float = DEFAULT_HEALTH_TIMEOUT_SECONDS) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self._result: bool | None = None

    @property
    def is_network_origin(self) -> bool:
        return urllib.parse.urlparse(self.base_url).scheme.lower() in _NETWORK_SCHEMES

    def _probe(self) -> bool:
        req = urllib.request.Request(f"{self.base_url}{HEALTH_ENDPOINT}", method="GET")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return 200 <= resp.status < 300
        except (urllib.error.URLError, TimeoutError, OSError, ValueError) as exc:
            logger.debug("Backend health probe failed: %s", exc)
            return False

    async def has_backend(self) -> bool:
        if self._result is None:
            if not self.is_network_origin:
                self._result = False
            else:
                self._result = await asyncio.to_thread(self._probe)
            logger.info("Backend %s", "detected" if self._result else "not available, using static mode")
        return self._result

    def reset(self) -> None:
        """Forget the memoised answer so the next call probes again."""
        self._result = None
