"""API client for the editorial backend with rate-limit retries.

Handles the admin token header, JSON encoding and exponential backoff
on rate limiting via urllib.  Blocking I/O runs in a worker thread so
callers (normally the request queue) stay on the event loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Awaitable, Callable
from typing import Any

from editorial.shared.errors import (
    NetworkError,
    NotFoundError,
    ParseError,
    RateLimitError,
    RequestError,
    ServerError,
)

logger = logging.getLogger(__name__)

ADMIN_HEADER = "X-ADMIN-TOKEN"
DEFAULT_RETRY_DELAY_SECONDS = 2.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_SECONDS = 30.0

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."


def build_endpoint(path: str, **params: object) -> str:
    """Append non-empty query parameters to *path*."""
    query = {k: str(v) for k, v in params.items() if v is not None and v != ""}
    return f"{path}?{urllib.parse.urlencode(query)}" if query else path


def _is_rate_limited(status: int, payload: dict[str, Any] | None) -> bool:
    if status == 429:
        return True
    error = payload.get("error") if isinstance(payload, dict) else None
    return isinstance(error, str) and "rate limit" in error.lower()


class ApiClient:
    """Client for the editorial HTTP API.

    Args:
        base_url: Server origin, e.g. ``http://localhost:3000``.
        token_provider: Called on every request to read the admin token,
            so a token changed mid-session is picked up immediately.
        retry_delay: Base backoff in seconds; attempt *n* waits
            ``retry_delay * 2**n``.
        max_retries: Retries after the first attempt before giving up.
        sleep: Awaitable sleep, replaceable in tests.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Callable[[], str] = lambda: "",
        *,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.retry_delay = retry_delay
        self.max_retries = max_retries
        self.timeout = timeout
        self._sleep = sleep

    def _send(self, endpoint: str, method: str, body: dict | None) -> tuple[int, dict[str, Any] | None]:
        """Issue one HTTP call and return ``(status, parsed_body)``.

        ``parsed_body`` is None when the body is not valid JSON.
        """
        url = f"{self.base_url}{endpoint}"
        data = json.dumps(body).encode("utf-8") if body is not None and method != "GET" else None
        req = urllib.request.Request(
            url,
            data=data,
            method=method,
            headers={
                "Content-Type": "application/json",
                ADMIN_HEADER: self.token_provider() or "",
            },
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                status = resp.status
                raw = resp.read()
        except urllib.error.HTTPError as exc:
            status = exc.code
            raw = exc.read() or b""
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            reason = getattr(exc, "reason", exc)
            raise NetworkError(f"Could not reach {url}: {reason}") from exc

        try:
            parsed = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return status, None
        return status, parsed if isinstance(parsed, dict) else {"data": parsed}

    async def _attempt(self, endpoint: str, method: str, body: dict | None) -> dict[str, Any]:
        for attempt in range(self.max_retries + 1):
            status, payload = await asyncio.to_thread(self._send, endpoint, method, body)

            if _is_rate_limited(status, payload):
                if attempt >= self.max_retries:
                    raise RateLimitError(RATE_LIMIT_MESSAGE, status)
                delay = self.retry_delay * 2**attempt
                logger.warning(
                    "Rate limited. Retrying in %dms... (%d/%d)",
                    int(delay * 1000),
                    attempt + 1,
                    self.max_retries,
                )
                await self._sleep(delay)
                continue

            if payload is None:
                raise ParseError(f"Invalid JSON response from {endpoint} (HTTP {status})", status)

            message = payload.get("error") if isinstance(payload.get("error"), str) else None
            if status == 404:
                raise NotFoundError(message or "Not found", status)
            if not 200 <= status < 300:
                raise ServerError(message or f"API error: {status}", status)
            if payload.get("success") is False:
                raise ServerError(message or "Request failed", status)
            return payload

        raise RateLimitError(RATE_LIMIT_MESSAGE, 429)

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: dict | None = None,
    ) -> dict[str, Any]:
        """Call *endpoint* and return the decoded JSON envelope.

        Raises:
            RateLimitError: Still rate limited after ``max_retries`` retries.
            NotFoundError: The server answered 404.
            ServerError: Any other failure status or ``success: false``.
            ParseError: The body was not JSON.
            NetworkError: The server could not be reached.
        """
        try:
            return await self._attempt(endpoint, method.upper(), body)
        except RequestError as exc:
            logger.error("API Error: %s", exc.message)
            raise
