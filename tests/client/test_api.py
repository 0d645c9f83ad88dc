"""Tests for the retrying API client."""

from __future__ import annotations

import asyncio
import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest
from editorial.client.api import ApiClient, build_endpoint
from editorial.shared.errors import (
    NetworkError,
    NotFoundError,
    ParseError,
    RateLimitError,
    ServerError,
)

BASE = "http://api.test"


def _response(body: object, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status = status
    resp.read.return_value = body if isinstance(body, bytes) else json.dumps(body).encode()
    resp.__enter__ = lambda s: s
    resp.__exit__ = MagicMock(return_value=False)
    return resp


def _http_error(status: int, body: object) -> urllib.error.HTTPError:
    raw = body if isinstance(body, bytes) else json.dumps(body).encode()
    return urllib.error.HTTPError(f"{BASE}/x", status, "error", {}, io.BytesIO(raw))


class _Sleeps:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _client(token: str = "tok", **kwargs) -> tuple[ApiClient, _Sleeps]:
    sleeps = _Sleeps()
    return ApiClient(BASE, lambda: token, sleep=sleeps, **kwargs), sleeps


class TestBuildEndpoint:
    def test_skips_empty_params(self):
        assert build_endpoint("/list", type="news", demo=None) == "/list?type=news"
        assert build_endpoint("/cover") == "/cover"


class TestRequestFormat:
    def test_post_sends_json_and_token(self):
        client, _ = _client()
        with patch("urllib.request.urlopen", return_value=_response({"success": True})) as mock_urlopen:
            result = asyncio.run(client.request("/publish", "POST", {"type": "news"}))

        assert result == {"success": True}
        req = mock_urlopen.call_args[0][0]
        assert req.full_url == f"{BASE}/publish"
        assert req.method == "POST"
        assert req.get_header("Content-type") == "application/json"
        assert req.get_header("X-admin-token") == "tok"
        assert json.loads(req.data) == {"type": "news"}

    def test_token_read_per_request(self):
        tokens = iter(["first", "second"])
        client = ApiClient(BASE, lambda: next(tokens))
        with patch("urllib.request.urlopen", return_value=_response({"success": True})) as mock_urlopen:
            asyncio.run(client.request("/health"))
            asyncio.run(client.request("/health"))
        sent = [call[0][0].get_header("X-admin-token") for call in mock_urlopen.call_args_list]
        assert sent == ["first", "second"]


class TestRateLimiting:
    def test_always_429_gives_up_after_max_retries(self):
        client, sleeps = _client(max_retries=3, retry_delay=2.0)

        def always_429(*args, **kwargs):
            raise _http_error(429, {"error": "slow down"})

        with patch("urllib.request.urlopen", side_effect=always_429) as mock_urlopen:
            with pytest.raises(RateLimitError, match="Rate limit exceeded. Please try again later."):
                asyncio.run(client.request("/publish", "POST", {}))

        assert mock_urlopen.call_count == 4
        assert sleeps.calls == [2.0, 4.0, 8.0]

    def test_rate_limit_message_in_body(self):
        client, sleeps = _client(max_retries=2, retry_delay=0.5)
        responses = [
            _response({"success": False, "error": "Rate limit hit"}),
            _response({"success": True, "items": []}),
        ]
        with patch("urllib.request.urlopen", side_effect=responses) as mock_urlopen:
            result = asyncio.run(client.request("/list?type=news"))
        assert result["items"] == []
        assert mock_urlopen.call_count == 2
        assert sleeps.calls == [0.5]


class TestErrors:
    def test_404(self):
        client, _ = _client()
        with patch("urllib.request.urlopen", side_effect=_http_error(404, {"success": False, "error": "Not found"})):
            with pytest.raises(NotFoundError) as excinfo:
                asyncio.run(client.request("/item?type=news&id=x"))
        assert excinfo.value.status == 404

    def test_server_error_uses_body_message(self):
        client, _ = _client()
        with patch("urllib.request.urlopen", side_effect=_http_error(400, {"success": False, "error": "Missing type"})):
            with pytest.raises(ServerError, match="Missing type"):
                asyncio.run(client.request("/publish", "POST", {}))

    def test_server_error_default_message(self):
        client, _ = _client()
        with patch("urllib.request.urlopen", side_effect=_http_error(503, {})):
            with pytest.raises(ServerError, match="API error: 503"):
                asyncio.run(client.request("/health"))

    def test_success_false_on_200(self):
        client, _ = _client()
        with patch("urllib.request.urlopen", return_value=_response({"success": False, "error": "nope"})):
            with pytest.raises(ServerError, match="nope"):
                asyncio.run(client.request("/publish", "POST", {}))

    def test_non_json_body(self):
        client, _ = _client()
        with patch("urllib.request.urlopen", return_value=_response(b"<html>oops</html>")):
            with pytest.raises(ParseError):
                asyncio.run(client.request("/health"))

    def test_unreachable(self):
        client, _ = _client()
        with patch("urllib.request.urlopen", side_effect=urllib.error.URLError("refused")):
            with pytest.raises(NetworkError, match="refused"):
                asyncio.run(client.request("/health"))

    def test_failures_are_logged(self, caplog):
        client, _ = _client()
        with patch("urllib.request.urlopen", side_effect=_http_error(500, {"error": "db down"})):
            with pytest.raises(ServerError):
                asyncio.run(client.request("/health"))
        assert "API Error: db down" in caplog.text
