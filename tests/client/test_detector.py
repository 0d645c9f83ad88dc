"""Tests for backend detection."""

import asyncio
import urllib.error
from unittest.mock import MagicMock, patch

from editorial.client.detector import BackendDetector


def _ok() -> MagicMock:
    resp = MagicMock()
    resp.status = 200
    resp.__enter__ = lambda s: s
    resp.__exit__ = MagicMock(return_value=False)
    return resp


def test_file_origin_never_probes():
    detector = BackendDetector("file:///srv/site")
    with patch("urllib.request.urlopen") as mock_urlopen:
        assert asyncio.run(detector.has_backend()) is False
    mock_urlopen.assert_not_called()


def test_empty_origin_is_static():
    assert asyncio.run(BackendDetector("").has_backend()) is False


def test_healthy_backend_memoised():
    detector = BackendDetector("http://localhost:3000", timeout=1.2)
    with patch("urllib.request.urlopen", return_value=_ok()) as mock_urlopen:
        assert asyncio.run(detector.has_backend()) is True
        assert asyncio.run(detector.has_backend()) is True
    assert mock_urlopen.call_count == 1
    req = mock_urlopen.call_args[0][0]
    assert req.full_url == "http://localhost:3000/health"
    assert mock_urlopen.call_args[1]["timeout"] == 1.2


def test_failure_means_no_backend_and_reset_reprobes():
    detector = BackendDetector("http://localhost:3000")
    with patch("urllib.request.urlopen", side_effect=urllib.error.URLError("refused")):
        assert asyncio.run(detector.has_backend()) is False
    detector.reset()
    with patch("urllib.request.urlopen", return_value=_ok()):
        assert asyncio.run(detector.has_backend()) is True
