"""Tests for data URL decoding and upload filenames."""

import base64
import re

import pytest
from editorial.shared.images import (
    extension_for_mime,
    parse_data_url,
    safe_basename,
    unique_upload_name,
)
from editorial.shared.errors import ValidationError


class TestParseDataUrl:
    def test_decodes_payload(self):
        encoded = base64.b64encode(b"hello").decode()
        decoded = parse_data_url(f"data:image/JPEG;base64,{encoded}")
        assert decoded.mime_type == "image/jpeg"
        assert decoded.data == b"hello"

    @pytest.mark.parametrize("value", ["", "hello", "data:image/png,plain", None])
    def test_rejects_non_data_urls(self, value):
        with pytest.raises(ValidationError, match="expected DataURL base64"):
            parse_data_url(value)


class TestFilenames:
    @pytest.mark.parametrize(
        ("mime", "ext"),
        [
            ("image/jpeg", "jpg"),
            ("image/png", "png"),
            ("image/webp", "webp"),
            ("image/gif", "gif"),
            ("image/tiff", "bin"),
            (None, "bin"),
        ],
    )
    def test_extension_for_mime(self, mime, ext):
        assert extension_for_mime(mime) == ext

    def test_safe_basename(self):
        assert safe_basename("C:\\photos\\Été 2024.jpeg") == "_t_2024"
        assert safe_basename("") == "image"
        assert len(safe_basename("x" * 200 + ".png")) == 50

    def test_unique_upload_name(self):
        name = unique_upload_name("cover art.png", "image/png")
        assert re.fullmatch(r"\d+_[0-9a-f]{8}_cover_art\.png", name)
        assert unique_upload_name("a.png", "image/png") != unique_upload_name("a.png", "image/png")
