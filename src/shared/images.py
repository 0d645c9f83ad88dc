"""Uploaded-image helpers: data URL decoding and upload file naming.

Both the file-backed server and the GitHub publisher store uploads under
``{timestamp_ms}_{random_hex}_{sanitized_name}.{ext}`` so that names never
collide and never carry path components from the client.
"""

from __future__ import annotations

import base64
import binascii
import re
import secrets
import time
from pathlib import PurePath
from typing import NamedTuple

from editorial.shared.errors import ValidationError

_DATA_URL_RE = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)
_UNSAFE_CHARS_RE = re.compile(r"[^a-z0-9_-]+", re.IGNORECASE)

MIME_EXTENSIONS: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

MAX_BASENAME_LENGTH = 50


class DecodedImage(NamedTuple):
    mime_type: str
    data: bytes


def parse_data_url(data_url: str) -> DecodedImage:
    """Decode a ``data:<mime>;base64,<payload>`` string.

    Raises:
        ValidationError: If the string is not a base64 data URL.
    """
    match = _DATA_URL_RE.match(str(data_url or ""))
    if not match:
        raise ValidationError("Invalid image data (expected DataURL base64)")
    try:
        data = base64.b64decode(match.group(2), validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError(f"Invalid base64 image payload: {exc}") from exc
    return DecodedImage(mime_type=match.group(1).lower(), data=data)


def extension_for_mime(mime_type: str | None) -> str:
    """Map an image MIME type to a file extension; unknown types get ``bin``."""
    return MIME_EXTENSIONS.get(str(mime_type or "").lower(), "bin")


def safe_basename(filename: str | None) -> str:
    """Strip directories and extension, then replace unsafe characters."""
    stem = PurePath(str(filename or "").replace("\\", "/")).stem
    cleaned = _UNSAFE_CHARS_RE.sub("_", stem)[:MAX_BASENAME_LENGTH]
    return cleaned or "image"


def unique_upload_name(filename: str | None, mime_type: str | None) -> str:
    """Build a collision-resistant upload filename."""
    timestamp = int(time.time() * 1000)
    suffix = secrets.token_hex(4)
    return f"{timestamp}_{suffix}_{safe_basename(filename)}.{extension_for_mime(mime_type)}"
