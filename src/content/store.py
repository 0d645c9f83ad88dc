"""JSON-file backed item, cover and upload stores.

The item database is one JSON document (``db.json``) holding a version
tag and the full item list.  Every mutation loads the document, changes
the in-memory list and writes the whole document back atomically (temp
file + ``os.replace``) while holding a per-file lock, so concurrent
admin sessions cannot interleave their read-modify-write cycles.
"""

from __future__ import annotations

import json
import logging
import os
import secrets
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

import pydantic

from editorial.content.models import (
    CamelModel,
    Cover,
    Item,
    ItemStatus,
    ItemType,
    parse_item,
    sort_newest_first,
    utc_now,
)
from editorial.content.seed import load_seed_items
from editorial.shared.errors import NotFoundError, ValidationError
from editorial.shared.images import parse_data_url, unique_upload_name

logger = logging.getLogger(__name__)

DB_FILENAME = "db.json"
COVER_FILENAME = "cover.json"
DB_VERSION = 1

LATEST_DEFAULT = 6
LATEST_MAX = 12

# Alias to avoid shadowing by ItemStore.list method
_list = list

_locks: dict[Path, threading.RLock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    key = path.resolve()
    with _locks_guard:
        if key not in _locks:
            _locks[key] = threading.RLock()
        return _locks[key]


def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON to *path* so readers never observe a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, ensure_ascii=False)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def read_json(path: Path, fallback: Any) -> Any:
    """Read JSON from *path*, returning *fallback* if missing or corrupt."""
    if not path.exists():
        return fallback
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        logger.warning("Corrupt JSON file at %s, ignoring it", path)
        return fallback


def _parse_payload(payload: dict[str, Any]) -> Item:
    try:
        return parse_item(payload)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        message = str(first.get("msg", "invalid payload")).removeprefix("Value error, ")
        raise ValidationError(message) from exc


def _require_type(payload: dict[str, Any]) -> ItemType:
    raw = str(payload.get("type") or "").strip()
    if not raw:
        raise ValidationError("Missing type")
    try:
        return ItemType(raw)
    except ValueError as exc:
        raise ValidationError(f"Unsupported type: {raw}") from exc


def _new_id(item_type: str, existing: set[str]) -> str:
    while True:
        candidate = f"{item_type}_{secrets.token_hex(8)}"
        if candidate not in existing:
            return candidate


def _find_index(items: list[Item], item_type: str, item_id: str) -> int:
    for index, item in enumerate(items):
        if item.type == item_type and item.id == item_id:
            return index
    return -1


def publish_into(items: list[Item], payload: dict[str, Any]) -> Item:
    """Validate *payload* as a new item and append it to *items*.

    Keeps a caller-supplied id only when unused; otherwise assigns
    ``{type}_{16 hex}`` unique against every id in *items*.
    """
    item_type = _require_type(payload)
    item = _parse_payload({**payload, "type": item_type.value})
    existing = {stored.id for stored in items if stored.id}
    if not item.id or item.id in existing:
        if item.id:
            logger.info("Requested id %s already in use, assigning a new one", item.id)
        item.id = _new_id(item_type.value, existing)
    now = utc_now()
    item.status = item.status or ItemStatus.PUBLISHED.value
    item.published_at = item.published_at or now
    item.created_at = now
    item.updated_at = now
    items.append(item)
    return item


def update_in(items: list[Item], payload: dict[str, Any]) -> Item:
    """Replace the item matching the payload's ``(type, id)`` in *items*.

    Everything but id, type and createdAt is overwritten; publishedAt and
    status fall back to the stored values when the payload omits them.
    *items* is untouched when validation fails or nothing matches.
    """
    item_type = _require_type(payload)
    item_id = str(payload.get("id") or payload.get("__backendId") or "").strip()
    if not item_id:
        raise ValidationError("Missing id")
    replacement = _parse_payload({**payload, "type": item_type.value, "id": item_id})
    index = _find_index(items, item_type.value, item_id)
    if index == -1:
        raise NotFoundError()
    existing = items[index]
    now = utc_now()
    replacement.status = str(payload.get("status") or existing.status or ItemStatus.PUBLISHED.value)
    replacement.published_at = replacement.published_at or existing.published_at or now
    replacement.created_at = existing.created_at or now
    replacement.updated_at = now
    items[index] = replacement
    return replacement


def delete_from(items: list[Item], item_type: str, item_id: str) -> list[Item]:
    """Return *items* without any ``(item_type, item_id)`` match.

    Raises:
        ValidationError: If type or id is blank, or the type is unknown.
        NotFoundError: If nothing matched.
    """
    if not item_type or not item_id:
        raise ValidationError("Missing type or id")
    _require_type({"type": item_type})
    remaining = [
        item for item in items if not (item.type == item_type and item.id == str(item_id))
    ]
    if len(remaining) == len(items):
        raise NotFoundError()
    return remaining


def build_cover(payload: dict[str, Any]) -> Cover:
    """Build a complete replacement cover stamped with the current time.

    Raises:
        ValidationError: If issue number, issue date or description is blank.
    """
    cover = Cover(
        issue_number=payload.get("issueNumber"),
        issue_date=payload.get("issueDate"),
        description=payload.get("description"),
        cover_image_url=payload.get("coverImageUrl"),
        updated_at=utc_now(),
    )
    if not (cover.issue_number and cover.issue_date and cover.description):
        raise ValidationError("Missing cover fields")
    return cover


class Database(CamelModel):
    """In-memory form of the ``db.json`` document."""

    version: int = DB_VERSION
    created_at: datetime | None = None
    updated_at: datetime | None = None
    items: _list[Item] = pydantic.Field(default_factory=_list)

    @classmethod
    def from_raw(cls, raw: Any, source: object = "database") -> Database:
        """Build from decoded JSON, skipping items that fail validation."""
        if not isinstance(raw, dict):
            raw = {}
        items: _list[Item] = []
        for entry in raw.get("items") or []:
            if not isinstance(entry, dict):
                continue
            try:
                items.append(parse_item(entry))
            except pydantic.ValidationError:
                logger.warning("Skipping invalid item %r in %s", entry.get("id"), source)
        return cls(
            version=raw.get("version") or DB_VERSION,
            created_at=raw.get("createdAt"),
            updated_at=raw.get("updatedAt"),
            items=items,
        )

    def touch(self) -> None:
        now = utc_now()
        self.created_at = self.created_at or now
        self.updated_at = now


class ItemStore:
    """Authoritative item database in ``<data_dir>/db.json``.

    On first use, if no database exists yet, it is seeded once from the
    legacy per-section seed files in the same directory.
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._path = data_dir / DB_FILENAME
        self._lock = _lock_for(self._path)

    @property
    def path(self) -> Path:
        return self._path

    # ── Private helpers ──────────────────────────────────────────

    def _bootstrap(self) -> None:
        if self._path.exists():
            return
        existing: set[str] = set()
        db = Database()
        for raw in load_seed_items(self._data_dir):
            try:
                item = parse_item(raw)
            except pydantic.ValidationError:
                logger.warning("Skipping invalid seed record %r", raw.get("id"))
                continue
            if not item.id or item.id in existing:
                item.id = _new_id(item.type, existing)
            existing.add(item.id)
            db.items.append(item)
        self._save(db)
        logger.info("Initialised %s with %d seed item(s)", self._path, len(db.items))

    def _load(self) -> Database:
        self._bootstrap()
        return Database.from_raw(read_json(self._path, {}), self._path)

    def _save(self, db: Database) -> None:
        db.touch()
        write_json_atomic(self._path, db.to_json_dict())

    # ── Read operations ──────────────────────────────────────────

    def all(self) -> _list[Item]:
        """Return every stored item in insertion order."""
        with self._lock:
            return self._load().items

    def list(self, item_type: str) -> _list[Item]:
        """Return items of one type, newest first."""
        return sort_newest_first([item for item in self.all() if item.type == item_type])

    def get(self, item_type: str, item_id: str) -> Item:
        """Return a single item.

        Raises:
            NotFoundError: If no item matches ``(item_type, item_id)``.
        """
        with self._lock:
            db = self._load()
        index = _find_index(db.items, item_type, str(item_id))
        if index == -1:
            raise NotFoundError()
        return db.items[index]

    def latest(self, limit: int | None = None) -> _list[Item]:
        """Return the newest published items across all types.

        *limit* is clamped to 1..12 and defaults to 6.
        """
        limit = LATEST_DEFAULT if limit is None else max(1, min(LATEST_MAX, int(limit)))
        published = [item for item in self.all() if item.status == ItemStatus.PUBLISHED]
        return sort_newest_first(published)[:limit]

    def stats(self, demo_only: bool = False) -> dict[str, int]:
        """Count items per section, optionally only demo items."""
        items = self.all()
        if demo_only:
            items = [item for item in items if item.is_demo]
        return {
            "critics": sum(1 for item in items if item.type == ItemType.CRITIC),
            "news": sum(1 for item in items if item.type == ItemType.NEWS),
            "interviews": sum(1 for item in items if item.type == ItemType.INTERVIEW),
            "charts": sum(1 for item in items if item.type == ItemType.CHART),
        }

    # ── Write operations ─────────────────────────────────────────

    def publish(self, payload: dict[str, Any]) -> Item:
        """Create a new item.

        A caller-supplied id is kept only when no stored item uses it;
        otherwise a fresh ``{type}_{hex}`` id is assigned, so publishing
        never overwrites an existing item.

        Raises:
            ValidationError: On a missing or unsupported type or invalid field.
        """
        with self._lock:
            db = self._load()
            item = publish_into(db.items, payload)
            self._save(db)
        logger.info("Published %s %s", item.type, item.id)
        return item

    def update(self, payload: dict[str, Any]) -> Item:
        """Replace an existing item, keeping its id, type and createdAt.

        Raises:
            ValidationError: If type or id is missing.
            NotFoundError: If ``(type, id)`` matches nothing; the store is
                left untouched.
        """
        with self._lock:
            db = self._load()
            item = update_in(db.items, payload)
            self._save(db)
        logger.info("Updated %s %s", item.type, item.id)
        return item

    def delete(self, item_type: str, item_id: str) -> int:
        """Remove every item matching ``(item_type, item_id)``.

        Raises:
            NotFoundError: If nothing was removed.
        """
        with self._lock:
            db = self._load()
            before = len(db.items)
            db.items = delete_from(db.items, item_type, item_id)
            deleted = before - len(db.items)
            self._save(db)
        logger.info("Deleted %s %s", item_type, item_id)
        return deleted

    def delete_all_demo(self) -> int:
        """Remove every item flagged ``isDemo`` and return how many went."""
        with self._lock:
            db = self._load()
            before = len(db.items)
            db.items = [item for item in db.items if not item.is_demo]
            deleted = before - len(db.items)
            self._save(db)
        logger.info("Deleted %d demo item(s)", deleted)
        return deleted


class CoverStore:
    """The singleton cover record in ``<data_dir>/cover.json``."""

    def __init__(self, data_dir: Path) -> None:
        self._path = data_dir / COVER_FILENAME
        self._lock = _lock_for(self._path)

    def get_cover(self) -> Cover | None:
        raw = read_json(self._path, None)
        if not isinstance(raw, dict):
            return None
        try:
            return Cover.model_validate(raw)
        except pydantic.ValidationError:
            logger.warning("Invalid cover at %s, ignoring it", self._path)
            return None

    def set_cover(self, payload: dict[str, Any]) -> Cover:
        """Overwrite the cover entirely; nothing of the previous one is kept.

        Raises:
            ValidationError: If issue number, issue date or description is blank.
        """
        cover = build_cover(payload)
        with self._lock:
            write_json_atomic(self._path, cover.to_json_dict())
        logger.info("Cover updated to issue %s", cover.issue_number)
        return cover


class UploadStore:
    """Writes uploaded images under a fixed directory."""

    def __init__(self, uploads_dir: Path, url_prefix: str = "/assets/uploads") -> None:
        self._dir = uploads_dir
        self._url_prefix = url_prefix.rstrip("/")

    @property
    def directory(self) -> Path:
        return self._dir

    def upload_image(self, filename: str, data_url: str, mime_type: str | None = None) -> str:
        """Store a base64 data URL and return the URL it will be served from.

        Raises:
            ValidationError: If *data_url* is not a base64 data URL.
        """
        decoded = parse_data_url(data_url)
        name = unique_upload_name(filename, (mime_type or decoded.mime_type).lower())
        self._dir.mkdir(parents=True, exist_ok=True)
        (self._dir / name).write_bytes(decoded.data)
        logger.info("Stored upload %s (%d bytes)", name, len(decoded.data))
        return f"{self._url_prefix}/{name}"
