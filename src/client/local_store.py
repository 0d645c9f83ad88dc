"""Local persistence for static (backend-less) mode.

``KeyValueStorage`` plays the role of browser localStorage: string values
under string keys, persisted as one file per key, with an optional byte
quota.  ``LocalStore`` keeps three independent records on top of it:
published items (newest first), the cover override and the set of
tombstoned ids.  A failed write is downgraded to a warning and the
in-memory view keeps the change for the rest of the session.
"""

from __future__ import annotations

import json
import logging
import re
import secrets
import string
import time
from pathlib import Path
from typing import Any

import pydantic

from editorial.content.models import Cover, Item, parse_item, utc_now
from editorial.shared.errors import QuotaError, ValidationError

logger = logging.getLogger(__name__)

ITEMS_KEY = "editorial_published_items"
COVER_KEY = "editorial_cover"
DELETED_KEY = "editorial_deleted_ids"
ADMIN_TOKEN_KEY = "admin_token"
GITHUB_SETTINGS_KEY = "editorial_github_settings"

BACKUP_KIND = "editorial_local_backup"
BACKUP_VERSION = 1

_SAFE_KEY_RE = re.compile(r"[^A-Za-z0-9_.-]")
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


class KeyValueStorage:
    """String key/value storage backed by a directory (or memory only).

    Args:
        directory: Where values are persisted; ``None`` keeps everything
            in memory.
        quota_bytes: Total size allowed across all values; writes that
            would exceed it raise :class:`QuotaError`.
    """

    def __init__(self, directory: Path | None = None, quota_bytes: int | None = None) -> None:
        self._dir = directory
        self._quota = quota_bytes
        self._memory: dict[str, str] = {}

    @staticmethod
    def _filename(key: str) -> str:
        return f"{_SAFE_KEY_RE.sub('_', key)}.json"

    def _used_bytes(self, excluding: str) -> int:
        if self._dir is None:
            return sum(len(v.encode("utf-8")) for k, v in self._memory.items() if k != excluding)
        if not self._dir.exists():
            return 0
        skip = self._dir / self._filename(excluding)
        return sum(p.stat().st_size for p in self._dir.glob("*.json") if p != skip)

    def get(self, key: str) -> str | None:
        if self._dir is None:
            return self._memory.get(key)
        path = self._dir / self._filename(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError:
            logger.warning("Could not read local key %s", key)
            return None

    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*.

        Raises:
            QuotaError: If the quota would be exceeded or the write fails.
        """
        size = len(value.encode("utf-8"))
        if self._quota is not None and self._used_bytes(key) + size > self._quota:
            raise QuotaError(f"Local storage quota exceeded writing {key}")
        if self._dir is None:
            self._memory[key] = value
            return
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            (self._dir / self._filename(key)).write_text(value, encoding="utf-8")
        except OSError as exc:
            raise QuotaError(f"Local storage write failed for {key}: {exc}") from exc

    def remove(self, key: str) -> None:
        if self._dir is None:
            self._memory.pop(key, None)
            return
        (self._dir / self._filename(key)).unlink(missing_ok=True)


def generate_local_id(item_type: str) -> str:
    """Build ``{type}_{timestamp_ms}_{random6}`` for items created offline."""
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(6))
    return f"{item_type}_{int(time.time() * 1000)}_{suffix}"


class LocalStore:
    """Published items, cover and tombstones kept on the admin's machine."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage
        self._items: list[Item] | None = None
        self._cover: Cover | None = None
        self._cover_loaded = False
        self._tombstones: set[str] | None = None

    # ── Private helpers ──────────────────────────────────────────

    def _read_json(self, key: str, fallback: Any) -> Any:
        raw = self._storage.get(key)
        if raw is None:
            return fallback
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Corrupt local value for %s, ignoring it", key)
            return fallback

    def _write_json(self, key: str, value: Any) -> bool:
        try:
            self._storage.set(key, json.dumps(value, ensure_ascii=False))
        except QuotaError as exc:
            logger.warning("%s; keeping the change in memory for this session", exc.message)
            return False
        return True

    # ── Settings ─────────────────────────────────────────────────

    @property
    def admin_token(self) -> str:
        return self._storage.get(ADMIN_TOKEN_KEY) or ""

    @admin_token.setter
    def admin_token(self, token: str) -> None:
        try:
            self._storage.set(ADMIN_TOKEN_KEY, token)
        except QuotaError as exc:
            logger.warning("%s; admin token not persisted", exc.message)
        else:
            logger.info("Admin token updated")

    def load_github_settings(self) -> dict[str, Any]:
        raw = self._read_json(GITHUB_SETTINGS_KEY, {})
        return raw if isinstance(raw, dict) else {}

    def save_github_settings(self, settings: dict[str, Any]) -> bool:
        return self._write_json(GITHUB_SETTINGS_KEY, settings)

    # ── Items ────────────────────────────────────────────────────

    def load_items(self) -> list[Item]:
        """Return locally published items, newest first by insertion."""
        if self._items is None:
            items: list[Item] = []
            raw = self._read_json(ITEMS_KEY, [])
            for entry in raw if isinstance(raw, list) else []:
                if not isinstance(entry, dict):
                    continue
                try:
                    items.append(parse_item(entry))
                except pydantic.ValidationError:
                    logger.warning("Dropping invalid local item %r", entry.get("id"))
            self._items = items
        return list(self._items)

    def save_items(self, items: list[Item]) -> bool:
        """Replace the local item list. Returns False if only kept in memory."""
        self._items = list(items)
        return self._write_json(ITEMS_KEY, [item.to_json_dict() for item in self._items])

    def upsert_item(self, payload: dict[str, Any] | Item) -> Item:
        """Insert or replace an item and move it to the front of the list.

        A missing id is generated; an existing id keeps its ``createdAt``.
        Any tombstone for the id is cleared, so re-publishing undoes a
        previous local delete.

        Raises:
            ValidationError: If *payload* is not a valid item.
        """
        if isinstance(payload, dict):
            try:
                item = parse_item(payload)
            except pydantic.ValidationError as exc:
                raise ValidationError(str(exc.errors()[0].get("msg", "invalid item"))) from exc
        else:
            item = payload.model_copy(deep=True)

        items = self.load_items()
        if not item.id:
            item.id = generate_local_id(item.type)
        previous = next((existing for existing in items if existing.id == item.id), None)
        now = utc_now()
        item.created_at = (previous.created_at if previous else None) or item.created_at or now
        item.updated_at = now
        item.published_at = item.published_at or (previous.published_at if previous else None) or now
        item.status = item.status or "published"

        remaining = [existing for existing in items if existing.id != item.id]
        self.save_items([item, *remaining])
        self.clear_deleted(item.id)
        return item

    def remove_item(self, item_id: str) -> bool:
        """Drop an item locally and tombstone its id. Returns True if it was stored."""
        items = self.load_items()
        remaining = [item for item in items if item.id != item_id]
        removed = len(remaining) != len(items)
        if removed:
            self.save_items(remaining)
        self.mark_deleted(item_id)
        return removed

    # ── Cover ────────────────────────────────────────────────────

    def load_cover(self) -> Cover | None:
        if not self._cover_loaded:
            raw = self._read_json(COVER_KEY, None)
            cover = None
            if isinstance(raw, dict):
                try:
                    cover = Cover.model_validate(raw)
                except pydantic.ValidationError:
                    logger.warning("Dropping invalid local cover")
            self._cover = cover
            self._cover_loaded = True
        return self._cover

    def save_cover(self, cover: Cover) -> bool:
        self._cover = cover
        self._cover_loaded = True
        return self._write_json(COVER_KEY, cover.to_json_dict())

    # ── Tombstones ───────────────────────────────────────────────

    def load_tombstones(self) -> set[str]:
        if self._tombstones is None:
            raw = self._read_json(DELETED_KEY, [])
            self._tombstones = {str(v) for v in raw} if isinstance(raw, list) else set()
        return set(self._tombstones)

    def save_tombstones(self, ids: set[str]) -> bool:
        self._tombstones = set(ids)
        return self._write_json(DELETED_KEY, sorted(self._tombstones))

    def mark_deleted(self, item_id: str) -> None:
        tombstones = self.load_tombstones()
        if item_id not in tombstones:
            tombstones.add(item_id)
            self.save_tombstones(tombstones)

    def clear_deleted(self, item_id: str) -> None:
        tombstones = self.load_tombstones()
        if item_id in tombstones:
            tombstones.discard(item_id)
            self.save_tombstones(tombstones)

    # ── Backup ───────────────────────────────────────────────────

    def export_backup(self) -> dict[str, Any]:
        """Return items, cover and tombstones as one portable document."""
        cover = self.load_cover()
        return {
            "kind": BACKUP_KIND,
            "version": BACKUP_VERSION,
            "exportedAt": utc_now().isoformat().replace("+00:00", "Z"),
            "data": {
                "items": [item.to_json_dict() for item in self.load_items()],
                "cover": cover.to_json_dict() if cover else None,
                "deleted": sorted(self.load_tombstones()),
            },
        }

    def import_backup(self, backup: Any) -> int:
        """Replace every local record with the contents of *backup*.

        A bare list of items is accepted too; it imports with no cover and
        no tombstones.  Invalid items are dropped with a warning.

        Returns:
            How many items were imported.

        Raises:
            ValidationError: If *backup* is neither a backup document nor a
                list of items.
        """
        if isinstance(backup, list):
            data: dict[str, Any] = {"items": backup}
        elif not isinstance(backup, dict):
            raise ValidationError("Invalid backup (JSON)")
        elif backup.get("kind") != BACKUP_KIND:
            raise ValidationError("Invalid backup (kind)")
        else:
            data = backup.get("data") if isinstance(backup.get("data"), dict) else {}

        items: list[Item] = []
        raw_items = data.get("items")
        for entry in raw_items if isinstance(raw_items, list) else []:
            try:
                items.append(parse_item(entry))
            except (pydantic.ValidationError, TypeError):
                logger.warning("Skipping invalid backup item %r", entry)

        cover = None
        if isinstance(data.get("cover"), dict):
            try:
                cover = Cover.model_validate(data["cover"])
            except pydantic.ValidationError:
                logger.warning("Skipping invalid backup cover")

        deleted = data.get("deleted")
        self.save_items(items)
        if cover is None:
            self._storage.remove(COVER_KEY)
            self._cover, self._cover_loaded = None, True
        else:
            self.save_cover(cover)
        self.save_tombstones({str(v) for v in deleted} if isinstance(deleted, list) else set())
        logger.info("Imported %d local item(s) from backup", len(items))
        return len(items)

    def clear(self) -> None:
        """Forget local items, cover and tombstones (settings are kept)."""
        for key in (ITEMS_KEY, COVER_KEY, DELETED_KEY):
            self._storage.remove(key)
        self._items = []
        self._cover, self._cover_loaded = None, True
        self._tombstones = set()
        logger.info("Local drafts cleared")
