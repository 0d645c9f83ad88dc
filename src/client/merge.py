"""Merged read view for static mode.

Combines the published read-only snapshot (``data/db.json`` and
``data/cover.json`` on the static site) with the admin's local items and
tombstones.  Local copies win over remote ones with the same id, and a
tombstoned id is hidden wherever it comes from.  The merged view is cached
briefly so a burst of reads during one page render costs one fetch.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import urllib.error
import urllib.request
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

import pydantic

from editorial.client.local_store import LocalStore
from editorial.content.models import (
    Cover,
    Item,
    ItemStatus,
    parse_item,
    sort_newest_first,
)

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 1.5
DEFAULT_LATEST_LIMIT = 6
SNAPSHOT_DB_PATH = "data/db.json"
SNAPSHOT_COVER_PATH = "data/cover.json"


@dataclass
class Snapshot:
    """Read-only remote content."""

    items: list[Item] = field(default_factory=list)
    cover: Cover | None = None


@dataclass
class MergedView:
    items: list[Item]
    cover: Cover | None
    remote_items: list[Item]
    remote_cover: Cover | None = None


def parse_items(raw: Any) -> list[Item]:
    """Validate a db document (or bare list) into items, skipping bad records."""
    entries = raw.get("items") if isinstance(raw, dict) else raw
    items: list[Item] = []
    for entry in entries if isinstance(entries, list) else []:
        if not isinstance(entry, dict):
            continue
        try:
            items.append(parse_item(entry))
        except pydantic.ValidationError:
            logger.warning("Skipping invalid snapshot item %r", entry.get("id"))
    return items


def parse_cover(raw: Any) -> Cover | None:
    if not isinstance(raw, dict):
        return None
    try:
        return Cover.model_validate(raw)
    except pydantic.ValidationError:
        logger.warning("Skipping invalid snapshot cover")
        return None


def merge_items(remote: Iterable[Item], local: Iterable[Item], tombstones: set[str]) -> list[Item]:
    """Local-then-remote, first occurrence of each id wins, tombstones removed."""
    seen: set[str] = set()
    merged: list[Item] = []
    for item in [*local, *remote]:
        if item.id in seen:
            continue
        seen.add(item.id)
        if item.id in tombstones:
            continue
        merged.append(item)
    return merged


class SnapshotFetcher:
    """Fetch the published snapshot from the static site.

    *site_base* may be an ``http(s)://`` origin or a ``file://`` directory.
    Any failure yields an empty snapshot.
    """

    def __init__(
        self,
        site_base: str,
        db_path: str = SNAPSHOT_DB_PATH,
        cover_path: str = SNAPSHOT_COVER_PATH,
        timeout: float = 10.0,
    ) -> None:
        self.site_base = (site_base or "").rstrip("/")
        self.db_path = db_path.lstrip("/")
        self.cover_path = cover_path.lstrip("/")
        self.timeout = timeout

    def _get_json(self, path: str) -> Any:
        url = f"{self.site_base}/{path}"
        req = urllib.request.Request(url, headers={"Cache-Control": "no-cache"})
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            if exc.code != 404:
                logger.warning("Snapshot fetch of %s failed: HTTP %s", url, exc.code)
        except (urllib.error.URLError, TimeoutError, OSError, ValueError) as exc:
            logger.warning("Snapshot fetch of %s failed: %s", url, exc)
        return None

    def fetch(self) -> Snapshot:
        if not self.site_base:
            return Snapshot()
        return Snapshot(
            items=parse_items(self._get_json(self.db_path)),
            cover=parse_cover(self._get_json(self.cover_path)),
        )


class MergeLayer:
    """Cached merge of the remote snapshot with local overrides.

    After a GitHub commit, :meth:`apply_local_write` pins the committed
    content as the remote side for the rest of the session, since the
    static site keeps serving the old files until its rebuild finishes.
    """

    def __init__(
        self,
        local_store: LocalStore,
        fetcher: SnapshotFetcher,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._local = local_store
        self._fetcher = fetcher
        self._ttl = ttl
        self._clock = clock
        self._cached: MergedView | None = None
        self._cached_at = 0.0
        self._committed_items: list[Item] | None = None
        self._committed_cover: Cover | None = None
        self._lock: asyncio.Lock | None = None

    def _is_fresh(self) -> bool:
        return self._cached is not None and self._clock() - self._cached_at < self._ttl

    def _build(self, snapshot: Snapshot) -> MergedView:
        remote_items = (
            self._committed_items if self._committed_items is not None else snapshot.items
        )
        remote_cover = self._committed_cover or snapshot.cover
        return MergedView(
            items=merge_items(remote_items, self._local.load_items(), self._local.load_tombstones()),
            cover=self._local.load_cover() or remote_cover,
            remote_items=list(remote_items),
            remote_cover=remote_cover,
        )

    async def get_merged_view(self) -> MergedView:
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            view = self._cached
            if view is None or not self._is_fresh():
                snapshot = await asyncio.to_thread(self._fetcher.fetch)
                view = self._build(snapshot)
                self._cached = view
                self._cached_at = self._clock()
            return view

    def invalidate(self) -> None:
        """Drop the cached view; the next read refetches and re-merges."""
        self._cached = None

    def apply_local_write(self, items: list[Item] | None = None, cover: Cover | None = None) -> None:
        """Use freshly committed remote content immediately.

        Rebuilds the cached view in place from the committed content so
        the admin sees the result without waiting for the site rebuild.
        """
        if items is not None:
            self._committed_items = list(items)
        if cover is not None:
            self._committed_cover = cover
        if self._cached is None and self._committed_items is None:
            # nothing fetched yet; the next read merges the committed cover
            return
        previous = self._cached
        remote = Snapshot(
            items=previous.remote_items if previous else [],
            cover=previous.remote_cover if previous else None,
        )
        self._cached = self._build(remote)
        self._cached_at = self._clock()

    # ── Derived reads ────────────────────────────────────────────

    async def list_by_type(self, item_type: str) -> list[Item]:
        view = await self.get_merged_view()
        return sort_newest_first([item for item in view.items if item.type == item_type])

    async def get_item(self, item_type: str, item_id: str) -> Item | None:
        view = await self.get_merged_view()
        for item in view.items:
            if item.type == item_type and item.id == str(item_id):
                return item
        return None

    async def latest(self, limit: int = DEFAULT_LATEST_LIMIT) -> list[Item]:
        view = await self.get_merged_view()
        published = [item for item in view.items if item.status == ItemStatus.PUBLISHED]
        return sort_newest_first(published)[: max(1, limit)]

    async def cover(self) -> Cover | None:
        return (await self.get_merged_view()).cover
