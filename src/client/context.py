"""Client composition root and dual-mode content operations.

``ClientContext`` owns one of each client component (request queue, API
client, backend detector, local store, merge layer, GitHub publisher and
the admin log) and exposes the operations the admin works with.  Each
operation picks its target at call time:

* a reachable backend gets the HTTP API,
* otherwise a configured GitHub repository gets a commit,
* otherwise the change stays in the local store.

Payloads are validated before anything is queued, so an invalid form
never causes network traffic.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from pathlib import Path
from typing import Any, TypeVar

from editorial.client.admin_log import AdminLog, log_success
from editorial.client.api import ApiClient, build_endpoint
from editorial.client.detector import BackendDetector
from editorial.client.github import GitHubContentsClient, GitHubPublisher, GitHubSettings
from editorial.client.local_store import KeyValueStorage, LocalStore, generate_local_id
from editorial.client.merge import MergeLayer, SnapshotFetcher, parse_cover, parse_items
from editorial.client.queue import RequestQueue
from editorial.config import EditorialConfig
from editorial.content.models import Cover, Item, ItemType, parse_item, sort_newest_first, utc_now
from editorial.content.store import LATEST_DEFAULT, LATEST_MAX
from editorial.content.validation import validate_cover_payload, validate_item_payload
from editorial.shared.errors import EditorialError, NotFoundError, ParseError, ValidationError
from editorial.shared.images import parse_data_url

logger = logging.getLogger(__name__)

CLIENT_LOGGER = "editorial.client"

T = TypeVar("T")

_STATS_KEYS = {
    ItemType.CRITIC: "critics",
    ItemType.NEWS: "news",
    ItemType.INTERVIEW: "interviews",
    ItemType.CHART: "charts",
}


class Mode(StrEnum):
    SERVER = "server"
    GITHUB = "github"
    LOCAL = "local"


def count_by_section(items: list[Item], demo_only: bool = False) -> dict[str, int]:
    counts = dict.fromkeys(_STATS_KEYS.values(), 0)
    for item in items:
        if demo_only and not item.is_demo:
            continue
        counts[_STATS_KEYS[ItemType(item.type)]] += 1
    return counts


class ClientContext:
    """Everything a client session needs, wired from one config.

    Args:
        config: Loaded configuration; defaults apply when omitted.
        storage: Key/value storage for the local store.  Defaults to a
            directory at ``client.storage_dir``.
        github_client: Contents API client override (tests).
        sleep: Awaitable sleep used for rate-limit backoff.
    """

    def __init__(
        self,
        config: EditorialConfig | None = None,
        *,
        storage: KeyValueStorage | None = None,
        github_client: GitHubContentsClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or EditorialConfig()
        settings = self.config.client
        if storage is None:
            storage = KeyValueStorage(Path(settings.storage_dir).expanduser())

        self.local = LocalStore(storage)
        self.queue = RequestQueue(settings.rate_limit_delay_ms / 1000)
        self.api = ApiClient(
            settings.api_base,
            lambda: self.local.admin_token,
            retry_delay=settings.retry_delay_ms / 1000,
            max_retries=settings.max_retries,
            sleep=sleep,
        )
        self.detector = BackendDetector(settings.api_base, settings.health_timeout_s)
        self.merge = MergeLayer(
            self.local,
            SnapshotFetcher(
                settings.site_base or settings.api_base,
                self.config.github.db_path,
                self.config.github.cover_path,
            ),
            ttl=settings.cache_ttl_s,
        )
        self._github_client = github_client
        self.github = self._build_publisher()

        self.admin_log = AdminLog()
        client_logger = logging.getLogger(CLIENT_LOGGER)
        if client_logger.getEffectiveLevel() > logging.INFO:
            client_logger.setLevel(logging.INFO)
        client_logger.addHandler(self.admin_log)

    def close(self) -> None:
        """Detach the admin log from the logging tree."""
        logging.getLogger(CLIENT_LOGGER).removeHandler(self.admin_log)

    def _build_publisher(self) -> GitHubPublisher:
        settings = GitHubSettings.resolve(self.config.github, self.local.load_github_settings())
        client = self._github_client
        if client is not None:
            client.settings = settings
        return GitHubPublisher(settings, client=client, on_commit=self.merge.apply_local_write)

    # ── Settings ─────────────────────────────────────────────────

    def set_admin_token(self, token: str) -> None:
        self.local.admin_token = token.strip()

    def configure_github(self, **values: str) -> GitHubSettings:
        """Save GitHub settings locally and rebuild the publisher."""
        saved = self.local.load_github_settings()
        saved.update({k: v.strip() for k, v in values.items() if v is not None})
        self.local.save_github_settings(saved)
        self.github = self._build_publisher()
        return self.github.settings

    async def mode(self) -> Mode:
        if await self.detector.has_backend():
            return Mode.SERVER
        if self.github.is_configured:
            return Mode.GITHUB
        return Mode.LOCAL

    # ── Plumbing ─────────────────────────────────────────────────

    async def _run(self, action: str, operation: Callable[[], Awaitable[T] | T]) -> T:
        try:
            return await self.queue.enqueue(operation)
        except EditorialError as exc:
            logger.error("%s failed: %s", action, exc.message)
            raise

    def _validated(self, action: str, check: Callable[[Any], T], payload: Any) -> T:
        try:
            return check(payload)
        except ValidationError as exc:
            logger.error("%s failed: %s", action, exc.message)
            raise

    async def _api(self, endpoint: str, method: str = "GET", body: dict | None = None) -> dict[str, Any]:
        return await self.api.request(endpoint, method, body)

    # ── Writes ───────────────────────────────────────────────────

    async def publish_item(self, payload: dict[str, Any]) -> Item:
        """Publish a new item and return it as stored."""
        item = self._validated("Publish", validate_item_payload, payload)
        mode = await self.mode()
        body = item.to_json_dict()

        async def operation() -> Item:
            if mode is Mode.SERVER:
                return parse_item((await self._api("/publish", "POST", body))["item"])
            if mode is Mode.GITHUB:
                return await asyncio.to_thread(self.github.publish_item, body)
            view = await self.merge.get_merged_view()
            if item.id and any(existing.id == item.id for existing in [*view.items, *view.remote_items]):
                logger.warning("Id %s is already taken; publishing under a new id", item.id)
                item.id = generate_local_id(item.type)
            stored = self.local.upsert_item(item)
            self.merge.invalidate()
            return stored

        stored = await self._run("Publish", operation)
        log_success(logger, "Published %s %s (%s mode)", stored.type, stored.id, mode)
        return stored

    async def update_item(self, payload: dict[str, Any]) -> Item:
        """Overwrite an existing item, keeping its id, type and createdAt."""
        item = self._validated("Update", validate_item_payload, payload)
        if not item.id:
            logger.error("Update failed: Missing id")
            raise ValidationError("Missing id")
        mode = await self.mode()
        body = item.to_json_dict()

        async def operation() -> Item:
            if mode is Mode.SERVER:
                return parse_item((await self._api("/update", "POST", body))["item"])
            if mode is Mode.GITHUB:
                try:
                    updated = await asyncio.to_thread(self.github.update_item, body)
                except NotFoundError:
                    # only visible locally, e.g. a draft written before GitHub was set up
                    if await self.merge.get_item(item.type, item.id) is None:
                        raise
                    updated = self.local.upsert_item(item)
                else:
                    if any(local.id == updated.id for local in self.local.load_items()):
                        self.local.upsert_item(updated)
                self.merge.invalidate()
                return updated
            existing = await self.merge.get_item(item.type, item.id)
            if existing is None:
                raise NotFoundError()
            item.created_at = item.created_at or existing.created_at
            stored = self.local.upsert_item(item)
            self.merge.invalidate()
            return stored

        stored = await self._run("Update", operation)
        log_success(logger, "Updated %s %s", stored.type, stored.id)
        return stored

    async def delete_item(self, item_type: str, item_id: str) -> int:
        """Delete an item; in local mode it is removed and tombstoned."""
        item_type, item_id = str(item_type or "").strip(), str(item_id or "").strip()
        if not item_type or not item_id:
            logger.error("Delete failed: Missing type or id")
            raise ValidationError("Missing type or id")
        mode = await self.mode()

        async def operation() -> int:
            if mode is Mode.SERVER:
                body = {"type": item_type, "id": item_id}
                return int((await self._api("/delete", "POST", body)).get("deleted") or 0)
            if mode is Mode.GITHUB:
                try:
                    deleted = await asyncio.to_thread(self.github.delete_item, item_type, item_id)
                except NotFoundError:
                    if await self.merge.get_item(item_type, item_id) is None:
                        raise
                    deleted = 1
                self.local.remove_item(item_id)
                self.merge.invalidate()
                return deleted
            if await self.merge.get_item(item_type, item_id) is None:
                raise NotFoundError()
            self.local.remove_item(item_id)
            self.merge.invalidate()
            return 1

        deleted = await self._run("Delete", operation)
        log_success(logger, "Deleted %s %s", item_type, item_id)
        return deleted

    async def update_cover(self, payload: dict[str, Any]) -> Cover:
        """Replace the cover entirely."""
        cover = self._validated("Cover update", validate_cover_payload, payload)
        mode = await self.mode()
        body = cover.to_json_dict()

        async def operation() -> Cover:
            if mode is Mode.SERVER:
                saved = parse_cover((await self._api("/updateCover", "POST", body)).get("cover"))
                if saved is None:
                    raise ParseError("Server returned no cover")
                return saved
            if mode is Mode.GITHUB:
                return await asyncio.to_thread(self.github.update_cover, body)
            cover.updated_at = utc_now()
            self.local.save_cover(cover)
            self.merge.invalidate()
            return cover

        saved = await self._run("Cover update", operation)
        log_success(logger, "Cover updated to issue %s", saved.issue_number)
        return saved

    async def upload_image(self, filename: str, data_url: str, mime_type: str | None = None) -> str:
        """Upload an image and return the URL (or path) to reference it by.

        Without a backend or GitHub repository the data URL itself is
        returned, so the image lives inside the locally stored item.
        """
        decoded = self._validated("Image upload", parse_data_url, data_url)
        mode = await self.mode()

        async def operation() -> str:
            if mode is Mode.SERVER:
                body = {"filename": filename, "data": data_url, "mimeType": mime_type or decoded.mime_type}
                return str((await self._api("/uploadImage", "POST", body)).get("url") or "")
            if mode is Mode.GITHUB:
                return await asyncio.to_thread(self.github.upload_image, filename, data_url)
            logger.warning("Keeping %s inline as a data URL; it is only stored locally", filename)
            return data_url

        url = await self._run("Image upload", operation)
        log_success(logger, "Image uploaded: %s", filename)
        return url

    async def delete_demo(self) -> int:
        """Remove every demo item and return how many were removed."""
        mode = await self.mode()

        async def operation() -> int:
            if mode is Mode.SERVER:
                return int((await self._api("/deleteDemo", "POST", {})).get("deleted") or 0)
            deleted = 0
            if mode is Mode.GITHUB:
                deleted = await asyncio.to_thread(self.github.delete_all_demo)
            view = await self.merge.get_merged_view()
            demo_ids = [item.id for item in view.items if item.is_demo]
            for item_id in demo_ids:
                self.local.remove_item(item_id)
            self.merge.invalidate()
            return deleted + len(demo_ids)

        deleted = await self._run("Demo cleanup", operation)
        log_success(logger, "Removed %d demo item(s)", deleted)
        return deleted

    # ── Local drafts ─────────────────────────────────────────────

    def export_backup(self) -> dict[str, Any]:
        """Return the local drafts, cover and tombstones as a backup document."""
        return self.local.export_backup()

    def import_backup(self, backup: Any) -> int:
        """Replace the local drafts with *backup*; returns the item count."""
        try:
            count = self.local.import_backup(backup)
        except ValidationError as exc:
            logger.error("Backup import failed: %s", exc.message)
            raise
        self.merge.invalidate()
        log_success(logger, "Imported %d local item(s)", count)
        return count

    def clear_local(self) -> None:
        """Drop local drafts; remote content becomes visible again."""
        self.local.clear()
        self.merge.invalidate()
        log_success(logger, "Local drafts cleared")

    # ── Reads ────────────────────────────────────────────────────

    async def list_items(self, item_type: str) -> list[Item]:
        if await self.mode() is Mode.SERVER:
            payload = await self._run("List", lambda: self._api(build_endpoint("/list", type=item_type)))
            return parse_items(payload)
        return await self.merge.list_by_type(item_type)

    async def all_items(self) -> list[Item]:
        """Every item across the four sections, newest first."""
        if await self.mode() is Mode.SERVER:
            items: list[Item] = []
            for item_type in ItemType:
                items.extend(await self.list_items(item_type.value))
            return sort_newest_first(items)
        view = await self.merge.get_merged_view()
        return sort_newest_first(view.items)

    async def get_item(self, item_type: str, item_id: str) -> Item:
        """Fetch one item.

        Raises:
            NotFoundError: If no item has that type and id.
        """
        if await self.mode() is Mode.SERVER:
            endpoint = build_endpoint("/item", type=item_type, id=item_id)
            payload = await self._run("Load item", lambda: self._api(endpoint))
            return parse_item(payload["item"])
        item = await self.merge.get_item(item_type, item_id)
        if item is None:
            raise NotFoundError()
        return item

    async def latest(self, limit: int = LATEST_DEFAULT) -> list[Item]:
        limit = max(1, min(LATEST_MAX, int(limit)))
        if await self.mode() is Mode.SERVER:
            payload = await self._run("Latest", lambda: self._api(build_endpoint("/latest", limit=limit)))
            return parse_items(payload)
        return await self.merge.latest(limit)

    async def cover(self) -> Cover | None:
        if await self.mode() is Mode.SERVER:
            payload = await self._run("Load cover", lambda: self._api("/cover"))
            return parse_cover(payload.get("cover"))
        return await self.merge.cover()

    async def stats(self, demo_only: bool = False) -> dict[str, int]:
        """Count items per section (``critics``, ``news``, ``interviews``, ``charts``)."""
        if await self.mode() is Mode.SERVER:
            endpoint = build_endpoint("/stats", demo="true" if demo_only else None)
            payload = await self._run("Stats", lambda: self._api(endpoint))
            return {key: int(value) for key, value in (payload.get("stats") or {}).items()}
        view = await self.merge.get_merged_view()
        return count_by_section(view.items, demo_only)
