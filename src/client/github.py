"""GitHub commit publisher for backend-less (GitHub Pages) sites.

Reads and writes the same ``db.json`` / ``cover.json`` documents the
server keeps, but through the GitHub contents API, one commit per
operation.  Updates of an existing file always send the blob sha that
was read, so a concurrent edit makes the write fail with a conflict
instead of silently overwriting it.
"""

from __future__ import annotations

import base64
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from typing import Any, NamedTuple

from editorial.config import GitHubSectionConfig
from editorial.content.models import Cover, Item
from editorial.content.store import (
    Database,
    build_cover,
    delete_from,
    publish_into,
    update_in,
)
from editorial.shared.errors import (
    ConflictError,
    NetworkError,
    NotFoundError,
    ParseError,
    ServerError,
)
from editorial.shared.images import parse_data_url, unique_upload_name

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"

CommitHook = Callable[[list[Item] | None, Cover | None], None]


class GitHubSettings(GitHubSectionConfig):
    """Effective publishing settings: configured defaults overlaid with
    whatever the admin saved locally."""

    @classmethod
    def resolve(cls, defaults: GitHubSectionConfig, saved: dict[str, Any] | None = None) -> GitHubSettings:
        values = defaults.model_dump()
        values.update({k: v for k, v in (saved or {}).items() if k in values and v})
        repo = str(values.get("repo") or "")
        if "/" in repo:
            values["owner"], values["repo"] = repo.split("/", 1)
        return cls.model_validate(values)


class RemoteFile(NamedTuple):
    content: bytes | None
    sha: str | None


class GitHubContentsClient:
    """Minimal client for the GitHub repository contents API.

    Handles bearer authentication and base64 file bodies via urllib.
    """

    def __init__(self, settings: GitHubSettings, api_url: str = GITHUB_API) -> None:
        self.settings = settings
        self.api_url = api_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "editorial-cms",
            "Content-Type": "application/json",
        }

    def _contents_url(self, path: str) -> str:
        quoted = urllib.parse.quote(path.lstrip("/"))
        return f"{self.api_url}/repos/{self.settings.owner}/{self.settings.repo}/contents/{quoted}"

    def _request(self, method: str, url: str, data: dict | None = None) -> dict:
        """Make an authenticated request and decode the JSON reply."""
        body = json.dumps(data).encode("utf-8") if data is not None else None
        req = urllib.request.Request(url, data=body, method=method, headers=self._headers())
        try:
            with urllib.request.urlopen(req, timeout=30) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as exc:
            detail = _error_message(exc)
            if exc.code == 404:
                raise NotFoundError(detail or "Not found") from exc
            if exc.code in (409, 422):
                raise ConflictError(
                    f"Remote file changed since it was read ({exc.code}): {detail}"
                ) from exc
            raise ServerError(detail or f"GitHub API error: {exc.code}", exc.code) from exc
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            raise NetworkError(f"Could not reach GitHub: {getattr(exc, 'reason', exc)}") from exc
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ParseError("Invalid JSON response from GitHub") from exc

    def get_file(self, path: str) -> RemoteFile:
        """Fetch a file; a missing file yields ``RemoteFile(None, None)``."""
        ref = urllib.parse.urlencode({"ref": self.settings.branch})
        try:
            meta = self._request("GET", f"{self._contents_url(path)}?{ref}")
        except NotFoundError:
            return RemoteFile(None, None)
        encoded = meta.get("content") or ""
        return RemoteFile(base64.b64decode(encoded), meta.get("sha"))

    def put_file(self, path: str, content: bytes, message: str, sha: str | None = None) -> str:
        """Create or update a file in one commit and return the new blob sha.

        Raises:
            ConflictError: If *sha* no longer matches the file on the branch.
        """
        payload: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self.settings.branch,
        }
        if sha:
            payload["sha"] = sha
        result = self._request("PUT", self._contents_url(path), payload)
        return str((result.get("content") or {}).get("sha") or "")


def _error_message(exc: urllib.error.HTTPError) -> str:
    try:
        body = json.loads(exc.read().decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError, OSError):
        return ""
    return str(body.get("message") or "") if isinstance(body, dict) else ""


class GitHubPublisher:
    """Publishes items, the cover and images as commits to a repository.

    Args:
        settings: Repository coordinates and token.
        client: Contents API client (built from *settings* if omitted).
        on_commit: Called after every successful JSON commit with the new
            item list and/or cover, so read caches can update at once.
    """

    def __init__(
        self,
        settings: GitHubSettings,
        client: GitHubContentsClient | None = None,
        on_commit: CommitHook | None = None,
    ) -> None:
        self.settings = settings
        self.client = client or GitHubContentsClient(settings)
        self._on_commit = on_commit

    @property
    def is_configured(self) -> bool:
        return self.settings.is_configured

    def _read_database(self) -> tuple[Database, str | None]:
        remote = self.client.get_file(self.settings.db_path)
        if remote.content is None:
            return Database(), None
        try:
            raw = json.loads(remote.content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ParseError(f"{self.settings.db_path} in the repository is not valid JSON") from exc
        return Database.from_raw(raw, self.settings.db_path), remote.sha

    def _write_database(self, db: Database, sha: str | None, message: str) -> None:
        db.touch()
        content = json.dumps(db.to_json_dict(), indent=2, ensure_ascii=False).encode("utf-8")
        self.client.put_file(self.settings.db_path, content, message, sha)
        if self._on_commit:
            self._on_commit(list(db.items), None)

    def publish_item(self, payload: dict[str, Any]) -> Item:
        db, sha = self._read_database()
        item = publish_into(db.items, payload)
        self._write_database(db, sha, f"Publish {item.type} {item.id}")
        logger.info("Committed new %s %s to %s", item.type, item.id, self.settings.repo)
        return item

    def update_item(self, payload: dict[str, Any]) -> Item:
        db, sha = self._read_database()
        item = update_in(db.items, payload)
        self._write_database(db, sha, f"Update {item.type} {item.id}")
        logger.info("Committed update of %s %s", item.type, item.id)
        return item

    def delete_item(self, item_type: str, item_id: str) -> int:
        db, sha = self._read_database()
        before = len(db.items)
        db.items = delete_from(db.items, item_type, item_id)
        self._write_database(db, sha, f"Delete {item_type} {item_id}")
        return before - len(db.items)

    def delete_all_demo(self) -> int:
        db, sha = self._read_database()
        before = len(db.items)
        db.items = [item for item in db.items if not item.is_demo]
        deleted = before - len(db.items)
        if deleted:
            self._write_database(db, sha, f"Delete {deleted} demo item(s)")
        return deleted

    def update_cover(self, payload: dict[str, Any]) -> Cover:
        cover = build_cover(payload)
        current = self.client.get_file(self.settings.cover_path)
        content = json.dumps(cover.to_json_dict(), indent=2, ensure_ascii=False).encode("utf-8")
        self.client.put_file(
            self.settings.cover_path,
            content,
            f"Update cover to issue {cover.issue_number}",
            current.sha,
        )
        if self._on_commit:
            self._on_commit(None, cover)
        logger.info("Committed cover for issue %s", cover.issue_number)
        return cover

    def upload_image(self, filename: str, data_url: str) -> str:
        """Commit an image as a new file and return its repo-relative path."""
        decoded = parse_data_url(data_url)
        name = unique_upload_name(filename, decoded.mime_type)
        path = f"{self.settings.uploads_path.strip('/')}/{name}"
        self.client.put_file(path, decoded.data, f"Upload image {name}")
        logger.info("Committed image %s", path)
        return path
