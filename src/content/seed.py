"""Mapping of legacy per-section seed files into the item database.

Before the single ``db.json`` existed, each section shipped its own list
(``critics.json``, ``news.json``, ...) with looser field names.  These
helpers normalise those records so the store can bootstrap itself once.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CHART_TITLE = "The Hot 15"


def _iso(value: Any) -> str:
    """Normalise a loose date value to an ISO-8601 UTC string (now if absent)."""
    if value:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Unparseable seed date %r, using now", value)
        else:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=UTC)
            return parsed.astimezone(UTC).isoformat().replace("+00:00", "Z")
    return datetime.now(tz=UTC).isoformat().replace("+00:00", "Z")


def _common(item: dict[str, Any], item_type: str) -> dict[str, Any]:
    return {
        "id": item.get("__backendId") or item.get("id"),
        "type": item_type,
        "publishedAt": _iso(item.get("publishedAt") or item.get("date")),
        "status": item.get("status") or "published",
        "isDemo": bool(item.get("isDemo")),
    }


def map_seed_critic(item: dict[str, Any]) -> dict[str, Any]:
    score = item.get("score")
    return {
        **_common(item, "critic"),
        "album": item.get("album") or item.get("title") or "",
        "artist": item.get("artist") or "",
        "score": float(score) if score is not None else None,
        "content": item.get("content") or "",
        "author": item.get("author") or "",
        "coverImageUrl": item.get("coverImageUrl") or "",
    }


def map_seed_news(item: dict[str, Any]) -> dict[str, Any]:
    return {
        **_common(item, "news"),
        "category": item.get("category") or "",
        "headline": item.get("headline") or item.get("title") or "",
        "subtitle": item.get("subtitle") or "",
        "content": item.get("content") or "",
        "pullQuote": item.get("pullQuote") or item.get("quote") or "",
        "author": item.get("author") or "",
        "heroImageUrl": item.get("heroImageUrl") or "",
    }


def map_seed_interview(item: dict[str, Any]) -> dict[str, Any]:
    return {
        **_common(item, "interview"),
        "guest": item.get("guest") or item.get("artist") or "",
        "title": item.get("title") or "",
        "subtitle": item.get("subtitle") or "",
        "content": item.get("content") or "",
        "keyQuote": item.get("keyQuote") or item.get("quote") or "",
        "author": item.get("author") or "",
        "heroImageUrl": item.get("heroImageUrl") or "",
    }


def parse_chart_content(content: str | None) -> list[dict[str, Any]]:
    """Split legacy ``"Title - Artist | Title - Artist"`` chart text into entries."""
    if not content:
        return []
    parts = [part.strip() for part in str(content).split("|") if part.strip()]
    entries = []
    for position, part in enumerate(parts, start=1):
        title, sep, artist = part.partition(" - ")
        entries.append(
            {
                "position": position,
                "trackTitle": title.strip() if sep else part,
                "artist": artist.strip() if sep else "",
                "movement": "same",
            }
        )
    return entries


def map_seed_chart(item: dict[str, Any]) -> dict[str, Any]:
    entries = item.get("entries")
    return {
        **_common(item, "chart"),
        "chartTitle": item.get("chartTitle") or item.get("title") or DEFAULT_CHART_TITLE,
        "issueNumber": item.get("issueNumber") or datetime.now(tz=UTC).year,
        "entries": entries if isinstance(entries, list) else parse_chart_content(item.get("content")),
    }


SEED_FILES: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
    "critics.json": map_seed_critic,
    "news.json": map_seed_news,
    "interviews.json": map_seed_interview,
    "charts.json": map_seed_chart,
}


def _read_seed_list(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        return []
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        logger.warning("Ignoring unreadable seed file %s", path)
        return []
    if not isinstance(raw, list):
        return []
    return [entry for entry in raw if isinstance(entry, dict)]


def load_seed_items(data_dir: Path) -> list[dict[str, Any]]:
    """Read every legacy seed file under *data_dir* (missing files yield nothing)."""
    items: list[dict[str, Any]] = []
    for filename, mapper in SEED_FILES.items():
        for entry in _read_seed_list(data_dir / filename):
            items.append(mapper(entry))
    return items
