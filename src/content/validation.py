"""Client-side payload validation.

Runs before any network or storage call so that a bad form submission
never reaches the queue.  Only required-field presence, the critic score
range and chart completeness are checked.
"""

from __future__ import annotations

from typing import Any

import pydantic

from editorial.content.models import (
    SCORE_MAX,
    SCORE_MIN,
    ChartEntry,
    Cover,
    Item,
    ItemType,
    Movement,
    parse_item,
)
from editorial.shared.errors import ValidationError

CHART_ENTRY_COUNT = 10

# payload key -> label shown to the admin
REQUIRED_FIELDS: dict[ItemType, dict[str, str]] = {
    ItemType.CRITIC: {
        "album": "Album Title",
        "artist": "Artist Name",
        "score": "Score",
        "content": "Review Content",
        "author": "Author Name",
    },
    ItemType.NEWS: {
        "category": "Category",
        "headline": "Headline",
        "subtitle": "Subtitle",
        "content": "Content",
        "author": "Author",
    },
    ItemType.INTERVIEW: {
        "guest": "Guest Name",
        "title": "Title",
        "subtitle": "Subtitle",
        "content": "Content",
        "author": "Author",
    },
    ItemType.CHART: {},
}

COVER_REQUIRED_FIELDS: dict[str, str] = {
    "issueNumber": "Issue Number",
    "issueDate": "Issue Date",
    "description": "Description",
}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def missing_fields(payload: dict[str, Any], required: dict[str, str]) -> list[str]:
    """Return labels of required fields that are absent or blank."""
    return [label for key, label in required.items() if _is_blank(payload.get(key))]


def _require(payload: dict[str, Any], required: dict[str, str]) -> None:
    missing = missing_fields(payload, required)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def _check_score(raw: Any) -> float:
    try:
        score = float(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Score must be a number") from exc
    if not SCORE_MIN <= score <= SCORE_MAX:
        raise ValidationError("Score must be between 0 and 10")
    return score


def _check_chart_entries(raw_entries: Any) -> None:
    entries = raw_entries if isinstance(raw_entries, list) else []
    by_position: dict[int, dict[str, Any]] = {}
    for index, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            continue
        try:
            position = int(entry.get("position") or index)
        except (TypeError, ValueError):
            position = index
        by_position.setdefault(position, entry)

    for position in range(1, CHART_ENTRY_COUNT + 1):
        entry = by_position.get(position)
        if entry is None or _is_blank(entry.get("trackTitle", entry.get("track_title"))):
            raise ValidationError(f"Entry {position} is required")


def _as_validation_error(exc: pydantic.ValidationError) -> ValidationError:
    first = exc.errors()[0]
    where = ".".join(str(part) for part in first.get("loc", ()))
    message = str(first.get("msg", "invalid value")).removeprefix("Value error, ")
    return ValidationError(f"{where}: {message}" if where else message)


def validate_item_payload(payload: dict[str, Any]) -> Item:
    """Check a publish/update payload and return the typed item.

    Raises:
        ValidationError: On an unknown type, a missing required field,
            an out-of-range score, or an incomplete chart.
    """
    raw_type = str(payload.get("type") or "").strip()
    if not raw_type:
        raise ValidationError("Missing type")
    try:
        item_type = ItemType(raw_type)
    except ValueError as exc:
        raise ValidationError(f"Unsupported type: {raw_type}") from exc

    _require(payload, REQUIRED_FIELDS[item_type])

    data = dict(payload)
    if item_type is ItemType.CRITIC:
        data["score"] = _check_score(payload.get("score"))
    elif item_type is ItemType.CHART:
        _check_chart_entries(payload.get("entries"))

    try:
        return parse_item(data)
    except pydantic.ValidationError as exc:
        raise _as_validation_error(exc) from exc


def validate_cover_payload(payload: dict[str, Any]) -> Cover:
    """Check a cover payload and return the typed cover.

    Raises:
        ValidationError: If issue number, issue date or description is blank.
    """
    _require(payload, COVER_REQUIRED_FIELDS)
    try:
        return Cover.model_validate(payload)
    except pydantic.ValidationError as exc:
        raise _as_validation_error(exc) from exc


def chart_entries_from_lines(lines: list[str]) -> list[ChartEntry]:
    """Build chart entries from ``"Title - Artist"`` lines, one per position.

    Raises:
        ValidationError: Naming the first blank or malformed line.
    """
    entries: list[ChartEntry] = []
    for position in range(1, CHART_ENTRY_COUNT + 1):
        line = lines[position - 1].strip() if position <= len(lines) else ""
        if not line:
            raise ValidationError(f"Entry {position} is required")
        title, sep, artist = line.partition(" - ")
        if not sep or not title.strip() or not artist.strip():
            raise ValidationError(f'Entry {position} must be in format: "Title - Artist"')
        entries.append(
            ChartEntry(
                position=position,
                track_title=title.strip(),
                artist=artist.strip(),
                movement=Movement.SAME,
            )
        )
    return entries
