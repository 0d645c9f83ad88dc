"""Tests for legacy seed-file mapping."""

import json
from pathlib import Path

from editorial.content.seed import (
    DEFAULT_CHART_TITLE,
    load_seed_items,
    map_seed_chart,
    map_seed_critic,
    map_seed_interview,
    parse_chart_content,
)


def test_parse_chart_content():
    entries = parse_chart_content("Song A - Artist A | Song B - Artist B | Lonely")
    assert [e["trackTitle"] for e in entries] == ["Song A", "Song B", "Lonely"]
    assert entries[1] == {"position": 2, "trackTitle": "Song B", "artist": "Artist B", "movement": "same"}
    assert entries[2]["artist"] == ""


def test_parse_chart_content_empty():
    assert parse_chart_content(None) == []
    assert parse_chart_content("  |  ") == []


def test_map_chart_defaults():
    mapped = map_seed_chart({"content": "X - Y"})
    assert mapped["chartTitle"] == DEFAULT_CHART_TITLE
    assert mapped["entries"][0]["trackTitle"] == "X"
    assert mapped["status"] == "published"


def test_map_critic_loose_fields():
    mapped = map_seed_critic({"__backendId": "c9", "title": "Album", "score": "7", "date": "2021-02-03"})
    assert mapped["id"] == "c9"
    assert mapped["album"] == "Album"
    assert mapped["score"] == 7.0
    assert mapped["publishedAt"] == "2021-02-03T00:00:00Z"


def test_map_interview_falls_back_to_artist():
    assert map_seed_interview({"artist": "Guest"})["guest"] == "Guest"


def test_load_seed_items(tmp_path: Path):
    (tmp_path / "critics.json").write_text(json.dumps([{"album": "A"}, "junk"]), encoding="utf-8")
    (tmp_path / "charts.json").write_text(json.dumps({"not": "a list"}), encoding="utf-8")
    items = load_seed_items(tmp_path)
    assert [item["type"] for item in items] == ["critic"]
