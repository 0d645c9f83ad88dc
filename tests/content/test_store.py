"""Tests for the JSON-file item, cover and upload stores."""

import base64
import json
import threading
from pathlib import Path

import pytest
from editorial.content.store import (
    DB_FILENAME,
    CoverStore,
    ItemStore,
    UploadStore,
    read_json,
    write_json_atomic,
)
from editorial.shared.errors import NotFoundError, ValidationError


def _news(**overrides: object) -> dict:
    payload = {
        "type": "news",
        "category": "NEWS",
        "headline": "Headline",
        "subtitle": "Sub",
        "content": "Body",
        "author": "Writer",
    }
    payload.update(overrides)
    return payload


def _png_data_url() -> str:
    return "data:image/png;base64," + base64.b64encode(b"\x89PNG fake").decode()


class TestJsonFiles:
    def test_atomic_write_round_trip(self, tmp_path: Path):
        target = tmp_path / "nested" / "doc.json"
        write_json_atomic(target, {"a": 1})
        assert read_json(target, None) == {"a": 1}
        assert [p.name for p in target.parent.iterdir()] == ["doc.json"]

    def test_corrupt_file_falls_back(self, tmp_path: Path):
        target = tmp_path / "doc.json"
        target.write_text("{not json", encoding="utf-8")
        assert read_json(target, []) == []


class TestPublish:
    def test_assigns_id_when_absent(self, tmp_path: Path):
        store = ItemStore(tmp_path)
        item = store.publish(_news())
        assert item.id.startswith("news_")
        assert len(item.id) == len("news_") + 16
        assert item.created_at is not None
        assert item.updated_at is not None
        assert item.published_at is not None

    def test_keeps_unused_preferred_id(self, tmp_path: Path):
        store = ItemStore(tmp_path)
        assert store.publish(_news(id="mine")).id == "mine"

    def test_colliding_id_never_overwrites(self, tmp_path: Path):
        store = ItemStore(tmp_path)
        first = store.publish(_news(id="dup", headline="First"))
        second = store.publish(_news(id="dup", headline="Second"))
        assert second.id != "dup"
        assert store.get("news", "dup").headline == "First"
        assert {item.id for item in store.all()} == {first.id, second.id}

    def test_persists_database_document(self, tmp_path: Path):
        store = ItemStore(tmp_path)
        store.publish(_news())
        data = json.loads((tmp_path / DB_FILENAME).read_text(encoding="utf-8"))
        assert data["version"] == 1
        assert data["createdAt"] and data["updatedAt"]
        assert data["items"][0]["headline"] == "Headline"

    def test_rejects_unsupported_type(self, tmp_path: Path):
        with pytest.raises(ValidationError, match="Unsupported type"):
            ItemStore(tmp_path).publish({"type": "podcast"})

    def test_concurrent_publishes_all_land(self, tmp_path: Path):
        store = ItemStore(tmp_path)
        threads = [
            threading.Thread(target=store.publish, args=(_news(headline=f"h{n}"),))
            for n in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(store.all()) == 8


class TestUpdate:
    def test_overwrites_but_keeps_created_at(self, tmp_path: Path):
        store = ItemStore(tmp_path)
        original = store.publish(_news(pullQuote="quote"))
        updated = store.update(_news(id=original.id, headline="Changed"))
        assert updated.headline == "Changed"
        assert updated.pull_quote == ""
        assert updated.created_at == original.created_at
        assert updated.updated_at >= original.updated_at
        assert updated.published_at == original.published_at

    def test_missing_item_leaves_store_unchanged(self, tmp_path: Path):
        store = ItemStore(tmp_path)
        store.publish(_news(id="n1"))
        before = (tmp_path / DB_FILENAME).read_text(encoding="utf-8")
        with pytest.raises(NotFoundError):
            store.update(_news(id="ghost"))
        assert (tmp_path / DB_FILENAME).read_text(encoding="utf-8") == before

    def test_type_must_match(self, tmp_path: Path):
        store = ItemStore(tmp_path)
        store.publish(_news(id="n1"))
        with pytest.raises(NotFoundError):
            store.update({"type": "interview", "id": "n1"})

    def test_requires_id(self, tmp_path: Path):
        with pytest.raises(ValidationError, match="Missing id"):
            ItemStore(tmp_path).update(_news())


class TestDeleteAndReads:
    def test_delete_then_get_is_not_found(self, tmp_path: Path):
        store = ItemStore(tmp_path)
        item = store.publish(_news())
        assert store.delete("news", item.id) == 1
        assert store.list("news") == []
        with pytest.raises(NotFoundError):
            store.get("news", item.id)

    def test_delete_missing(self, tmp_path: Path):
        with pytest.raises(NotFoundError):
            ItemStore(tmp_path).delete("news", "nope")

    def test_delete_all_demo(self, tmp_path: Path):
        store = ItemStore(tmp_path)
        store.publish(_news(isDemo=True))
        store.publish(_news(isDemo=True))
        keeper = store.publish(_news())
        assert store.stats(demo_only=True)["news"] == 2
        assert store.delete_all_demo() == 2
        assert [item.id for item in store.all()] == [keeper.id]

    def test_latest_clamps_limit(self, tmp_path: Path):
        store = ItemStore(tmp_path)
        for day in range(1, 16):
            store.publish(_news(publishedAt=f"2024-01-{day:02d}T00:00:00Z"))
        assert len(store.latest()) == 6
        assert len(store.latest(50)) == 12
        assert len(store.latest(0)) == 1
        assert store.latest(1)[0].published_at.day == 15

    def test_list_newest_first(self, tmp_path: Path):
        store = ItemStore(tmp_path)
        store.publish(_news(id="a", publishedAt="2024-01-01T00:00:00Z"))
        store.publish(_news(id="b", publishedAt="2024-03-01T00:00:00Z"))
        assert [item.id for item in store.list("news")] == ["b", "a"]

    def test_stats_counts_per_section(self, tmp_path: Path):
        store = ItemStore(tmp_path)
        store.publish(_news())
        assert store.stats() == {"critics": 0, "news": 1, "interviews": 0, "charts": 0}


class TestBootstrap:
    def test_seeds_once_from_legacy_files(self, tmp_path: Path):
        (tmp_path / "news.json").write_text(
            json.dumps([{"id": "legacy", "title": "Old headline", "date": "2020-01-01"}]),
            encoding="utf-8",
        )
        store = ItemStore(tmp_path)
        assert store.get("news", "legacy").headline == "Old headline"

        store.delete("news", "legacy")
        assert ItemStore(tmp_path).all() == []

    def test_corrupt_seed_yields_empty(self, tmp_path: Path):
        (tmp_path / "critics.json").write_text("[oops", encoding="utf-8")
        assert ItemStore(tmp_path).all() == []


class TestCoverStore:
    def test_full_replacement(self, tmp_path: Path):
        covers = CoverStore(tmp_path)
        covers.set_cover(
            {"issueNumber": "1", "issueDate": "Jan", "description": "First", "coverImageUrl": "a.jpg"}
        )
        covers.set_cover({"issueNumber": "2", "issueDate": "Feb", "description": "Second"})
        cover = covers.get_cover()
        assert cover is not None
        assert cover.issue_number == "2"
        assert cover.cover_image_url == ""

    def test_missing_fields(self, tmp_path: Path):
        with pytest.raises(ValidationError, match="Missing cover fields"):
            CoverStore(tmp_path).set_cover({"issueNumber": "1"})

    def test_no_cover_yet(self, tmp_path: Path):
        assert CoverStore(tmp_path).get_cover() is None


class TestUploadStore:
    def test_writes_file_and_returns_url(self, tmp_path: Path):
        uploads = UploadStore(tmp_path / "uploads")
        url = uploads.upload_image("../My Photo!.png", _png_data_url())
        name = url.rsplit("/", 1)[-1]
        assert url.startswith("/assets/uploads/")
        assert name.endswith("_My_Photo_.png")
        assert (tmp_path / "uploads" / name).read_bytes() == b"\x89PNG fake"

    def test_invalid_data_url(self, tmp_path: Path):
        with pytest.raises(ValidationError, match="Invalid image data"):
            UploadStore(tmp_path).upload_image("x.png", "not a data url")
