"""Tests for the local persistence store used in static mode."""

import json
import re
from pathlib import Path

import pytest
from editorial.client.local_store import (
    BACKUP_KIND,
    COVER_KEY,
    DELETED_KEY,
    ITEMS_KEY,
    KeyValueStorage,
    LocalStore,
    generate_local_id,
)
from editorial.content.models import Cover
from editorial.shared.errors import QuotaError, ValidationError


def _critic(**overrides: object) -> dict:
    payload = {"type": "critic", "album": "Album", "artist": "Artist", "score": 7}
    payload.update(overrides)
    return payload


class TestKeyValueStorage:
    def test_directory_backed(self, tmp_path: Path):
        storage = KeyValueStorage(tmp_path)
        storage.set("a key", "value")
        assert KeyValueStorage(tmp_path).get("a key") == "value"
        storage.remove("a key")
        assert storage.get("a key") is None

    def test_quota(self):
        storage = KeyValueStorage(quota_bytes=10)
        storage.set("k", "12345")
        storage.set("k", "1234567890")
        with pytest.raises(QuotaError):
            storage.set("other", "x")


class TestItems:
    def test_generated_id_format(self):
        assert re.fullmatch(r"news_\d+_[a-z0-9]{6}", generate_local_id("news"))

    def test_upsert_assigns_id_and_persists(self, tmp_path: Path):
        store = LocalStore(KeyValueStorage(tmp_path))
        item = store.upsert_item(_critic())
        assert item.id.startswith("critic_")
        assert item.created_at is not None

        reloaded = LocalStore(KeyValueStorage(tmp_path)).load_items()
        assert [i.id for i in reloaded] == [item.id]
        raw = json.loads((tmp_path / f"{ITEMS_KEY}.json").read_text(encoding="utf-8"))
        assert raw[0]["album"] == "Album"

    def test_upsert_replaces_and_moves_to_front(self):
        store = LocalStore(KeyValueStorage())
        first = store.upsert_item(_critic(id="c1"))
        store.upsert_item(_critic(id="c2"))
        updated = store.upsert_item(_critic(id="c1", album="Renamed"))
        items = store.load_items()
        assert [i.id for i in items] == ["c1", "c2"]
        assert items[0].album == "Renamed"
        assert updated.created_at == first.created_at

    def test_upsert_clears_tombstone(self):
        store = LocalStore(KeyValueStorage())
        store.mark_deleted("c1")
        store.upsert_item(_critic(id="c1"))
        assert "c1" not in store.load_tombstones()

    def test_remove_tombstones(self):
        store = LocalStore(KeyValueStorage())
        store.upsert_item(_critic(id="c1"))
        assert store.remove_item("c1") is True
        assert store.load_items() == []
        assert store.load_tombstones() == {"c1"}
        assert store.remove_item("remote-only") is False
        assert store.load_tombstones() == {"c1", "remote-only"}

    def test_invalid_payload(self):
        with pytest.raises(ValidationError):
            LocalStore(KeyValueStorage()).upsert_item({"type": "podcast"})

    def test_quota_keeps_change_in_memory(self, caplog):
        store = LocalStore(KeyValueStorage(quota_bytes=5))
        item = store.upsert_item(_critic())
        assert [i.id for i in store.load_items()] == [item.id]
        assert "quota exceeded" in caplog.text

    def test_corrupt_value_ignored(self, tmp_path: Path):
        (tmp_path / f"{ITEMS_KEY}.json").write_text("[{", encoding="utf-8")
        (tmp_path / f"{DELETED_KEY}.json").write_text('{"x": 1}', encoding="utf-8")
        store = LocalStore(KeyValueStorage(tmp_path))
        assert store.load_items() == []
        assert store.load_tombstones() == set()


class TestCoverAndSettings:
    def test_cover_round_trip(self, tmp_path: Path):
        store = LocalStore(KeyValueStorage(tmp_path))
        assert store.load_cover() is None
        store.save_cover(Cover(issue_number="3", issue_date="Mar", description="d"))
        assert LocalStore(KeyValueStorage(tmp_path)).load_cover().issue_number == "3"
        assert json.loads((tmp_path / f"{COVER_KEY}.json").read_text())["type"] == "cover"

    def test_admin_token(self, tmp_path: Path):
        store = LocalStore(KeyValueStorage(tmp_path))
        assert store.admin_token == ""
        store.admin_token = "abc"
        assert LocalStore(KeyValueStorage(tmp_path)).admin_token == "abc"

    def test_github_settings(self):
        store = LocalStore(KeyValueStorage())
        assert store.load_github_settings() == {}
        store.save_github_settings({"owner": "me", "repo": "site"})
        assert store.load_github_settings()["repo"] == "site"


class TestBackup:
    def test_export_then_import_replaces_local_state(self, tmp_path: Path):
        source = LocalStore(KeyValueStorage())
        kept = source.upsert_item(_critic(id="c1"))
        source.save_cover(Cover(issue_number="3", issue_date="Mar", description="d"))
        source.mark_deleted("remote-1")
        backup = source.export_backup()
        assert backup["kind"] == BACKUP_KIND
        assert backup["version"] == 1
        assert backup["exportedAt"].endswith("Z")
        assert backup["data"]["deleted"] == ["remote-1"]

        target = LocalStore(KeyValueStorage(tmp_path))
        target.upsert_item(_critic(id="stale"))
        assert target.import_backup(json.loads(json.dumps(backup))) == 1

        reloaded = LocalStore(KeyValueStorage(tmp_path))
        assert [i.id for i in reloaded.load_items()] == [kept.id]
        assert reloaded.load_cover().issue_number == "3"
        assert reloaded.load_tombstones() == {"remote-1"}

    def test_import_bare_list_drops_cover_and_invalid_items(self):
        store = LocalStore(KeyValueStorage())
        store.save_cover(Cover(issue_number="1", issue_date="Jan", description="d"))
        store.mark_deleted("x")
        assert store.import_backup([_critic(id="c1"), {"type": "podcast"}, "junk"]) == 1
        assert store.load_cover() is None
        assert store.load_tombstones() == set()

    @pytest.mark.parametrize("backup", [{"kind": "other"}, "text", 42])
    def test_import_rejects_unknown_documents(self, backup):
        store = LocalStore(KeyValueStorage())
        store.upsert_item(_critic(id="c1"))
        with pytest.raises(ValidationError, match="Invalid backup"):
            store.import_backup(backup)
        assert [i.id for i in store.load_items()] == ["c1"]

    def test_clear_keeps_admin_token(self, tmp_path: Path):
        store = LocalStore(KeyValueStorage(tmp_path))
        store.admin_token = "tok"
        store.upsert_item(_critic())
        store.save_cover(Cover(issue_number="1", issue_date="Jan", description="d"))
        store.mark_deleted("gone")
        store.clear()

        reloaded = LocalStore(KeyValueStorage(tmp_path))
        assert reloaded.load_items() == []
        assert reloaded.load_cover() is None
        assert reloaded.load_tombstones() == set()
        assert reloaded.admin_token == "tok"
