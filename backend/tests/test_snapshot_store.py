# Overview: Pytest coverage for the file-backed snapshot store.

import json
import os

import pytest

from salestrack.services.snapshot_store import (
    LATEST_FILENAME,
    SnapshotExistsError,
    SnapshotFormatError,
    SnapshotNotFoundError,
    SnapshotStore,
)


def _payload(sales_count=0):
    return {
        "timestamp": "2025-08-05T14:24:07Z",
        "tables": {"sales": [{"id": i} for i in range(1, sales_count + 1)]},
    }


def _age(store, name, seconds_ago):
    """Backdate an artifact's mtime so list() ordering is deterministic."""
    path = store.path_for(name)
    stamp = path.stat().st_mtime - seconds_ago
    os.utime(path, (stamp, stamp))


class TestWriteRead:

    def test_write_creates_directory_and_round_trips(self, app, tmp_path):
        store = SnapshotStore(tmp_path / "nested" / "backups")
        path = store.write("database-backup-1", _payload(2))

        assert path.name == "database-backup-1.json"
        assert store.read("database-backup-1") == _payload(2)
        assert store.read("database-backup-1.json") == _payload(2)

    def test_artifact_is_pretty_printed_json(self, app, tmp_path):
        store = SnapshotStore(tmp_path)
        path = store.write("a", _payload(1))
        text = path.read_text(encoding="utf-8")
        assert text.startswith("{\n  ")
        assert json.loads(text)["tables"]["sales"] == [{"id": 1}]

    def test_named_artifact_is_never_overwritten(self, app, tmp_path):
        store = SnapshotStore(tmp_path)
        store.write("a", _payload(1))

        with pytest.raises(SnapshotExistsError):
            store.write("a", _payload(5))

        assert store.read("a") == _payload(1)

    def test_latest_alias_is_replaceable(self, app, tmp_path):
        store = SnapshotStore(tmp_path)
        store.write("latest", _payload(1))
        store.write("latest", _payload(3))

        assert len(store.latest()["tables"]["sales"]) == 3
        assert (tmp_path / LATEST_FILENAME).is_file()
        assert not list(tmp_path.glob("*.tmp"))

    def test_read_missing_raises_not_found(self, app, tmp_path):
        store = SnapshotStore(tmp_path)
        with pytest.raises(SnapshotNotFoundError):
            store.read("nope")
        with pytest.raises(SnapshotNotFoundError):
            store.latest()

    def test_read_rejects_non_snapshot_documents(self, app, tmp_path):
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
        (tmp_path / "list.json").write_text("[1, 2]", encoding="utf-8")
        store = SnapshotStore(tmp_path)

        with pytest.raises(SnapshotFormatError):
            store.read("broken")
        with pytest.raises(SnapshotFormatError):
            store.read("list")

    @pytest.mark.parametrize("name", ["", "..", "../escape", "a/b"])
    def test_invalid_names_rejected(self, app, tmp_path, name):
        with pytest.raises(ValueError):
            SnapshotStore(tmp_path).write(name, _payload())

    def test_unwritable_directory_is_a_hard_failure(self, app, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("", encoding="utf-8")
        with pytest.raises(OSError):
            SnapshotStore(blocker / "backups").write("a", _payload())


class TestListPrune:

    def test_list_newest_first_with_sizes(self, app, tmp_path):
        store = SnapshotStore(tmp_path)
        store.write("old", _payload(1))
        store.write("mid", _payload(2))
        store.write("new", _payload(3))
        _age(store, "old", 300)
        _age(store, "mid", 200)
        _age(store, "new", 100)

        infos = store.list()
        assert [i.name for i in infos] == ["new.json", "mid.json", "old.json"]
        assert all(i.size > 0 for i in infos)
        assert infos[0].created_at > infos[-1].created_at

    def test_list_ignores_other_files(self, app, tmp_path):
        store = SnapshotStore(tmp_path)
        store.write("a", _payload())
        (tmp_path / "backup.db").write_bytes(b"")
        assert [i.name for i in store.list()] == ["a.json"]

    def test_list_on_missing_directory_is_empty(self, app, tmp_path):
        assert SnapshotStore(tmp_path / "missing").list() == []

    def test_prune_keeps_newest_and_exempts_alias(self, app, tmp_path):
        store = SnapshotStore(tmp_path)
        for age, name in enumerate(["s5", "s4", "s3", "s2", "s1"], start=1):
            store.write(name, _payload())
            _age(store, name, age * 10)
        store.write("latest", _payload())
        _age(store, "latest", 1000)

        deleted = store.prune(2)

        assert sorted(deleted) == ["s1.json", "s2.json", "s3.json"]
        remaining = [i.name for i in store.list()]
        assert remaining == ["s5.json", "s4.json", LATEST_FILENAME]

    def test_prune_zero_keeps_only_alias(self, app, tmp_path):
        store = SnapshotStore(tmp_path)
        store.write("a", _payload())
        store.write("latest", _payload())
        store.prune(0)
        assert [i.name for i in store.list()] == [LATEST_FILENAME]

    def test_prune_empty_store_is_noop(self, app, tmp_path):
        assert SnapshotStore(tmp_path / "missing").prune(3) == []

    def test_prune_negative_rejected(self, app, tmp_path):
        with pytest.raises(ValueError):
            SnapshotStore(tmp_path).prune(-1)
