"""Tests for the persisted login item snapshot.

Verifies:
    - Save and load through the namespaced JSON document.
    - Other namespaces in the same file survive writes.
    - Malformed files degrade to an empty snapshot.
    - Explicit updates, removals and clearing.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from launchledger.core.reconcile import SnapshotEntry
from launchledger.exceptions import SnapshotError
from launchledger.inventory import SnapshotStore

_NS = "com.launchledger.SavedLoginItems"


@pytest.fixture
def path(tmp_path: Path) -> Path:
    return tmp_path / "state" / "snapshot.json"


@pytest.fixture
def store(path: Path) -> SnapshotStore:
    return SnapshotStore(path, _NS)


def _entries() -> dict[str, SnapshotEntry]:
    return {
        "Dropbox": SnapshotEntry("Dropbox", "Dropbox", "/Applications/Dropbox.app", False),
        "Slack": SnapshotEntry("Slack", "Slack", "/Applications/Slack.app", True, "Slack"),
    }


class TestPersistence:
    def test_missing_file_is_empty(self, store: SnapshotStore) -> None:
        assert store.load() == {}

    def test_save_and_load(self, store: SnapshotStore, path: Path) -> None:
        store.save(_entries())
        assert store.load() == _entries()
        document = json.loads(path.read_text())
        assert [e["identityKey"] for e in document[_NS]] == ["Dropbox", "Slack"]

    def test_other_namespaces_preserved(self, store: SnapshotStore, path: Path) -> None:
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"other": [1, 2, 3]}))
        store.save(_entries())
        assert json.loads(path.read_text())["other"] == [1, 2, 3]

    @pytest.mark.parametrize("content", ["{broken", "[]", json.dumps({_NS: "nope"})])
    def test_malformed_file_is_empty(self, store: SnapshotStore, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True)
        path.write_text(content)
        assert store.load() == {}

    def test_undecodable_file_is_empty(self, store: SnapshotStore, path: Path) -> None:
        path.parent.mkdir(parents=True)
        path.write_bytes(b'{"com.launchledger.SavedLoginItems": [\xff\xfe]}')
        assert store.load() == {}

    def test_undecodable_file_is_replaced_on_save(self, store: SnapshotStore, path: Path) -> None:
        path.parent.mkdir(parents=True)
        path.write_bytes(b"\xff\xfe garbage")
        store.save(_entries())
        assert store.load() == _entries()
        assert store.update_enabled("Dropbox", True) is True

    def test_unwritable_location_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        with pytest.raises(SnapshotError):
            SnapshotStore(blocker / "snapshot.json").save(_entries())

    def test_no_temporary_files_left(self, store: SnapshotStore, path: Path) -> None:
        store.save(_entries())
        assert [p.name for p in path.parent.iterdir()] == ["snapshot.json"]


class TestEdits:
    def test_update_enabled(self, store: SnapshotStore) -> None:
        store.save(_entries())
        assert store.update_enabled("Dropbox", True) is True
        assert store.load()["Dropbox"].enabled is True
        assert store.load()["Dropbox"].path == "/Applications/Dropbox.app"

    def test_update_unknown_entry(self, store: SnapshotStore) -> None:
        store.save(_entries())
        assert store.update_enabled("Zoom", True) is False

    def test_remove(self, store: SnapshotStore) -> None:
        store.save(_entries())
        assert store.remove("Slack") is True
        assert store.remove("Slack") is False
        assert list(store.load()) == ["Dropbox"]

    def test_clear_keeps_other_namespaces(self, store: SnapshotStore, path: Path) -> None:
        store.save(_entries())
        document = json.loads(path.read_text())
        document["other"] = True
        path.write_text(json.dumps(document))
        store.clear()
        assert store.load() == {}
        assert json.loads(path.read_text()) == {"other": True}

    def test_clear_without_file(self, store: SnapshotStore, path: Path) -> None:
        store.clear()
        assert not path.exists()
