"""Tests for background task management discovery.

Verifies:
    - ``sfltool dumpbtm`` output in both key dialects.
    - Database fallback when the tool fails.
    - An unreadable database is access denied, not empty.
"""

from __future__ import annotations

import plistlib
from collections.abc import Callable
from pathlib import Path

import pytest

from launchledger.core.records import DiagnosticKind, SourceStatus
from launchledger.discovery import BackgroundItemSource, parse_btm_archive, parse_dumpbtm
from launchledger.discovery import background_items
from launchledger.exceptions import AccessDeniedError

LEGACY_DUMP = """\
========================
 Records for UID 501 : 1A2B
========================

 Items:

 #1:
                 UUID: 1111
                 Name: Helper
       Developer Name: Example Corp
                 Type: app (0x2)
       BundleIdentifier: com.example.helper
                 Path: /Applications/Helper.app
              Enabled: true

 #2:
                 Name: Updater
                 Type: legacy agent (0x10008)
                 Path: file:///Library/LaunchAgents/com.example.updater.plist
              Enabled: false
"""

MODERN_DUMP = """\
 #1:
                 Name: (null)
           Identifier: 4.com.example.sync
          Disposition: [disabled, allowed, visible, notified] (0x2)
      Executable Path: /Applications/Sync.app/Contents/MacOS/Sync
                 Type: login item (0x4)

 #2:
          Disposition: [enabled, allowed, visible, notified] (0x1)
"""


@pytest.fixture
def database(tmp_path: Path) -> Path:
    return tmp_path / "backgrounditems.btm"


class TestParseDumpbtm:
    def test_legacy_keys(self) -> None:
        helper, updater = parse_dumpbtm(LEGACY_DUMP)
        assert helper.identity_key == "com.example.helper"
        assert helper.publisher == "Example Corp"
        assert helper.enabled is True
        assert helper.item_type == "background"
        assert updater.identity_key == "/Library/LaunchAgents/com.example.updater.plist"
        assert updater.enabled is False
        assert updater.item_type == "agent"

    def test_modern_keys(self) -> None:
        (item,) = parse_dumpbtm(MODERN_DUMP)
        assert item.bundle_identifier == "4.com.example.sync"
        assert item.display_name == "sync"
        assert item.enabled is False
        assert item.item_type == "login"

    def test_empty_output(self) -> None:
        assert parse_dumpbtm("") == []


class TestParseArchive:
    def test_resolves_references(self) -> None:
        archive = {"$objects": [
            "$null",
            {"bundleIdentifier": plistlib.UID(2), "name": plistlib.UID(3),
             "url": plistlib.UID(4), "enabled": False},
            "com.example.agent",
            "Agent",
            {"NS.relative": plistlib.UID(5)},
            "file:///Applications/Agent.app/",
            {"unrelated": True},
        ]}
        (item,) = parse_btm_archive(archive)
        assert item.identity_key == "com.example.agent"
        assert item.display_name == "Agent"
        assert item.path == "/Applications/Agent.app"
        assert item.enabled is False

    def test_null_references_ignored(self) -> None:
        archive = {"$objects": ["$null", {"path": "/usr/local/bin/tool", "name": plistlib.UID(0)}]}
        (item,) = parse_btm_archive(archive)
        assert item.display_name == "tool"
        assert item.enabled is True

    @pytest.mark.parametrize("data", [None, [], {"$objects": "nope"}])
    def test_unexpected_shapes(self, data: object) -> None:
        assert parse_btm_archive(data) == []


class TestSource:
    def test_tool_answer(self, fake_runner, database: Path) -> None:
        fake_runner.on("dumpbtm", LEGACY_DUMP)
        result = BackgroundItemSource(fake_runner, database).read()
        assert result.status is SourceStatus.OK
        assert result.method == "sfltool"
        assert len(result.records) == 2

    def test_duplicates_dropped(self, fake_runner, database: Path) -> None:
        fake_runner.on("dumpbtm", LEGACY_DUMP + "\n" + LEGACY_DUMP)
        result = BackgroundItemSource(fake_runner, database).read()
        assert len(result.records) == 2

    def test_database_fallback(
        self, fake_runner, database: Path, write_plist: Callable[..., Path],
    ) -> None:
        write_plist(database, {"$objects": [{"bundleIdentifier": "com.example.x", "path": "/x"}]},
                    plistlib.FMT_BINARY)
        result = BackgroundItemSource(fake_runner, database).read()
        assert result.method == "database"
        assert result.status is SourceStatus.DEGRADED
        assert [r.identity_key for r in result.records] == ["com.example.x"]
        assert result.diagnostics[0].kind is DiagnosticKind.EXTERNAL_TOOL_FAILURE

    def test_no_tool_no_database_unavailable(self, fake_runner, database: Path) -> None:
        result = BackgroundItemSource(fake_runner, database).read()
        assert result.status is SourceStatus.UNAVAILABLE
        assert result.records == []

    def test_tool_reports_nothing(self, fake_runner, database: Path) -> None:
        fake_runner.on("dumpbtm", "")
        result = BackgroundItemSource(fake_runner, database).read()
        assert result.status is SourceStatus.OK
        assert result.records == []

    def test_unrecognizable_output_without_database_unavailable(
        self, fake_runner, database: Path,
    ) -> None:
        fake_runner.on("dumpbtm", "garbage output with no blocks\n")
        result = BackgroundItemSource(fake_runner, database).read()
        assert result.status is SourceStatus.UNAVAILABLE
        assert result.records == []
        assert "no recognizable items" in result.diagnostics[0].message

    def test_unrecognizable_output_falls_back_to_empty_database(
        self, fake_runner, database: Path, write_plist: Callable[..., Path],
    ) -> None:
        fake_runner.on("dumpbtm", "garbage output with no blocks\n")
        write_plist(database, {"$objects": ["$null"]}, plistlib.FMT_BINARY)
        result = BackgroundItemSource(fake_runner, database).read()
        assert result.method == "database"
        assert result.status is SourceStatus.DEGRADED
        assert result.records == []

    def test_unreadable_database_is_access_denied(
        self, fake_runner, database: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def denied(path: Path) -> None:
            raise AccessDeniedError(str(path))

        monkeypatch.setattr(background_items, "load_property_list", denied)
        result = BackgroundItemSource(fake_runner, database).read()
        assert result.status is SourceStatus.ACCESS_DENIED
        assert result.records == []
        assert "Full Disk Access" in result.diagnostics[-1].message

    def test_malformed_database_unavailable(self, fake_runner, database: Path) -> None:
        database.write_bytes(b"\x00\x01junk")
        result = BackgroundItemSource(fake_runner, database).read()
        assert result.status is SourceStatus.UNAVAILABLE
