"""Tests for launch record identity, kinds and ordering."""

from __future__ import annotations

import dataclasses

import pytest

from launchledger.core.records import (
    Agent,
    BackgroundItem,
    Category,
    Daemon,
    Impact,
    ItemKind,
    LaunchDeclaration,
    LoginItem,
    display_name_from_label,
    sort_key,
)


class TestIdentity:
    def test_login_item_identity_is_name(self) -> None:
        item = LoginItem(display_name="Dropbox", path="/Applications/Dropbox.app", enabled=True)
        assert item.identity_key == "Dropbox"
        assert item.kind is ItemKind.LOGIN_ITEM

    def test_agent_identity_is_label(self) -> None:
        agent = Agent(
            display_name="updater", path="/p", enabled=False,
            declaration=LaunchDeclaration(label="com.example.updater"),
        )
        assert agent.identity_key == "com.example.updater"
        assert agent.label == "com.example.updater"
        assert agent.kind is ItemKind.AGENT

    def test_daemon_exposes_keep_alive(self) -> None:
        daemon = Daemon(
            display_name="d", path="/p", enabled=True,
            declaration=LaunchDeclaration(label="com.example.d", keep_alive=True),
        )
        assert daemon.keep_alive is True
        assert daemon.kind is ItemKind.DAEMON

    def test_background_identity_prefers_bundle_identifier(self) -> None:
        with_id = BackgroundItem(display_name="H", path="/x", enabled=True, bundle_identifier="com.h")
        without_id = BackgroundItem(display_name="H", path="/x", enabled=True)
        assert with_id.identity_key == "com.h"
        assert without_id.identity_key == "/x"


class TestImmutability:
    def test_records_are_frozen(self) -> None:
        item = LoginItem(display_name="A", path="/a", enabled=True)
        with pytest.raises(dataclasses.FrozenInstanceError):
            item.enabled = False  # type: ignore[misc]

    def test_replace_keeps_kind(self) -> None:
        item = LoginItem(display_name="A", path="/a", enabled=True)
        updated = dataclasses.replace(item, enabled=False)
        assert updated.kind is ItemKind.LOGIN_ITEM
        assert item.enabled is True


class TestDeclaration:
    def test_executable_prefers_program(self) -> None:
        decl = LaunchDeclaration(label="x", program="/bin/a", program_arguments=("/bin/b",))
        assert decl.executable == "/bin/a"

    def test_executable_falls_back_to_first_argument(self) -> None:
        assert LaunchDeclaration(label="x", program_arguments=("/bin/b", "-v")).executable == "/bin/b"
        assert LaunchDeclaration(label="x").executable == ""


class TestHelpers:
    def test_display_name_from_label(self) -> None:
        assert display_name_from_label("com.example.updater") == "updater"
        assert display_name_from_label("plain") == "plain"
        assert display_name_from_label("trailing.") == "trailing."

    def test_sort_key_is_case_insensitive_then_identity(self) -> None:
        records = [
            LoginItem(display_name="beta", path="", enabled=True),
            LoginItem(display_name="Alpha", path="", enabled=True),
            BackgroundItem(display_name="alpha", path="/z", enabled=True, bundle_identifier="b.id"),
            BackgroundItem(display_name="alpha", path="/y", enabled=True, bundle_identifier="a.id"),
        ]
        ordered = [r.identity_key for r in sorted(records, key=sort_key)]
        assert ordered == ["Alpha", "a.id", "b.id", "beta"]

    def test_category_headings(self) -> None:
        assert Category.DAEMONS.heading == "Launch Daemons"
        assert Category("login_items") is Category.LOGIN_ITEMS

    def test_impact_ordering_and_label(self) -> None:
        assert Impact.LOW < Impact.MEDIUM < Impact.HIGH
        assert Impact.MEDIUM.label == "Medium"
