"""Tests for identity reconciliation.

Verifies:
    - Snapshot state wins for non-authoritative login item reads.
    - Authoritative reads override the snapshot.
    - Items missing from the live read are retained.
    - Failed reads return the snapshot unchanged and do not rewrite it.
    - Live categories replace wholesale and keep prior records on failure.
"""

from __future__ import annotations

import pytest

from launchledger.core.records import (
    Agent,
    Category,
    LaunchDeclaration,
    LoginItem,
    SourceReadResult,
    SourceStatus,
)
from launchledger.core.reconcile import IdentityReconciler, SnapshotEntry


def _entry(name: str, enabled: bool, path: str = "", publisher: str | None = None) -> SnapshotEntry:
    return SnapshotEntry(
        identity_key=name, display_name=name, path=path or f"/Applications/{name}.app",
        enabled=enabled, publisher=publisher,
    )


def _login(name: str, enabled: bool = True, path: str | None = None) -> LoginItem:
    return LoginItem(
        display_name=name,
        path=f"/Applications/{name}.app" if path is None else path,
        enabled=enabled,
    )


def _agent(label: str, enabled: bool) -> Agent:
    return Agent(
        display_name=label.rsplit(".", 1)[-1], path=f"/L/{label}.plist", enabled=enabled,
        declaration=LaunchDeclaration(label=label),
    )


@pytest.fixture
def reconciler() -> IdentityReconciler:
    return IdentityReconciler()


class TestSnapshotBackedMerge:
    """Login items merge with the persisted snapshot."""

    def test_persisted_disabled_stays_disabled_without_hidden_flag(
        self, reconciler: IdentityReconciler,
    ) -> None:
        snapshot = {"Dropbox": _entry("Dropbox", enabled=False)}
        fresh = SourceReadResult(
            records=[_login("Dropbox", enabled=True, path="")],
            authoritative_enabled=False,
        )
        outcome = reconciler.reconcile(snapshot, fresh, category=Category.LOGIN_ITEMS)
        (record,) = outcome.records
        assert record.enabled is False
        assert record.path == "/Applications/Dropbox.app"
        assert outcome.snapshot["Dropbox"].enabled is False

    def test_authoritative_read_overrides_snapshot(self, reconciler: IdentityReconciler) -> None:
        snapshot = {"Dropbox": _entry("Dropbox", enabled=False, publisher="Dropbox, Inc.")}
        fresh = SourceReadResult(records=[_login("Dropbox", enabled=True)])
        outcome = reconciler.reconcile(snapshot, fresh, category=Category.LOGIN_ITEMS)
        (record,) = outcome.records
        assert record.enabled is True
        assert record.publisher == "Dropbox, Inc."

    def test_new_item_keeps_fresh_enabled(self, reconciler: IdentityReconciler) -> None:
        fresh = SourceReadResult(records=[_login("Slack", enabled=False)], authoritative_enabled=False)
        outcome = reconciler.reconcile({}, fresh, category=Category.LOGIN_ITEMS)
        assert outcome.records[0].enabled is False
        assert set(outcome.snapshot) == {"Slack"}

    def test_missing_items_are_retained(self, reconciler: IdentityReconciler) -> None:
        snapshot = {
            "Dropbox": _entry("Dropbox", enabled=False),
            "Slack": _entry("Slack", enabled=True),
        }
        fresh = SourceReadResult(records=[_login("Slack")])
        outcome = reconciler.reconcile(snapshot, fresh, category=Category.LOGIN_ITEMS)
        assert [r.identity_key for r in outcome.records] == ["Dropbox", "Slack"]
        assert outcome.retained_keys == ["Dropbox"]
        assert set(outcome.snapshot) == {"Dropbox", "Slack"}
        dropbox = outcome.records[0]
        assert dropbox.enabled is False
        assert isinstance(dropbox, LoginItem)

    def test_empty_snapshot_and_empty_read(self, reconciler: IdentityReconciler) -> None:
        outcome = reconciler.reconcile(None, SourceReadResult(), category=Category.LOGIN_ITEMS)
        assert outcome.records == []
        assert outcome.snapshot == {}

    def test_duplicates_keep_first_occurrence(self, reconciler: IdentityReconciler) -> None:
        fresh = SourceReadResult(records=[
            _login("Dropbox", enabled=True, path="/first"),
            _login("Dropbox", enabled=False, path="/second"),
        ])
        outcome = reconciler.reconcile({}, fresh, category=Category.LOGIN_ITEMS)
        assert len(outcome.records) == 1
        assert outcome.records[0].path == "/first"
        assert outcome.duplicate_keys == ["Dropbox"]

    def test_sorted_case_insensitively(self, reconciler: IdentityReconciler) -> None:
        fresh = SourceReadResult(records=[_login("zoom"), _login("Alfred"), _login("bartender")])
        outcome = reconciler.reconcile({}, fresh, category=Category.LOGIN_ITEMS)
        assert [r.display_name for r in outcome.records] == ["Alfred", "bartender", "zoom"]


class TestFailedReads:
    """A read that could not answer never touches persisted state."""

    @pytest.mark.parametrize("status", [SourceStatus.ACCESS_DENIED, SourceStatus.UNAVAILABLE])
    def test_result_equals_snapshot(self, reconciler: IdentityReconciler, status: SourceStatus) -> None:
        snapshot = {
            "Dropbox": _entry("Dropbox", enabled=False),
            "Slack": _entry("Slack", enabled=True),
        }
        fresh = SourceReadResult(status=status, authoritative_enabled=False)
        outcome = reconciler.reconcile(snapshot, fresh, category=Category.LOGIN_ITEMS)
        assert outcome.snapshot is None
        assert {r.identity_key: r.enabled for r in outcome.records} == {"Dropbox": False, "Slack": True}

    def test_degraded_read_still_merges(self, reconciler: IdentityReconciler) -> None:
        fresh = SourceReadResult(
            records=[_login("Slack")], status=SourceStatus.DEGRADED, authoritative_enabled=False,
        )
        outcome = reconciler.reconcile({}, fresh, category=Category.LOGIN_ITEMS)
        assert outcome.snapshot is not None


class TestLiveCategories:
    """Agents, daemons and background items are authoritative."""

    def test_not_snapshot_backed(self, reconciler: IdentityReconciler) -> None:
        assert reconciler.uses_snapshot(Category.LOGIN_ITEMS)
        assert not reconciler.uses_snapshot(Category.AGENTS)

    def test_fresh_read_replaces_previous(self, reconciler: IdentityReconciler) -> None:
        previous = [_agent("com.example.old", True)]
        fresh = SourceReadResult(records=[_agent("com.example.new", False)])
        outcome = reconciler.reconcile(
            None, fresh, category=Category.AGENTS, previous_records=previous,
        )
        assert [r.identity_key for r in outcome.records] == ["com.example.new"]
        assert outcome.snapshot is None

    def test_failed_read_keeps_previous(self, reconciler: IdentityReconciler) -> None:
        previous = [_agent("com.example.old", True)]
        fresh = SourceReadResult(status=SourceStatus.ACCESS_DENIED)
        outcome = reconciler.reconcile(
            None, fresh, category=Category.DAEMONS, previous_records=previous,
        )
        assert outcome.records == previous
        assert outcome.retained_keys == ["com.example.old"]

    def test_snapshot_ignored_for_live_categories(self, reconciler: IdentityReconciler) -> None:
        snapshot = {"com.example.a": _entry("com.example.a", enabled=True)}
        fresh = SourceReadResult(records=[_agent("com.example.a", False)])
        outcome = reconciler.reconcile(snapshot, fresh, category=Category.AGENTS)
        assert outcome.records[0].enabled is False

    def test_custom_snapshot_categories(self) -> None:
        reconciler = IdentityReconciler({Category.AGENTS})
        assert reconciler.uses_snapshot(Category.AGENTS)
        assert not reconciler.uses_snapshot(Category.LOGIN_ITEMS)


class TestIdempotence:
    def test_reconciling_twice_is_stable(self, reconciler: IdentityReconciler) -> None:
        snapshot = {"Dropbox": _entry("Dropbox", enabled=False)}
        fresh = SourceReadResult(records=[_login("Slack")], authoritative_enabled=False)
        first = reconciler.reconcile(snapshot, fresh, category=Category.LOGIN_ITEMS)
        second = reconciler.reconcile(first.snapshot, fresh, category=Category.LOGIN_ITEMS)
        assert second.records == first.records
        assert second.snapshot == first.snapshot
