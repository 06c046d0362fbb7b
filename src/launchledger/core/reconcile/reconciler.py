"""Identity reconciliation across reads and the persisted snapshot.

Merge Algorithm (per category):
    1. Load the snapshot when the category is snapshot-backed.
    2. Live record already in the snapshot: keep the snapshot's ``enabled``
       and ``publisher`` unless the read is authoritative for ``enabled``.
    3. Live record not in the snapshot: inserted with its live ``enabled``.
    4. Persist the union of snapshot and live records. Items missing from
       the live read are retained; disappearance alone never erases history.
    5. Sort by case-insensitive display name, ties by identity key.

When the live read failed outright (access denied or every method
unavailable) the prior state is returned untouched and the snapshot is not
rewritten, so a permission gap can never overwrite what the user last saw.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace

from launchledger.core.records.diagnostics import SourceReadResult
from launchledger.core.records.models import (
    Agent,
    BackgroundItem,
    Category,
    Daemon,
    LaunchDeclaration,
    LaunchRecord,
    LoginItem,
    sort_key,
)
from launchledger.core.reconcile.models import ReconcileOutcome, Snapshot, SnapshotEntry

logger = logging.getLogger(__name__)

# Categories whose live source cannot always report activation state.
DEFAULT_SNAPSHOT_CATEGORIES: frozenset[Category] = frozenset({Category.LOGIN_ITEMS})


def record_from_entry(category: Category, entry: SnapshotEntry) -> LaunchRecord:
    """Rebuild a record of ``category`` from its persisted entry."""
    common = dict(
        display_name=entry.display_name,
        path=entry.path,
        enabled=entry.enabled,
        publisher=entry.publisher,
    )
    if category is Category.LOGIN_ITEMS:
        return LoginItem(**common)
    if category is Category.AGENTS:
        return Agent(**common, declaration=LaunchDeclaration(label=entry.identity_key))
    if category is Category.DAEMONS:
        return Daemon(**common, declaration=LaunchDeclaration(label=entry.identity_key))
    bundle_id = entry.identity_key if entry.identity_key != entry.path else None
    return BackgroundItem(**common, bundle_identifier=bundle_id)


def dedupe(records: Iterable[LaunchRecord]) -> tuple[list[LaunchRecord], list[str]]:
    """Keep the first record per identity key.

    Returns:
        Tuple of (unique records in input order, repeated keys).
    """
    seen: set[str] = set()
    unique: list[LaunchRecord] = []
    duplicates: list[str] = []
    for record in records:
        key = record.identity_key
        if key in seen:
            duplicates.append(key)
            continue
        seen.add(key)
        unique.append(record)
    return unique, duplicates


class IdentityReconciler:
    """Merges fresh candidates with prior state into one record per identity.

    Args:
        snapshot_categories: Categories backed by a persisted snapshot.
            Agents, daemons and background items are authoritative for
            ``enabled`` and need none; login items are not.
    """

    def __init__(
        self,
        snapshot_categories: Iterable[Category] = DEFAULT_SNAPSHOT_CATEGORIES,
    ) -> None:
        self._snapshot_categories = frozenset(snapshot_categories)

    def uses_snapshot(self, category: Category) -> bool:
        return category in self._snapshot_categories

    def reconcile(
        self,
        previous_snapshot: Mapping[str, SnapshotEntry] | None,
        fresh: SourceReadResult,
        *,
        category: Category,
        previous_records: Iterable[LaunchRecord] = (),
    ) -> ReconcileOutcome:
        """Merge one category's fresh read with its prior state.

        Args:
            previous_snapshot: Decoded snapshot (None or empty if absent).
            fresh: The live read for this category.
            category: Category being reconciled.
            previous_records: Records currently in the store, used when a
                category without a snapshot cannot be read.

        Returns:
            A ``ReconcileOutcome``. Never raises for bad input data.
        """
        if self.uses_snapshot(category):
            return self._reconcile_with_snapshot(dict(previous_snapshot or {}), fresh, category)
        return self._reconcile_live(fresh, previous_records)

    # -- Snapshot-backed categories --

    def _reconcile_with_snapshot(
        self, snapshot: Snapshot, fresh: SourceReadResult, category: Category,
    ) -> ReconcileOutcome:
        if fresh.status.is_failure:
            logger.warning(
                "%s read failed (%s); keeping %d persisted entries",
                category.value, fresh.status.value, len(snapshot),
            )
            records = [record_from_entry(category, e) for e in snapshot.values()]
            return ReconcileOutcome(
                records=sorted(records, key=sort_key),
                snapshot=None,
                retained_keys=sorted(snapshot),
            )

        candidates, duplicates = dedupe(fresh.records)
        merged: dict[str, LaunchRecord] = {}
        for candidate in candidates:
            entry = snapshot.get(candidate.identity_key)
            merged[candidate.identity_key] = self._merge_candidate(
                candidate, entry, fresh.authoritative_enabled,
            )

        retained = sorted(key for key in snapshot if key not in merged)
        for key in retained:
            merged[key] = record_from_entry(category, snapshot[key])

        new_snapshot = {key: SnapshotEntry.from_record(r) for key, r in merged.items()}
        return ReconcileOutcome(
            records=sorted(merged.values(), key=sort_key),
            snapshot=new_snapshot,
            retained_keys=retained,
            duplicate_keys=duplicates,
        )

    @staticmethod
    def _merge_candidate(
        candidate: LaunchRecord, entry: SnapshotEntry | None, authoritative: bool,
    ) -> LaunchRecord:
        if entry is None:
            return candidate
        path = candidate.path or entry.path
        if authoritative:
            publisher = candidate.publisher if candidate.publisher is not None else entry.publisher
            return replace(candidate, path=path, publisher=publisher)
        return replace(candidate, path=path, enabled=entry.enabled, publisher=entry.publisher)

    # -- Live-authoritative categories --

    @staticmethod
    def _reconcile_live(
        fresh: SourceReadResult, previous_records: Iterable[LaunchRecord],
    ) -> ReconcileOutcome:
        if fresh.status.is_failure:
            kept, _ = dedupe(previous_records)
            return ReconcileOutcome(
                records=sorted(kept, key=sort_key),
                retained_keys=sorted(r.identity_key for r in kept),
            )
        candidates, duplicates = dedupe(fresh.records)
        return ReconcileOutcome(
            records=sorted(candidates, key=sort_key),
            duplicate_keys=duplicates,
        )
