"""Identity reconciliation and the persisted snapshot model.

Public API::

    from launchledger.core.reconcile import IdentityReconciler

    outcome = IdentityReconciler().reconcile(snapshot, read, category=Category.LOGIN_ITEMS)
    store.replace(Category.LOGIN_ITEMS, outcome.records)
"""

from __future__ import annotations

from launchledger.core.reconcile.models import (
    ReconcileOutcome,
    Snapshot,
    SnapshotEntry,
    parse_snapshot,
    serialize_snapshot,
)
from launchledger.core.reconcile.reconciler import (
    DEFAULT_SNAPSHOT_CATEGORIES,
    IdentityReconciler,
    dedupe,
    record_from_entry,
)

__all__ = [
    "DEFAULT_SNAPSHOT_CATEGORIES",
    "IdentityReconciler",
    "ReconcileOutcome",
    "Snapshot",
    "SnapshotEntry",
    "dedupe",
    "parse_snapshot",
    "record_from_entry",
    "serialize_snapshot",
]
