"""Reconciliation data models: snapshot entries and reconcile outcomes.

``SnapshotEntry`` is the durable subset of a record that survives process
restarts. Its dictionary form is the wire format of the snapshot store::

    {"identityKey": ..., "displayName": ..., "path": ..., "enabled": ..., "publisher": ...}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from launchledger.core.records.models import LaunchRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotEntry:
    """Last-known state of one item.

    Attributes:
        identity_key: Stable identity of the item within its category.
        display_name: Name shown to the user.
        path: Backing path (may be empty).
        enabled: Last known activation state.
        publisher: Optional attribution.
    """

    identity_key: str
    display_name: str
    path: str
    enabled: bool
    publisher: str | None = None

    @classmethod
    def from_record(cls, record: LaunchRecord) -> SnapshotEntry:
        return cls(
            identity_key=record.identity_key,
            display_name=record.display_name,
            path=record.path,
            enabled=record.enabled,
            publisher=record.publisher,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "identityKey": self.identity_key,
            "displayName": self.display_name,
            "path": self.path,
            "enabled": self.enabled,
            "publisher": self.publisher,
        }

    @classmethod
    def from_dict(cls, data: Any) -> SnapshotEntry | None:
        """Decode one wire entry; return None if it is malformed."""
        if not isinstance(data, dict):
            return None
        key = data.get("identityKey")
        name = data.get("displayName", key)
        path = data.get("path", "")
        enabled = data.get("enabled")
        publisher = data.get("publisher")
        if not isinstance(key, str) or not key:
            return None
        if not isinstance(name, str) or not isinstance(path, str):
            return None
        if not isinstance(enabled, bool):
            return None
        if publisher is not None and not isinstance(publisher, str):
            return None
        return cls(
            identity_key=key, display_name=name, path=path,
            enabled=enabled, publisher=publisher,
        )


Snapshot = dict[str, SnapshotEntry]


def parse_snapshot(raw: Any) -> Snapshot:
    """Decode a serialized snapshot array.

    Malformed data is never fatal: a non-list yields an empty snapshot and
    malformed entries are skipped. When a key repeats, the first entry wins.

    Args:
        raw: The decoded JSON value stored under the snapshot namespace.

    Returns:
        Mapping of identity key to ``SnapshotEntry``.
    """
    if raw is None:
        return {}
    if not isinstance(raw, list):
        logger.warning("Ignoring malformed snapshot: expected a list, got %s", type(raw).__name__)
        return {}
    snapshot: Snapshot = {}
    for item in raw:
        entry = SnapshotEntry.from_dict(item)
        if entry is None:
            logger.warning("Skipping malformed snapshot entry: %r", item)
            continue
        snapshot.setdefault(entry.identity_key, entry)
    return snapshot


def serialize_snapshot(snapshot: Snapshot) -> list[dict[str, Any]]:
    """Encode a snapshot deterministically (sorted by identity key)."""
    return [snapshot[key].to_dict() for key in sorted(snapshot)]


@dataclass
class ReconcileOutcome:
    """Result of reconciling one category.

    Attributes:
        records: Merged records, sorted for presentation.
        snapshot: Snapshot to persist (None if the category has none or
            the snapshot must not be rewritten).
        retained_keys: Identity keys kept from prior state but absent from
            the live read.
        duplicate_keys: Identity keys that appeared more than once in the
            live read (first occurrence kept).
    """

    records: list[LaunchRecord]
    snapshot: Snapshot | None = None
    retained_keys: list[str] = field(default_factory=list)
    duplicate_keys: list[str] = field(default_factory=list)
