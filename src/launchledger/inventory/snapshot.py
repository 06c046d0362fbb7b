"""JSON-file persistence for the login item snapshot.

The file holds one JSON object keyed by namespace::

    {"com.launchledger.SavedLoginItems": [
        {"identityKey": "Dropbox", "displayName": "Dropbox",
         "path": "/Applications/Dropbox.app", "enabled": false, "publisher": null}
    ]}

Writes go to a temporary sibling file that then replaces the target, so a
crash mid-write leaves the previous snapshot intact. Other namespaces in
the same file are preserved.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from launchledger import _SNAPSHOT_NAMESPACE
from launchledger.core.reconcile.models import (
    Snapshot,
    SnapshotEntry,
    parse_snapshot,
    serialize_snapshot,
)
from launchledger.exceptions import SnapshotError

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Reads and atomically rewrites the snapshot file.

    Args:
        path: JSON file location. Parent directories are created on write.
        namespace: Key under which entries are stored.
    """

    def __init__(self, path: Path, namespace: str = _SNAPSHOT_NAMESPACE) -> None:
        self._path = path
        self._namespace = namespace
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def namespace(self) -> str:
        return self._namespace

    def _read_document(self) -> dict[str, Any]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("Cannot read snapshot %s: %s", self._path, exc)
            return {}
        except UnicodeDecodeError as exc:
            logger.warning("Ignoring undecodable snapshot file %s: %s", self._path, exc)
            return {}
        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring malformed snapshot file %s: %s", self._path, exc)
            return {}
        if not isinstance(document, dict):
            logger.warning("Ignoring snapshot file %s: top level is not an object", self._path)
            return {}
        return document

    def _write_document(self, document: dict[str, Any]) -> None:
        payload = json.dumps(document, sort_keys=True, indent=2)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent,
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise SnapshotError(f"Cannot write snapshot {self._path}: {exc}") from exc

    def load(self) -> Snapshot:
        """Return the stored snapshot; missing or malformed data yields {}."""
        with self._lock:
            return parse_snapshot(self._read_document().get(self._namespace))

    def save(self, snapshot: Snapshot) -> None:
        """Replace the stored snapshot.

        Raises:
            SnapshotError: If the file cannot be written.
        """
        with self._lock:
            document = self._read_document()
            document[self._namespace] = serialize_snapshot(snapshot)
            self._write_document(document)
        logger.debug("Saved %d snapshot entries to %s", len(snapshot), self._path)

    def update_enabled(self, identity_key: str, enabled: bool) -> bool:
        """Record an explicit enablement change for one entry.

        Returns:
            True if the entry existed and was updated.
        """
        with self._lock:
            document = self._read_document()
            snapshot = parse_snapshot(document.get(self._namespace))
            entry = snapshot.get(identity_key)
            if entry is None:
                return False
            snapshot[identity_key] = SnapshotEntry(
                identity_key=entry.identity_key,
                display_name=entry.display_name,
                path=entry.path,
                enabled=enabled,
                publisher=entry.publisher,
            )
            document[self._namespace] = serialize_snapshot(snapshot)
            self._write_document(document)
        return True

    def remove(self, identity_key: str) -> bool:
        """Drop one entry after the item itself was removed.

        Returns:
            True if the entry existed.
        """
        with self._lock:
            document = self._read_document()
            snapshot = parse_snapshot(document.get(self._namespace))
            if snapshot.pop(identity_key, None) is None:
                return False
            document[self._namespace] = serialize_snapshot(snapshot)
            self._write_document(document)
        return True

    def clear(self) -> None:
        """Delete the namespace; this is the only way history is erased."""
        with self._lock:
            document = self._read_document()
            if self._namespace not in document:
                return
            del document[self._namespace]
            self._write_document(document)
        logger.info("Cleared snapshot namespace %s", self._namespace)
