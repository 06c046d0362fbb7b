"""Authoritative in-memory inventory, one slot per category.

Each category is replaced as a whole: readers never observe a half-written
category, and a failed refresh of one category leaves the others untouched.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime

from launchledger.core.records.diagnostics import Diagnostic, SourceStatus
from launchledger.core.records.models import Category, LaunchRecord


@dataclass(frozen=True)
class CategoryState:
    """Committed state of one category.

    Attributes:
        records: Reconciled, scored records in presentation order.
        status: Outcome of the read that produced them.
        diagnostics: Contained failures of that read.
        method: Source method that answered.
        updated_at: Commit time (UTC), None before the first commit.
    """

    records: tuple[LaunchRecord, ...] = ()
    status: SourceStatus = SourceStatus.OK
    diagnostics: tuple[Diagnostic, ...] = ()
    method: str = ""
    updated_at: datetime | None = None

    @property
    def access_denied(self) -> bool:
        return self.status is SourceStatus.ACCESS_DENIED


@dataclass
class InventoryStore:
    """Thread-safe holder of the current ``CategoryState`` per category."""

    _states: dict[Category, CategoryState] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def replace(self, category: Category, state: CategoryState) -> None:
        """Atomically swap in the new state of ``category``."""
        with self._lock:
            self._states[category] = state

    def state(self, category: Category) -> CategoryState:
        with self._lock:
            return self._states.get(category, CategoryState())

    def records(self, category: Category) -> list[LaunchRecord]:
        return list(self.state(category).records)

    def all_records(self) -> list[LaunchRecord]:
        """Every committed record, in category declaration order."""
        with self._lock:
            states = dict(self._states)
        out: list[LaunchRecord] = []
        for category in Category:
            state = states.get(category)
            if state is not None:
                out.extend(state.records)
        return out

    def find(self, category: Category, identity_key: str) -> LaunchRecord | None:
        """Return the record of ``category`` with ``identity_key``, if any."""
        for record in self.state(category).records:
            if record.identity_key == identity_key:
                return record
        return None

    def categories(self) -> list[Category]:
        """Categories committed at least once."""
        with self._lock:
            return [c for c in Category if c in self._states]
