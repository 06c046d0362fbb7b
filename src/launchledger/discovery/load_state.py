"""Short-lived cache of which launchd services are currently loaded.

Querying ``launchctl`` once per declaration would spawn hundreds of
processes per refresh, so the cache performs one bulk ``launchctl list``
and answers label lookups from memory until the staleness window expires.

Failure Semantics:
    A failed refresh yields an empty loaded-set ("nothing confirmed
    loaded"). Callers therefore see false negatives, never false
    positives. The failure is remembered in ``last_error`` for diagnostics.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from launchledger.discovery.commands import LAUNCHCTL, CommandRunner
from launchledger.exceptions import ExternalToolError

logger = logging.getLogger(__name__)

DEFAULT_STALENESS: float = 5.0


def parse_launchctl_list(output: str) -> set[str]:
    """Extract labels from ``launchctl list`` output.

    Each data line is ``PID<TAB>Status<TAB>Label``; the header line is
    skipped.
    """
    labels: set[str] = set()
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 3:
            continue
        label = parts[2].strip()
        if not label or (parts[0] == "PID" and label == "Label"):
            continue
        labels.add(label)
    return labels


class LoadStateCache:
    """Bulk-refreshed label -> loaded lookup with one shared timestamp.

    Refreshes are single-flight: concurrent lookups during a refresh wait
    for it instead of triggering their own.

    Args:
        runner: Command runner used by the default fetcher.
        fetcher: Returns the set of loaded labels; overrides ``runner``.
        staleness: Seconds after which the whole cache is invalidated.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        fetcher: Callable[[], set[str]] | None = None,
        staleness: float = DEFAULT_STALENESS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._runner = runner or CommandRunner()
        self._fetcher = fetcher or self._fetch_from_launchctl
        self._staleness = staleness
        self._clock = clock
        self._lock = threading.Lock()
        self._loaded: frozenset[str] = frozenset()
        self._fetched_at: float | None = None
        self._refresh_count = 0
        self.last_error: str | None = None

    @property
    def fetched_at(self) -> float | None:
        return self._fetched_at

    @property
    def refresh_count(self) -> int:
        """Number of bulk refreshes performed so far."""
        return self._refresh_count

    def _is_stale(self) -> bool:
        if self._fetched_at is None:
            return True
        return self._clock() - self._fetched_at > self._staleness

    def _fetch_from_launchctl(self) -> set[str]:
        result = self._runner.run([LAUNCHCTL, "list"])
        return parse_launchctl_list(result.stdout)

    def refresh(self) -> None:
        """Replace the whole cache with a fresh bulk query."""
        try:
            loaded = frozenset(self._fetcher())
            self.last_error = None
        except ExternalToolError as exc:
            logger.warning("Could not list loaded services: %s", exc)
            loaded = frozenset()
            self.last_error = str(exc)
        except Exception as exc:
            logger.warning("Unexpected failure listing loaded services", exc_info=True)
            loaded = frozenset()
            self.last_error = f"{type(exc).__name__}: {exc}"
        self._loaded = loaded
        self._fetched_at = self._clock()
        self._refresh_count += 1

    def loaded_labels(self) -> frozenset[str]:
        """Return the loaded-set, refreshing it first if stale."""
        with self._lock:
            if self._is_stale():
                self.refresh()
            return self._loaded

    def is_loaded(self, label: str) -> bool:
        """Return True if ``label`` is confirmed loaded."""
        return label in self.loaded_labels()

    def invalidate(self) -> None:
        """Force the next lookup to refresh."""
        with self._lock:
            self._fetched_at = None
