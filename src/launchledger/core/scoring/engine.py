"""Deterministic startup-impact estimation.

Every figure is a pure function of the record's declared attributes. No OS
query happens here, so scoring the same record twice always yields the same
metrics.

Scoring Model:
    time    = base + sum(contributions)
    cpu     = base + sum(modifiers)          -> >=4 High, >=2 Medium, else Low
    memory  = base (+ KeepAlive bonus)
    overall = 10*time + cpu + memory/30      -> >=15 High, >=8 Medium, else Low

Aggregate Model:
    estimate = max(times) + 0.3 * sum(times) over enabled items
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from launchledger.core.records.models import (
    Agent,
    BackgroundItem,
    Daemon,
    Impact,
    LaunchDeclaration,
    LaunchRecord,
    LoginItem,
)
from launchledger.core.scoring.models import AggregateImpact, ImpactMetrics

# ---------------------------------------------------------------------------
# Time contributions (seconds)
# ---------------------------------------------------------------------------

LOGIN_ITEM_TIME: float = 0.2
AGENT_BASE_TIME: float = 0.05
DAEMON_BASE_TIME: float = 0.10

AGENT_RUN_AT_LOAD_TIME: float = 0.10
AGENT_KEEP_ALIVE_TIME: float = 0.15
AGENT_START_INTERVAL_TIME: float = 0.05
AGENT_WATCH_PATHS_TIME: float = 0.08

DAEMON_RUN_AT_LOAD_TIME: float = 0.15
DAEMON_KEEP_ALIVE_TIME: float = 0.20
DAEMON_SOCKETS_TIME: float = 0.12

# ---------------------------------------------------------------------------
# CPU score
# ---------------------------------------------------------------------------

LOGIN_ITEM_CPU: int = 1
AGENT_BASE_CPU: int = 1
DAEMON_BASE_CPU: int = 2
KEEP_ALIVE_CPU: int = 2
AGENT_SCHEDULE_CPU: int = 1
DAEMON_SOCKETS_CPU: int = 1

CPU_HIGH_THRESHOLD: int = 4
CPU_MEDIUM_THRESHOLD: int = 2

# ---------------------------------------------------------------------------
# Memory (MB)
# ---------------------------------------------------------------------------

LOGIN_ITEM_MEMORY: int = 50
AGENT_BASE_MEMORY: int = 30
AGENT_KEEP_ALIVE_MEMORY: int = 20
DAEMON_BASE_MEMORY: int = 50
DAEMON_KEEP_ALIVE_MEMORY: int = 30

# ---------------------------------------------------------------------------
# Overall score
# ---------------------------------------------------------------------------

OVERALL_TIME_WEIGHT: float = 10.0
OVERALL_MEMORY_DIVISOR: float = 30.0
OVERALL_HIGH_THRESHOLD: float = 15.0
OVERALL_MEDIUM_THRESHOLD: float = 8.0

SERIAL_FRACTION: float = 0.3


class ImpactScorer:
    """Computes per-item and aggregate startup impact.

    The scorer is stateless; one instance may be shared across threads.

    Example::

        scorer = ImpactScorer()
        metrics = scorer.score(record)
        print(metrics.overall_impact.label)
    """

    # -- Per-item scoring --

    def score(self, record: LaunchRecord) -> ImpactMetrics:
        """Score a single record.

        Login items and background items use the flat login item profile.
        Agents and daemons are scored from their declaration.

        Args:
            record: Any ``LaunchRecord``.

        Returns:
            The record's ``ImpactMetrics``.
        """
        if isinstance(record, Agent):
            time, cpu, memory = self._agent_components(record.declaration)
        elif isinstance(record, Daemon):
            time, cpu, memory = self._daemon_components(record.declaration)
        elif isinstance(record, (LoginItem, BackgroundItem)):
            time, cpu, memory = LOGIN_ITEM_TIME, LOGIN_ITEM_CPU, LOGIN_ITEM_MEMORY
        else:
            raise TypeError(f"Cannot score {type(record).__name__}")

        overall = self.overall_score(time, cpu, memory)
        return ImpactMetrics(
            estimated_startup_time_seconds=time,
            memory_impact_mb=memory,
            cpu_score=cpu,
            cpu_impact=self.cpu_level(cpu),
            overall_score=overall,
            overall_impact=self.overall_level(overall),
        )

    def annotate(self, record: LaunchRecord) -> LaunchRecord:
        """Return a copy of ``record`` with ``impact`` set from its score."""
        return replace(record, impact=self.score(record).overall_impact)

    @staticmethod
    def _agent_components(decl: LaunchDeclaration) -> tuple[float, int, int]:
        time = AGENT_BASE_TIME
        cpu = AGENT_BASE_CPU
        memory = AGENT_BASE_MEMORY
        if decl.run_at_load:
            time += AGENT_RUN_AT_LOAD_TIME
        if decl.keep_alive:
            time += AGENT_KEEP_ALIVE_TIME
            cpu += KEEP_ALIVE_CPU
            memory += AGENT_KEEP_ALIVE_MEMORY
        if decl.has_start_interval:
            time += AGENT_START_INTERVAL_TIME
            cpu += AGENT_SCHEDULE_CPU
        if decl.has_watch_paths:
            time += AGENT_WATCH_PATHS_TIME
        # Any WatchPaths key costs CPU; only a non-empty list costs time.
        if decl.has_watch_paths or decl.declares_watch_paths:
            cpu += AGENT_SCHEDULE_CPU
        return time, cpu, memory

    @staticmethod
    def _daemon_components(decl: LaunchDeclaration) -> tuple[float, int, int]:
        time = DAEMON_BASE_TIME
        cpu = DAEMON_BASE_CPU
        memory = DAEMON_BASE_MEMORY
        if decl.run_at_load:
            time += DAEMON_RUN_AT_LOAD_TIME
        if decl.keep_alive:
            time += DAEMON_KEEP_ALIVE_TIME
            cpu += KEEP_ALIVE_CPU
            memory += DAEMON_KEEP_ALIVE_MEMORY
        if decl.has_sockets:
            time += DAEMON_SOCKETS_TIME
            cpu += DAEMON_SOCKETS_CPU
        return time, cpu, memory

    # -- Level mapping --

    @staticmethod
    def cpu_level(cpu_score: int) -> Impact:
        """Map a CPU score to a level: >=4 High, >=2 Medium, else Low."""
        if cpu_score >= CPU_HIGH_THRESHOLD:
            return Impact.HIGH
        if cpu_score >= CPU_MEDIUM_THRESHOLD:
            return Impact.MEDIUM
        return Impact.LOW

    @staticmethod
    def overall_score(time: float, cpu_score: int, memory_mb: int) -> float:
        """Combine the three components: ``10*time + cpu + memory/30``."""
        return (
            time * OVERALL_TIME_WEIGHT
            + float(cpu_score)
            + float(memory_mb) / OVERALL_MEMORY_DIVISOR
        )

    @staticmethod
    def overall_level(score: float) -> Impact:
        """Map an overall score to a level: >=15 High, >=8 Medium, else Low."""
        if score >= OVERALL_HIGH_THRESHOLD:
            return Impact.HIGH
        if score >= OVERALL_MEDIUM_THRESHOLD:
            return Impact.MEDIUM
        return Impact.LOW

    # -- Aggregate --

    def aggregate(self, records: Iterable[LaunchRecord]) -> AggregateImpact:
        """Estimate total startup cost of every enabled record.

        Args:
            records: Records from any mix of categories. Disabled records
                are ignored.

        Returns:
            ``AggregateImpact`` with ``max + 0.3*sum``, the plain sum, and the
            number of contributing items. All zero when nothing is enabled.
        """
        times = [
            self.score(r).estimated_startup_time_seconds
            for r in records if r.enabled
        ]
        if not times:
            return AggregateImpact(estimated_seconds=0.0, total_seconds=0.0, enabled_count=0)
        total = sum(times)
        return AggregateImpact(
            estimated_seconds=max(times) + total * SERIAL_FRACTION,
            total_seconds=total,
            enabled_count=len(times),
        )
