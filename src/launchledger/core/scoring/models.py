"""Scoring data models: per-item metrics and the aggregate estimate.

Pure data holders with no business logic, importable by the CLI and the
export layer without pulling in the scoring rules.
"""

from __future__ import annotations

from dataclasses import dataclass

from launchledger.core.records.models import Impact


@dataclass(frozen=True)
class ImpactMetrics:
    """Heuristic startup cost of a single item.

    Attributes:
        estimated_startup_time_seconds: Time the item adds to startup.
        memory_impact_mb: Estimated resident memory.
        cpu_score: Raw integer CPU score before categorisation.
        cpu_impact: Categorical CPU impact.
        overall_score: ``10*time + cpu_score + memory/30``.
        overall_impact: Categorical overall impact.
    """

    estimated_startup_time_seconds: float
    memory_impact_mb: int
    cpu_score: int
    cpu_impact: Impact
    overall_score: float
    overall_impact: Impact


@dataclass(frozen=True)
class AggregateImpact:
    """Startup estimate across every enabled item.

    Attributes:
        estimated_seconds: ``max + 0.3 * sum`` of the individual times,
            modelling parallel startup with a residual serial tail.
        total_seconds: Plain sum of the individual times.
        enabled_count: Number of enabled items that contributed.
    """

    estimated_seconds: float = 0.0
    total_seconds: float = 0.0
    enabled_count: int = 0
