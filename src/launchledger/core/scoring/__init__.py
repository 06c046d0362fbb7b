"""Startup impact scoring.

Public API::

    from launchledger.core.scoring import ImpactScorer

    scorer = ImpactScorer()
    metrics = scorer.score(record)
    summary = scorer.aggregate(all_records)
"""

from __future__ import annotations

from launchledger.core.scoring.engine import ImpactScorer
from launchledger.core.scoring.models import AggregateImpact, ImpactMetrics

__all__ = ["AggregateImpact", "ImpactMetrics", "ImpactScorer"]
