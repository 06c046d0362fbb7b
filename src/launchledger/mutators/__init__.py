"""OS-level mutations: enable/disable, removal and reordering.

Public API::

    from launchledger.mutators import PriorityDirection, SystemMutator

    mutator = SystemMutator(CommandRunner(), snapshot_store=store)
    mutator.set_enabled(record, False)
    mutator.set_priority(login_item, PriorityDirection.HIGH)
"""

from __future__ import annotations

from launchledger.mutators.base import (
    MutationAction,
    MutationResult,
    Mutator,
    PriorityDirection,
)
from launchledger.mutators.system import SystemMutator, requires_elevation

__all__ = [
    "MutationAction",
    "MutationResult",
    "Mutator",
    "PriorityDirection",
    "SystemMutator",
    "requires_elevation",
]
