"""Inventory state, snapshot persistence and the refresh pipeline.

Public API::

    import asyncio
    from launchledger.inventory import build_manager

    manager = build_manager(load_settings())
    report = asyncio.run(manager.refresh())
    for record in manager.store.all_records():
        print(record.display_name, record.impact)
"""

from __future__ import annotations

from launchledger.inventory.manager import (
    CategoryReport,
    InventoryManager,
    Mutation,
    RefreshReport,
    build_manager,
)
from launchledger.inventory.snapshot import SnapshotStore
from launchledger.inventory.store import CategoryState, InventoryStore

__all__ = [
    "CategoryReport",
    "CategoryState",
    "InventoryManager",
    "InventoryStore",
    "Mutation",
    "RefreshReport",
    "SnapshotStore",
    "build_manager",
]
