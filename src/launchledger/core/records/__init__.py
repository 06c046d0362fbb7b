"""Launch record data model and source read results.

Public API::

    from launchledger.core.records import Agent, Category, LaunchDeclaration

    record = Agent(
        display_name="updater",
        path="/Library/LaunchAgents/com.example.updater.plist",
        enabled=True,
        declaration=LaunchDeclaration(label="com.example.updater", run_at_load=True),
    )
    assert record.identity_key == "com.example.updater"
"""

from __future__ import annotations

from launchledger.core.records.diagnostics import (
    Diagnostic,
    DiagnosticKind,
    SourceReadResult,
    SourceStatus,
)
from launchledger.core.records.models import (
    CATEGORY_KINDS,
    Agent,
    BackgroundItem,
    Category,
    Daemon,
    Impact,
    ItemKind,
    LaunchDeclaration,
    LaunchRecord,
    LoginItem,
    display_name_from_label,
    sort_key,
)

__all__ = [
    "Agent",
    "BackgroundItem",
    "CATEGORY_KINDS",
    "Category",
    "Daemon",
    "Diagnostic",
    "DiagnosticKind",
    "Impact",
    "ItemKind",
    "LaunchDeclaration",
    "LaunchRecord",
    "LoginItem",
    "SourceReadResult",
    "SourceStatus",
    "display_name_from_label",
    "sort_key",
]
