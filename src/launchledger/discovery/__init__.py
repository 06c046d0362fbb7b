"""Autostart source readers and the launchd load-state cache.

Each reader queries one OS-level source and returns a ``SourceReadResult``
instead of raising, so a permission gap or a missing helper tool degrades a
single category and never the whole inventory.

Public API::

    from launchledger.discovery import AgentDaemonSource, LoadStateCache

    cache = LoadStateCache(CommandRunner())
    source = AgentDaemonSource(Category.AGENTS, [Path.home() / "Library/LaunchAgents"], cache)
    result = source.read()
    for record in result.records:
        print(record.label, record.enabled)
"""

from __future__ import annotations

from launchledger.discovery.background_items import (
    BackgroundItemSource,
    parse_btm_archive,
    parse_dumpbtm,
)
from launchledger.discovery.base import SourceReader, load_property_list
from launchledger.discovery.commands import CommandResult, CommandRunner, applescript_string
from launchledger.discovery.launchd import AgentDaemonSource, declaration_from_mapping
from launchledger.discovery.load_state import LoadStateCache, parse_launchctl_list
from launchledger.discovery.login_items import LoginItemSource, file_url_to_path

__all__ = [
    "AgentDaemonSource",
    "BackgroundItemSource",
    "CommandResult",
    "CommandRunner",
    "LoadStateCache",
    "LoginItemSource",
    "SourceReader",
    "applescript_string",
    "declaration_from_mapping",
    "file_url_to_path",
    "load_property_list",
    "parse_btm_archive",
    "parse_dumpbtm",
    "parse_launchctl_list",
]
