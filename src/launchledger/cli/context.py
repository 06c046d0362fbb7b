"""Shared plumbing for CLI commands: settings, manager and async bridge.

``ctx.obj`` is a dict populated by the root group. Tests may pre-seed it
through ``CliRunner.invoke(..., obj={...})`` with a ``manager_factory`` or
ready-made ``settings``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

import click

from launchledger.config import Settings
from launchledger.core.backup import BackupManager
from launchledger.core.records.models import Category
from launchledger.inventory import InventoryManager, build_manager

T = TypeVar("T")

CATEGORY_CHOICE = click.Choice([c.value for c in Category])


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine in a synchronous context."""
    return asyncio.run(coro)


def get_settings(ctx: click.Context) -> Settings:
    obj = ctx.ensure_object(dict)
    return obj.setdefault("settings", Settings())


def get_manager(ctx: click.Context) -> InventoryManager:
    """Build the inventory manager once per invocation."""
    obj = ctx.ensure_object(dict)
    if "manager" not in obj:
        factory = obj.get("manager_factory", build_manager)
        obj["manager"] = factory(get_settings(ctx))
    return obj["manager"]


def get_backup_manager(ctx: click.Context) -> BackupManager:
    return BackupManager(get_settings(ctx).backup_path)
