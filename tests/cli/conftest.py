"""Shared fixtures for CLI tests.

The CLI is driven through ``CliRunner`` with a pre-seeded context object:
``Settings`` rooted in a temporary home and a manager factory wiring the
real sources to a scripted command runner. Nothing touches the host system.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from click.testing import CliRunner, Result

from launchledger.cli.main import cli
from launchledger.config import Settings
from launchledger.core.records import Category
from launchledger.core.reconcile import IdentityReconciler
from launchledger.core.scoring import ImpactScorer
from launchledger.discovery import (
    AgentDaemonSource,
    BackgroundItemSource,
    LoadStateCache,
    LoginItemSource,
)
from launchledger.inventory import InventoryManager, InventoryStore, SnapshotStore
from launchledger.mutators import SystemMutator

LOGIN_LIST = "name of every login item"


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CliRunner for invoking commands."""
    return CliRunner()


@pytest.fixture
def loaded_labels() -> set[str]:
    """Labels the fake ``launchctl list`` reports as loaded."""
    return set()


@pytest.fixture
def manager_factory(fake_runner, loaded_labels: set[str]) -> Callable[[Settings], InventoryManager]:
    """Build an ``InventoryManager`` over the scripted runner."""

    def factory(settings: Settings) -> InventoryManager:
        load_state = LoadStateCache(fetcher=lambda: set(loaded_labels))
        snapshot_store = SnapshotStore(settings.snapshot_file, settings.snapshot_namespace)
        sources = {
            Category.LOGIN_ITEMS: LoginItemSource(fake_runner, settings.btm_database),
            Category.AGENTS: AgentDaemonSource(Category.AGENTS, settings.agent_paths, load_state),
            Category.DAEMONS: AgentDaemonSource(Category.DAEMONS, settings.daemon_paths, load_state),
            Category.BACKGROUND_ITEMS: BackgroundItemSource(fake_runner, settings.btm_database),
        }
        return InventoryManager(
            sources,
            IdentityReconciler(),
            ImpactScorer(),
            InventoryStore(),
            snapshot_store,
            fetch_timeout=settings.fetch_timeout,
            mutator=SystemMutator(fake_runner, settings.protected_prefixes, snapshot_store),
            load_state=load_state,
        )

    return factory


@pytest.fixture
def invoke(runner: CliRunner, settings: Settings, manager_factory, fake_runner) -> Callable[..., Result]:
    """Invoke the CLI with fake wiring.

    Rules registered by the test take precedence; afterwards System Events
    and ``sfltool`` answer with empty listings.
    """

    def _invoke(*args: str, input: str | None = None) -> Result:
        fake_runner.on(LOGIN_LIST, "")
        fake_runner.on("dumpbtm", "")
        return runner.invoke(
            cli,
            list(args),
            obj={"settings": settings, "manager_factory": manager_factory},
            input=input,
        )

    return _invoke


@pytest.fixture
def agent_dir(settings: Settings) -> Path:
    """The machine-wide launch agent directory of the test settings."""
    return settings.agent_paths[1]


@pytest.fixture
def add_agent(agent_dir: Path, write_plist) -> Callable[..., Path]:
    """Write an agent declaration and return its path."""

    def _add(label: str, **keys) -> Path:
        data = {"Label": label, "ProgramArguments": [f"/usr/local/bin/{label.rsplit('.', 1)[-1]}"]}
        data.update(keys)
        return write_plist(agent_dir / f"{label}.plist", data)

    return _add


@pytest.fixture
def add_login_items(fake_runner) -> Callable[..., None]:
    """Script System Events to report ``(name, path, hidden)`` login items."""

    def _add(*items: tuple[str, str, bool]) -> None:
        fake_runner.on(LOGIN_LIST, "\n".join(name for name, _, _ in items))
        for name, path, hidden in items:
            fake_runner.on(f'of login item "{name}"', f"{path}\t{'true' if hidden else 'false'}")

    return _add
