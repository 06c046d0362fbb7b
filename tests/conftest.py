"""Shared fixtures for launchledger tests.

Provides a scripted command runner (no real ``osascript``, ``launchctl`` or
``sfltool`` is ever spawned), a property list writer, a controllable clock,
scripted sources, and ``Settings`` rooted in a temporary home directory.
"""

from __future__ import annotations

import plistlib
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from launchledger.config import Settings
from launchledger.core.records import Category, SourceReadResult
from launchledger.discovery.base import SourceReader
from launchledger.discovery.commands import CommandResult, CommandRunner
from launchledger.exceptions import ExternalToolError


class FakeRunner(CommandRunner):
    """Answers commands from scripted rules instead of spawning processes.

    A rule matches when its text occurs in the space-joined argument vector.
    Rules are tried in the order they were added. Unmatched commands fail
    as if the tool were missing.
    """

    def __init__(self) -> None:
        super().__init__(timeout=1.0)
        self.calls: list[list[str]] = []
        self._rules: list[tuple[str, str, int, Exception | None]] = []

    def on(
        self,
        match: str,
        stdout: str = "",
        *,
        returncode: int = 0,
        error: Exception | None = None,
    ) -> FakeRunner:
        self._rules.append((match, stdout, returncode, error))
        return self

    def run(self, args: list[str], *, check: bool = True) -> CommandResult:
        self.calls.append(list(args))
        joined = " ".join(args)
        for match, stdout, returncode, error in self._rules:
            if match not in joined:
                continue
            if error is not None:
                raise error
            result = CommandResult(tuple(args), returncode, stdout, "boom" if returncode else "")
            if check and returncode != 0:
                raise ExternalToolError(
                    args, f"{args[0]} exited with status {returncode}",
                    exit_status=returncode, stderr=result.stderr,
                )
            return result
        raise ExternalToolError(args, f"{args[0]} not found")

    def called_with(self, text: str) -> bool:
        return any(text in " ".join(call) for call in self.calls)


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_runner() -> FakeRunner:
    """A runner with no rules: every command fails as missing."""
    return FakeRunner()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def write_plist() -> Callable[..., Path]:
    """Return a helper writing ``data`` as a property list at ``path``."""

    def _write(path: Path, data: Any, fmt: plistlib.PlistFormat = plistlib.FMT_XML) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(plistlib.dumps(data, fmt=fmt))
        return path

    return _write


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings whose every location lives under ``tmp_path``."""
    home = tmp_path / "home"
    home.mkdir()
    return Settings(
        home=home,
        agent_dirs=["~/Library/LaunchAgents", str(tmp_path / "Library" / "LaunchAgents")],
        daemon_dirs=[str(tmp_path / "Library" / "LaunchDaemons")],
        snapshot_path="~/state/snapshot.json",
        backup_dir="~/state/backups",
        command_timeout=1.0,
        fetch_timeout=5.0,
    )


class ScriptedSource(SourceReader):
    """Source returning queued results; the last one repeats.

    Args:
        category: Category reported.
        results: Results to return in order.
        delay: Seconds each read blocks for.
        on_read: Called at the start of each read.
    """

    def __init__(
        self,
        category: Category,
        *results: SourceReadResult,
        delay: float = 0.0,
        on_read: Callable[[], None] | None = None,
    ) -> None:
        self._category = category
        self._results = list(results) or [SourceReadResult()]
        self.delay = delay
        self._on_read = on_read
        self.reads = 0

    @property
    def category(self) -> Category:
        return self._category

    def push(self, result: SourceReadResult) -> None:
        self._results.append(result)

    def _read(self) -> SourceReadResult:
        self.reads += 1
        if self._on_read is not None:
            self._on_read()
        if self.delay:
            time.sleep(self.delay)
        if len(self._results) > 1:
            return self._results.pop(0)
        return self._results[0]


@pytest.fixture
def scripted_source() -> type[ScriptedSource]:
    """The ``ScriptedSource`` class, for building fake sources."""
    return ScriptedSource
