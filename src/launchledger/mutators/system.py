"""Mutations backed by the macOS helper tools.

Command Mapping:
    - Login items: System Events via ``osascript``. Disabling deletes the
      login item (System Events has no disabled state), enabling re-creates
      it from its path. The snapshot entry is updated so the explicit
      choice survives later reads that cannot see disabled items.
    - Agents and daemons: ``launchctl load|unload <declaration>``. Removal
      unloads a loaded service, then deletes the declaration file.
    - Background items: ``sfltool add-item|remove-item -l <identifier>``.
"""

from __future__ import annotations

import logging
import os
import plistlib
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING
from xml.parsers.expat import ExpatError

from launchledger.config import DEFAULT_PROTECTED_PREFIXES
from launchledger.core.records.models import (
    Agent,
    BackgroundItem,
    Daemon,
    LaunchRecord,
    LoginItem,
)
from launchledger.discovery.commands import (
    LAUNCHCTL,
    OSASCRIPT,
    SFLTOOL,
    CommandRunner,
    applescript_string,
)
from launchledger.exceptions import ExternalToolError, MutationError
from launchledger.mutators.base import (
    MutationAction,
    MutationResult,
    Mutator,
    PriorityDirection,
)

if TYPE_CHECKING:
    from launchledger.inventory.snapshot import SnapshotStore

logger = logging.getLogger(__name__)

NICE_MIN = -20
NICE_MAX = 20

# Locations only an administrator can modify.
_ELEVATED_PREFIXES = ("/System/", "/Library/")

_DELETE_LOGIN_ITEM = """\
tell application "System Events"
    delete login item {name}
end tell"""

_MAKE_LOGIN_ITEM = """\
tell application "System Events"
    make login item at {position} with properties {{path:{path}, hidden:false}}
end tell"""


def requires_elevation(path: str) -> bool:
    """Return True if changing ``path`` needs administrator rights.

    True for system locations and for files owned by root.
    """
    if path.startswith(_ELEVATED_PREFIXES):
        return True
    try:
        return os.stat(path).st_uid == 0
    except OSError:
        return False


class SystemMutator(Mutator):
    """Applies mutations with ``osascript``, ``launchctl`` and ``sfltool``.

    Args:
        runner: Executes the helper tools.
        protected_prefixes: Paths under these prefixes are never removed.
        snapshot_store: Receives explicit login item enablement changes.
    """

    def __init__(
        self,
        runner: CommandRunner | None = None,
        protected_prefixes: Sequence[str] = DEFAULT_PROTECTED_PREFIXES,
        snapshot_store: SnapshotStore | None = None,
    ) -> None:
        self._runner = runner or CommandRunner()
        self._protected = tuple(protected_prefixes)
        self._snapshot_store = snapshot_store

    def is_protected(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self._protected)

    def _run(self, args: list[str], *, path: str = "") -> tuple[str, ...]:
        """Run one command, translating tool failures into MutationError."""
        try:
            result = self._runner.run(args)
        except ExternalToolError as exc:
            raise MutationError(
                str(exc),
                command=exc.command,
                exit_status=exc.exit_status,
                path=path,
                stderr=exc.stderr,
            ) from exc
        return result.args

    def _osascript(self, script: str, *, path: str = "") -> tuple[str, ...]:
        return self._run([OSASCRIPT, "-e", script], path=path)

    # -- Enable / disable --

    def set_enabled(self, record: LaunchRecord, enabled: bool) -> MutationResult:
        action = MutationAction.ENABLE if enabled else MutationAction.DISABLE
        if isinstance(record, LoginItem):
            commands = self._toggle_login_item(record, enabled)
        elif isinstance(record, (Agent, Daemon)):
            verb = "load" if enabled else "unload"
            commands = [self._run([LAUNCHCTL, verb, record.path], path=record.path)]
        elif isinstance(record, BackgroundItem):
            verb = "add-item" if enabled else "remove-item"
            target = record.bundle_identifier or record.display_name
            commands = [self._run([SFLTOOL, verb, "-l", target], path=record.path)]
        else:
            raise MutationError(f"Unsupported record type: {type(record).__name__}")
        logger.info("%sd %s", action.value.capitalize(), record.identity_key)
        return MutationResult(
            identity_key=record.identity_key,
            action=action,
            commands=commands,
            message=f"{action.value}d {record.display_name}",
        )

    def _toggle_login_item(self, record: LoginItem, enabled: bool) -> list[tuple[str, ...]]:
        if enabled:
            if not record.path:
                raise MutationError(
                    f"Cannot enable {record.display_name!r}: its path is unknown",
                )
            commands = [self._make_login_item(record, "end")]
        else:
            commands = [self._delete_login_item(record)]
        if self._snapshot_store is not None:
            self._snapshot_store.update_enabled(record.identity_key, enabled)
        return commands

    def _delete_login_item(self, record: LoginItem) -> tuple[str, ...]:
        script = _DELETE_LOGIN_ITEM.format(name=applescript_string(record.display_name))
        return self._osascript(script, path=record.path)

    def _make_login_item(self, record: LoginItem, position: str) -> tuple[str, ...]:
        script = _MAKE_LOGIN_ITEM.format(position=position, path=applescript_string(record.path))
        return self._osascript(script, path=record.path)

    # -- Removal --

    def remove(self, record: LaunchRecord) -> MutationResult:
        if isinstance(record, LoginItem):
            commands = [self._delete_login_item(record)]
            if self._snapshot_store is not None:
                self._snapshot_store.remove(record.identity_key)
        elif isinstance(record, (Agent, Daemon)):
            commands = self._remove_declaration(record)
        elif isinstance(record, BackgroundItem):
            target = record.bundle_identifier or record.display_name
            commands = [self._run([SFLTOOL, "remove-item", "-l", target], path=record.path)]
        else:
            raise MutationError(f"Unsupported record type: {type(record).__name__}")
        logger.info("Removed %s", record.identity_key)
        return MutationResult(
            identity_key=record.identity_key,
            action=MutationAction.REMOVE,
            commands=commands,
            message=f"removed {record.display_name}",
        )

    def _remove_declaration(self, record: Agent | Daemon) -> list[tuple[str, ...]]:
        if self.is_protected(record.path):
            raise MutationError(
                "Cannot remove system files. This item is protected.",
                path=record.path,
            )
        commands: list[tuple[str, ...]] = []
        if record.enabled:
            commands.append(self._run([LAUNCHCTL, "unload", record.path], path=record.path))
        try:
            Path(record.path).unlink()
        except OSError as exc:
            hint = " (administrator rights required)" if requires_elevation(record.path) else ""
            raise MutationError(
                f"Cannot delete {record.path}: {exc.strerror or exc}{hint}",
                path=record.path,
            ) from exc
        return commands

    # -- Ordering and process priority --

    def set_priority(self, record: LaunchRecord, direction: PriorityDirection) -> MutationResult:
        if not isinstance(record, LoginItem):
            raise MutationError(
                f"Launch order applies to login items only, not {record.kind.value}",
                path=record.path,
            )
        if not record.path:
            raise MutationError(f"Cannot reorder {record.display_name!r}: its path is unknown")
        position = "beginning" if direction is PriorityDirection.HIGH else "end"
        commands = [
            self._delete_login_item(record),
            self._make_login_item(record, position),
        ]
        return MutationResult(
            identity_key=record.identity_key,
            action=MutationAction.PRIORITY,
            commands=commands,
            message=f"moved {record.display_name} to the {position}",
        )

    def set_process_priority(self, record: LaunchRecord, nice: int) -> MutationResult:
        """Rewrite the ``Nice`` key of an agent or daemon declaration.

        The change applies the next time launchd loads the service.

        Raises:
            MutationError: For other record types, out-of-range values, or
                unreadable and unwritable declarations.
        """
        if not isinstance(record, (Agent, Daemon)):
            raise MutationError(
                f"Process priority applies to agents and daemons only, not {record.kind.value}",
                path=record.path,
            )
        if isinstance(nice, bool) or not NICE_MIN <= nice <= NICE_MAX:
            raise MutationError(f"Nice must be between {NICE_MIN} and {NICE_MAX}, got {nice!r}")

        path = Path(record.path)
        try:
            raw = path.read_bytes()
            fmt = plistlib.FMT_BINARY if raw.startswith(b"bplist") else plistlib.FMT_XML
            data = plistlib.loads(raw)
            if not isinstance(data, dict):
                raise MutationError(f"{path} does not contain a dictionary", path=record.path)
            data["Nice"] = nice
            path.write_bytes(plistlib.dumps(data, fmt=fmt, sort_keys=False))
        except (OSError, plistlib.InvalidFileException, ExpatError, ValueError) as exc:
            raise MutationError(f"Cannot update {path}: {exc}", path=record.path) from exc
        logger.info("Set Nice=%d for %s", nice, record.identity_key)
        return MutationResult(
            identity_key=record.identity_key,
            action=MutationAction.PROCESS_PRIORITY,
            message=f"set Nice {nice} on {record.display_name}",
        )
