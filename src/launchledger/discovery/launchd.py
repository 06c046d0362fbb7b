"""Launch agent and daemon discovery from declaration directories.

Each ``*.plist`` file under the configured directories declares one service.
Directories are scanned in order (user scope, then local machine, then
system), so when two files declare the same label the more specific scope
wins.

Discovery Algorithm:
    1. Take one loaded-set snapshot from ``LoadStateCache``.
    2. For each directory, for each ``*.plist`` in name order: parse,
       validate, derive the label (filename fallback per policy).
    3. ``enabled`` is membership of the label in the loaded-set.
    4. Malformed, unsafe or unreadable files are skipped with a diagnostic.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from launchledger.core.records.diagnostics import (
    Diagnostic,
    DiagnosticKind,
    SourceReadResult,
    SourceStatus,
)
from launchledger.core.records.models import (
    Agent,
    Category,
    Daemon,
    LaunchDeclaration,
    LaunchRecord,
    display_name_from_label,
)
from launchledger.core.validation import RecordValidator
from launchledger.discovery.base import SourceReader, load_property_list
from launchledger.discovery.load_state import LoadStateCache
from launchledger.exceptions import AccessDeniedError, MalformedRecordError

logger = logging.getLogger(__name__)

_DECLARATION_SUFFIX = ".plist"


def declaration_from_mapping(data: Mapping[str, Any], source: Path) -> LaunchDeclaration:
    """Extract the scoring-relevant keys of a validated declaration.

    ``RunAtLoad`` and ``KeepAlive`` count only when literally ``true``;
    ``StartInterval`` and ``Sockets`` count by presence. ``WatchPaths`` is
    recorded twice: present at all, and present as a non-empty list.

    Args:
        data: Declaration mapping that already passed validation.
        source: Declaration file, used for the filename label fallback.
    """
    label = data.get("Label")
    from_filename = not label
    if from_filename:
        label = source.stem
    program = data.get("Program") or ""
    arguments = data.get("ProgramArguments") or []
    watch_paths = data.get("WatchPaths")
    nice = data.get("Nice")
    return LaunchDeclaration(
        label=label,
        program=program,
        program_arguments=tuple(arguments),
        run_at_load=data.get("RunAtLoad") is True,
        keep_alive=data.get("KeepAlive") is True,
        has_start_interval="StartInterval" in data,
        has_watch_paths=isinstance(watch_paths, list) and len(watch_paths) > 0,
        declares_watch_paths="WatchPaths" in data,
        has_sockets="Sockets" in data,
        nice=nice if isinstance(nice, int) and not isinstance(nice, bool) else None,
        label_from_filename=from_filename,
    )


class AgentDaemonSource(SourceReader):
    """Reads agent or daemon declarations from an ordered directory list.

    Args:
        category: ``Category.AGENTS`` or ``Category.DAEMONS``.
        directories: Directories to scan, most specific scope first.
        load_state: Shared cache answering "is this label loaded?".
        validator: Safety validator (also carries the label policy).
    """

    def __init__(
        self,
        category: Category,
        directories: Sequence[Path],
        load_state: LoadStateCache,
        validator: RecordValidator | None = None,
    ) -> None:
        if category not in (Category.AGENTS, Category.DAEMONS):
            raise ValueError(f"AgentDaemonSource cannot read {category.value}")
        self._category = category
        self._directories = list(directories)
        self._load_state = load_state
        self._validator = validator or RecordValidator()

    @property
    def category(self) -> Category:
        return self._category

    def _list_declarations(
        self, directory: Path, diagnostics: list[Diagnostic],
    ) -> list[Path] | None:
        """Return declaration files in ``directory``; None if it was denied."""
        try:
            entries = sorted(directory.iterdir())
        except FileNotFoundError:
            return []
        except NotADirectoryError:
            return []
        except PermissionError:
            logger.warning("Permission denied: %s", directory)
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.ACCESS_DENIED,
                message=f"Cannot list {directory}",
                path=str(directory),
            ))
            return None
        return [p for p in entries if p.suffix == _DECLARATION_SUFFIX]

    def _parse(self, path: Path, diagnostics: list[Diagnostic]) -> LaunchDeclaration | None:
        try:
            data = load_property_list(path)
        except FileNotFoundError:
            return None
        except AccessDeniedError as exc:
            diagnostics.append(Diagnostic(DiagnosticKind.ACCESS_DENIED, str(exc), str(path)))
            return None
        except MalformedRecordError as exc:
            logger.warning("Skipping malformed declaration: %s", exc)
            diagnostics.append(Diagnostic(DiagnosticKind.MALFORMED_RECORD, exc.reason, str(path)))
            return None

        verdict = self._validator.check(data, source_path=str(path))
        if not verdict:
            diagnostics.append(Diagnostic(DiagnosticKind.MALFORMED_RECORD, verdict.reason, str(path)))
            return None
        return declaration_from_mapping(data, path)

    def _build(self, path: Path, declaration: LaunchDeclaration, enabled: bool) -> LaunchRecord:
        cls = Agent if self._category is Category.AGENTS else Daemon
        return cls(
            display_name=display_name_from_label(declaration.label),
            path=str(path),
            enabled=enabled,
            publisher=declaration.executable or None,
            declaration=declaration,
        )

    def _read(self) -> SourceReadResult:
        diagnostics: list[Diagnostic] = []
        records: list[LaunchRecord] = []
        seen: set[str] = set()
        denied_dirs = 0
        readable_dirs = 0
        loaded: frozenset[str] | None = None

        for directory in self._directories:
            files = self._list_declarations(directory, diagnostics)
            if files is None:
                denied_dirs += 1
                continue
            readable_dirs += 1
            for path in files:
                declaration = self._parse(path, diagnostics)
                if declaration is None:
                    continue
                if declaration.label in seen:
                    logger.debug("Duplicate label %s at %s ignored", declaration.label, path)
                    continue
                if loaded is None:
                    loaded = self._load_state.loaded_labels()
                seen.add(declaration.label)
                records.append(self._build(path, declaration, declaration.label in loaded))

        if self._load_state.last_error and loaded is not None:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.EXTERNAL_TOOL_FAILURE,
                message=f"Load state unknown, services reported disabled: {self._load_state.last_error}",
            ))

        if denied_dirs and not readable_dirs and not records:
            status = SourceStatus.ACCESS_DENIED
        elif denied_dirs:
            status = SourceStatus.DEGRADED
        else:
            status = SourceStatus.OK
        return SourceReadResult(
            records=records,
            status=status,
            diagnostics=diagnostics,
            authoritative_enabled=True,
            method="declarations",
        )
