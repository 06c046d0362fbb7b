"""Login item discovery through System Events, with a legacy file fallback.

Primary Method:
    ``osascript`` asks System Events for the name of every login item, then
    for each name its path and hidden flag (hidden means disabled). When a
    per-item detail query fails the item is still reported, with an empty
    path, but the read is marked non-authoritative for ``enabled``: the
    reconciler will then keep the persisted value for known items.

Fallback Method:
    When the primary method returns nothing, the legacy
    ``backgrounditems.btm`` property list is parsed for ``$objects`` entries
    carrying ``Name`` and ``URL``. That file cannot express enablement, so
    this path is never authoritative.

Enablement Rule:
    A listed item without a readable hidden flag is reported as enabled,
    because disabling a login item removes it from the System Events list.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

from launchledger.core.records.diagnostics import (
    Diagnostic,
    DiagnosticKind,
    SourceReadResult,
    SourceStatus,
)
from launchledger.core.records.models import Category, LaunchRecord, LoginItem
from launchledger.discovery.base import SourceReader, load_property_list
from launchledger.discovery.commands import CommandRunner, applescript_string
from launchledger.exceptions import AccessDeniedError, ExternalToolError, MalformedRecordError

logger = logging.getLogger(__name__)

_LIST_SCRIPT = """\
tell application "System Events"
    set AppleScript's text item delimiters to linefeed
    return (name of every login item) as text
end tell"""

_DETAIL_SCRIPT = """\
tell application "System Events"
    set itemPath to path of login item {name}
    set itemHidden to hidden of login item {name}
    return itemPath & tab & (itemHidden as text)
end tell"""


def parse_name_list(output: str) -> list[str]:
    """Split the name list returned by System Events, dropping blanks."""
    return [line.strip() for line in output.splitlines() if line.strip()]


def parse_detail(output: str) -> tuple[str, bool] | None:
    """Parse ``path<TAB>hidden`` into (path, enabled); None if unrecognized."""
    parts = output.strip().split("\t")
    if len(parts) != 2:
        return None
    path, hidden = parts[0].strip(), parts[1].strip().lower()
    if hidden not in ("true", "false"):
        return None
    return path, hidden != "true"


def file_url_to_path(value: str) -> str:
    """Turn a ``file://`` URL into a filesystem path; other values unchanged."""
    if not value.startswith("file://"):
        return value
    path = unquote(urlparse(value).path)
    return path.rstrip("/") or "/"


class LoginItemSource(SourceReader):
    """Reads login items.

    Args:
        runner: Executes ``osascript``.
        legacy_path: Location of the legacy ``backgrounditems.btm`` file.
    """

    def __init__(self, runner: CommandRunner, legacy_path: Path) -> None:
        self._runner = runner
        self._legacy_path = legacy_path

    @property
    def category(self) -> Category:
        return Category.LOGIN_ITEMS

    # -- Primary: System Events --

    def _read_system_events(
        self, diagnostics: list[Diagnostic],
    ) -> tuple[list[LaunchRecord], bool] | None:
        """Return (records, all_flags_read), or None if the query failed."""
        try:
            listing = self._runner.osascript(_LIST_SCRIPT)
        except ExternalToolError as exc:
            logger.warning("System Events login item query failed: %s", exc)
            diagnostics.append(Diagnostic(DiagnosticKind.EXTERNAL_TOOL_FAILURE, str(exc), "osascript"))
            return None

        records: list[LaunchRecord] = []
        all_flags_read = True
        for name in parse_name_list(listing.stdout):
            detail = self._read_detail(name)
            if detail is None:
                all_flags_read = False
                diagnostics.append(Diagnostic(
                    DiagnosticKind.CAPABILITY_GAP,
                    f"Hidden flag unavailable for login item {name!r}",
                ))
                records.append(LoginItem(display_name=name, path="", enabled=True))
                continue
            path, enabled = detail
            records.append(LoginItem(display_name=name, path=path, enabled=enabled))
        return records, all_flags_read

    def _read_detail(self, name: str) -> tuple[str, bool] | None:
        script = _DETAIL_SCRIPT.format(name=applescript_string(name))
        try:
            result = self._runner.osascript(script)
        except ExternalToolError as exc:
            logger.debug("Detail query for %s failed: %s", name, exc)
            return None
        return parse_detail(result.stdout)

    # -- Fallback: legacy property list --

    def _read_legacy(self, diagnostics: list[Diagnostic]) -> tuple[list[LaunchRecord], SourceStatus]:
        try:
            data = load_property_list(self._legacy_path)
        except FileNotFoundError:
            return [], SourceStatus.OK
        except AccessDeniedError:
            logger.warning("Permission denied: %s", self._legacy_path)
            diagnostics.append(Diagnostic(
                DiagnosticKind.CAPABILITY_GAP,
                "Cannot check legacy login items: permission denied "
                "(grant Full Disk Access to read them)",
                str(self._legacy_path),
            ))
            return [], SourceStatus.ACCESS_DENIED
        except MalformedRecordError as exc:
            diagnostics.append(Diagnostic(DiagnosticKind.MALFORMED_RECORD, exc.reason, str(self._legacy_path)))
            return [], SourceStatus.DEGRADED
        return self._legacy_records(data), SourceStatus.OK

    @staticmethod
    def _legacy_records(data: Any) -> list[LaunchRecord]:
        if not isinstance(data, dict):
            return []
        objects = data.get("$objects")
        if not isinstance(objects, list):
            return []
        records: list[LaunchRecord] = []
        for obj in objects:
            if not isinstance(obj, dict):
                continue
            name, url = obj.get("Name"), obj.get("URL")
            if isinstance(name, str) and isinstance(url, str) and name:
                records.append(LoginItem(display_name=name, path=file_url_to_path(url), enabled=True))
        return records

    def _read(self) -> SourceReadResult:
        diagnostics: list[Diagnostic] = []
        primary = self._read_system_events(diagnostics)
        if primary is not None and primary[0]:
            records, all_flags_read = primary
            return SourceReadResult(
                records=records,
                status=SourceStatus.OK,
                diagnostics=diagnostics,
                authoritative_enabled=all_flags_read,
                method="system_events",
            )

        logger.info("System Events returned no login items; trying legacy file")
        records, legacy_status = self._read_legacy(diagnostics)
        if legacy_status is SourceStatus.ACCESS_DENIED:
            status = SourceStatus.ACCESS_DENIED
        elif records:
            status = SourceStatus.DEGRADED
        elif primary is None:
            # Neither method produced an answer.
            status = SourceStatus.UNAVAILABLE
        else:
            status = legacy_status
        return SourceReadResult(
            records=records,
            status=status,
            diagnostics=diagnostics,
            authoritative_enabled=False,
            method="legacy_file",
        )
