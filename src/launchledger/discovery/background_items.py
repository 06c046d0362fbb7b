"""Background task management item discovery.

Primary Method:
    ``sfltool dumpbtm`` prints one block per registered item, blocks
    separated by blank lines, each line a ``Key: Value`` pair. The parser
    accepts both the legacy key names (``Name``, ``BundleIdentifier``,
    ``Enabled``, ``Path``) and the newer ones (``Identifier``,
    ``Disposition``, ``Executable Path``, ``Developer Name``).

Fallback Method:
    When the tool is absent, times out, exits non-zero, or prints nothing
    recognizable, the ``backgrounditems.btm`` keyed archive is read directly.
    Its structure is only partly understood, so the reader walks
    ``$objects``, resolves archive references where it can, and keeps only
    dictionaries exposing an identifier or a path.

Items are deduplicated by identity key (bundle identifier, else path); the
first occurrence wins. A database that exists but cannot be read is reported
as ``ACCESS_DENIED``, never as "nothing configured".
"""

from __future__ import annotations

import logging
import plistlib
from pathlib import Path
from typing import Any

from launchledger.core.records.diagnostics import (
    Diagnostic,
    DiagnosticKind,
    SourceReadResult,
    SourceStatus,
)
from launchledger.core.records.models import BackgroundItem, Category, LaunchRecord
from launchledger.core.reconcile.reconciler import dedupe
from launchledger.discovery.base import SourceReader, load_property_list
from launchledger.discovery.commands import SFLTOOL, CommandRunner
from launchledger.discovery.login_items import file_url_to_path
from launchledger.exceptions import AccessDeniedError, ExternalToolError, MalformedRecordError

logger = logging.getLogger(__name__)

_NAME_KEYS = ("Name", "Label")
_IDENTIFIER_KEYS = ("BundleIdentifier", "Bundle Identifier", "Identifier")
_PATH_KEYS = ("Path", "Executable Path", "URL")
_DEVELOPER_KEYS = ("Developer", "Developer Name")

_ARCHIVE_NULL = "$null"


def _first(block: dict[str, str], keys: tuple[str, ...]) -> str:
    for key in keys:
        value = block.get(key, "").strip()
        if value and value != "(null)":
            return value
    return ""


def _item_type(raw: str) -> str:
    lowered = raw.lower()
    if "login" in lowered:
        return "login"
    if "agent" in lowered or "daemon" in lowered:
        return "agent"
    return "background"


def _enabled_from_block(block: dict[str, str]) -> bool:
    enabled = block.get("Enabled")
    if enabled is not None:
        return enabled.strip().lower() != "false"
    disposition = block.get("Disposition", "").lower()
    return "disabled" not in disposition


def _item_from_block(block: dict[str, str]) -> BackgroundItem | None:
    identifier = _first(block, _IDENTIFIER_KEYS)
    path = file_url_to_path(_first(block, _PATH_KEYS))
    if not identifier and not path:
        return None
    name = _first(block, _NAME_KEYS)
    if not name:
        name = identifier.rsplit(".", 1)[-1] if identifier else Path(path).stem
    return BackgroundItem(
        display_name=name,
        path=path,
        enabled=_enabled_from_block(block),
        publisher=_first(block, _DEVELOPER_KEYS) or None,
        bundle_identifier=identifier or None,
        item_type=_item_type(block.get("Type", "")),
    )


def parse_dumpbtm(output: str) -> list[BackgroundItem]:
    """Parse ``sfltool dumpbtm`` output into items, in output order.

    Blocks without an identifier or a path are skipped.
    """
    items: list[BackgroundItem] = []
    block: dict[str, str] = {}

    def flush() -> None:
        if block:
            item = _item_from_block(block)
            if item is not None:
                items.append(item)
            block.clear()

    for line in output.splitlines():
        stripped = line.strip()
        if not stripped:
            flush()
            continue
        if ":" not in stripped:
            continue
        key, _, value = stripped.partition(":")
        key = key.strip()
        if key.startswith("#"):
            # "#1:" style item headers start a new block.
            flush()
            continue
        block[key] = value.strip()
    flush()
    return items


def _resolve(value: Any, objects: list[Any]) -> Any:
    """Follow a keyed-archive reference into ``$objects`` when possible."""
    if isinstance(value, plistlib.UID):
        index = value.data
        if 0 <= index < len(objects):
            resolved = objects[index]
            return None if resolved == _ARCHIVE_NULL else resolved
        return None
    return value


def _string_field(obj: dict[str, Any], objects: list[Any], *keys: str) -> str:
    for key in keys:
        value = _resolve(obj.get(key), objects)
        if isinstance(value, str) and value:
            return value
        if isinstance(value, dict):
            # NSURL archives keep the string under NS.relative.
            relative = _resolve(value.get("NS.relative"), objects)
            if isinstance(relative, str) and relative:
                return relative
    return ""


def parse_btm_archive(data: Any) -> list[BackgroundItem]:
    """Extract identifiable items from a decoded ``backgrounditems.btm``."""
    if not isinstance(data, dict):
        return []
    objects = data.get("$objects")
    if not isinstance(objects, list):
        return []
    items: list[BackgroundItem] = []
    for obj in objects:
        if not isinstance(obj, dict):
            continue
        identifier = _string_field(obj, objects, "bundleIdentifier", "identifier")
        path = file_url_to_path(_string_field(obj, objects, "path", "url", "URL"))
        if not identifier and not path:
            continue
        name = _string_field(obj, objects, "name", "Name")
        if not name:
            name = identifier.rsplit(".", 1)[-1] if identifier else Path(path).stem
        enabled = _resolve(obj.get("enabled"), objects)
        items.append(BackgroundItem(
            display_name=name,
            path=path,
            enabled=enabled if isinstance(enabled, bool) else True,
            publisher=_string_field(obj, objects, "developer", "developerName") or None,
            bundle_identifier=identifier or None,
        ))
    return items


class BackgroundItemSource(SourceReader):
    """Reads background task management items.

    Args:
        runner: Executes ``sfltool``.
        database_path: Location of ``backgrounditems.btm``.
    """

    def __init__(self, runner: CommandRunner, database_path: Path) -> None:
        self._runner = runner
        self._database_path = database_path

    @property
    def category(self) -> Category:
        return Category.BACKGROUND_ITEMS

    def _read_tool(self, diagnostics: list[Diagnostic]) -> list[BackgroundItem] | None:
        """Return parsed items, or None when the tool failed.

        Output that is present but yields no item counts as a failure;
        only empty output means "nothing registered".
        """
        try:
            result = self._runner.run([SFLTOOL, "dumpbtm"])
        except ExternalToolError as exc:
            logger.warning("sfltool failed: %s", exc)
            diagnostics.append(Diagnostic(DiagnosticKind.EXTERNAL_TOOL_FAILURE, str(exc), SFLTOOL))
            return None
        items = parse_dumpbtm(result.stdout)
        if not items and result.stdout.strip():
            diagnostics.append(Diagnostic(
                DiagnosticKind.EXTERNAL_TOOL_FAILURE,
                "sfltool output contained no recognizable items",
                SFLTOOL,
            ))
            return None
        return items

    def _read_database(
        self, diagnostics: list[Diagnostic],
    ) -> tuple[list[BackgroundItem], SourceStatus] | None:
        """Return (items, status) from the database; None if it is absent."""
        try:
            data = load_property_list(self._database_path)
        except FileNotFoundError:
            return None
        except AccessDeniedError:
            logger.warning("Permission denied: %s", self._database_path)
            diagnostics.append(Diagnostic(
                DiagnosticKind.ACCESS_DENIED,
                "Background item database is access restricted "
                "(grant Full Disk Access to read it)",
                str(self._database_path),
            ))
            return [], SourceStatus.ACCESS_DENIED
        except MalformedRecordError as exc:
            diagnostics.append(Diagnostic(DiagnosticKind.MALFORMED_RECORD, exc.reason, str(self._database_path)))
            return [], SourceStatus.UNAVAILABLE
        return parse_btm_archive(data), SourceStatus.DEGRADED

    def _read(self) -> SourceReadResult:
        diagnostics: list[Diagnostic] = []
        tool_items = self._read_tool(diagnostics)
        if tool_items:
            records, _ = dedupe(tool_items)
            return SourceReadResult(
                records=records, status=SourceStatus.OK,
                diagnostics=diagnostics, method="sfltool",
            )

        database = self._read_database(diagnostics)
        if database is None:
            # No database: the tool's answer (possibly zero items) stands.
            status = SourceStatus.OK if tool_items is not None else SourceStatus.UNAVAILABLE
            return SourceReadResult(
                records=[], status=status, diagnostics=diagnostics, method="sfltool",
            )

        items, status = database
        records: list[LaunchRecord]
        records, _ = dedupe(items)
        if status is SourceStatus.DEGRADED and not records and tool_items is not None:
            status = SourceStatus.OK
        return SourceReadResult(
            records=records, status=status,
            diagnostics=diagnostics, method="database",
        )
