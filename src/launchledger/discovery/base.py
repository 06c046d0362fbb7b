"""Base class for autostart sources and shared property list helpers.

Defines the ``SourceReader`` abstract base class that the login item,
launchd and background item readers implement. ``read()`` is the only
public entry point and never raises: anything a concrete reader lets escape
is logged and converted into an ``UNAVAILABLE`` result.
"""

from __future__ import annotations

import logging
import plistlib
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
from xml.parsers.expat import ExpatError

from launchledger.core.records.diagnostics import (
    Diagnostic,
    DiagnosticKind,
    SourceReadResult,
    SourceStatus,
)
from launchledger.core.records.models import Category
from launchledger.exceptions import AccessDeniedError, MalformedRecordError

logger = logging.getLogger(__name__)


def load_property_list(path: Path) -> Any:
    """Read and decode a property list (XML or binary).

    Args:
        path: File to read.

    Returns:
        The decoded top-level object.

    Raises:
        FileNotFoundError: If the file does not exist.
        AccessDeniedError: If the file exists but cannot be read.
        MalformedRecordError: If the content is not a valid property list.
    """
    try:
        data = path.read_bytes()
    except PermissionError as exc:
        raise AccessDeniedError(str(path)) from exc
    except IsADirectoryError as exc:
        raise MalformedRecordError(str(path), "is a directory") from exc
    try:
        return plistlib.loads(data)
    except (plistlib.InvalidFileException, ExpatError, ValueError, TypeError, OverflowError) as exc:
        raise MalformedRecordError(str(path), f"unparsable property list: {exc}") from exc


class SourceReader(ABC):
    """Abstract base for one OS-level autostart source.

    Subclasses implement ``_read``; callers use ``read``.
    """

    @property
    @abstractmethod
    def category(self) -> Category:
        """Inventory category this source feeds."""

    @abstractmethod
    def _read(self) -> SourceReadResult:
        """Produce candidate records; may raise on unexpected failures."""

    def read(self) -> SourceReadResult:
        """Read candidate records, containing every failure.

        Returns:
            A ``SourceReadResult``. Unexpected errors yield an empty
            ``UNAVAILABLE`` result with a diagnostic.
        """
        try:
            return self._read()
        except Exception as exc:
            logger.warning("Failed to read %s", self.category.value, exc_info=True)
            return SourceReadResult(
                status=SourceStatus.UNAVAILABLE,
                diagnostics=[Diagnostic(
                    kind=DiagnosticKind.EXTERNAL_TOOL_FAILURE,
                    message=f"Unexpected error reading {self.category.value}: {exc}",
                )],
                authoritative_enabled=False,
            )
