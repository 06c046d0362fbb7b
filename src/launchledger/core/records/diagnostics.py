"""Source read results and the diagnostics they carry.

A source never raises out of ``read()``. Instead it returns a
``SourceReadResult`` whose ``status`` tells the caller whether the records
are complete, partial, or absent because of a permission gap, and whose
``diagnostics`` list every record or method that was skipped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from launchledger.core.records.models import LaunchRecord


class DiagnosticKind(str, Enum):
    """Classification of a contained failure."""

    ACCESS_DENIED = "access_denied"
    MALFORMED_RECORD = "malformed_record"
    EXTERNAL_TOOL_FAILURE = "external_tool_failure"
    CAPABILITY_GAP = "capability_gap"


class SourceStatus(str, Enum):
    """Category-wide outcome of a source read.

    - ``OK``: the primary method answered.
    - ``DEGRADED``: a fallback answered, or some records were dropped.
    - ``ACCESS_DENIED``: the backing store exists but could not be read.
    - ``UNAVAILABLE``: every method failed; records are empty.
    """

    OK = "ok"
    DEGRADED = "degraded"
    ACCESS_DENIED = "access_denied"
    UNAVAILABLE = "unavailable"

    @property
    def is_failure(self) -> bool:
        return self in (SourceStatus.ACCESS_DENIED, SourceStatus.UNAVAILABLE)


@dataclass(frozen=True)
class Diagnostic:
    """A single contained failure observed during a read.

    Attributes:
        kind: Failure classification.
        message: Human-readable description.
        path: File or command involved, when known.
    """

    kind: DiagnosticKind
    message: str
    path: str = ""


@dataclass
class SourceReadResult:
    """Outcome of one ``SourceReader.read()`` call.

    Attributes:
        records: Validated candidate records, in source order.
        status: Category-wide outcome.
        diagnostics: Contained failures, in the order they occurred.
        authoritative_enabled: Whether the ``enabled`` value of every record
            came from a read that can actually report activation state.
        method: Name of the method that produced the records.
    """

    records: list[LaunchRecord] = field(default_factory=list)
    status: SourceStatus = SourceStatus.OK
    diagnostics: list[Diagnostic] = field(default_factory=list)
    authoritative_enabled: bool = True
    method: str = ""

    @property
    def access_denied(self) -> bool:
        return self.status is SourceStatus.ACCESS_DENIED
