"""Declaration safety validation.

Public API::

    from launchledger.core.validation import RecordValidator

    validator = RecordValidator()
    validator.validate({"Label": "x", "Program": "/tmp/evil/../../etc"})  # False
"""

from __future__ import annotations

from launchledger.core.validation.validator import (
    TEMP_PREFIXES,
    LabelPolicy,
    RecordValidator,
    ValidationVerdict,
    has_traversal_segment,
    is_temp_path,
)

__all__ = [
    "LabelPolicy",
    "RecordValidator",
    "TEMP_PREFIXES",
    "ValidationVerdict",
    "has_traversal_segment",
    "is_temp_path",
]
