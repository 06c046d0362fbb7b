"""Safety validation of launchd declarations before they enter the model.

The validator inspects the raw mapping parsed from a declaration file and
rejects anything whose executable could be hijacked:

- a ``..`` segment anywhere in ``Program`` or ``ProgramArguments[0]``;
- an executable under a world-writable temporary directory.

Structural problems (a non-mapping document, a non-string ``Program``, a
``ProgramArguments`` that is not a list of strings) are rejected as
malformed. A missing ``Label`` is governed by ``LabelPolicy``.

Rejection is never fatal. The caller drops the declaration, records a
diagnostic, and keeps reading.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

# World-writable temporary directories, including their /private realpaths.
TEMP_PREFIXES: tuple[str, ...] = (
    "/tmp/",
    "/var/tmp/",
    "/private/tmp/",
    "/private/var/tmp/",
)


class LabelPolicy(str, Enum):
    """How declarations without a ``Label`` key are treated.

    ``FILENAME_FALLBACK`` keeps them and uses the declaration's filename
    stem as the label. ``REQUIRE`` rejects them.
    """

    FILENAME_FALLBACK = "fallback"
    REQUIRE = "require"


@dataclass(frozen=True)
class ValidationVerdict:
    """Outcome of validating one declaration.

    Attributes:
        accepted: True if the declaration may enter the model.
        reason: Why it was rejected (empty when accepted).
    """

    accepted: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.accepted


_ACCEPTED = ValidationVerdict(accepted=True)


def has_traversal_segment(path: str) -> bool:
    """Return True if ``path`` contains a ``..`` path segment."""
    # Whole segments only, not substrings: "Foo..app" is a valid bundle name.
    return ".." in path.split("/")


def is_temp_path(path: str) -> bool:
    """Return True if ``path`` starts with a world-writable temp prefix."""
    return path.startswith(TEMP_PREFIXES)


def _unsafe_executable(candidate: str) -> str:
    if has_traversal_segment(candidate):
        return f"executable path contains '..' segment: {candidate}"
    if is_temp_path(candidate):
        return f"executable path under temporary directory: {candidate}"
    return ""


class RecordValidator:
    """Rejects unsafe or malformed launchd declarations.

    Args:
        label_policy: Treatment of declarations that omit ``Label``. The same
            policy applies to agents and daemons.
    """

    def __init__(self, label_policy: LabelPolicy = LabelPolicy.FILENAME_FALLBACK) -> None:
        self._label_policy = LabelPolicy(label_policy)

    @property
    def label_policy(self) -> LabelPolicy:
        return self._label_policy

    def check(self, declaration: Any, *, source_path: str = "") -> ValidationVerdict:
        """Validate a raw declaration and explain any rejection.

        Args:
            declaration: The object parsed from the declaration file.
            source_path: File the declaration came from, for logging.

        Returns:
            A ``ValidationVerdict``; falsy when rejected.
        """
        if not isinstance(declaration, Mapping):
            return self._reject(source_path, "declaration is not a dictionary")

        program = declaration.get("Program")
        if program is not None:
            if not isinstance(program, str):
                return self._reject(source_path, "'Program' is not a string")
            reason = _unsafe_executable(program)
            if reason:
                return self._reject(source_path, reason)

        arguments = declaration.get("ProgramArguments")
        if arguments is not None:
            if not isinstance(arguments, list) or not all(
                isinstance(arg, str) for arg in arguments
            ):
                return self._reject(
                    source_path, "'ProgramArguments' is not a list of strings",
                )
            if arguments:
                reason = _unsafe_executable(arguments[0])
                if reason:
                    return self._reject(source_path, reason)

        label = declaration.get("Label")
        if label is not None and not isinstance(label, str):
            return self._reject(source_path, "'Label' is not a string")
        if not label and self._label_policy is LabelPolicy.REQUIRE:
            return self._reject(source_path, "declaration has no 'Label'")

        return _ACCEPTED

    def validate(self, declaration: Any, *, source_path: str = "") -> bool:
        """Return True if the declaration may enter the model."""
        return self.check(declaration, source_path=source_path).accepted

    @staticmethod
    def _reject(source_path: str, reason: str) -> ValidationVerdict:
        logger.warning("Rejected declaration %s: %s", source_path or "<memory>", reason)
        return ValidationVerdict(accepted=False, reason=reason)
