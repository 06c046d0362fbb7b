"""LaunchLedger exception hierarchy.

All public exceptions inherit from LaunchLedgerError, giving callers a single
base class to catch when they want to handle any LaunchLedger-specific failure
without swallowing unrelated errors.

Per-record and per-source failures are contained inside the discovery layer
and reported as diagnostics. Only mutation failures and configuration errors
are expected to reach a caller as raised exceptions.
"""

from __future__ import annotations


class LaunchLedgerError(Exception):
    """Base exception for all LaunchLedger errors."""


class AccessDeniedError(LaunchLedgerError):
    """Raised when a source exists but cannot be read due to permissions.

    Distinct from "nothing configured": the remedy is granting elevated
    (Full Disk) access, not adding items.
    """

    def __init__(self, path: str, message: str = "") -> None:
        self.path = path
        super().__init__(message or f"Access denied: {path}")


class MalformedRecordError(LaunchLedgerError):
    """Raised when a single declaration fails parsing or validation.

    Covers unreadable property lists, wrongly typed keys, and declarations
    rejected by the safety validator.
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class ExternalToolError(LaunchLedgerError):
    """Raised when a helper process is missing, times out, or exits non-zero.

    Attributes:
        command: The argument vector that was executed.
        exit_status: Process exit status, or None if it never completed.
        stderr: Captured standard error (may be empty).
    """

    def __init__(
        self,
        command: list[str],
        message: str,
        exit_status: int | None = None,
        stderr: str = "",
    ) -> None:
        self.command = list(command)
        self.exit_status = exit_status
        self.stderr = stderr
        super().__init__(message)


class MutationError(LaunchLedgerError):
    """Raised when an OS-level toggle, removal or priority change fails.

    Carries enough detail for a human to retry the operation manually.
    """

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        exit_status: int | None = None,
        path: str = "",
        stderr: str = "",
    ) -> None:
        self.command = list(command or [])
        self.exit_status = exit_status
        self.path = path
        self.stderr = stderr
        super().__init__(message)

    def details(self) -> str:
        """Return a multi-line description suitable for verbatim display."""
        lines = [str(self)]
        if self.command:
            lines.append(f"command: {' '.join(self.command)}")
        if self.exit_status is not None:
            lines.append(f"exit status: {self.exit_status}")
        if self.path:
            lines.append(f"path: {self.path}")
        if self.stderr:
            lines.append(f"stderr: {self.stderr.strip()}")
        return "\n".join(lines)


class SnapshotError(LaunchLedgerError):
    """Raised when the persisted snapshot cannot be written."""


class BackupError(LaunchLedgerError):
    """Raised for export/import failures.

    Covers malformed backup documents and files that cannot be written.
    """


class ConfigError(LaunchLedgerError):
    """Raised when the configuration file is invalid."""
