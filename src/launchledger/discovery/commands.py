"""Bounded execution of external helper tools.

Every OS query in LaunchLedger (``launchctl``, ``osascript``, ``sfltool``)
goes through ``CommandRunner`` so that each call has a timeout and failures
surface uniformly as ``ExternalToolError``. ``subprocess.run`` kills the
child when the timeout expires, so an abandoned refresh never leaves a
helper process running.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass

from launchledger.exceptions import ExternalToolError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: float = 10.0

LAUNCHCTL = "/bin/launchctl"
OSASCRIPT = "/usr/bin/osascript"
SFLTOOL = "/usr/bin/sfltool"


@dataclass(frozen=True)
class CommandResult:
    """Completed process output.

    Attributes:
        args: Argument vector that was executed.
        returncode: Exit status.
        stdout: Decoded standard output; undecodable bytes become U+FFFD.
        stderr: Decoded standard error.
    """

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str


class CommandRunner:
    """Runs helper commands with a timeout.

    Args:
        timeout: Seconds before the child is killed.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        return self._timeout

    def run(self, args: list[str], *, check: bool = True) -> CommandResult:
        """Execute ``args`` and capture its output.

        Args:
            args: Argument vector; ``args[0]`` is the executable.
            check: Raise on a non-zero exit status.

        Returns:
            The ``CommandResult``.

        Raises:
            ExternalToolError: If the tool is missing, times out, cannot be
                started, or (with ``check``) exits non-zero.
        """
        logger.debug("Running %s", " ".join(args))
        try:
            proc = subprocess.run(
                args,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self._timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise ExternalToolError(args, f"{args[0]} not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise ExternalToolError(
                args, f"{args[0]} timed out after {self._timeout:g}s",
            ) from exc
        except OSError as exc:
            raise ExternalToolError(args, f"{args[0]} could not start: {exc}") from exc

        result = CommandResult(
            args=tuple(args),
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
        if check and result.returncode != 0:
            raise ExternalToolError(
                args,
                f"{args[0]} exited with status {result.returncode}",
                exit_status=result.returncode,
                stderr=result.stderr,
            )
        return result

    def osascript(self, script: str) -> CommandResult:
        """Run an AppleScript snippet through ``osascript``."""
        return self.run([OSASCRIPT, "-e", script])


def applescript_string(value: str) -> str:
    """Quote ``value`` as an AppleScript string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'
