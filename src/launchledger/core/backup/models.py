"""Export/import document model.

The document is a JSON object with sorted keys and two-space indentation::

    {
      "launchAgents": [{"isEnabled": true, "path": "..."}],
      "launchDaemons": [{"isEnabled": false, "path": "..."}],
      "loginItems": ["/Applications/Example.app"],
      "timestamp": "2026-10-19T08:30:00Z"
    }

Round trip through ``to_json`` / ``from_json`` is lossless for every field.
Timestamps are kept at whole-second precision in UTC.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from launchledger.core.records.models import LaunchRecord
from launchledger.exceptions import BackupError

_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_timestamp(value: datetime) -> str:
    """Render a datetime as ISO-8601 UTC with a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_TIMESTAMP_FORMAT)


def parse_timestamp(raw: Any) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Raises:
        BackupError: If ``raw`` is not a valid ISO-8601 string.
    """
    if not isinstance(raw, str):
        raise BackupError(f"'timestamp' must be a string, got {raw!r}")
    text = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
    try:
        value = datetime.fromisoformat(text)
    except ValueError as exc:
        raise BackupError(f"Invalid timestamp: {raw!r}") from exc
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class ServiceBackup:
    """Saved state of one agent or daemon declaration."""

    path: str
    is_enabled: bool

    def to_dict(self) -> dict[str, Any]:
        return {"isEnabled": self.is_enabled, "path": self.path}

    @classmethod
    def from_dict(cls, data: Any) -> ServiceBackup:
        if not isinstance(data, dict):
            raise BackupError(f"Service entry must be an object, got {data!r}")
        path = data.get("path")
        enabled = data.get("isEnabled")
        if not isinstance(path, str) or not isinstance(enabled, bool):
            raise BackupError(f"Service entry needs 'path' and 'isEnabled': {data!r}")
        return cls(path=path, is_enabled=enabled)


@dataclass(frozen=True)
class StartupConfiguration:
    """A point-in-time export of the autostart configuration.

    Attributes:
        timestamp: When the export was taken (UTC, whole seconds).
        login_items: Paths of login items.
        launch_agents: Agent declaration paths with enablement.
        launch_daemons: Daemon declaration paths with enablement.
    """

    timestamp: datetime
    login_items: list[str] = field(default_factory=list)
    launch_agents: list[ServiceBackup] = field(default_factory=list)
    launch_daemons: list[ServiceBackup] = field(default_factory=list)

    @classmethod
    def capture(
        cls,
        login_items: Iterable[LaunchRecord],
        launch_agents: Iterable[LaunchRecord],
        launch_daemons: Iterable[LaunchRecord],
        *,
        now: datetime | None = None,
    ) -> StartupConfiguration:
        """Build a configuration from current inventory records."""
        stamp = (now or datetime.now(timezone.utc)).replace(microsecond=0)
        return cls(
            timestamp=parse_timestamp(format_timestamp(stamp)),
            login_items=[r.path for r in login_items],
            launch_agents=[ServiceBackup(r.path, r.enabled) for r in launch_agents],
            launch_daemons=[ServiceBackup(r.path, r.enabled) for r in launch_daemons],
        )

    # -- Serialization --

    def to_dict(self) -> dict[str, Any]:
        return {
            "launchAgents": [s.to_dict() for s in self.launch_agents],
            "launchDaemons": [s.to_dict() for s in self.launch_daemons],
            "loginItems": list(self.login_items),
            "timestamp": format_timestamp(self.timestamp),
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize with sorted keys and pretty-printing."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    @classmethod
    def from_dict(cls, data: Any) -> StartupConfiguration:
        """Decode a configuration document.

        Raises:
            BackupError: If required fields are missing or mistyped.
        """
        if not isinstance(data, dict):
            raise BackupError("Backup document must be a JSON object")
        login_items = data.get("loginItems", [])
        if not isinstance(login_items, list) or not all(isinstance(p, str) for p in login_items):
            raise BackupError("'loginItems' must be a list of paths")
        agents = data.get("launchAgents", [])
        daemons = data.get("launchDaemons", [])
        if not isinstance(agents, list) or not isinstance(daemons, list):
            raise BackupError("'launchAgents' and 'launchDaemons' must be lists")
        return cls(
            timestamp=parse_timestamp(data.get("timestamp")),
            login_items=list(login_items),
            launch_agents=[ServiceBackup.from_dict(a) for a in agents],
            launch_daemons=[ServiceBackup.from_dict(d) for d in daemons],
        )

    @classmethod
    def from_json(cls, text: str) -> StartupConfiguration:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise BackupError(f"Backup is not valid JSON: {exc}") from exc
        return cls.from_dict(data)
