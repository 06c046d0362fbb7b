"""Runtime settings for LaunchLedger.

Settings are read from a YAML document located at ``$LAUNCHLEDGER_CONFIG``
or ``~/.config/launchledger/config.yaml``. A missing file yields the
defaults; a present but invalid file raises ``ConfigError``.

Example ``config.yaml``::

    command_timeout: 10
    fetch_timeout: 20
    label_policy: fallback      # or "require"
    agent_dirs:
      - ~/Library/LaunchAgents
      - /Library/LaunchAgents
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from launchledger import _SNAPSHOT_NAMESPACE
from launchledger.exceptions import ConfigError

CONFIG_ENV_VAR = "LAUNCHLEDGER_CONFIG"

DEFAULT_AGENT_DIRS: list[str] = [
    "~/Library/LaunchAgents",
    "/Library/LaunchAgents",
    "/System/Library/LaunchAgents",
]

DEFAULT_DAEMON_DIRS: list[str] = [
    "/Library/LaunchDaemons",
    "/System/Library/LaunchDaemons",
]

# Paths the mutator refuses to delete.
DEFAULT_PROTECTED_PREFIXES: list[str] = [
    "/System/",
    "/Library/LaunchDaemons",
]

_LABEL_POLICIES = ("fallback", "require")


@dataclass
class Settings:
    """Resolved runtime settings.

    Attributes:
        home: Home directory used to expand ``~`` in configured paths.
        agent_dirs: Ordered launch agent directories (user, local, system).
        daemon_dirs: Ordered launch daemon directories (local, system).
        snapshot_path: JSON file backing the persisted login item snapshot.
        snapshot_namespace: Key under which the snapshot is stored.
        backup_dir: Directory for timestamped configuration backups.
        command_timeout: Seconds before an external command is killed.
        fetch_timeout: Seconds before a whole category fetch is abandoned.
        load_state_staleness: Seconds a ``launchctl list`` result stays fresh.
        label_policy: ``"fallback"`` derives a missing service label from the
            declaration filename; ``"require"`` rejects such declarations.
        protected_prefixes: Path prefixes that may never be removed.
    """

    home: Path = field(default_factory=Path.home)
    agent_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_AGENT_DIRS))
    daemon_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_DAEMON_DIRS))
    snapshot_path: str = "~/Library/Application Support/LaunchLedger/snapshot.json"
    snapshot_namespace: str = _SNAPSHOT_NAMESPACE
    backup_dir: str = "~/Library/Application Support/LaunchLedger/Backups"
    command_timeout: float = 10.0
    fetch_timeout: float = 20.0
    load_state_staleness: float = 5.0
    label_policy: str = "fallback"
    protected_prefixes: list[str] = field(
        default_factory=lambda: list(DEFAULT_PROTECTED_PREFIXES)
    )

    def expand(self, raw: str) -> Path:
        """Expand a leading ``~`` against the configured home directory."""
        if raw == "~" or raw.startswith("~/"):
            return self.home / raw[2:] if raw != "~" else self.home
        return Path(raw)

    @property
    def agent_paths(self) -> list[Path]:
        return [self.expand(d) for d in self.agent_dirs]

    @property
    def daemon_paths(self) -> list[Path]:
        return [self.expand(d) for d in self.daemon_dirs]

    @property
    def snapshot_file(self) -> Path:
        return self.expand(self.snapshot_path)

    @property
    def backup_path(self) -> Path:
        return self.expand(self.backup_dir)

    @property
    def btm_database(self) -> Path:
        """Location of the background task management database."""
        return (
            self.home / "Library" / "Application Support"
            / "com.apple.backgroundtaskmanagementagent" / "backgrounditems.btm"
        )


def default_config_path() -> Path:
    """Return the configuration file location honoring the env override."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "launchledger" / "config.yaml"


def _coerce(name: str, value: Any, expected: Any) -> Any:
    """Check a raw YAML value against the default's type."""
    if isinstance(expected, bool) or expected is None:
        return value
    if isinstance(expected, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"'{name}' must be a number, got {value!r}")
        if value <= 0:
            raise ConfigError(f"'{name}' must be positive, got {value!r}")
        return float(value)
    if isinstance(expected, list):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"'{name}' must be a list of strings")
        return list(value)
    if isinstance(expected, Path):
        if not isinstance(value, str):
            raise ConfigError(f"'{name}' must be a path string")
        return Path(value).expanduser()
    if isinstance(expected, str):
        if not isinstance(value, str):
            raise ConfigError(f"'{name}' must be a string, got {value!r}")
        return value
    return value


def settings_from_mapping(data: dict[str, Any]) -> Settings:
    """Build ``Settings`` from a parsed mapping, validating keys and types.

    Raises:
        ConfigError: On unknown keys, wrong types, or an invalid label policy.
    """
    defaults = Settings()
    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

    values: dict[str, Any] = {}
    for name, raw in data.items():
        values[name] = _coerce(name, raw, getattr(defaults, name))

    settings = Settings(**values)
    if settings.label_policy not in _LABEL_POLICIES:
        raise ConfigError(
            f"'label_policy' must be one of {', '.join(_LABEL_POLICIES)}, "
            f"got {settings.label_policy!r}"
        )
    return settings


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from YAML, falling back to defaults when absent.

    Args:
        path: Explicit configuration file. Defaults to ``default_config_path()``.

    Returns:
        The resolved ``Settings``.

    Raises:
        ConfigError: If the file exists but is unreadable or invalid.
    """
    config_path = path if path is not None else default_config_path()
    if not config_path.is_file():
        return Settings()
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read {config_path}: {exc}") from exc
    if data is None:
        return Settings()
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping")
    return settings_from_mapping(data)
