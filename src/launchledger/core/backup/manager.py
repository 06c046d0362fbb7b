"""Timestamped backups and explicit exports of the startup configuration."""

from __future__ import annotations

import logging
from pathlib import Path

from launchledger.core.backup.models import StartupConfiguration
from launchledger.exceptions import BackupError

logger = logging.getLogger(__name__)

_BACKUP_PREFIX = "backup_"
_FILENAME_FORMAT = "%Y-%m-%d_%H-%M-%S"


class BackupManager:
    """Writes, lists and reads configuration backups in one directory.

    Args:
        backup_dir: Directory holding ``backup_*.json`` files. Created on
            first write.
    """

    def __init__(self, backup_dir: Path) -> None:
        self._backup_dir = backup_dir

    @property
    def backup_dir(self) -> Path:
        return self._backup_dir

    def create_backup(self, config: StartupConfiguration) -> Path:
        """Write ``config`` to a new timestamped file and return its path."""
        name = f"{_BACKUP_PREFIX}{config.timestamp.strftime(_FILENAME_FORMAT)}.json"
        target = self._backup_dir / name
        self.export_configuration(config, target)
        return target

    def export_configuration(self, config: StartupConfiguration, path: Path) -> None:
        """Write ``config`` to ``path``, creating parent directories.

        Raises:
            BackupError: If the file cannot be written.
        """
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(config.to_json(), encoding="utf-8")
        except OSError as exc:
            raise BackupError(f"Cannot write backup {path}: {exc}") from exc
        logger.info("Wrote startup configuration to %s", path)

    def load_configuration(self, path: Path) -> StartupConfiguration:
        """Read a configuration previously written by this manager.

        Raises:
            BackupError: If the file is unreadable or malformed.
        """
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise BackupError(f"Cannot read backup {path}: {exc}") from exc
        return StartupConfiguration.from_json(text)

    def list_backups(self) -> list[Path]:
        """Return backup files, newest first (by modification time, then name)."""
        try:
            files = [p for p in self._backup_dir.iterdir() if p.suffix == ".json" and p.is_file()]
        except (FileNotFoundError, NotADirectoryError):
            return []
        except PermissionError:
            logger.warning("Permission denied listing %s", self._backup_dir)
            return []
        return sorted(files, key=lambda p: (p.stat().st_mtime, p.name), reverse=True)

    def delete_backup(self, path: Path) -> None:
        """Delete one backup file.

        Raises:
            BackupError: If the file is outside the backup directory or
                cannot be removed.
        """
        if path.resolve().parent != self._backup_dir.resolve():
            raise BackupError(f"{path} is not in {self._backup_dir}")
        try:
            path.unlink()
        except OSError as exc:
            raise BackupError(f"Cannot delete backup {path}: {exc}") from exc
