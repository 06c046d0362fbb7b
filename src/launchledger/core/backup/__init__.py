"""Configuration export, import and timestamped backups.

Public API::

    from launchledger.core.backup import BackupManager, StartupConfiguration

    config = StartupConfiguration.capture(login_items, agents, daemons)
    path = BackupManager(backup_dir).create_backup(config)
"""

from __future__ import annotations

from launchledger.core.backup.manager import BackupManager
from launchledger.core.backup.models import (
    ServiceBackup,
    StartupConfiguration,
    format_timestamp,
    parse_timestamp,
)

__all__ = [
    "BackupManager",
    "ServiceBackup",
    "StartupConfiguration",
    "format_timestamp",
    "parse_timestamp",
]
