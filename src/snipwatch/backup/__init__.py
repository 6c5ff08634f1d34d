"""Backup packages: creation, retention, listing and restore."""

from .errors import ArchiveError, BackupNotFoundError
from .manager import BACKUP_NAME_PATTERN, BackupManager, parse_package_timestamp
from .models import BackupInfo, RestoreResult, format_size

__all__ = [
    "ArchiveError",
    "BACKUP_NAME_PATTERN",
    "BackupInfo",
    "BackupManager",
    "BackupNotFoundError",
    "RestoreResult",
    "format_size",
    "parse_package_timestamp",
]
