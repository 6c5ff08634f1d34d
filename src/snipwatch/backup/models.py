"""Backup package descriptors."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from snipwatch.config import SnipWatchConfig


@dataclass(slots=True)
class BackupInfo:
    """Backup package found in the Backups folder.

    Attributes:
        path: Location of the package.
        created_at: Timestamp embedded in the name, or the filesystem creation time.
        size_bytes: Exact package size.
        size_display: Size rendered in bytes, KB, MB or GB.
    """

    path: Path
    created_at: datetime
    size_bytes: int
    size_display: str

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(slots=True)
class RestoreResult:
    """Outcome of a restore.

    Attributes:
        success: Whether every step completed.
        config: Configuration in effect after the restore.
        config_restored: Whether the package replaced the live configuration file.
        restored_files: Files copied back into live folders.
        error: Error message for failed restores.
    """

    success: bool
    config: SnipWatchConfig
    config_restored: bool = False
    restored_files: List[Path] = field(default_factory=list)
    error: Optional[str] = None


def format_size(size_bytes: int) -> str:
    """Return a human-readable size bucket for ``size_bytes``."""
    if size_bytes < 1024:
        return f"{size_bytes} bytes"
    size = float(size_bytes)
    for unit in ("KB", "MB", "GB"):
        size /= 1024
        if size < 1024 or unit == "GB":
            return f"{size:.2f} {unit}"
    return f"{size:.2f} GB"  # pragma: no cover - loop always returns


__all__ = ["BackupInfo", "RestoreResult", "format_size"]
