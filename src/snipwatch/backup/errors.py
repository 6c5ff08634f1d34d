"""Backup and restore errors."""


class ArchiveError(Exception):
    """Base exception for backup package operations."""


class BackupNotFoundError(ArchiveError):
    """Raised when a requested backup package does not exist."""
