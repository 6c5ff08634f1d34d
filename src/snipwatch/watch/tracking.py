"""In-memory bookkeeping for files the watcher has already seen."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterator, Optional


@dataclass(slots=True)
class RetryEntry:
    """Retry state for a file that failed after being archived.

    Attributes:
        attempts: Retries scheduled so far.
        next_attempt_at: Earliest time the next retry may run.
    """

    attempts: int
    next_attempt_at: datetime


class FileTracker:
    """Remember first-seen times so files are processed once per expiration window."""

    def __init__(
        self,
        expiration: timedelta,
        *,
        max_retries: int = 0,
        retry_delay: timedelta = timedelta(seconds=60),
    ) -> None:
        self._expiration = expiration
        self._max_retries = max(0, max_retries)
        self._retry_delay = retry_delay
        self._seen: dict[Path, datetime] = {}
        self._retries: dict[Path, RetryEntry] = {}

    def __contains__(self, path: object) -> bool:
        return path in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def __iter__(self) -> Iterator[Path]:
        return iter(list(self._seen))

    def is_tracked(self, path: Path) -> bool:
        return path in self._seen

    def first_seen(self, path: Path) -> Optional[datetime]:
        return self._seen.get(path)

    def track(self, path: Path, now: datetime) -> None:
        """Record ``path`` as seen at ``now`` unless it is already tracked."""
        self._seen.setdefault(path, now)

    def forget(self, path: Path) -> None:
        self._seen.pop(path, None)
        self._retries.pop(path, None)

    def expire(self, now: datetime) -> list[Path]:
        """Evict entries whose expiration window has elapsed at ``now``.

        Returns:
            list[Path]: Paths that are no longer tracked.
        """
        expired = [path for path, seen in self._seen.items() if now - seen >= self._expiration]
        for path in expired:
            self.forget(path)
        return expired

    # Retry bookkeeping -------------------------------------------------

    @property
    def pending_retries(self) -> dict[Path, RetryEntry]:
        return dict(self._retries)

    def schedule_retry(self, path: Path, now: datetime) -> bool:
        """Schedule another attempt for ``path``.

        Returns:
            bool: ``False`` once ``max_retries`` attempts have been used up.
        """
        entry = self._retries.get(path)
        attempts = (entry.attempts if entry else 0) + 1
        if attempts > self._max_retries:
            self._retries.pop(path, None)
            return False
        self._retries[path] = RetryEntry(attempts=attempts, next_attempt_at=now + self._retry_delay)
        return True

    def retry_attempts(self, path: Path) -> int:
        entry = self._retries.get(path)
        return entry.attempts if entry else 0

    def due_retries(self, now: datetime) -> list[Path]:
        return sorted(path for path, entry in self._retries.items() if entry.next_attempt_at <= now)

    def clear_retry(self, path: Path) -> None:
        self._retries.pop(path, None)


__all__ = ["FileTracker", "RetryEntry"]
