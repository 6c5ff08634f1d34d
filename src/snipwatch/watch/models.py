"""Run statistics for the watch loop."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from snipwatch.processing import ProcessResult


@dataclass(slots=True)
class WatchStatistics:
    """Counters describing a watcher run.

    Attributes:
        started_at: Time the run began.
        processed: Files handed to the processor.
        succeeded: Files enhanced successfully.
        failed: Files whose processing failed.
        skipped: Files skipped as ineligible or empty.
        last_activity: Time the last file was processed.
    """

    started_at: datetime
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    last_activity: Optional[datetime] = None

    def record(self, result: ProcessResult, now: datetime) -> None:
        """Account for one processed file."""
        self.processed += 1
        if result.succeeded:
            self.succeeded += 1
        elif result.failed:
            self.failed += 1
        else:
            self.skipped += 1
        self.last_activity = now

    def uptime(self, now: datetime) -> timedelta:
        return max(now - self.started_at, timedelta(0))

    def summary(self, now: datetime) -> str:
        """Return a one-line summary suitable for heartbeat logs."""
        uptime = self.uptime(now)
        hours, remainder = divmod(int(uptime.total_seconds()), 3600)
        minutes, seconds = divmod(remainder, 60)
        last = self.last_activity.strftime("%Y-%m-%d %H:%M:%S") if self.last_activity else "never"
        return (
            f"uptime={hours:d}h{minutes:02d}m{seconds:02d}s processed={self.processed} "
            f"succeeded={self.succeeded} failed={self.failed} skipped={self.skipped} "
            f"last_activity={last}"
        )


__all__ = ["WatchStatistics"]
