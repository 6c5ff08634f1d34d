"""Polling watch service that feeds new markdown files to the processor."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

from snipwatch.backup import BackupManager
from snipwatch.config import SnipWatchConfig
from snipwatch.notifications import Notifier, NullNotifier
from snipwatch.processing import FileProcessor, ProcessResult

from .models import WatchStatistics
from .tracking import FileTracker

LOGGER = logging.getLogger(__name__)

HEARTBEAT_WINDOW_SECONDS = 10


class WatchService:
    """Single-threaded polling loop over the configured watch folder."""

    def __init__(
        self,
        config: SnipWatchConfig,
        processor: FileProcessor,
        *,
        backups: Optional[BackupManager] = None,
        notifier: Optional[Notifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], object]] = None,
    ) -> None:
        """Initialize the watch service.

        Args:
            config: Loaded SnipWatch configuration.
            processor: Processor invoked for each discovered file.
            backups: Backup manager consulted at startup and on heartbeats.
            notifier: Receives startup and shutdown notifications.
            clock: Callable returning the current local time.
            sleep: Callable used for polling and processing delays; defaults to
                waiting on the stop event so :meth:`stop` wakes the loop.
        """

        self._config = config
        self._processor = processor
        self._backups = backups
        self._notifier = notifier or NullNotifier()
        self._clock = clock or datetime.now
        self._stop_event = threading.Event()
        self._sleep = sleep or self._stop_event.wait
        watcher = config.watcher
        self._tracker = FileTracker(
            timedelta(minutes=watcher.file_tracking_expiration),
            max_retries=watcher.max_retries,
            retry_delay=timedelta(seconds=watcher.retry_delay),
        )
        self._stats = WatchStatistics(started_at=self._clock())
        self._last_heartbeat: Optional[datetime] = None

    @property
    def tracker(self) -> FileTracker:
        return self._tracker

    @property
    def statistics(self) -> WatchStatistics:
        return self._stats

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    def prepare(self, *, backup_now: bool = False) -> None:
        """Create working folders and run the startup backup checks.

        Args:
            backup_now: Write a backup immediately, ignoring the interval.
        """
        folders = self._config.folders
        for folder in (folders.base, folders.originals, folders.enhanced, folders.logs):
            folder.mkdir(parents=True, exist_ok=True)

        if self._backups is None:
            return
        if backup_now:
            self._backups.backup(force=True)
        self._backups.backup()

    def scan(self) -> list[Path]:
        """Return files in the watch folder matching the configured filter.

        Raises:
            FileNotFoundError: If the watch folder has disappeared.
        """
        base = self._config.folders.base
        if not base.is_dir():
            raise FileNotFoundError(f"Watch folder {base} does not exist.")
        pattern = self._config.watcher.file_filter
        candidates = base.rglob(pattern) if self._config.watcher.recursive else base.glob(pattern)
        return sorted(
            path.absolute()
            for path in candidates
            if path.is_file() and not self._in_output_folder(path)
        )

    def process_once(self) -> list[ProcessResult]:
        """Process every file currently in the watch folder once."""
        now = self._clock()
        results: list[ProcessResult] = []
        for path in self.scan():
            if self.stopped:
                break
            self._tracker.track(path, now)
            results.append(self._handle(path, delay=False))
        return results

    def poll(self) -> list[ProcessResult]:
        """Run one polling iteration.

        New files are tracked and processed, due retries run again, expired
        tracking entries are evicted and the heartbeat is evaluated.

        Returns:
            list[ProcessResult]: Results for files processed in this iteration.
        """
        results: list[ProcessResult] = []
        present = self.scan()
        for path in present:
            if self.stopped:
                break
            if self._tracker.is_tracked(path):
                continue
            self._tracker.track(path, self._clock())
            results.append(self._handle(path, delay=True))

        present_paths = set(present)
        for path in self._tracker.due_retries(self._clock()):
            if self.stopped:
                break
            if path not in present_paths:
                self._tracker.clear_retry(path)
                continue
            LOGGER.info(
                "Retrying %s (attempt %d of %d).",
                path.name,
                self._tracker.retry_attempts(path),
                self._config.watcher.max_retries,
            )
            results.append(self._handle(path, delay=False))

        expired = self._tracker.expire(self._clock())
        if expired:
            LOGGER.debug("Stopped tracking %d expired file(s).", len(expired))

        self.heartbeat(self._clock())
        return results

    def heartbeat(self, now: datetime) -> bool:
        """Log a status summary and check backups when a heartbeat is due.

        A heartbeat is due when the minute of ``now`` is a multiple of
        ``watcher.heartbeat_interval`` and ``now`` falls within the first
        seconds of that minute; each minute fires at most once.

        Returns:
            bool: Whether a heartbeat fired.
        """
        interval = self._config.watcher.heartbeat_interval
        if now.minute % interval != 0 or now.second >= HEARTBEAT_WINDOW_SECONDS:
            return False
        minute = now.replace(second=0, microsecond=0)
        if self._last_heartbeat == minute:
            return False
        self._last_heartbeat = minute

        LOGGER.info(
            "Heartbeat: %s tracked=%d pending_retries=%d",
            self._stats.summary(now),
            len(self._tracker),
            len(self._tracker.pending_retries),
        )
        if self._backups is not None:
            self._backups.backup()
        return True

    def run(self, *, backup_now: bool = False) -> WatchStatistics:
        """Prepare, process existing files, then poll until :meth:`stop` is called.

        Args:
            backup_now: Write a backup immediately before watching.

        Returns:
            WatchStatistics: Final statistics for the run.

        Raises:
            Exception: Unexpected errors from the loop itself are re-raised
                after the final statistics are logged.
        """
        self._stop_event.clear()
        self._stats = WatchStatistics(started_at=self._clock())
        base = self._config.folders.base
        LOGGER.info("Watching %s for %s", base, self._config.watcher.file_filter)
        self._notifier.notify("SnipWatch started", f"Watching {base}", kind="info")

        try:
            self.prepare(backup_now=backup_now)
            self.process_once()
            while not self.stopped:
                self.poll()
                if self.stopped:
                    break
                self._sleep(self._config.watcher.polling_interval)
        except KeyboardInterrupt:
            LOGGER.info("Interrupted; shutting down.")
        except Exception:
            LOGGER.exception("Watcher stopped by an unexpected error.")
            raise
        finally:
            summary = self._stats.summary(self._clock())
            LOGGER.info("Watcher stopped: %s", summary)
            self._notifier.notify("SnipWatch stopped", summary, kind="info")

        return self._stats

    def stop(self) -> None:
        """Ask the loop to exit at the next iteration boundary."""
        self._stop_event.set()

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _handle(self, path: Path, *, delay: bool) -> ProcessResult:
        processing_delay = self._config.watcher.processing_delay
        if delay and processing_delay > 0:
            self._sleep(processing_delay)

        result = self._processor.process(path)
        self._stats.record(result, self._clock())

        if result.retryable and path.exists():
            if self._tracker.schedule_retry(path, self._clock()):
                LOGGER.info(
                    "%s will be retried in %d seconds.", path.name, self._config.watcher.retry_delay
                )
            else:
                LOGGER.error(
                    "Giving up on %s after %d retries; it stays in the watch folder.",
                    path.name,
                    self._config.watcher.max_retries,
                )
        else:
            self._tracker.clear_retry(path)
        return result

    def _in_output_folder(self, path: Path) -> bool:
        folders = self._config.folders
        absolute = path.absolute()
        return any(
            absolute.parent == folder or folder in absolute.parents
            for folder in (folders.originals, folders.enhanced)
        )


__all__ = ["WatchService", "HEARTBEAT_WINDOW_SECONDS"]
