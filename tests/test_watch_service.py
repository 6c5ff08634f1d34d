"""Tests for the polling watch service and its file tracker."""

from __future__ import annotations

import shutil
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import pytest
from conftest import TODAY, FakeCompleter, RecordingNotifier, build_config

from snipwatch.config import SnipWatchConfig
from snipwatch.enhancement import EnhancementClient
from snipwatch.processing import FileProcessor
from snipwatch.watch import FileTracker, WatchService

START = datetime(2026, 10, 17, 9, 2, 30)


class _Clock:
    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


class _RecordingBackups:
    def __init__(self) -> None:
        self.calls: list[bool] = []

    def backup(self, *, force: bool = False) -> Optional[Path]:
        self.calls.append(force)
        return None


def _service(
    config: SnipWatchConfig,
    completer: FakeCompleter,
    *,
    clock: Optional[_Clock] = None,
    backups: Optional[_RecordingBackups] = None,
    notifier: Optional[RecordingNotifier] = None,
    sleep=None,
) -> WatchService:
    client = EnhancementClient(config.ai_prompts, completer, today=lambda: TODAY)
    processor = FileProcessor(config, client)
    return WatchService(
        config,
        processor,
        backups=backups,  # type: ignore[arg-type]
        notifier=notifier,
        clock=clock or _Clock(),
        sleep=sleep or (lambda seconds: None),
    )


def _write(config: SnipWatchConfig, name: str, text: str = "# Hello") -> Path:
    path = config.folders.base / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_tracker_expires_entries_after_window() -> None:
    tracker = FileTracker(timedelta(minutes=60))
    path = Path("/watch/notes.md")
    tracker.track(path, START)
    tracker.track(path, START + timedelta(minutes=30))

    assert tracker.first_seen(path) == START
    assert tracker.expire(START + timedelta(minutes=59)) == []
    assert path in tracker
    assert tracker.expire(START + timedelta(minutes=60)) == [path]
    assert path not in tracker
    assert len(tracker) == 0


def test_tracker_retry_budget() -> None:
    tracker = FileTracker(timedelta(minutes=60), max_retries=2, retry_delay=timedelta(seconds=30))
    path = Path("/watch/notes.md")

    assert tracker.schedule_retry(path, START)
    assert tracker.due_retries(START) == []
    assert tracker.due_retries(START + timedelta(seconds=30)) == [path]
    assert tracker.schedule_retry(path, START)
    assert tracker.retry_attempts(path) == 2
    assert not tracker.schedule_retry(path, START)
    assert tracker.pending_retries == {}


def test_process_once_handles_existing_files(config: SnipWatchConfig, completer: FakeCompleter) -> None:
    service = _service(config, completer)
    service.prepare()
    _write(config, "first.md")
    _write(config, "README.md")

    results = service.process_once()

    assert {result.source.name: result.status for result in results} == {
        "first.md": "succeeded",
        "README.md": "skipped",
    }
    assert not (config.folders.base / "first.md").exists()
    assert (config.folders.base / "README.md").exists()
    assert service.statistics.succeeded == 1
    assert service.statistics.skipped == 1


def test_poll_processes_new_files_once(config: SnipWatchConfig, completer: FakeCompleter) -> None:
    clock = _Clock()
    service = _service(config, completer, clock=clock)
    service.prepare()
    blank = _write(config, "blank.md", "   ")

    assert [r.status for r in service.poll()] == ["empty"]
    clock.advance(seconds=5)
    assert service.poll() == []

    _write(config, "later.md")
    clock.advance(seconds=5)
    assert [r.status for r in service.poll()] == ["succeeded"]

    clock.advance(minutes=61)
    assert service.poll() == []
    assert blank not in service.tracker
    assert [r.status for r in service.poll()] == ["empty"]


def test_poll_sleeps_for_processing_delay(tmp_path: Path, completer: FakeCompleter) -> None:
    config = build_config(tmp_path, watcher={"processing_delay": 3})
    sleeps: list[float] = []
    service = _service(config, completer, sleep=sleeps.append)
    service.prepare()
    _write(config, "notes.md")

    service.poll()

    assert sleeps == [3]


def test_failed_file_is_retried_after_delay(tmp_path: Path) -> None:
    config = build_config(tmp_path, watcher={"max_retries": 2, "retry_delay": 30})
    completer = FakeCompleter(fail_content=True)
    clock = _Clock()
    service = _service(config, completer, clock=clock)
    service.prepare()
    source = _write(config, "notes.md")

    first = service.poll()
    assert first[0].retryable
    assert source.exists()
    assert service.tracker.retry_attempts(source.absolute()) == 1

    clock.advance(seconds=10)
    assert service.poll() == []

    completer.fail_content = False
    clock.advance(seconds=20)
    retried = service.poll()

    assert [r.status for r in retried] == ["succeeded"]
    assert not source.exists()
    assert service.tracker.pending_retries == {}
    assert service.statistics.failed == 1
    assert service.statistics.succeeded == 1


def test_retries_stop_after_budget(tmp_path: Path) -> None:
    config = build_config(tmp_path, watcher={"max_retries": 1, "retry_delay": 1})
    clock = _Clock()
    service = _service(config, FakeCompleter(fail_content=True), clock=clock)
    service.prepare()
    source = _write(config, "notes.md")

    service.poll()
    clock.advance(seconds=1)
    assert len(service.poll()) == 1
    clock.advance(seconds=1)

    assert service.poll() == []
    assert source.exists()
    assert service.tracker.pending_retries == {}


def test_heartbeat_fires_once_per_matching_minute(
    config: SnipWatchConfig, completer: FakeCompleter
) -> None:
    backups = _RecordingBackups()
    service = _service(config, completer, backups=backups)

    assert service.heartbeat(datetime(2026, 10, 17, 9, 5, 3))
    assert not service.heartbeat(datetime(2026, 10, 17, 9, 5, 8))
    assert not service.heartbeat(datetime(2026, 10, 17, 9, 6, 1))
    assert not service.heartbeat(datetime(2026, 10, 17, 9, 10, 30))
    assert service.heartbeat(datetime(2026, 10, 17, 9, 10, 2))
    assert backups.calls == [False, False]


def test_prepare_runs_startup_backups(config: SnipWatchConfig, completer: FakeCompleter) -> None:
    backups = _RecordingBackups()
    service = _service(config, completer, backups=backups)

    service.prepare(backup_now=True)

    assert backups.calls == [True, False]
    for folder in (config.folders.base, config.folders.originals, config.folders.enhanced, config.folders.logs):
        assert folder.is_dir()


def test_scan_excludes_output_folders(tmp_path: Path, completer: FakeCompleter) -> None:
    config = build_config(tmp_path, watcher={"recursive": True})
    service = _service(config, completer)
    service.prepare()
    top = _write(config, "top.md")
    nested = _write(config, "inbox/nested.md")
    _write(config, "Originals/old.md")
    _write(config, "Enhanced/2026-10-17-old.md")
    _write(config, "notes.txt")

    assert service.scan() == sorted([top.absolute(), nested.absolute()])


def test_scan_is_flat_by_default(config: SnipWatchConfig, completer: FakeCompleter) -> None:
    service = _service(config, completer)
    service.prepare()
    top = _write(config, "top.md")
    _write(config, "inbox/nested.md")

    assert service.scan() == [top.absolute()]


def test_run_stops_when_requested(config: SnipWatchConfig, completer: FakeCompleter) -> None:
    notifier = RecordingNotifier()
    sleeps: list[float] = []
    holder: dict[str, WatchService] = {}

    def sleep(seconds: float) -> None:
        sleeps.append(seconds)
        holder["service"].stop()

    service = _service(config, completer, notifier=notifier, sleep=sleep)
    holder["service"] = service
    _write(config, "notes.md")

    stats = service.run()

    assert stats.succeeded == 1
    assert sleeps == [config.watcher.polling_interval]
    assert [title for _, title, _ in notifier.messages] == ["SnipWatch started", "SnipWatch stopped"]
    assert service.stopped


def test_run_treats_keyboard_interrupt_as_shutdown(
    config: SnipWatchConfig, completer: FakeCompleter
) -> None:
    notifier = RecordingNotifier()

    def sleep(seconds: float) -> None:
        raise KeyboardInterrupt

    service = _service(config, completer, notifier=notifier, sleep=sleep)

    stats = service.run()

    assert stats.processed == 0
    assert notifier.messages[-1][1] == "SnipWatch stopped"


def test_run_reraises_unexpected_errors(config: SnipWatchConfig, completer: FakeCompleter) -> None:
    notifier = RecordingNotifier()

    def sleep(seconds: float) -> None:
        shutil.rmtree(config.folders.base)

    service = _service(config, completer, notifier=notifier, sleep=sleep)

    with pytest.raises(FileNotFoundError):
        service.run()

    assert notifier.messages[-1][1] == "SnipWatch stopped"
