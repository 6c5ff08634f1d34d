"""Process a single watched markdown file end to end."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from snipwatch.config import SnipWatchConfig
from snipwatch.config.models import FolderSettings
from snipwatch.enhancement import EnhancementClient, ServiceError
from snipwatch.notifications import Notifier, NullNotifier

from .errors import FileAccessError, ProcessingError
from .models import ProcessResult

LOGGER = logging.getLogger(__name__)

SKIPPED_NAMES = frozenset({"readme.md", "changelog.md", "watcher-test-file.tmp"})
SKIPPED_SUFFIXES = ("-enhanced.md", ".backup.md")
PROTECTED_DIRNAMES = frozenset({"enhanced", "originals"})


def skip_reason(path: Path, folders: Optional[FolderSettings] = None) -> Optional[str]:
    """Return why ``path`` must not be processed, or ``None`` when it is eligible.

    Args:
        path: Candidate file.
        folders: Configured folders; files inside Originals/Enhanced are skipped.

    Returns:
        Optional[str]: Human-readable reason for skipping.
    """
    name = path.name.lower()
    if name in SKIPPED_NAMES:
        return "reserved file name"
    if name.endswith(SKIPPED_SUFFIXES):
        return "already an enhanced or backup copy"

    parents = path.parent.parts
    if folders is not None:
        for folder in (folders.originals, folders.enhanced):
            if path.parent == folder or folder in path.parents:
                return f"inside {folder}"
        try:
            parents = path.parent.relative_to(folders.base).parts
        except ValueError:
            pass
    if any(part.lower() in PROTECTED_DIRNAMES for part in parents):
        return "inside an Originals or Enhanced folder"
    return None


class FileProcessor:
    """Archive, rename and rewrite one markdown file at a time."""

    def __init__(
        self,
        config: SnipWatchConfig,
        client: EnhancementClient,
        *,
        notifier: Notifier | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._notifier = notifier or NullNotifier()

    def process(self, path: Path) -> ProcessResult:
        """Process ``path`` and report the outcome.

        Failures never propagate: they are logged, notified, and returned as a
        ``failed`` result. When the failure happens after the Originals copy,
        the source stays in the watch folder so it can be retried.

        Args:
            path: File discovered in the watch folder.

        Returns:
            ProcessResult: Outcome of the run.
        """
        source = Path(path).expanduser().absolute()
        reason = skip_reason(source, self._config.folders)
        if reason is not None:
            LOGGER.info("Skipping %s: %s.", source.name, reason)
            return ProcessResult(source=source, status="skipped")

        result = ProcessResult(source=source, status="failed")
        try:
            content = self._read(source)
            if not content.strip():
                LOGGER.warning("%s is empty; leaving it in place.", source)
                result.status = "empty"
                return result

            result.original_copy = self._archive_original(source)
            result.stage = "copied"

            filename = self._client.generate_filename(content, source.name)
            destination = self._config.folders.enhanced / filename
            result.stage = "renamed"

            enhanced = self._client.enhance_content(content)
            self._write_replacing(destination, enhanced)
            result.enhanced_path = destination
            result.stage = "enhanced"

            self._remove_source(source)
            result.stage = "removed"
        except (ProcessingError, ServiceError, OSError) as exc:
            LOGGER.error("Processing %s failed at stage %s: %s", source.name, result.stage, exc)
            return self._fail(result, exc)
        except Exception as exc:  # pragma: no cover - defensive branch
            LOGGER.exception("Unexpected error while processing %s", source.name)
            return self._fail(result, exc)

        result.status = "succeeded"
        LOGGER.info("Enhanced %s -> %s", source.name, result.enhanced_path)
        self._notifier.notify(
            "Note enhanced",
            f"{source.name} saved as {destination.name}",
            kind="success",
        )
        return result

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _fail(self, result: ProcessResult, exc: BaseException) -> ProcessResult:
        result.status = "failed"
        result.error = f"{exc.__class__.__name__}: {exc}"
        if result.retryable:
            LOGGER.warning("%s kept in the watch folder for a later retry.", result.source.name)
        self._notifier.notify(
            "Enhancement failed",
            f"{result.source.name}: {exc}",
            kind="error",
        )
        return result

    def _read(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as exc:
            raise FileAccessError(f"Unable to read {path}: {exc}") from exc

    def _archive_original(self, path: Path) -> Path:
        originals = self._config.folders.originals
        originals.mkdir(parents=True, exist_ok=True)
        target = originals / path.name
        try:
            shutil.copyfile(path, target)
        except OSError as exc:
            raise FileAccessError(f"Unable to copy {path} to {originals}: {exc}") from exc
        return target

    def _write_replacing(self, destination: Path, content: str) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        handle = tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            newline="",
            dir=destination.parent,
            prefix=".",
            suffix=".tmp",
            delete=False,
        )
        try:
            with handle:
                handle.write(content)
            os.replace(handle.name, destination)
        except OSError as exc:
            Path(handle.name).unlink(missing_ok=True)
            raise FileAccessError(f"Unable to write {destination}: {exc}") from exc

    def _remove_source(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            LOGGER.warning("%s was already removed from the watch folder.", path)


__all__ = ["FileProcessor", "skip_reason", "SKIPPED_NAMES", "SKIPPED_SUFFIXES"]
