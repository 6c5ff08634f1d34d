"""Create, prune, list and restore backup packages."""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
import zipfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

from snipwatch.config import ConfigError, ConfigManager, SnipWatchConfig

from .errors import ArchiveError, BackupNotFoundError
from .models import BackupInfo, RestoreResult, format_size

LOGGER = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
BACKUP_GLOB = "*Backup_*.zip"
BACKUP_NAME_PATTERN = re.compile(
    r"^(?:(?P<prefix>.+)_)?Backup_(?P<stamp>\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2})\.zip$"
)
ORIGINALS_DIRNAME = "Originals"
ENHANCED_DIRNAME = "Enhanced"
SCRIPTS_DIRNAME = "Scripts"
_CONFIG_SUFFIXES = (".yaml", ".yml")


class BackupManager:
    """Archive configuration and note folders into timestamped ZIP packages."""

    def __init__(
        self,
        config: SnipWatchConfig,
        manager: ConfigManager,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize the backup manager.

        Args:
            config: Configuration in effect; ``backup.last_backup`` is updated in place.
            manager: Config store used to persist ``last_backup`` and reload restores.
            clock: Callable returning the current local time.
        """
        self._config = config
        self._manager = manager
        self._clock = clock or datetime.now

    @property
    def config(self) -> SnipWatchConfig:
        """Return the configuration currently in effect."""
        return self._config

    @property
    def backups_dir(self) -> Path:
        return self._config.folders.backups

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    def is_due(self, now: Optional[datetime] = None) -> bool:
        """Return whether a scheduled backup should run at ``now``."""
        settings = self._config.backup
        if not settings.enabled:
            return False
        if settings.last_backup is None:
            return True
        now = now or self._clock()
        last = settings.last_backup
        if last.tzinfo is not None:
            last = last.astimezone().replace(tzinfo=None)
        return now >= last + timedelta(hours=settings.backup_interval)

    def package_name(self, moment: datetime) -> str:
        """Return the package filename for a backup taken at ``moment``."""
        prefix = self._config.backup.name_prefix.strip()
        stem = f"Backup_{moment.strftime(TIMESTAMP_FORMAT)}"
        return f"{prefix}_{stem}.zip" if prefix else f"{stem}.zip"

    def backup(self, *, force: bool = False) -> Optional[Path]:
        """Write a backup package when backups are enabled and one is due.

        Args:
            force: Skip the interval check (backups must still be enabled).

        Returns:
            Optional[Path]: The new package, or ``None`` when nothing was
            written because backups are disabled, not yet due, or failed.
        """
        if not self._config.backup.enabled:
            LOGGER.debug("Backups are disabled; skipping.")
            return None

        now = self._clock()
        if not force and not self.is_due(now):
            LOGGER.debug("Backup not due yet (last backup %s).", self._config.backup.last_backup)
            return None

        stamp = now.strftime(TIMESTAMP_FORMAT)
        staging: Optional[Path] = None
        try:
            staging = Path(tempfile.mkdtemp(prefix=f"snipwatch-backup-{stamp}-"))
            self._stage(staging)
            package = self._compress(staging, self.backups_dir / self.package_name(now))
            self._config.backup.last_backup = now
            self._manager.update("backup.last_backup", now.isoformat(timespec="seconds"))
        except (OSError, ConfigError) as exc:
            LOGGER.error("Backup failed: %s", exc)
            return None
        finally:
            if staging is not None:
                shutil.rmtree(staging, ignore_errors=True)

        LOGGER.info("Backup written to %s", package)
        self.apply_retention()
        return package

    def apply_retention(self) -> list[Path]:
        """Delete packages beyond ``backup.max_backup_sets``, oldest first.

        Returns:
            list[Path]: Packages that were removed.
        """
        keep = self._config.backup.max_backup_sets
        removed: list[Path] = []
        for stale in self._packages()[keep:]:
            try:
                stale.unlink()
            except OSError as exc:
                LOGGER.warning("Could not remove old backup %s: %s", stale, exc)
                continue
            LOGGER.info("Removed old backup %s", stale.name)
            removed.append(stale)
        return removed

    def list_backups(self) -> list[BackupInfo]:
        """Return known packages, newest first."""
        infos: list[BackupInfo] = []
        for path in self._packages():
            try:
                stat = path.stat()
            except OSError:
                continue
            created = parse_package_timestamp(path.name)
            if created is None:
                created = datetime.fromtimestamp(getattr(stat, "st_birthtime", stat.st_ctime))
            infos.append(
                BackupInfo(
                    path=path,
                    created_at=created,
                    size_bytes=stat.st_size,
                    size_display=format_size(stat.st_size),
                )
            )
        return infos

    def restore(self, package: Path) -> RestoreResult:
        """Restore configuration, notes and scripts from ``package``.

        Files in the live folders with the same names are overwritten; other
        files are left alone.

        Args:
            package: Backup package to restore.

        Returns:
            RestoreResult: Outcome including the configuration now in effect.

        Raises:
            BackupNotFoundError: If ``package`` does not exist.
        """
        package = Path(package).expanduser()
        if not package.is_file():
            raise BackupNotFoundError(f"Backup package not found: {package}")

        result = RestoreResult(success=False, config=self._config)
        try:
            with tempfile.TemporaryDirectory(prefix="snipwatch-restore-") as tmp:
                extracted = Path(tmp)
                with zipfile.ZipFile(package) as archive:
                    archive.extractall(extracted)

                config_file = self._find_config(extracted)
                if config_file is not None:
                    live = self._manager.config_path
                    live.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(config_file, live)
                    self._config = self._manager.load()
                    result.config = self._config
                    result.config_restored = True
                    LOGGER.info("Configuration restored from %s", package.name)

                folders = self._config.folders
                for folder in (folders.base, folders.originals, folders.enhanced, folders.logs, folders.backups):
                    folder.mkdir(parents=True, exist_ok=True)

                result.restored_files.extend(
                    _copy_contents(extracted / ORIGINALS_DIRNAME, folders.originals)
                )
                result.restored_files.extend(
                    _copy_contents(extracted / ENHANCED_DIRNAME, folders.enhanced)
                )
                scripts_dir = self._config.backup.scripts_dir
                if scripts_dir is not None:
                    result.restored_files.extend(
                        _copy_contents(extracted / SCRIPTS_DIRNAME, scripts_dir)
                    )
                elif any((extracted / SCRIPTS_DIRNAME).glob("*")):
                    LOGGER.warning("Package contains scripts but backup.scripts_dir is not set; skipped.")
        except (OSError, zipfile.BadZipFile, ConfigError, ArchiveError) as exc:
            LOGGER.error("Restore from %s failed: %s", package, exc)
            result.error = str(exc)
            return result

        result.success = True
        LOGGER.info("Restored %d file(s) from %s", len(result.restored_files), package.name)
        return result

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _packages(self) -> list[Path]:
        directory = self.backups_dir
        if not directory.is_dir():
            return []
        candidates: list[tuple[float, str, Path]] = []
        for path in directory.glob(BACKUP_GLOB):
            if path.name.startswith(".") or not path.is_file():
                continue
            try:
                modified = path.stat().st_mtime
            except OSError:
                continue
            candidates.append((modified, path.name, path))
        candidates.sort(reverse=True)
        return [path for _, _, path in candidates]

    def _stage(self, staging: Path) -> None:
        config_path = self._manager.config_path
        if config_path.is_file():
            shutil.copy2(config_path, staging / config_path.name)
        else:
            LOGGER.warning("Configuration file %s not found; backing up without it.", config_path)

        folders = self._config.folders
        for source, dirname in ((folders.originals, ORIGINALS_DIRNAME), (folders.enhanced, ENHANCED_DIRNAME)):
            target = staging / dirname
            if source.is_dir():
                shutil.copytree(source, target)
            else:
                target.mkdir()

        scripts_target = staging / SCRIPTS_DIRNAME
        scripts_target.mkdir()
        scripts_dir = self._config.backup.scripts_dir
        if scripts_dir is None or not scripts_dir.is_dir():
            return
        for pattern in self._config.backup.script_patterns:
            for script in scripts_dir.glob(pattern):
                if script.is_file():
                    shutil.copy2(script, scripts_target / script.name)

    def _compress(self, staging: Path, target: Path) -> Path:
        target.parent.mkdir(parents=True, exist_ok=True)
        partial_base = target.with_name(f".{target.stem}.partial")
        partial = Path(shutil.make_archive(str(partial_base), "zip", root_dir=staging))
        try:
            os.replace(partial, target)
        except OSError:
            partial.unlink(missing_ok=True)
            raise
        return target

    def _find_config(self, extracted: Path) -> Optional[Path]:
        preferred = extracted / self._manager.config_path.name
        if preferred.is_file():
            return preferred
        for candidate in sorted(extracted.iterdir()):
            if candidate.is_file() and candidate.suffix.lower() in _CONFIG_SUFFIXES:
                return candidate
        return None


def parse_package_timestamp(name: str) -> Optional[datetime]:
    """Return the timestamp embedded in a package name, if it parses."""
    match = BACKUP_NAME_PATTERN.match(name)
    if match is None:
        return None
    try:
        return datetime.strptime(match.group("stamp"), TIMESTAMP_FORMAT)
    except ValueError:
        return None


def _copy_contents(source: Path, destination: Path) -> list[Path]:
    if not source.is_dir():
        return []
    copied: list[Path] = []
    for item in sorted(source.rglob("*")):
        if not item.is_file():
            continue
        target = destination / item.relative_to(source)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(item, target)
        copied.append(target)
    return copied


__all__ = ["BackupManager", "BACKUP_NAME_PATTERN", "parse_package_timestamp", "TIMESTAMP_FORMAT"]
