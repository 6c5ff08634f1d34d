"""Configuration models describing SnipWatch settings."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_ROOT_DIRNAME = "SnipWatch"
CONTENT_PLACEHOLDER = "{content}"

DEFAULT_ENHANCEMENT_PROMPT = (
    "Reformat the following markdown note so it is clean, well structured and easy to read. "
    "Fix headings, lists, spacing and obvious typos, keep every fact and link, and do not add "
    "commentary. Return only the markdown.\n\n{content}"
)
DEFAULT_FILENAME_PROMPT = (
    "Suggest a short, descriptive filename in kebab-case for the following markdown note. "
    "Reply with the filename only, ending in .md.\n\n{content}"
)


def _default_root() -> Path:
    return Path("~").expanduser() / DEFAULT_ROOT_DIRNAME


def _expand(value: Path) -> Path:
    return Path(value).expanduser().absolute()


class SnipWatchBaseModel(BaseModel):
    """Shared configuration for SnipWatch Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class FolderSettings(SnipWatchBaseModel):
    """Folders used by the watcher.

    Attributes:
        base: Watch folder polled for new markdown files.
        originals: Archive of unmodified copies of ingested files.
        enhanced: Output folder for AI-rewritten files.
        logs: Folder holding the log file.
        backups: Folder receiving backup packages.
    """

    base: Path = Field(default_factory=_default_root)
    originals: Path = Field(default_factory=lambda: _default_root() / "Originals")
    enhanced: Path = Field(default_factory=lambda: _default_root() / "Enhanced")
    logs: Path = Field(default_factory=lambda: _default_root() / "Logs")
    backups: Path = Field(default_factory=lambda: _default_root() / "Backups")

    @field_validator("base", "originals", "enhanced", "logs", "backups", mode="before")
    @classmethod
    def _reject_empty(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("folder paths must not be empty")
        return value

    @field_validator("base", "originals", "enhanced", "logs", "backups")
    @classmethod
    def _absolute(cls, value: Path) -> Path:
        return _expand(value)


class FileSettings(SnipWatchBaseModel):
    """Well-known file locations.

    Attributes:
        log_file: Append-only log written by the watcher.
        config_file: Location of the configuration document itself.
    """

    log_file: Path = Field(default_factory=lambda: _default_root() / "Logs" / "snipwatch.log")
    config_file: Path = Field(
        default_factory=lambda: Path("~").expanduser() / ".snipwatch" / "config.yaml"
    )

    @field_validator("log_file", "config_file")
    @classmethod
    def _absolute(cls, value: Path) -> Path:
        return _expand(value)


class WatcherSettings(SnipWatchBaseModel):
    """Polling loop timing and discovery options.

    Attributes:
        file_filter: Glob pattern selecting candidate files in the watch folder.
        polling_interval: Seconds to wait between polls.
        heartbeat_interval: Minutes between heartbeat summaries.
        processing_delay: Seconds to wait before processing a newly discovered file.
        file_tracking_expiration: Minutes a discovered path stays tracked.
        recursive: Whether to look for files in subfolders of the watch folder.
        max_retries: Attempts granted to files that failed after being archived.
        retry_delay: Seconds between retry attempts.
    """

    file_filter: str = "*.md"
    polling_interval: int = Field(default=5, gt=0)
    heartbeat_interval: int = Field(default=5, gt=0)
    processing_delay: int = Field(default=2, ge=0)
    file_tracking_expiration: int = Field(default=60, gt=0)
    recursive: bool = False
    max_retries: int = Field(default=3, ge=0)
    retry_delay: int = Field(default=60, gt=0)


class PromptSettings(SnipWatchBaseModel):
    """Prompt templates sent to the completion service.

    Attributes:
        enhancement_prompt: Template used to rewrite note content.
        filename_prompt: Template used to derive an output filename.
    """

    enhancement_prompt: str = DEFAULT_ENHANCEMENT_PROMPT
    filename_prompt: str = DEFAULT_FILENAME_PROMPT

    @field_validator("enhancement_prompt", "filename_prompt")
    @classmethod
    def _requires_placeholder(cls, value: str) -> str:
        if CONTENT_PLACEHOLDER not in value:
            raise ValueError(f"prompt templates must contain {CONTENT_PLACEHOLDER}")
        return value


class BackupSettings(SnipWatchBaseModel):
    """Backup policy.

    Attributes:
        enabled: Whether scheduled backups run at all.
        max_backup_sets: Number of packages kept by retention.
        backup_interval: Hours between scheduled backups.
        last_backup: Time the last backup package was written.
        name_prefix: Prefix placed before ``_Backup_`` in package names.
        scripts_dir: Folder whose helper scripts are archived under ``Scripts/``.
        script_patterns: Glob patterns selecting files in ``scripts_dir``.
    """

    enabled: bool = True
    max_backup_sets: int = Field(default=5, gt=0)
    backup_interval: int = Field(default=24, gt=0)
    last_backup: Optional[datetime] = None
    name_prefix: str = "SnipWatch"
    scripts_dir: Optional[Path] = None
    script_patterns: List[str] = Field(default_factory=lambda: ["*.py", "*.ps1", "*.sh"])

    @field_validator("scripts_dir")
    @classmethod
    def _absolute(cls, value: Optional[Path]) -> Optional[Path]:
        return _expand(value) if value is not None else None


class NotificationSettings(SnipWatchBaseModel):
    """Notification toggles."""

    enabled: bool = True
    show_success_notifications: bool = True
    show_error_notifications: bool = True


class LLMSettings(SnipWatchBaseModel):
    """Completion service configuration.

    Attributes:
        base_url: Root of an OpenAI-compatible API.
        model: Model name to target when issuing requests.
        temperature: Sampling temperature for generative calls.
        max_tokens: Maximum number of tokens in responses.
        api_key: Credential for hosted providers.
        timeout_seconds: Request timeout; ``None`` waits indefinitely.
    """

    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    temperature: float = 0.3
    max_tokens: int = 4_000
    api_key: Optional[str] = None
    timeout_seconds: Optional[float] = None


class LoggingSettings(SnipWatchBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "INFO"
    max_size_mb: int = 10
    backup_count: int = 5


class SnipWatchConfig(SnipWatchBaseModel):
    """Top-level configuration struct for SnipWatch.

    Attributes:
        folders: Watch, archive, output, log and backup folders.
        files: Log and configuration file locations.
        watcher: Polling loop settings.
        ai_prompts: Prompt templates.
        backup: Backup policy.
        notifications: Notification toggles.
        llm: Completion service settings.
        logging: Logging configuration.
    """

    folders: FolderSettings = Field(default_factory=FolderSettings)
    files: FileSettings = Field(default_factory=FileSettings)
    watcher: WatcherSettings = Field(default_factory=WatcherSettings)
    ai_prompts: PromptSettings = Field(default_factory=PromptSettings)
    backup: BackupSettings = Field(default_factory=BackupSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @model_validator(mode="after")
    def _distinct_folders(self) -> "SnipWatchConfig":
        outputs = {self.folders.originals, self.folders.enhanced}
        if self.folders.base in outputs or len(outputs) != 2:
            raise ValueError("base, originals and enhanced folders must be distinct")
        return self


REQUIRED_SECTIONS = ("folders", "files", "watcher")

__all__ = [
    "SnipWatchBaseModel",
    "FolderSettings",
    "FileSettings",
    "WatcherSettings",
    "PromptSettings",
    "BackupSettings",
    "NotificationSettings",
    "LLMSettings",
    "LoggingSettings",
    "SnipWatchConfig",
    "REQUIRED_SECTIONS",
    "CONTENT_PLACEHOLDER",
]
