"""Shared fixtures for SnipWatch tests."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any

import pytest

from snipwatch.config import ConfigManager, SnipWatchConfig
from snipwatch.enhancement import EnhancementClient, ServiceError

TODAY = date(2026, 10, 17)
FILENAME_PROMPT = "FILENAME:{content}"
ENHANCEMENT_PROMPT = "ENHANCE:{content}"


class FakeCompleter:
    """Completion service double that answers by prompt kind."""

    def __init__(
        self,
        *,
        filename: str = "ai-notes.md",
        content: str = "# Hello\n\nWorld",
        fail_filename: bool = False,
        fail_content: bool = False,
    ) -> None:
        self.filename = filename
        self.content = content
        self.fail_filename = fail_filename
        self.fail_content = fail_content
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if prompt.startswith("FILENAME:"):
            if self.fail_filename:
                raise ServiceError("quota exceeded")
            return self.filename
        if self.fail_content:
            raise ServiceError("service unavailable")
        return self.content


class RecordingNotifier:
    """Notifier double that keeps every notification."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str, str]] = []

    def notify(self, title: str, message: str, *, kind: str = "info") -> None:
        self.messages.append((kind, title, message))

    def kinds(self) -> list[str]:
        return [kind for kind, _, _ in self.messages]


def build_config(tmp_path: Path, **overrides: Any) -> SnipWatchConfig:
    """Return a configuration rooted in ``tmp_path``.

    Args:
        tmp_path: Temporary directory provided by pytest.
        **overrides: Section mappings merged over the test defaults.

    Returns:
        SnipWatchConfig: Validated configuration.
    """
    base = tmp_path / "watch"
    data: dict[str, Any] = {
        "folders": {
            "base": str(base),
            "originals": str(base / "Originals"),
            "enhanced": str(base / "Enhanced"),
            "logs": str(tmp_path / "logs"),
            "backups": str(tmp_path / "backups"),
        },
        "files": {
            "log_file": str(tmp_path / "logs" / "snipwatch.log"),
            "config_file": str(tmp_path / "config.yaml"),
        },
        "watcher": {"processing_delay": 0},
        "ai_prompts": {
            "filename_prompt": FILENAME_PROMPT,
            "enhancement_prompt": ENHANCEMENT_PROMPT,
        },
    }
    for section, values in overrides.items():
        data.setdefault(section, {}).update(values)
    return SnipWatchConfig.model_validate(data)


@pytest.fixture
def config(tmp_path: Path) -> SnipWatchConfig:
    return build_config(tmp_path)


@pytest.fixture
def manager(tmp_path: Path, config: SnipWatchConfig) -> ConfigManager:
    store = ConfigManager(tmp_path / "config.yaml", env={})
    store.save(config)
    return store


@pytest.fixture
def completer() -> FakeCompleter:
    return FakeCompleter()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def client(config: SnipWatchConfig, completer: FakeCompleter) -> EnhancementClient:
    return EnhancementClient(config.ai_prompts, completer, today=lambda: TODAY)
