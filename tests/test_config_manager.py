"""Unit tests for configuration management."""

from datetime import datetime
from pathlib import Path

import pytest
import yaml

from snipwatch.config import (
    ConfigError,
    ConfigManager,
    SnipWatchConfig,
    resolve_with_precedence,
)


def _fresh_manager(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    monkeypatch.setenv("HOME", str(tmp_path))
    return ConfigManager()


def test_load_creates_default_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    config = manager.load(include_env=False)

    assert manager.config_path == tmp_path / ".snipwatch" / "config.yaml"
    text = manager.config_path.read_text(encoding="utf-8")
    assert "SnipWatch configuration file" in text
    assert "Last updated:" in text

    assert config.watcher.file_filter == "*.md"
    assert config.watcher.polling_interval == 5
    assert config.watcher.heartbeat_interval == 5
    assert config.watcher.processing_delay == 2
    assert config.watcher.file_tracking_expiration == 60
    assert config.backup.enabled is True
    assert config.backup.max_backup_sets == 5
    assert config.backup.backup_interval == 24
    assert config.backup.last_backup is None
    assert config.notifications.enabled
    assert config.notifications.show_success_notifications
    assert config.notifications.show_error_notifications
    assert config.folders.base == tmp_path / "SnipWatch"
    assert config.folders.originals == tmp_path / "SnipWatch" / "Originals"
    assert config.files.config_file == manager.config_path


def test_corrupt_file_is_replaced_by_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("folders: [unclosed", encoding="utf-8")
    manager = ConfigManager(path, env={})

    config = manager.load()

    assert isinstance(config, SnipWatchConfig)
    assert (tmp_path / "config.yaml.corrupt").read_text(encoding="utf-8") == "folders: [unclosed"
    stored = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert {"folders", "files", "watcher"} <= set(stored)


@pytest.mark.parametrize(
    "content",
    [
        "- not-a-mapping",
        "folders: {}\nfiles: {}\n",
        "watcher:\n  polling_interval: 9\n",
    ],
)
def test_incomplete_file_regenerates_defaults(tmp_path: Path, content: str) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(content, encoding="utf-8")
    manager = ConfigManager(path, env={})

    config = manager.load()

    assert config.watcher.polling_interval == 5
    assert "watcher:" in path.read_text(encoding="utf-8")


def test_update_creates_intermediate_sections(tmp_path: Path) -> None:
    manager = ConfigManager(tmp_path / "config.yaml", env={})
    manager.ensure_exists()

    config = manager.update("watcher.polling_interval", 11)
    assert config.watcher.polling_interval == 11

    stamp = datetime(2026, 10, 17, 9, 30, 0)
    manager.update("backup.last_backup", stamp.isoformat())
    reloaded = manager.load()
    assert reloaded.watcher.polling_interval == 11
    assert reloaded.backup.last_backup == stamp


def test_update_into_missing_section_builds_mapping(tmp_path: Path) -> None:
    manager = ConfigManager(tmp_path / "config.yaml", env={})
    manager.ensure_exists()
    data = manager.load_file_overrides()
    data.pop("notifications")
    manager.save(data)

    config = manager.update("notifications.enabled", False)

    assert config.notifications.enabled is False
    stored = yaml.safe_load(manager.read_text())
    assert stored["notifications"] == {"enabled": False}


def test_update_rejects_invalid_values(tmp_path: Path) -> None:
    manager = ConfigManager(tmp_path / "config.yaml", env={})
    manager.ensure_exists()

    with pytest.raises(ConfigError):
        manager.update("watcher.polling_interval", 0)
    with pytest.raises(ConfigError):
        manager.update("folders.base", "")


def test_resolve_with_precedence_respects_order(tmp_path: Path) -> None:
    manager = ConfigManager(tmp_path / "config.yaml", env={})
    manager.ensure_exists()
    manager.update("llm.model", "gpt-4.1")
    manager.update("watcher.heartbeat_interval", 15)

    env = {"SNIPWATCH__WATCHER__POLLING_INTERVAL": "7", "SNIPWATCH__LLM__TEMPERATURE": "0.7"}
    cli = {"llm.temperature": 0.2}

    config = manager.load(cli_overrides=cli, env_overrides=env)

    assert config.llm.model == "gpt-4.1"
    assert config.watcher.heartbeat_interval == 15
    assert config.watcher.polling_interval == 7
    # CLI overrides take precedence over environment
    assert config.llm.temperature == pytest.approx(0.2)


def test_prompts_require_placeholder() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=SnipWatchConfig(),
            file_overrides={"ai_prompts": {"filename_prompt": "Name this note."}},
        )


def test_resolve_with_precedence_merges_dotted_and_nested_keys() -> None:
    config = resolve_with_precedence(
        defaults=SnipWatchConfig(),
        file_overrides={"watcher": {"polling_interval": 8}, "backup.max_backup_sets": 2},
        cli_overrides={"watcher": {"recursive": True}},
    )

    assert config.watcher.polling_interval == 8
    assert config.watcher.recursive is True
    assert config.watcher.file_filter == "*.md"
    assert config.backup.max_backup_sets == 2
    assert config.backup.enabled is True


def test_resolve_with_precedence_rejects_non_mapping_source() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(defaults=SnipWatchConfig(), file_overrides=["watcher"])  # type: ignore[arg-type]


def test_resolve_with_precedence_invalid_value_raises() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=SnipWatchConfig(),
            file_overrides={"watcher": {"polling_interval": "not-an-int"}},
        )


def test_parse_document_accepts_complete_file(tmp_path: Path) -> None:
    manager = ConfigManager(tmp_path / "config.yaml", env={})
    manager.ensure_exists()

    data = manager.parse_document(manager.read_text().replace("polling_interval: 5", "polling_interval: 12"))

    assert data["watcher"]["polling_interval"] == 12


@pytest.mark.parametrize(
    "text",
    [
        "folders: {}\nwatcher: {}\n",
        "folders: {}\nfiles: {}\nwatcher: []\n",
        "- a\n- b\n",
        "folders: [unclosed",
        "folders: {}\nfiles: {}\nwatcher:\n  polling_interval: 0\n",
    ],
)
def test_parse_document_rejects_unusable_documents(tmp_path: Path, text: str) -> None:
    manager = ConfigManager(tmp_path / "config.yaml", env={})

    with pytest.raises(ConfigError):
        manager.parse_document(text)
