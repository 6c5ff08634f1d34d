"""Configuration management for SnipWatch."""

from __future__ import annotations

import logging
import os
import shutil
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError, IncompleteConfigError
from .models import REQUIRED_SECTIONS, FileSettings, SnipWatchConfig
from .resolver import ENV_PREFIX, assign_dotted, resolve_with_precedence

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.snipwatch/config.yaml")
_CONFIG_HEADER = textwrap.dedent(
    """\
    # SnipWatch configuration file
    # Generated automatically; manage via `snipwatch configure` or `snipwatch config set`.
    """
)


class ConfigManager:
    """Load and persist configuration data, applying precedence rules."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser().absolute()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        """Return the resolved configuration path."""
        return self._config_path

    def default_config(self) -> SnipWatchConfig:
        """Return default settings that point back at this manager's file."""
        return SnipWatchConfig(files=FileSettings(config_file=self._config_path))

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> SnipWatchConfig:
        """Load configuration data from disk, applying precedence rules.

        A missing, unreadable or incomplete file is replaced by defaults before
        overrides are applied.

        Args:
            cli_overrides: Dotted or nested overrides supplied on the command line.
            include_env: Whether ``SNIPWATCH__`` environment variables apply.
            env_overrides: Environment mapping to use instead of the process one.

        Returns:
            SnipWatchConfig: Validated configuration.

        Raises:
            ConfigError: If the merged values fail validation.
        """
        file_data = self._read_or_regenerate()
        env_data: Mapping[str, str] | None
        if include_env:
            env_data = env_overrides if env_overrides is not None else self._env
        else:
            env_data = None

        return resolve_with_precedence(
            defaults=self.default_config(),
            file_overrides=file_data,
            env_overrides=self._extract_env(env_data) if env_data else None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return raw values stored on disk, regenerating defaults when unusable."""
        return self._read_or_regenerate()

    def save(self, config: SnipWatchConfig | Mapping[str, Any]) -> None:
        """Persist configuration data to disk, replacing any existing file."""
        data = self._coerce_to_dict(config)
        self._write_file(data, include_header=True)

    def update(self, dotted_path: str, value: Any) -> SnipWatchConfig:
        """Set a single property and persist the file.

        Missing intermediate sections along ``dotted_path`` are created as
        empty mappings.

        Args:
            dotted_path: Property path such as ``watcher.polling_interval``.
            value: YAML-serialisable value to store.

        Returns:
            SnipWatchConfig: Configuration validated from the updated file.

        Raises:
            ConfigError: If the resulting configuration is invalid.
        """
        file_data = self._read_or_regenerate()
        assign_dotted(file_data, dotted_path, value)
        config = resolve_with_precedence(defaults=self.default_config(), file_overrides=file_data)
        self.save(file_data)
        LOGGER.debug("Updated %s in %s", dotted_path, self._config_path)
        return config

    def ensure_exists(self) -> Path:
        """Create a configuration file with defaults if one does not exist."""
        path = self._config_path
        if path.exists():
            return path

        self.save(self.default_config())
        return path

    def reset(self) -> SnipWatchConfig:
        """Overwrite the configuration file with defaults."""
        config = self.default_config()
        self.save(config)
        return config

    def read_text(self) -> str:
        """Return the current configuration file contents."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    def parse_document(self, text: str) -> dict[str, Any]:
        """Parse and validate a full configuration document before it is saved.

        Documents that :meth:`load` would throw away are rejected here, so an
        edit never silently turns into regenerated defaults.

        Args:
            text: YAML document, typically the result of an interactive edit.

        Returns:
            dict[str, Any]: The parsed mapping, ready for :meth:`save`.

        Raises:
            ConfigError: If the YAML is malformed, lacks a required section or
                holds invalid values.
        """
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError("Configuration file must contain a top-level mapping.")

        missing = [section for section in REQUIRED_SECTIONS if not isinstance(data.get(section), dict)]
        if missing:
            raise ConfigError(f"Required sections missing or not mappings: {', '.join(missing)}.")

        resolve_with_precedence(defaults=self.default_config(), file_overrides=data)
        return data

    # Internal helpers -------------------------------------------------

    def _coerce_to_dict(self, value: SnipWatchConfig | Mapping[str, Any]) -> dict[str, Any]:
        if isinstance(value, SnipWatchConfig):
            return value.model_dump(mode="json")
        return dict(value)

    def _read_or_regenerate(self) -> dict[str, Any]:
        try:
            return self._read_file()
        except IncompleteConfigError as exc:
            if self._config_path.exists():
                LOGGER.warning("%s Regenerating defaults.", exc)
                self._preserve_corrupt_copy()
            else:
                LOGGER.info("Creating default configuration at %s", self._config_path)
            defaults = self.default_config()
            self.save(defaults)
            return defaults.model_dump(mode="json")

    def _read_file(self) -> dict[str, Any]:
        if not self._config_path.exists():
            raise IncompleteConfigError(f"No configuration file at {self._config_path}.")

        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except (OSError, UnicodeDecodeError) as exc:
            raise IncompleteConfigError(f"Unable to read configuration file: {exc}.") from exc
        except yaml.YAMLError as exc:
            raise IncompleteConfigError(f"Failed to parse configuration file: {exc}.") from exc

        if not isinstance(raw, dict):
            raise IncompleteConfigError("Configuration file must contain a mapping at the top level.")

        missing = [section for section in REQUIRED_SECTIONS if not isinstance(raw.get(section), dict)]
        if missing:
            raise IncompleteConfigError(
                f"Configuration file is missing required sections: {', '.join(missing)}."
            )

        return raw

    def _preserve_corrupt_copy(self) -> None:
        target = self._config_path.with_name(self._config_path.name + ".corrupt")
        try:
            shutil.copy2(self._config_path, target)
        except OSError as exc:
            LOGGER.warning("Could not keep a copy of the unusable configuration: %s", exc)

    def _write_file(self, data: Mapping[str, Any], *, include_header: bool = False) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        serialized = yaml.safe_dump(dict(data), sort_keys=False, allow_unicode=True)
        header = _CONFIG_HEADER if include_header else ""
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        timestamp = f"# Last updated: {stamp}\n"
        self._config_path.write_text(header + timestamp + serialized, encoding="utf-8")

    def _extract_env(self, env: Mapping[str, str]) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        for key, raw_value in env.items():
            if not key.startswith(ENV_PREFIX):
                continue
            path = key[len(ENV_PREFIX) :].split("__")
            if not path:
                continue
            parsed_value: Any
            try:
                parsed_value = yaml.safe_load(raw_value)
            except yaml.YAMLError:
                parsed_value = raw_value

            assign_dotted(overrides, ".".join(segment.lower() for segment in path), parsed_value)

        return overrides


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "SnipWatchConfig",
    "resolve_with_precedence",
    "assign_dotted",
    "ConfigError",
    "IncompleteConfigError",
]
