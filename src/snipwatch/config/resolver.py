"""Layer configuration sources over the defaults and validate the result."""

from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from typing import Any

from pydantic import ValidationError

from .exceptions import ConfigError
from .models import SnipWatchConfig

ENV_PREFIX = "SNIPWATCH__"


def resolve_with_precedence(
    *,
    defaults: SnipWatchConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> SnipWatchConfig:
    """Merge configuration sources: defaults < file < environment < CLI.

    Each source may use nested mappings, dotted keys (``"watcher.polling_interval"``)
    or a mix of both.

    Raises:
        ConfigError: If a source is not a mapping or the merged values are invalid.
    """
    merged: dict[str, Any] = defaults.model_dump(mode="json")
    for name, source in (("file", file_overrides), ("environment", env_overrides), ("cli", cli_overrides)):
        if source is None:
            continue
        if not isinstance(source, Mapping):
            raise ConfigError(f"{name.capitalize()} overrides must be a mapping.")
        _overlay(merged, _expand_dotted(source))

    try:
        return SnipWatchConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def assign_dotted(target: dict[str, Any], dotted_path: str, value: Any) -> dict[str, Any]:
    """Assign ``value`` at ``dotted_path`` inside ``target``, creating mappings on the way.

    Intermediate segments that are missing, or hold a non-mapping value, are
    replaced by empty mappings.

    Args:
        target: Mapping to mutate in-place.
        dotted_path: Path such as ``backup.last_backup``.
        value: Value to store at the leaf.

    Returns:
        dict[str, Any]: The mutated ``target``.

    Raises:
        ConfigError: If the dotted path is empty.
    """
    segments = [segment.strip() for segment in dotted_path.split(".") if segment.strip()]
    if not segments:
        raise ConfigError("A dotted property path such as 'watcher.polling_interval' is required.")
    node = target
    for segment in segments[:-1]:
        existing = node.get(segment)
        if not isinstance(existing, dict):
            existing = {}
            node[segment] = existing
        node = existing
    node[segments[-1]] = value
    return target


def _expand_dotted(source: Mapping[Any, Any]) -> dict[str, Any]:
    expanded: dict[str, Any] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            value = _expand_dotted(value)
        _overlay(expanded, assign_dotted({}, str(key), value))
    return expanded


def _overlay(base: dict[str, Any], layer: Mapping[str, Any]) -> None:
    """Merge ``layer`` into ``base`` in place; nested mappings merge, other values replace."""
    for key, value in layer.items():
        current = base.get(key)
        if isinstance(value, Mapping) and isinstance(current, dict):
            _overlay(current, value)
        else:
            base[key] = deepcopy(value)


__all__ = ["resolve_with_precedence", "assign_dotted", "ENV_PREFIX"]
