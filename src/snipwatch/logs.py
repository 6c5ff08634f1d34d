"""Logging setup shared by the CLI and the watcher."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from rich.console import Console
from rich.logging import RichHandler

from snipwatch.config import SnipWatchConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_INSTALLED: list[logging.Handler] = []


def configure_logging(
    config: SnipWatchConfig,
    *,
    console: Console | None = None,
    log_to_console: bool = True,
) -> logging.Logger:
    """Attach file and console handlers to the ``snipwatch`` logger.

    Handlers installed by a previous call are removed first, so the function
    can run again after a restore reloads the configuration.

    Args:
        config: Loaded configuration providing the log file and rotation policy.
        console: Rich console used for console output.
        log_to_console: Whether to mirror records to the console.

    Returns:
        logging.Logger: The configured package logger.
    """
    logger = logging.getLogger("snipwatch")
    for handler in _INSTALLED:
        logger.removeHandler(handler)
        handler.close()
    _INSTALLED.clear()

    level = logging.getLevelName(config.logging.level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)

    log_file = config.files.log_file
    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max(0, config.logging.max_size_mb) * 1024 * 1024,
        backupCount=max(0, config.logging.backup_count),
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    _INSTALLED.append(file_handler)

    if log_to_console:
        rich_handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
        rich_handler.setFormatter(logging.Formatter("%(message)s"))
        _INSTALLED.append(rich_handler)

    for handler in _INSTALLED:
        logger.addHandler(handler)
    return logger


__all__ = ["configure_logging", "LOG_FORMAT"]
