"""Custom exceptions for configuration management."""


class ConfigError(Exception):
    """Raised when configuration data cannot be processed."""


class IncompleteConfigError(ConfigError):
    """Raised when a configuration file cannot serve as the source of truth.

    The file is missing, unreadable, not a mapping, or lacks a required
    top-level section; callers recover by regenerating defaults.
    """
