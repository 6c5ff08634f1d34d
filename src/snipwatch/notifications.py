"""User-facing notifications for processed files and watcher lifecycle events."""

from __future__ import annotations

from typing import Literal, Protocol

from rich.console import Console

from snipwatch.config.models import NotificationSettings

NotificationKind = Literal["success", "error", "info"]

_STYLES: dict[str, str] = {"success": "green", "error": "red", "info": "cyan"}


class Notifier(Protocol):
    """Fire-and-forget notification sink."""

    def notify(self, title: str, message: str, *, kind: NotificationKind = "info") -> None:
        """Deliver a notification."""
        ...


class NullNotifier:
    """Discard every notification."""

    def notify(self, title: str, message: str, *, kind: NotificationKind = "info") -> None:
        return None


class ConsoleNotifier:
    """Render notifications on a Rich console, honouring notification settings."""

    def __init__(self, settings: NotificationSettings, console: Console | None = None) -> None:
        self._settings = settings
        self._console = console or Console()

    def notify(self, title: str, message: str, *, kind: NotificationKind = "info") -> None:
        if not self.should_show(kind):
            return
        style = _STYLES.get(kind, "cyan")
        self._console.print(f"[bold {style}]{title}[/bold {style}] {message}")

    def should_show(self, kind: NotificationKind) -> bool:
        """Return whether notifications of ``kind`` are enabled."""
        if not self._settings.enabled:
            return False
        if kind == "success":
            return self._settings.show_success_notifications
        if kind == "error":
            return self._settings.show_error_notifications
        return True


__all__ = ["Notifier", "NullNotifier", "ConsoleNotifier", "NotificationKind"]
