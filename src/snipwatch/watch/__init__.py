"""Watch folder polling."""

from .models import WatchStatistics
from .service import WatchService
from .tracking import FileTracker, RetryEntry

__all__ = ["FileTracker", "RetryEntry", "WatchService", "WatchStatistics"]
