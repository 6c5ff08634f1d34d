"""Completion service errors."""


class ServiceError(Exception):
    """Raised when the completion service cannot produce a response."""
