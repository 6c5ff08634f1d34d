"""File processing errors."""


class ProcessingError(Exception):
    """Base exception for file processing failures."""


class FileAccessError(ProcessingError):
    """Raised when a watched file cannot be read, copied or written."""
