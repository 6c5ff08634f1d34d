"""File processing package."""

from .errors import FileAccessError, ProcessingError
from .models import ProcessResult
from .processor import FileProcessor, skip_reason

__all__ = ["FileAccessError", "FileProcessor", "ProcessResult", "ProcessingError", "skip_reason"]
