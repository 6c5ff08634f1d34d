"""AI enhancement package."""

from .client import EnhancementClient, strip_code_fences
from .errors import ServiceError
from .service import CompletionService, HttpCompletionService

__all__ = [
    "CompletionService",
    "EnhancementClient",
    "HttpCompletionService",
    "ServiceError",
    "strip_code_fences",
]
