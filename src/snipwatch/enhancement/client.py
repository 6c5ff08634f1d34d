"""Prompt rendering and response cleanup around a completion service.

The client never talks to the network itself: it renders the configured
prompt templates, hands them to an injected :class:`CompletionService`, and
post-processes the replies into note content or a safe filename.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Callable, Optional

from snipwatch.config.models import CONTENT_PLACEHOLDER, PromptSettings

from .errors import ServiceError
from .service import CompletionService

LOGGER = logging.getLogger(__name__)

FALLBACK_PREFIX = "MarkSnips_"
MARKDOWN_SUFFIX = ".md"

_LEADING_FENCE = re.compile(r"\A\s*```(?:markdown)?[ \t]*(?:\r?\n|\Z)")
_TRAILING_FENCE = re.compile(r"(?:\A|(?<=\n))```[ \t]*\s*\Z")
_INVALID_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|]')
_SEPARATOR_RUNS = re.compile(r"[-_\s]+")


def strip_code_fences(text: str) -> str:
    """Remove one wrapping fence line from each end of ``text``.

    Args:
        text: Raw completion text.

    Returns:
        str: Text without a leading ```` ``` ````/```` ```markdown ```` line or a
        trailing ```` ``` ```` line; everything between them is kept as is.
    """
    cleaned = _LEADING_FENCE.sub("", text, count=1)
    return _TRAILING_FENCE.sub("", cleaned, count=1)


def sanitize_filename(name: str) -> str:
    """Replace characters that are invalid in filenames with hyphens."""
    return _INVALID_FILENAME_CHARS.sub("-", name)


class EnhancementClient:
    """Rewrite note content and derive filenames through a completion service."""

    def __init__(
        self,
        prompts: PromptSettings,
        completer: CompletionService,
        *,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self._prompts = prompts
        self._completer = completer
        self._today = today or date.today

    def enhance_content(self, text: str) -> str:
        """Return the AI-rewritten version of ``text``.

        Args:
            text: Markdown note content.

        Returns:
            str: Completion text with wrapping code fences removed.

        Raises:
            ServiceError: If the completion service fails.
        """
        prompt = self._render(self._prompts.enhancement_prompt, text)
        return strip_code_fences(self._completer.complete(prompt))

    def generate_filename(self, text: str, source_name: str) -> str:
        """Return a dated, filesystem-safe markdown filename for ``text``.

        Falls back to :meth:`fallback_filename` when the service fails or
        replies with nothing usable.

        Args:
            text: Markdown note content.
            source_name: Name of the file the content came from.

        Returns:
            str: Filename ending in ``.md``.
        """
        prompt = self._render(self._prompts.filename_prompt, text)
        try:
            reply = self._completer.complete(prompt)
        except ServiceError as exc:
            LOGGER.warning("Filename generation failed for %s (%s); using fallback name.", source_name, exc)
            return self.fallback_filename(source_name)

        candidate = _first_usable_line(reply)
        if not candidate:
            LOGGER.warning("Completion service suggested no filename for %s; using fallback name.", source_name)
            return self.fallback_filename(source_name)
        return self._finalize(candidate)

    def fallback_filename(self, source_name: str) -> str:
        """Derive a filename from ``source_name`` without calling the service."""
        name = source_name
        if name.startswith(FALLBACK_PREFIX):
            name = name[len(FALLBACK_PREFIX) :]
        name = _SEPARATOR_RUNS.sub("-", name).strip("-")
        return self._finalize(name)

    def _finalize(self, name: str) -> str:
        name = name.strip()
        if name.lower().endswith(MARKDOWN_SUFFIX):
            name = name[: -len(MARKDOWN_SUFFIX)].rstrip()
        stem = name or "note"
        return sanitize_filename(f"{self._today():%Y-%m-%d}-{stem}{MARKDOWN_SUFFIX}")

    @staticmethod
    def _render(template: str, text: str) -> str:
        return template.replace(CONTENT_PLACEHOLDER, text)


def _first_usable_line(reply: str) -> str:
    for line in reply.splitlines():
        candidate = line.strip().strip("`'\"").strip()
        if candidate and candidate.lower() != "markdown":
            return candidate
    return ""


__all__ = ["EnhancementClient", "strip_code_fences", "sanitize_filename", "FALLBACK_PREFIX"]
