"""Completion service implementations."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from snipwatch.config.models import LLMSettings

from .errors import ServiceError

LOGGER = logging.getLogger(__name__)


class CompletionService(Protocol):
    """Anything that turns a prompt into a text completion."""

    def complete(self, prompt: str) -> str:
        """Return the completion for ``prompt``.

        Raises:
            ServiceError: On transport, quota or authentication failures.
        """
        ...


class HttpCompletionService:
    """Call an OpenAI-compatible ``/chat/completions`` endpoint over HTTP."""

    def __init__(self, settings: LLMSettings, *, client: httpx.Client | None = None) -> None:
        self._settings = settings
        self._client = client

    def complete(self, prompt: str) -> str:
        """Send ``prompt`` as a single user message and return the reply text.

        Args:
            prompt: Fully rendered prompt.

        Returns:
            str: Content of the first choice.

        Raises:
            ServiceError: If no API key is configured, the request fails, or
                the response body is not shaped like a chat completion.
        """
        if not self._settings.api_key:
            raise ServiceError("No API key configured for the completion service (llm.api_key).")

        payload: dict[str, Any] = {
            "model": self._settings.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self._settings.temperature,
            "max_tokens": self._settings.max_tokens,
        }
        url = self._settings.base_url.rstrip("/") + "/chat/completions"
        headers = {"Authorization": f"Bearer {self._settings.api_key}"}

        try:
            if self._client is not None:
                response = self._client.post(url, json=payload, headers=headers)
            else:
                with httpx.Client(timeout=self._settings.timeout_seconds) as client:
                    response = client.post(url, json=payload, headers=headers)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise ServiceError(
                f"Completion service returned HTTP {exc.response.status_code}."
            ) from exc
        except httpx.HTTPError as exc:
            raise ServiceError(f"Completion service request failed: {exc}") from exc
        except ValueError as exc:
            raise ServiceError("Completion service returned invalid JSON.") from exc

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ServiceError("Completion service response has no message content.") from exc
        if not isinstance(content, str):
            raise ServiceError("Completion service response content is not text.")

        LOGGER.debug("Completion received (%d characters).", len(content))
        return content


__all__ = ["CompletionService", "HttpCompletionService"]
