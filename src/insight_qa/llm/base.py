"""Base class for LLM provider clients."""

from __future__ import annotations

import abc
from typing import Any

import httpx

from insight_qa.config.models import LLMConfig

SYSTEM_ROLE = "You are an expert QA and test automation consultant."
TEMPERATURE = 0.7


class LLMError(Exception):
    """Raised when a provider call fails for any reason."""


class LLMClient(abc.ABC):
    """Abstract text-generation client for a single provider.

    Subclasses describe the provider's wire format; the base class owns the
    HTTP round trip and turns every failure mode into an LLMError.
    """

    provider: str = "base"

    def __init__(self, config: LLMConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.config = config
        self.api_url = config.api_url
        self.model = config.model
        self._api_key = config.api_key
        self._transport = transport

    @abc.abstractmethod
    def _build_request(self, prompt: str, max_tokens: int) -> tuple[str, dict[str, Any], dict[str, str]]:
        """Return (url, json payload, headers) for a completion request."""

    @abc.abstractmethod
    def _extract_text(self, body: dict[str, Any]) -> str:
        """Pull the generated text out of a decoded response body."""

    async def complete(self, prompt: str, max_tokens: int) -> str:
        """Generate text for *prompt*. Raises LLMError on any failure."""
        url, payload, headers = self._build_request(prompt, max_tokens)
        body = await self._post(url, payload, headers)
        try:
            text = self._extract_text(body)
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMError(f"Malformed response from {self.provider}: {exc!r}") from exc
        if not text or not text.strip():
            raise LLMError(f"Empty response from {self.provider}")
        return text.strip()

    async def _post(self, url: str, payload: dict[str, Any], headers: dict[str, str]) -> dict[str, Any]:
        all_headers = {"Content-Type": "application/json", **headers}
        try:
            async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
                resp = await client.post(url, json=payload, headers=all_headers)
        except httpx.TimeoutException as exc:
            raise LLMError(f"{self.provider} request timed out after {self.config.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise LLMError(f"{self.provider} request failed: {exc}") from exc

        if not resp.is_success:
            raise LLMError(f"{self.provider} returned status {resp.status_code}: {resp.text[:500]}")
        try:
            result = resp.json()
        except ValueError as exc:
            raise LLMError(f"Failed to decode {self.provider} response: {exc}") from exc
        if not isinstance(result, dict):
            raise LLMError(f"Unexpected {self.provider} response shape: {type(result).__name__}")
        return result
