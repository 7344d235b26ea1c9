"""Provider variants: OpenAI, Claude, Gemini and a local Ollama-style server."""

from __future__ import annotations

from typing import Any

from insight_qa.llm.base import SYSTEM_ROLE, TEMPERATURE, LLMClient

ANTHROPIC_VERSION = "2023-06-01"
# Gemini counts reasoning tokens against the output budget.
GEMINI_TOKEN_BUFFER = 500


class OpenAIClient(LLMClient):
    provider = "openai"

    def _build_request(self, prompt: str, max_tokens: int) -> tuple[str, dict[str, Any], dict[str, str]]:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_ROLE},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": TEMPERATURE,
        }
        return self.api_url, payload, {"Authorization": f"Bearer {self._api_key}"}

    def _extract_text(self, body: dict[str, Any]) -> str:
        return str(body["choices"][0]["message"]["content"] or "")


class ClaudeClient(LLMClient):
    provider = "claude"

    def _build_request(self, prompt: str, max_tokens: int) -> tuple[str, dict[str, Any], dict[str, str]]:
        payload = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {"x-api-key": self._api_key, "anthropic-version": ANTHROPIC_VERSION}
        return self.api_url, payload, headers

    def _extract_text(self, body: dict[str, Any]) -> str:
        return str(body["content"][0]["text"] or "")


class GeminiClient(LLMClient):
    """Gemini takes the model in the path and the key as a query parameter."""

    provider = "gemini"

    def _build_request(self, prompt: str, max_tokens: int) -> tuple[str, dict[str, Any], dict[str, str]]:
        url = f"{self.api_url.rstrip('/')}/models/{self.model}:generateContent?key={self._api_key}"
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "maxOutputTokens": max_tokens + GEMINI_TOKEN_BUFFER,
                "temperature": TEMPERATURE,
            },
        }
        return url, payload, {}

    def _extract_text(self, body: dict[str, Any]) -> str:
        return str(body["candidates"][0]["content"]["parts"][0]["text"] or "")


class LocalClient(LLMClient):
    """Local generation server (Ollama, LM Studio). API key is optional."""

    provider = "local"

    def _build_request(self, prompt: str, max_tokens: int) -> tuple[str, dict[str, Any], dict[str, str]]:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"num_predict": max_tokens, "temperature": TEMPERATURE},
        }
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        return self.api_url, payload, headers

    def _extract_text(self, body: dict[str, Any]) -> str:
        return str(body["response"] or "")
