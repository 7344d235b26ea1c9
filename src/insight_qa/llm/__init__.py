"""Optional LLM augmentation with deterministic fallback."""

from __future__ import annotations

from insight_qa.llm.assist import complete_or_fallback
from insight_qa.llm.base import LLMClient, LLMError
from insight_qa.llm.factory import PROVIDER_REGISTRY, create_llm_client
from insight_qa.llm.providers import ClaudeClient, GeminiClient, LocalClient, OpenAIClient

__all__ = [
    "PROVIDER_REGISTRY",
    "ClaudeClient",
    "GeminiClient",
    "LLMClient",
    "LLMError",
    "LocalClient",
    "OpenAIClient",
    "complete_or_fallback",
    "create_llm_client",
]
