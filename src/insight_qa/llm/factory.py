"""Build the configured LLM client, or report that there is none."""

from __future__ import annotations

import logging

import httpx

from insight_qa.config.models import CLOUD_PROVIDERS, LLMConfig
from insight_qa.llm.base import LLMClient
from insight_qa.llm.providers import ClaudeClient, GeminiClient, LocalClient, OpenAIClient

logger = logging.getLogger(__name__)

PROVIDER_REGISTRY: dict[str, type[LLMClient]] = {
    "openai": OpenAIClient,
    "claude": ClaudeClient,
    "gemini": GeminiClient,
    "local": LocalClient,
}


def create_llm_client(
    config: LLMConfig | None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> LLMClient | None:
    """Return a client for the configured provider, or None when disabled.

    None is the "no client" state: callers take the fallback path.
    """
    if config is None or not config.active:
        return None
    client_cls = PROVIDER_REGISTRY.get(config.provider)
    if client_cls is None:
        logger.warning("Unsupported LLM provider %r, augmentation disabled", config.provider)
        return None
    if config.provider in CLOUD_PROVIDERS and not config.api_key:
        logger.warning("LLM provider %r needs an API key, augmentation disabled", config.provider)
        return None
    logger.info("LLM augmentation enabled: %s (%s)", config.provider, config.model)
    return client_cls(config, transport=transport)
