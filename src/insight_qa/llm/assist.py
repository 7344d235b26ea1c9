"""The one place LLM output meets its deterministic fallback."""

from __future__ import annotations

import asyncio
import logging

from insight_qa.llm.base import LLMClient

logger = logging.getLogger(__name__)


async def complete_or_fallback(
    client: LLMClient | None,
    prompt: str,
    max_tokens: int,
    fallback: str,
    timeout: float | None = None,
) -> str:
    """Return LLM text for *prompt*, or *fallback* when that is not possible.

    The fallback is used when there is no client, when the call raises,
    when it exceeds *timeout* seconds, or when it yields blank text. Nothing
    raised by the provider escapes this function.
    """
    if client is None:
        return fallback
    try:
        if timeout is not None:
            text = await asyncio.wait_for(client.complete(prompt, max_tokens), timeout=timeout)
        else:
            text = await client.complete(prompt, max_tokens)
    except TimeoutError:
        logger.warning("LLM call to %s timed out after %ss, using fallback", client.provider, timeout)
        return fallback
    except Exception as exc:
        logger.warning("LLM call to %s failed, using fallback: %s", client.provider, exc)
        return fallback
    if not text or not text.strip():
        logger.warning("LLM call to %s returned no text, using fallback", client.provider)
        return fallback
    return text
