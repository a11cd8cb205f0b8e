"""
Narrow interface to the AI text-generation service.

Business logic depends only on ``TextGenerationClient``; swapping the
provider means adding another implementation here. Every failure mode
(SDK error, timeout, empty reply, missing key) surfaces as
``AIServiceError`` so callers have a single recoverable error to catch.
"""

import asyncio
import json
import logging
from typing import Any, Optional, Protocol

from openai import AsyncOpenAI, OpenAIError

from servicedesk.config import AIConfig, AppConfig
from servicedesk.errors import AIServiceError

logger = logging.getLogger(__name__)


class TextGenerationClient(Protocol):
    async def generate(self, prompt: str, context: Optional[dict[str, Any]] = None) -> str:
        ...


class OpenAITextClient:
    """Chat-completions client with an explicit per-request deadline."""

    def __init__(self, config: AIConfig, client: Optional[AsyncOpenAI] = None) -> None:
        self._config = config
        self._client = client or AsyncOpenAI(api_key=config.api_key)

    async def generate(self, prompt: str, context: Optional[dict[str, Any]] = None) -> str:
        messages = [{"role": "user", "content": prompt}]
        if context:
            messages.insert(0, {
                "role": "system",
                "content": "Conversation context: " + json.dumps(context, default=str),
            })

        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=messages,
                    temperature=self._config.temperature,
                    max_tokens=self._config.max_output_tokens,
                ),
                timeout=self._config.timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise AIServiceError(
                f"AI request exceeded {self._config.timeout_seconds}s deadline"
            ) from None
        except OpenAIError as e:
            raise AIServiceError(f"AI request failed: {e}") from e

        if not response.choices:
            raise AIServiceError("AI reply contained no choices")
        text = response.choices[0].message.content or ""
        if not text.strip():
            raise AIServiceError("AI reply was empty")
        logger.debug("AI reply received (%d chars)", len(text))
        return text


class DisabledTextClient:
    """Stand-in used when no API key is configured; every call fails fast."""

    async def generate(self, prompt: str, context: Optional[dict[str, Any]] = None) -> str:
        raise AIServiceError("AI text service is not configured")


def create_text_client(config: AppConfig) -> TextGenerationClient:
    """Return the OpenAI client, or a disabled one when no API key is set."""
    if not config.ai.api_key:
        logger.warning("OPENAI_API_KEY not set; using deterministic fallbacks only")
        return DisabledTextClient()
    return OpenAITextClient(config.ai)
