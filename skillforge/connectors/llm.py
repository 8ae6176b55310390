from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import structlog

from skillforge.config import settings

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Unified response type
# ---------------------------------------------------------------------------

@dataclass
class LLMResponse:
    """Provider-agnostic LLM response."""

    text: str | None = None
    raw: Any = None  # original provider response


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class BaseLLMClient(ABC):
    @abstractmethod
    async def complete(self, system_prompt: str, user_message: str) -> LLMResponse:
        """Send a single-turn request and return the model's text."""


# ---------------------------------------------------------------------------
# Anthropic implementation
# ---------------------------------------------------------------------------

class AnthropicLLMClient(BaseLLMClient):
    def __init__(self) -> None:
        from anthropic import AsyncAnthropic

        self._client = AsyncAnthropic(api_key=settings.anthropic_api_key)
        self._model = settings.anthropic_model
        self._max_tokens = settings.anthropic_max_tokens

    async def complete(self, system_prompt: str, user_message: str) -> LLMResponse:
        response = await self._client.messages.create(
            model=self._model,
            max_tokens=self._max_tokens,
            system=system_prompt,
            messages=[{"role": "user", "content": user_message}],
            temperature=0.4,
        )

        text_parts = [block.text for block in response.content if block.type == "text"]
        text = "\n".join(text_parts) if text_parts else None

        log.debug(
            "llm.anthropic.response",
            content=text[:200] if text else None,
            stop_reason=response.stop_reason,
        )
        return LLMResponse(text=text, raw=response)


# ---------------------------------------------------------------------------
# OpenAI implementation
# ---------------------------------------------------------------------------

class OpenAILLMClient(BaseLLMClient):
    def __init__(self) -> None:
        from openai import AsyncOpenAI

        self._client = AsyncOpenAI(api_key=settings.openai_api_key)
        self._model = settings.openai_model

    async def complete(self, system_prompt: str, user_message: str) -> LLMResponse:
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            temperature=0.4,
        )
        msg = response.choices[0].message

        log.debug(
            "llm.openai.response",
            content=msg.content[:200] if msg.content else None,
            finish_reason=response.choices[0].finish_reason,
        )
        return LLMResponse(text=msg.content, raw=response)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_llm_client() -> BaseLLMClient:
    """Create an LLM client based on the configured provider."""
    if settings.llm_provider == "openai":
        return OpenAILLMClient()
    return AnthropicLLMClient()
