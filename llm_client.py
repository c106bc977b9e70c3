"""Chat-completion client used for relevance filtering and summarization."""

from __future__ import annotations

import logging
from typing import Any

import anthropic
from openai import AsyncOpenAI, OpenAIError

from config import Settings

NORMAL_TIMEOUT_SECONDS = 120.0
REASONING_TIMEOUT_SECONDS = 300.0
NORMAL_TEMPERATURE = 0.4
REASONING_TEMPERATURE = 0.6

LOGGER = logging.getLogger(__name__)


class CompletionClient:
    """Send one system + user prompt pair and return the reply text.

    ``complete`` never raises: any transport, status or payload problem is
    logged and reported as ``None`` so callers can fall back.
    """

    def __init__(self, model: str, api_key: str, base_url: str | None = None) -> None:
        self.model = model
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 220,
        *,
        reasoning: bool = False,
    ) -> str | None:
        timeout = REASONING_TIMEOUT_SECONDS if reasoning else NORMAL_TIMEOUT_SECONDS
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": REASONING_TEMPERATURE if reasoning else NORMAL_TEMPERATURE,
            "max_tokens": max_tokens,
            "timeout": timeout,
        }
        if reasoning:
            kwargs["extra_body"] = {"enable_thinking": True}

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except OpenAIError as exc:
            LOGGER.warning("LLM call failed (model=%s): %s", self.model, exc)
            return None

        try:
            message = response.choices[0].message
        except (AttributeError, IndexError, TypeError):
            LOGGER.warning("Unexpected LLM response shape (model=%s)", self.model)
            return None

        reasoning_text = getattr(message, "reasoning_content", None)
        if reasoning and reasoning_text:
            LOGGER.info("  [Thinking] %s chars of reasoning", len(reasoning_text))

        content = (message.content or "").strip()
        return content or None


class AnthropicCompletionClient(CompletionClient):
    """Same contract as CompletionClient, backed by the Anthropic Messages API."""

    def __init__(self, model: str, api_key: str, base_url: str | None = None) -> None:
        self.model = model
        self._client = anthropic.AsyncAnthropic(api_key=api_key, base_url=base_url, max_retries=0)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 220,
        *,
        reasoning: bool = False,
    ) -> str | None:
        timeout = REASONING_TIMEOUT_SECONDS if reasoning else NORMAL_TIMEOUT_SECONDS
        LOGGER.debug("Calling Claude model=%s max_tokens=%s", self.model, max_tokens)
        try:
            response = await self._client.messages.create(
                model=self.model,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                max_tokens=max_tokens,
                temperature=REASONING_TEMPERATURE if reasoning else NORMAL_TEMPERATURE,
                timeout=timeout,
            )
        except anthropic.AnthropicError as exc:
            LOGGER.warning("Claude call failed (model=%s): %s", self.model, exc)
            return None

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        ).strip()
        return text or None


def build_completion_client(settings: Settings) -> CompletionClient | None:
    """Return a client for the configured provider, or None when the LLM is off."""
    if not settings.llm_configured:
        LOGGER.info("LLM not configured; using deterministic fallbacks")
        return None

    if settings.llm_provider.lower() == "anthropic":
        return AnthropicCompletionClient(
            model=settings.llm_model,
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
        )
    return CompletionClient(
        model=settings.llm_model,
        api_key=settings.llm_api_key,
        base_url=settings.llm_base_url,
    )
