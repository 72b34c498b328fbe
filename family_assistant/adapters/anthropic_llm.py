"""Anthropic adapter — implements LanguageModelClient via the Messages API."""

from __future__ import annotations

import logging

import anthropic

from family_assistant.ports.llm_port import CompletionOptions, LLMError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-haiku-4-5-20251001"


class AnthropicClient:
    """Anthropic implementation of LanguageModelClient."""

    def __init__(self, api_key: str, model: str = "", temperature: float | None = None) -> None:
        self._client = anthropic.AsyncAnthropic(api_key=api_key)
        self._model = model or DEFAULT_MODEL
        self._temperature = temperature

    @property
    def model(self) -> str:
        return self._model

    def _temperature_for(self, options: CompletionOptions) -> float:
        return options.temperature if self._temperature is None else self._temperature

    async def complete(self, prompt: str, options: CompletionOptions) -> str:
        kwargs: dict = {
            "model": self._model,
            "max_tokens": options.max_tokens,
            "temperature": self._temperature_for(options),
            "messages": [{"role": "user", "content": prompt}],
        }
        if options.system:
            kwargs["system"] = options.system

        try:
            response = await self._client.messages.create(**kwargs)
        except Exception as exc:
            logger.error("Anthropic API error: %s", exc)
            raise LLMError(f"Anthropic completion failed: {exc}") from exc

        text_parts = [
            block.text for block in response.content
            if getattr(block, "type", "") == "text"
        ]
        if not text_parts:
            raise LLMError("Unexpected response type from Anthropic")
        return "".join(text_parts)
