"""Cohere adapter — implements LanguageModelClient via the v2 chat API."""

from __future__ import annotations

import logging

import cohere

from family_assistant.ports.llm_port import CompletionOptions, LLMError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "command-a-03-2025"


class CohereClient:
    """Cohere implementation of LanguageModelClient."""

    def __init__(self, api_key: str, model: str = "", temperature: float | None = None) -> None:
        self._client = cohere.AsyncClientV2(api_key=api_key)
        self._model = model or DEFAULT_MODEL
        self._temperature = temperature

    @property
    def model(self) -> str:
        return self._model

    def _temperature_for(self, options: CompletionOptions) -> float:
        return options.temperature if self._temperature is None else self._temperature

    async def complete(self, prompt: str, options: CompletionOptions) -> str:
        messages = []
        if options.system:
            messages.append({"role": "system", "content": options.system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self._client.chat(
                model=self._model,
                max_tokens=options.max_tokens,
                temperature=self._temperature_for(options),
                messages=messages,
            )
            text = response.message.content[0].text
        except Exception as exc:
            logger.error("Cohere API error: %s", exc)
            raise LLMError(f"Cohere completion failed: {exc}") from exc

        if not text:
            raise LLMError("No response content from Cohere")
        return text
