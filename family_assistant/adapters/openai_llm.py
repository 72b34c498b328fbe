"""OpenAI adapter — implements LanguageModelClient via the Chat Completions API."""

from __future__ import annotations

import logging

from openai import AsyncOpenAI

from family_assistant.ports.llm_port import CompletionOptions, LLMError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"


class OpenAIClient:
    """OpenAI implementation of LanguageModelClient."""

    def __init__(self, api_key: str, model: str = "", temperature: float | None = None) -> None:
        self._client = AsyncOpenAI(api_key=api_key)
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
            response = await self._client.chat.completions.create(
                model=self._model,
                max_tokens=options.max_tokens,
                temperature=self._temperature_for(options),
                messages=messages,
            )
        except Exception as exc:
            logger.error("OpenAI API error: %s", exc)
            raise LLMError(f"OpenAI completion failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError("No response content from OpenAI")
        return content
