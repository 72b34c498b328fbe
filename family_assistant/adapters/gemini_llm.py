"""Gemini adapter — implements LanguageModelClient via google-generativeai."""

from __future__ import annotations

import logging

import google.generativeai as genai

from family_assistant.ports.llm_port import CompletionOptions, LLMError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"


class GeminiClient:
    """Gemini implementation of LanguageModelClient."""

    def __init__(self, api_key: str, model: str = "", temperature: float | None = None) -> None:
        genai.configure(api_key=api_key)
        self._model = model or DEFAULT_MODEL
        self._temperature = temperature

    @property
    def model(self) -> str:
        return self._model

    def _temperature_for(self, options: CompletionOptions) -> float:
        return options.temperature if self._temperature is None else self._temperature

    async def complete(self, prompt: str, options: CompletionOptions) -> str:
        gm = genai.GenerativeModel(
            model_name=self._model,
            system_instruction=options.system or None,
        )
        try:
            response = await gm.generate_content_async(
                prompt,
                generation_config=genai.types.GenerationConfig(
                    max_output_tokens=options.max_tokens,
                    temperature=self._temperature_for(options),
                ),
            )
            text = response.text
        except Exception as exc:
            logger.error("Gemini API error: %s", exc)
            raise LLMError(f"Gemini completion failed: {exc}") from exc

        if not text:
            raise LLMError("No response content from Gemini")
        return text
