"""Language model adapter factory — creates the right client based on config."""

from __future__ import annotations

from family_assistant.config import settings
from family_assistant.ports.llm_port import LanguageModelClient

SUPPORTED_PROVIDERS = ("openai", "anthropic", "gemini", "cohere")


def create_llm_client(provider: str | None = None) -> LanguageModelClient:
    """Return the client matching LLM_PROVIDER (or *provider* when given)."""
    provider = (provider or settings.LLM_PROVIDER).lower()
    api_key = settings.LLM_API_KEY
    model = settings.LLM_MODEL

    if provider == "openai":
        from family_assistant.adapters.openai_llm import OpenAIClient

        return OpenAIClient(api_key=api_key, model=model, temperature=settings.LLM_TEMPERATURE)

    if provider == "anthropic":
        from family_assistant.adapters.anthropic_llm import AnthropicClient

        return AnthropicClient(api_key=api_key, model=model, temperature=settings.LLM_TEMPERATURE)

    if provider == "gemini":
        from family_assistant.adapters.gemini_llm import GeminiClient

        return GeminiClient(api_key=api_key, model=model, temperature=settings.LLM_TEMPERATURE)

    if provider == "cohere":
        from family_assistant.adapters.cohere_llm import CohereClient

        return CohereClient(api_key=api_key, model=model, temperature=settings.LLM_TEMPERATURE)

    raise ValueError(
        f"Unknown LLM_PROVIDER: {provider!r}. Supported: {', '.join(SUPPORTED_PROVIDERS)}"
    )


def provider_health() -> dict:
    """Report which provider is configured, without calling it."""
    provider = settings.LLM_PROVIDER.lower()
    has_key = bool(settings.LLM_API_KEY) and not settings.LLM_API_KEY.startswith("your-")
    supported = provider in SUPPORTED_PROVIDERS
    return {
        "provider": provider,
        "model": settings.LLM_MODEL or "default",
        "api_key": "configured" if has_key else "missing_key",
        "status": "healthy" if has_key and supported else "degraded",
    }
