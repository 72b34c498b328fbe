"""Tests for the language model adapters and their factory."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from family_assistant.adapters.llm_factory import create_llm_client, provider_health
from family_assistant.ports.llm_port import CompletionOptions, LLMError


def _configure(mock_settings, provider="openai", key="test-key", model="", temperature=None):
    mock_settings.LLM_PROVIDER = provider
    mock_settings.LLM_API_KEY = key
    mock_settings.LLM_MODEL = model
    mock_settings.LLM_TEMPERATURE = temperature


class TestCreateLlmClient:
    @patch("family_assistant.adapters.llm_factory.settings")
    def test_returns_openai_client(self, mock_settings):
        _configure(mock_settings, "openai")
        client = create_llm_client()
        from family_assistant.adapters.openai_llm import OpenAIClient
        assert isinstance(client, OpenAIClient)
        assert client.model == "gpt-4o"

    @patch("family_assistant.adapters.llm_factory.settings")
    def test_returns_anthropic_client(self, mock_settings):
        _configure(mock_settings, "anthropic", model="claude-sonnet-4-5")
        client = create_llm_client()
        from family_assistant.adapters.anthropic_llm import AnthropicClient
        assert isinstance(client, AnthropicClient)
        assert client.model == "claude-sonnet-4-5"

    @patch("family_assistant.adapters.llm_factory.settings")
    def test_returns_gemini_client(self, mock_settings):
        _configure(mock_settings, "gemini")
        client = create_llm_client()
        from family_assistant.adapters.gemini_llm import GeminiClient
        assert isinstance(client, GeminiClient)

    @patch("family_assistant.adapters.llm_factory.settings")
    def test_returns_cohere_client(self, mock_settings):
        _configure(mock_settings, "cohere")
        client = create_llm_client()
        from family_assistant.adapters.cohere_llm import CohereClient
        assert isinstance(client, CohereClient)

    @patch("family_assistant.adapters.llm_factory.settings")
    def test_explicit_provider_and_case(self, mock_settings):
        _configure(mock_settings, "gemini")
        client = create_llm_client("OpenAI")
        from family_assistant.adapters.openai_llm import OpenAIClient
        assert isinstance(client, OpenAIClient)

    @patch("family_assistant.adapters.llm_factory.settings")
    def test_unknown_provider_raises(self, mock_settings):
        _configure(mock_settings, "llama")
        with pytest.raises(ValueError, match="Unknown LLM_PROVIDER"):
            create_llm_client()


class TestProviderHealth:
    @patch("family_assistant.adapters.llm_factory.settings")
    def test_healthy(self, mock_settings):
        _configure(mock_settings, "openai", key="sk-abc")
        assert provider_health() == {
            "provider": "openai",
            "model": "default",
            "api_key": "configured",
            "status": "healthy",
        }

    @patch("family_assistant.adapters.llm_factory.settings")
    def test_placeholder_key_is_missing(self, mock_settings):
        _configure(mock_settings, "anthropic", key="your-api-key")
        health = provider_health()
        assert health["api_key"] == "missing_key"
        assert health["status"] == "degraded"

    @patch("family_assistant.adapters.llm_factory.settings")
    def test_unsupported_provider_is_degraded(self, mock_settings):
        _configure(mock_settings, "llama", model="llama-3")
        health = provider_health()
        assert health["status"] == "degraded"
        assert health["model"] == "llama-3"


# ---------------------------------------------------------------------------
# Adapters (SDK mocked)
# ---------------------------------------------------------------------------


class TestOpenAIClient:
    def _client(self, **kwargs):
        from family_assistant.adapters.openai_llm import OpenAIClient
        client = OpenAIClient(api_key="test-key", **kwargs)
        client._client = MagicMock()
        return client

    @pytest.mark.asyncio
    async def test_returns_content(self):
        client = self._client()
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = '{"intent": "GENERAL_CHAT"}'
        client._client.chat.completions.create = AsyncMock(return_value=response)

        text = await client.complete("hi", CompletionOptions(system="sys", temperature=0.2))
        assert text == '{"intent": "GENERAL_CHAT"}'
        kwargs = client._client.chat.completions.create.await_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
        assert kwargs["temperature"] == 0.2

    @pytest.mark.asyncio
    async def test_configured_temperature_overrides(self):
        client = self._client(temperature=0.7)
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = "ok"
        client._client.chat.completions.create = AsyncMock(return_value=response)

        await client.complete("hi", CompletionOptions(temperature=0.1))
        assert client._client.chat.completions.create.await_args.kwargs["temperature"] == 0.7

    @pytest.mark.asyncio
    async def test_sdk_error_wrapped(self):
        client = self._client()
        client._client.chat.completions.create = AsyncMock(side_effect=Exception("429 rate limit"))
        with pytest.raises(LLMError, match="OpenAI completion failed"):
            await client.complete("hi", CompletionOptions())

    @pytest.mark.asyncio
    async def test_empty_content_is_an_error(self):
        client = self._client()
        response = MagicMock()
        response.choices = []
        client._client.chat.completions.create = AsyncMock(return_value=response)
        with pytest.raises(LLMError):
            await client.complete("hi", CompletionOptions())


class TestAnthropicClient:
    @pytest.mark.asyncio
    async def test_joins_text_blocks(self):
        from family_assistant.adapters.anthropic_llm import AnthropicClient
        client = AnthropicClient(api_key="test-key")
        client._client = MagicMock()
        response = MagicMock()
        response.content = [MagicMock(type="text", text='{"a": '), MagicMock(type="text", text="1}")]
        client._client.messages.create = AsyncMock(return_value=response)

        assert await client.complete("hi", CompletionOptions(system="sys")) == '{"a": 1}'
        assert client._client.messages.create.await_args.kwargs["system"] == "sys"

    @pytest.mark.asyncio
    async def test_sdk_error_wrapped(self):
        from family_assistant.adapters.anthropic_llm import AnthropicClient
        client = AnthropicClient(api_key="test-key")
        client._client = MagicMock()
        client._client.messages.create = AsyncMock(side_effect=Exception("overloaded"))
        with pytest.raises(LLMError):
            await client.complete("hi", CompletionOptions())


class TestCohereClient:
    @pytest.mark.asyncio
    async def test_sdk_error_wrapped(self):
        from family_assistant.adapters.cohere_llm import CohereClient
        client = CohereClient(api_key="test-key")
        client._client = MagicMock()
        client._client.chat = AsyncMock(side_effect=Exception("unauthorized"))
        with pytest.raises(LLMError, match="Cohere completion failed"):
            await client.complete("hi", CompletionOptions())


class TestGeminiClient:
    @pytest.mark.asyncio
    async def test_sdk_error_wrapped(self):
        from family_assistant.adapters.gemini_llm import GeminiClient
        client = GeminiClient(api_key="test-key")
        with patch("family_assistant.adapters.gemini_llm.genai.GenerativeModel") as model_cls:
            model_cls.return_value.generate_content_async = AsyncMock(side_effect=Exception("quota"))
            with pytest.raises(LLMError, match="Gemini completion failed"):
                await client.complete("hi", CompletionOptions())
