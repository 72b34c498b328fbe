"""Tests for family_assistant.core.retry — retry-once policy."""

import pytest
from unittest.mock import AsyncMock

from family_assistant.core.decoding import MalformedOutputError
from family_assistant.core.retry import RetryExhaustedError, with_retry
from family_assistant.ports.llm_port import LLMError


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_first_success_is_returned(self):
        fn = AsyncMock(return_value=42)
        assert await with_retry(fn) == 42
        fn.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_second_attempt_recovers(self):
        fn = AsyncMock(side_effect=[LLMError("rate limited"), "ok"])
        assert await with_retry(fn) == "ok"
        assert fn.await_count == 2

    @pytest.mark.asyncio
    async def test_malformed_output_is_retried_too(self):
        fn = AsyncMock(side_effect=[MalformedOutputError("garbage"), "ok"])
        assert await with_retry(fn) == "ok"

    @pytest.mark.asyncio
    async def test_exhausted_after_two_attempts(self):
        fn = AsyncMock(side_effect=LLMError("down"))
        with pytest.raises(RetryExhaustedError) as info:
            await with_retry(fn, attempts=2, label="Intent classification")
        assert fn.await_count == 2
        assert info.value.attempts == 2
        assert isinstance(info.value.last_error, LLMError)
        assert info.value.__cause__ is info.value.last_error

    @pytest.mark.asyncio
    async def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            await with_retry(AsyncMock(), attempts=0)

    @pytest.mark.asyncio
    async def test_exhausted_wraps_the_final_failure(self):
        fn = AsyncMock(side_effect=[LLMError("first"), MalformedOutputError("second")])
        with pytest.raises(RetryExhaustedError) as info:
            await with_retry(fn)
        assert isinstance(info.value.last_error, MalformedOutputError)
        assert str(info.value.last_error) == "second"

    @pytest.mark.asyncio
    async def test_single_attempt_raises_immediately(self):
        fn = AsyncMock(side_effect=LLMError("down"))
        with pytest.raises(RetryExhaustedError) as info:
            await with_retry(fn, attempts=1)
        fn.assert_awaited_once()
        assert info.value.attempts == 1
