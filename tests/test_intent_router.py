"""Tests for family_assistant.core.intent_router — intent classification."""

import pytest

from family_assistant.core.decoding import MalformedOutputError
from family_assistant.core.intent_router import (
    Intent,
    IntentRouter,
    build_intent_prompt,
    decode_intent_response,
    fallback_intent,
)
from family_assistant.core.language import Language
from family_assistant.data.models import ConversationMessage
from family_assistant.ports.llm_port import LLMError


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------


class TestDecodeIntentResponse:
    def test_valid_response(self):
        raw = '{"intent": "ANALYZE_DATA", "confidence": 0.92, "reasoning": "stats", "suggestedAction": "Analyze"}'
        analysis = decode_intent_response(raw, Language.EN)
        assert analysis.intent == Intent.ANALYZE_DATA
        assert analysis.confidence == 0.92
        assert analysis.suggested_action == "Analyze"
        assert analysis.detected_language == Language.EN

    def test_lowercase_intent_accepted(self):
        analysis = decode_intent_response('{"intent": "create_tasks", "confidence": 0.8}', Language.EN)
        assert analysis.intent == Intent.CREATE_TASKS

    def test_unknown_intent_becomes_clarification(self):
        analysis = decode_intent_response('{"intent": "ORDER_PIZZA", "confidence": 0.99}', Language.EN)
        assert analysis.intent == Intent.CLARIFICATION

    def test_missing_intent_becomes_clarification(self):
        analysis = decode_intent_response('{"confidence": 0.4}', Language.RU)
        assert analysis.intent == Intent.CLARIFICATION
        assert analysis.detected_language == Language.RU

    def test_confidence_clamped(self):
        analysis = decode_intent_response('{"intent": "QUERY_TASKS", "confidence": 1.7}', Language.EN)
        assert analysis.confidence == 1.0
        analysis = decode_intent_response('{"intent": "QUERY_TASKS", "confidence": -2}', Language.EN)
        assert analysis.confidence == 0.0

    def test_non_numeric_confidence_defaults(self):
        analysis = decode_intent_response('{"intent": "QUERY_TASKS", "confidence": "very"}', Language.EN)
        assert analysis.confidence == 0.5

    def test_markdown_fenced_response(self):
        raw = '```json\n{"intent": "GENERAL_CHAT", "confidence": 0.95}\n```'
        assert decode_intent_response(raw, Language.EN).intent == Intent.GENERAL_CHAT

    def test_garbage_raises(self):
        with pytest.raises(MalformedOutputError):
            decode_intent_response("I think the user wants tasks", Language.EN)


# ---------------------------------------------------------------------------
# Keyword fallback
# ---------------------------------------------------------------------------


class TestFallbackIntent:
    def test_task_creation(self):
        analysis = fallback_intent("Tomorrow Erik clean room")
        assert analysis.intent == Intent.CREATE_TASKS
        assert analysis.confidence == 0.7

    def test_analytics(self):
        analysis = fallback_intent("How are the kids doing?")
        assert analysis.intent == Intent.ANALYZE_DATA
        assert analysis.confidence == 0.7

    def test_query(self):
        analysis = fallback_intent("What's overdue?")
        assert analysis.intent == Intent.QUERY_TASKS
        assert analysis.confidence == 0.7

    def test_greeting(self):
        analysis = fallback_intent("Hi")
        assert analysis.intent == Intent.GENERAL_CHAT
        assert analysis.confidence == 0.8

    def test_russian_task_creation(self):
        analysis = fallback_intent("завтра Саша убери комнату")
        assert analysis.intent == Intent.CREATE_TASKS
        assert analysis.detected_language == Language.RU

    def test_russian_analytics(self):
        assert fallback_intent("покажи статистику").intent == Intent.ANALYZE_DATA

    def test_russian_greeting(self):
        analysis = fallback_intent("Привет!")
        assert analysis.intent == Intent.GENERAL_CHAT
        assert analysis.detected_language == Language.RU

    def test_question_about_what_needs_doing_is_a_query(self):
        analysis = fallback_intent("What needs to be done today?")
        assert analysis.intent == Intent.QUERY_TASKS
        assert analysis.confidence == 0.7

    def test_question_about_what_someone_should_do_is_a_query(self):
        assert fallback_intent("What should Erik do this week?").intent == Intent.QUERY_TASKS

    def test_nothing_matches(self):
        analysis = fallback_intent("qwerty zxcv")
        assert analysis.intent == Intent.CLARIFICATION
        assert analysis.confidence == 0.3


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------


class TestBuildIntentPrompt:
    def test_includes_roster_and_counts(self, family):
        prompt = build_intent_prompt("How is Erik?", family, [])
        assert "Anna (parent)" in prompt
        assert "Erik (child)" in prompt
        assert "Active Tasks: 5" in prompt
        assert "Completed Tasks (recent): 8" in prompt
        assert 'USER MESSAGE: "How is Erik?"' in prompt

    def test_only_recent_history(self, family):
        history = [ConversationMessage(role="user", content=f"message {i}") for i in range(8)]
        prompt = build_intent_prompt("next", family, history, history_window=5)
        assert "message 2" not in prompt
        assert "message 3" in prompt
        assert "message 7" in prompt


# ---------------------------------------------------------------------------
# Router (model mocked)
# ---------------------------------------------------------------------------


class TestIntentRouter:
    @pytest.mark.asyncio
    async def test_empty_message_skips_model(self, llm, family):
        analysis = await IntentRouter(llm).classify("   ", family)
        assert analysis.intent == Intent.CLARIFICATION
        assert analysis.confidence == 0.6
        llm.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_model_answer_used(self, llm, family):
        llm.complete.return_value = '{"intent": "ANALYZE_DATA", "confidence": 0.9}'
        analysis = await IntentRouter(llm).classify("How is Erik doing this week?", family)
        assert analysis.intent == Intent.ANALYZE_DATA
        assert analysis.confidence == 0.9
        llm.complete.assert_awaited_once()
        prompt, options = llm.complete.await_args.args
        assert "How is Erik doing this week?" in prompt
        assert "intent classifier" in options.system

    @pytest.mark.asyncio
    async def test_retry_once_on_garbage(self, llm, family):
        llm.complete.side_effect = ["not json", '{"intent": "QUERY_TASKS", "confidence": 0.85}']
        analysis = await IntentRouter(llm).classify("What's overdue?", family)
        assert analysis.intent == Intent.QUERY_TASKS
        assert llm.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_falls_back_after_two_failures(self, llm, family):
        llm.complete.side_effect = LLMError("provider down")
        analysis = await IntentRouter(llm).classify("Tomorrow Erik clean room", family)
        assert llm.complete.await_count == 2
        assert analysis.intent == Intent.CREATE_TASKS
        assert analysis.confidence == 0.7

    @pytest.mark.asyncio
    async def test_never_raises(self, llm, family):
        llm.complete.side_effect = RuntimeError("boom")
        analysis = await IntentRouter(llm).classify("qwerty", family)
        assert analysis.intent == Intent.CLARIFICATION
        assert 0.0 <= analysis.confidence <= 1.0

    @pytest.mark.asyncio
    async def test_russian_language_detected(self, llm, family):
        llm.complete.return_value = '{"intent": "CREATE_TASKS", "confidence": 0.9}'
        analysis = await IntentRouter(llm).classify("завтра Саша убери комнату", family)
        assert analysis.detected_language == Language.RU
