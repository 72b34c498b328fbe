"""
Family Task Assistant — Intent Router.

Decides what a family message is about before anything else happens:
creating tasks, analysing family data, asking about existing tasks, small
talk, or something that needs clarification.

The model makes the call; a keyword matcher takes over when the model is
unreachable or keeps answering garbage. classify() never raises.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Sequence

from pydantic import BaseModel, Field

from family_assistant.core.decoding import (
    clamp,
    coerce_float,
    coerce_str,
    extract_json_object,
)
from family_assistant.core.language import Language, resolve_language
from family_assistant.core.retry import with_retry
from family_assistant.data.models import ConversationMessage, FamilyContext
from family_assistant.ports.llm_port import CompletionOptions, LanguageModelClient

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_WINDOW = 5


class Intent(str, Enum):
    CREATE_TASKS = "CREATE_TASKS"     # user wants to create new tasks
    ANALYZE_DATA = "ANALYZE_DATA"     # user wants insights/analytics
    QUERY_TASKS = "QUERY_TASKS"       # user wants to check existing tasks
    CLARIFICATION = "CLARIFICATION"   # need more info to determine intent
    GENERAL_CHAT = "GENERAL_CHAT"     # small talk


class IntentAnalysis(BaseModel):
    """Classification of one utterance.

    JSON example (model output):
    {
        "intent": "CREATE_TASKS",
        "confidence": 0.92,
        "reasoning": "Names a child and a chore with a date",
        "suggestedAction": "Parse as task creation request"
    }
    """
    intent: Intent
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    suggested_action: str = ""
    detected_language: Language = Language.EN


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """\
You are an intent classifier for a family task management assistant.
Messages arrive in English or Russian. Classify the user's message into exactly one intent.

INTENT TYPES:
1. CREATE_TASKS - the user wants to create new tasks or change tasks proposed earlier in the conversation.
   Examples: "tomorrow Sarah clean room", "create task wash dishes", "Peter do homework",
   "make it 10 points instead", "завтра Саша убери комнату", "Пете сделать домашку"

2. ANALYZE_DATA - the user wants analytics, insights or comparisons.
   Examples: "how are the kids doing?", "show me stats", "who's performing best?",
   "как дела у детей?", "покажи статистику"

3. QUERY_TASKS - the user wants to check existing tasks.
   Examples: "what tasks for today?", "what needs to be done?", "show overdue tasks",
   "какие задачи на сегодня?", "покажи просроченные задачи"

4. CLARIFICATION - the message is unclear or ambiguous.

5. GENERAL_CHAT - greetings, thanks, goodbyes, small talk.
   Examples: "hello", "thank you", "bye", "привет", "спасибо"

Return ONLY a JSON object with fields: intent, confidence (0.0-1.0), reasoning, suggestedAction.
No markdown, no explanation, no extra text.
"""


def _format_history(history: Sequence[ConversationMessage], window: int) -> str:
    recent = list(history)[-window:] if window > 0 else []
    return "\n".join(f"{msg.role}: {msg.content}" for msg in recent)


def build_intent_prompt(
    utterance: str,
    family_context: FamilyContext,
    recent_history: Sequence[ConversationMessage],
    history_window: int = DEFAULT_HISTORY_WINDOW,
) -> str:
    members = ", ".join(
        f"{m.name} ({m.role.value.lower()})" for m in family_context.members
    ) or "none"

    parts = [
        "FAMILY CONTEXT:",
        f"Family Members: {members}",
        f"Active Tasks: {len(family_context.active_tasks)}",
        f"Completed Tasks (recent): {len(family_context.completion_history)}",
        "",
    ]
    history_text = _format_history(recent_history, history_window)
    if history_text:
        parts += ["CONVERSATION HISTORY:", history_text, ""]
    parts += [
        f'USER MESSAGE: "{utterance}"',
        "",
        "Classify the intent (CREATE_TASKS, ANALYZE_DATA, QUERY_TASKS, CLARIFICATION, GENERAL_CHAT).",
    ]
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------


def decode_intent_response(raw_text: str, language: Language) -> IntentAnalysis:
    """Turn raw model output into a validated IntentAnalysis.

    Raises MalformedOutputError when no JSON object can be extracted.
    """
    data = extract_json_object(raw_text)

    raw_intent = coerce_str(data.get("intent"))
    try:
        intent = Intent(raw_intent.upper()) if raw_intent else Intent.CLARIFICATION
    except ValueError:
        logger.warning("Model returned unknown intent: '%s'", raw_intent)
        intent = Intent.CLARIFICATION

    confidence = clamp(coerce_float(data.get("confidence"), 0.5), 0.0, 1.0)

    return IntentAnalysis(
        intent=intent,
        confidence=confidence,
        reasoning=coerce_str(data.get("reasoning")) or "Unable to determine intent",
        suggested_action=(
            coerce_str(data.get("suggestedAction"))
            or coerce_str(data.get("suggested_action"))
            or "Ask for clarification"
        ),
        detected_language=language,
    )


# ---------------------------------------------------------------------------
# Keyword fallback
# ---------------------------------------------------------------------------

_PATTERNS: dict[Language, dict[Intent, re.Pattern]] = {
    Language.EN: {
        Intent.CREATE_TASKS: re.compile(
            r"\b(create|make|add|assign|clean|wash|vacuum|tidy|organi[sz]e|"
            r"tomorrow|bonus)\b",
            re.IGNORECASE,
        ),
        Intent.ANALYZE_DATA: re.compile(
            r"\b(how (is|are)|doing|stats|statistics|analy[sz]e|analysis|report|"
            r"performing|progress|best|compare)\b",
            re.IGNORECASE,
        ),
        Intent.QUERY_TASKS: re.compile(
            r"\b(what|which|list|show|overdue|pending|due)\b",
            re.IGNORECASE,
        ),
        Intent.GENERAL_CHAT: re.compile(
            r"\b(hi|hello|hey|thanks|thank you|bye|goodbye)\b",
            re.IGNORECASE,
        ),
    },
    Language.RU: {
        Intent.CREATE_TASKS: re.compile(
            r"(создай|создать|добавь|добавить|назначь|убери|убрать|помой|помыть|"
            r"сделай|сделать|пропылесось|завтра|должен|должна|бонус)",
            re.IGNORECASE,
        ),
        Intent.ANALYZE_DATA: re.compile(
            r"(как дела|статистик|анализ|отч[её]т|прогресс|лучше всех|сравни)",
            re.IGNORECASE,
        ),
        Intent.QUERY_TASKS: re.compile(
            r"(какие|что нужно|список|покажи|просроч)",
            re.IGNORECASE,
        ),
        Intent.GENERAL_CHAT: re.compile(
            r"(привет|здравствуй|спасибо|\bпока\b|до свидания)",
            re.IGNORECASE,
        ),
    },
}

# Checked in this order; first hit wins.
_FALLBACK_ORDER: tuple[tuple[Intent, float, str, str], ...] = (
    (Intent.CREATE_TASKS, 0.7, "task creation keywords", "Parse as task creation request"),
    (Intent.ANALYZE_DATA, 0.7, "analytics keywords", "Provide family analytics"),
    (Intent.QUERY_TASKS, 0.7, "task query keywords", "Show current tasks"),
    (Intent.GENERAL_CHAT, 0.8, "a greeting", "Respond with friendly greeting"),
)


def fallback_intent(utterance: str) -> IntentAnalysis:
    """Deterministic keyword classification; always returns something."""
    language = resolve_language(utterance)
    patterns = _PATTERNS[language]

    for intent, confidence, what, action in _FALLBACK_ORDER:
        if patterns[intent].search(utterance):
            return IntentAnalysis(
                intent=intent,
                confidence=confidence,
                reasoning=f"Pattern matching detected {what}",
                suggested_action=action,
                detected_language=language,
            )

    return IntentAnalysis(
        intent=Intent.CLARIFICATION,
        confidence=0.3,
        reasoning="Unable to determine intent from patterns",
        suggested_action="Ask for clarification",
        detected_language=language,
    )


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


class IntentRouter:
    """Classifies utterances with the model, falling back to keyword patterns."""

    def __init__(
        self,
        client: LanguageModelClient,
        history_window: int = DEFAULT_HISTORY_WINDOW,
    ) -> None:
        self._client = client
        self._history_window = history_window

    async def classify(
        self,
        utterance: str,
        family_context: FamilyContext,
        recent_history: Sequence[ConversationMessage] = (),
    ) -> IntentAnalysis:
        """Classify *utterance*. Never raises."""
        language = resolve_language(utterance)

        if not utterance or not utterance.strip():
            return IntentAnalysis(
                intent=Intent.CLARIFICATION,
                confidence=0.6,
                reasoning="Empty message",
                suggested_action="Explain what the assistant can do",
                detected_language=language,
            )

        prompt = build_intent_prompt(
            utterance, family_context, recent_history, self._history_window,
        )
        options = CompletionOptions(system=_SYSTEM_PROMPT, max_tokens=300, temperature=0.1)

        async def _attempt() -> IntentAnalysis:
            raw = await self._client.complete(prompt, options)
            logger.debug("Intent raw response: %s", raw)
            return decode_intent_response(raw, language)

        try:
            analysis = await with_retry(_attempt, attempts=2, label="Intent classification")
        except Exception as exc:
            logger.warning("Falling back to pattern intent matching: %s", exc)
            analysis = fallback_intent(utterance)

        logger.info(
            "Intent: %s (%.2f, %s) for '%s'",
            analysis.intent.value, analysis.confidence,
            analysis.detected_language.value, utterance[:80],
        )
        return analysis
