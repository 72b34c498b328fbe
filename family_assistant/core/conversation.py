"""
Family Task Assistant — Conversation Orchestrator.

Top-level entry point of the pipeline. One call per chat turn:

    utterance → language → intent → {extractor | analytics | template} → reply

The orchestrator never persists anything. Task proposals come back for human
review; saving an accepted proposal is the caller's job (see
FamilyDB.create_task_from_proposal). handle() never raises.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from family_assistant.core import messages
from family_assistant.core.analytics import (
    AnalyticsData,
    AnalyticsEngine,
    AnalyticsQuery,
    QuickStats,
    quick_stats,
)
from family_assistant.core.intent_router import (
    DEFAULT_HISTORY_WINDOW,
    Intent,
    IntentAnalysis,
    IntentRouter,
)
from family_assistant.core.language import Language, resolve_language
from family_assistant.core.task_extractor import (
    FALLBACK_CONFIDENCE,
    ClarificationQuestion,
    ParsedTask,
    TaskExtractor,
)
from family_assistant.data.models import ConversationMessage, FamilyContext
from family_assistant.ports.llm_port import LanguageModelClient

logger = logging.getLogger(__name__)

CLARIFICATION_CONFIDENCE = 0.5
CHAT_CONFIDENCE = 0.9


@dataclass
class ResponseData:
    tasks: list[ParsedTask] | None = None
    analytics: AnalyticsData | None = None
    clarification_questions: list[ClarificationQuestion] | None = None
    quick_stats: QuickStats | None = None

    def to_dict(self) -> dict:
        out: dict = {}
        if self.tasks is not None:
            out["tasks"] = [t.to_dict() for t in self.tasks]
        if self.analytics is not None:
            out["analytics"] = self.analytics.to_dict()
        if self.clarification_questions is not None:
            out["clarificationQuestions"] = [q.to_dict() for q in self.clarification_questions]
        if self.quick_stats is not None:
            out["quickStats"] = self.quick_stats.to_dict()
        return out


@dataclass
class ConversationResponse:
    """Reply for one chat turn, in the user's language."""

    message: str
    intent: Intent
    language: Language
    data: ResponseData | None = None
    follow_up_actions: list[str] = field(default_factory=list)
    confidence: float = 0.0

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "intent": self.intent.value,
            "language": self.language.value,
            "data": self.data.to_dict() if self.data else None,
            "followUpActions": list(self.follow_up_actions),
            "confidence": self.confidence,
        }


# ---------------------------------------------------------------------------
# Small-talk detection
# ---------------------------------------------------------------------------

_GREETING = re.compile(r"\b(hi|hello|hey|good (morning|afternoon|evening))\b|привет|здравствуй", re.IGNORECASE)
_THANKS = re.compile(r"\b(thanks|thank you|thx)\b|спасибо|благодар", re.IGNORECASE)
_FAREWELL = re.compile(r"\b(bye|goodbye|see you)\b|\bпока\b|до свидания", re.IGNORECASE)


def _chat_template(utterance: str) -> str:
    if _GREETING.search(utterance):
        return "greeting"
    if _THANKS.search(utterance):
        return "thanks"
    if _FAREWELL.search(utterance):
        return "farewell"
    return "redirect"


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class ConversationOrchestrator:
    """Routes each family message to the component that can answer it.

    Pass a model client to get the default components, or inject them
    directly (tests do this).
    """

    def __init__(
        self,
        client: LanguageModelClient | None = None,
        *,
        router: IntentRouter | None = None,
        extractor: TaskExtractor | None = None,
        analytics: AnalyticsEngine | None = None,
        history_window: int = DEFAULT_HISTORY_WINDOW,
    ) -> None:
        if client is None and None in (router, extractor, analytics):
            raise ValueError("Either a client or all three components are required")
        self.router = router or IntentRouter(client, history_window=history_window)
        self.extractor = extractor or TaskExtractor(client)
        self.analytics = analytics or AnalyticsEngine(client)

    async def handle(
        self,
        utterance: str,
        family_context: FamilyContext,
        history: Sequence[ConversationMessage] = (),
        today: date | None = None,
    ) -> ConversationResponse:
        today = today or date.today()
        language = resolve_language(utterance or "")

        try:
            analysis = await self.router.classify(utterance, family_context, history)
            language = analysis.detected_language
            response = await self._dispatch(analysis, utterance, family_context, history, today)
        except Exception:
            logger.exception("Conversation turn failed for family %s", family_context.family_id)
            return ConversationResponse(
                message=messages.render("apology", language),
                intent=Intent.GENERAL_CHAT,
                language=language,
                confidence=0.0,
            )

        response.confidence = min(analysis.confidence, response.confidence)
        logger.info(
            "Turn handled: intent=%s language=%s confidence=%.2f",
            response.intent.value, response.language.value, response.confidence,
        )
        return response

    async def _dispatch(
        self,
        analysis: IntentAnalysis,
        utterance: str,
        family_context: FamilyContext,
        history: Sequence[ConversationMessage],
        today: date,
    ) -> ConversationResponse:
        language = analysis.detected_language
        intent = analysis.intent

        if intent == Intent.CREATE_TASKS:
            return await self._create_tasks(utterance, family_context, history, language, today)
        if intent in (Intent.ANALYZE_DATA, Intent.QUERY_TASKS):
            return await self._analyze(intent, utterance, family_context, language, today)
        if intent == Intent.GENERAL_CHAT:
            return ConversationResponse(
                message=messages.render(_chat_template(utterance), language),
                intent=Intent.GENERAL_CHAT,
                language=language,
                follow_up_actions=messages.follow_ups("chat", language),
                confidence=CHAT_CONFIDENCE,
            )
        return self._clarify(family_context, language, today)

    # ---- branches ----

    async def _create_tasks(
        self,
        utterance: str,
        family_context: FamilyContext,
        history: Sequence[ConversationMessage],
        language: Language,
        today: date,
    ) -> ConversationResponse:
        result = await self.extractor.extract(
            utterance, family_context, history=history, today=today,
        )
        tasks = result.parsed_tasks
        questions = result.clarification_questions

        if questions:
            lines = [messages.render("questions_header", language), ""]
            lines += [f"{i}. {q.question}" for i, q in enumerate(questions, start=1)]
            return ConversationResponse(
                message="\n".join(lines),
                intent=Intent.CREATE_TASKS,
                language=language,
                data=ResponseData(tasks=tasks, clarification_questions=questions),
                follow_up_actions=messages.follow_ups("clarify_tasks", language),
                confidence=result.confidence,
            )

        if not tasks:
            return ConversationResponse(
                message=messages.render("nothing_extracted", language),
                intent=Intent.CREATE_TASKS,
                language=language,
                data=ResponseData(tasks=[]),
                confidence=FALLBACK_CONFIDENCE,
            )

        return ConversationResponse(
            message=messages.render(
                "tasks_ready", language,
                count=len(tasks), noun=messages.task_noun(len(tasks), language),
            ),
            intent=Intent.CREATE_TASKS,
            language=language,
            data=ResponseData(tasks=tasks),
            follow_up_actions=messages.follow_ups("tasks_ready", language),
            confidence=result.confidence,
        )

    async def _analyze(
        self,
        intent: Intent,
        utterance: str,
        family_context: FamilyContext,
        language: Language,
        today: date,
    ) -> ConversationResponse:
        stats = quick_stats(family_context, today)
        query = AnalyticsQuery(question=utterance, language=language)
        result = await self.analytics.analyze(query, family_context, today=today)

        message = result.answer
        confidence = result.confidence
        if intent == Intent.QUERY_TASKS and result.confidence == 0.0:
            message = self._overview(family_context, stats, language, today)
            confidence = CLARIFICATION_CONFIDENCE

        return ConversationResponse(
            message=message,
            intent=intent,
            language=language,
            data=ResponseData(analytics=result.data, quick_stats=stats),
            follow_up_actions=messages.follow_ups(
                "query" if intent == Intent.QUERY_TASKS else "analytics", language,
            ),
            confidence=confidence,
        )

    def _clarify(
        self,
        family_context: FamilyContext,
        language: Language,
        today: date,
    ) -> ConversationResponse:
        stats = quick_stats(family_context, today)
        children = family_context.children()
        example = children[0].name if children else ("Саша" if language == Language.RU else "Sarah")
        roster = ", ".join(m.name for m in family_context.members) or "-"

        return ConversationResponse(
            message=messages.render(
                "capabilities", language,
                example=example, roster=roster,
                active=stats.total_active_tasks, overdue=stats.overdue_tasks,
                completed=stats.completed_this_week,
            ),
            intent=Intent.CLARIFICATION,
            language=language,
            data=ResponseData(quick_stats=stats),
            follow_up_actions=messages.follow_ups("clarification", language),
            confidence=CLARIFICATION_CONFIDENCE,
        )

    @staticmethod
    def _overview(
        family_context: FamilyContext,
        stats: QuickStats,
        language: Language,
        today: date,
    ) -> str:
        due_today = sum(1 for t in family_context.active_tasks if t.due_date == today)
        top = (
            messages.render("top_performer", language, name=stats.top_performer)
            if stats.top_performer else ""
        )
        return messages.render(
            "query_overview", language,
            active=stats.total_active_tasks, due_today=due_today,
            overdue=stats.overdue_tasks, completed=stats.completed_this_week, top=top,
        )
