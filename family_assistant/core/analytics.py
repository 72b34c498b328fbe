"""
Family Task Assistant — Analytics Engine.

Two independent entry points:

* quick_stats() — deterministic numbers computed straight from the family
  snapshot. No model call, same input → same output.
* AnalyticsEngine.analyze() — a narrative answer to a free-form question,
  produced by the language model from per-member statistics. Falls back to
  an apology in the user's language when the model fails twice.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from typing import Any, Literal

from pydantic import BaseModel, Field

from family_assistant.core import messages
from family_assistant.core.decoding import (
    MalformedOutputError,
    clamp,
    coerce_float,
    coerce_str,
    extract_json_object,
)
from family_assistant.core.language import Language, language_name, resolve_language
from family_assistant.core.retry import with_retry
from family_assistant.data.models import CompletedTask, FamilyContext, FamilyMember
from family_assistant.ports.llm_port import CompletionOptions, LanguageModelClient

logger = logging.getLogger(__name__)

_RECENT_COMPLETIONS = 10
_RECENT_POINTS = 20
_WEEK = timedelta(days=7)


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QuickStats:
    total_active_tasks: int
    overdue_tasks: int
    completed_this_week: int
    top_performer: str | None
    family_points: int

    def to_dict(self) -> dict:
        return {
            "totalActiveTasks": self.total_active_tasks,
            "overdueTasks": self.overdue_tasks,
            "completedThisWeek": self.completed_this_week,
            "topPerformer": self.top_performer,
            "familyPoints": self.family_points,
        }


@dataclass(frozen=True)
class MemberStats:
    name: str
    role: str
    active_tasks: int
    completed_tasks: int
    total_points: int
    average_points: float
    overdue_tasks: int
    completion_rate: float


class AnalyticsQuery(BaseModel):
    question: str
    timeframe: str | None = None
    target_member: str | None = None
    language: Language | None = None    # None → detect from the question


class ChartSpec(BaseModel):
    type: Literal["bar", "line", "pie"]
    title: str
    data: list[Any] = Field(default_factory=list)


class AnalyticsData(BaseModel):
    metrics: dict[str, Any] = Field(default_factory=dict)
    insights: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    charts: list[ChartSpec] = Field(default_factory=list)

    def to_dict(self) -> dict:
        return self.model_dump(exclude_defaults=True)


class AnalyticsResponse(BaseModel):
    """Narrative analysis.

    JSON example (model output):
    {
        "answer": "Erik finished 5 of 7 tasks this week (71%)...",
        "data": {"insights": ["..."], "recommendations": ["..."],
                 "charts": [{"type": "bar", "title": "Tasks per child", "data": [...]}]},
        "confidence": 0.9
    }
    """
    answer: str
    data: AnalyticsData = Field(default_factory=AnalyticsData)
    confidence: float = Field(ge=0.0, le=1.0)
    detected_language: Language = Language.EN


# ---------------------------------------------------------------------------
# Deterministic statistics
# ---------------------------------------------------------------------------


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def _is_overdue(due_date: date | datetime, today: date) -> bool:
    """Date-only comparison: due yesterday or earlier."""
    return _as_date(due_date) < today


def _completed_by(entry: CompletedTask, member: FamilyMember) -> bool:
    if entry.assignee_id is not None:
        return entry.assignee_id == member.id
    return bool(entry.assignee_name) and entry.assignee_name.casefold() == member.name.casefold()


def quick_stats(family_context: FamilyContext, today: date | None = None) -> QuickStats:
    """Headline numbers for a family. Pure: no I/O, no model."""
    today = today or date.today()
    week_ago = today - _WEEK

    active = family_context.active_tasks
    history = family_context.completion_history

    overdue = sum(1 for t in active if _is_overdue(t.due_date, today))
    completed_this_week = sum(1 for c in history if _as_date(c.completed_at) > week_ago)

    top_performer = None
    best_rate = 0.0
    for child in family_context.children():
        completed = sum(1 for c in history if _completed_by(c, child))
        pending = sum(1 for t in active if t.assignee_id == child.id)
        total = completed + pending
        rate = completed / total if total else 0.0
        if rate > best_rate:
            best_rate = rate
            top_performer = child.name

    family_points = sum(p.current_points for p in family_context.points_data)

    return QuickStats(
        total_active_tasks=len(active),
        overdue_tasks=overdue,
        completed_this_week=completed_this_week,
        top_performer=top_performer,
        family_points=family_points,
    )


def member_statistics(family_context: FamilyContext, today: date | None = None) -> list[MemberStats]:
    """Per-member workload and completion figures."""
    today = today or date.today()
    stats: list[MemberStats] = []

    for member in family_context.members:
        member_active = [t for t in family_context.active_tasks if t.assignee_id == member.id]
        member_done = [c for c in family_context.completion_history if _completed_by(c, member)]
        total_points = sum(c.points for c in member_done)
        total = len(member_active) + len(member_done)

        stats.append(MemberStats(
            name=member.name,
            role=member.role.value,
            active_tasks=len(member_active),
            completed_tasks=len(member_done),
            total_points=total_points,
            average_points=round(total_points / len(member_done), 2) if member_done else 0.0,
            overdue_tasks=sum(1 for t in member_active if _is_overdue(t.due_date, today)),
            completion_rate=round(len(member_done) / total, 3) if total else 0.0,
        ))
    return stats


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """\
You are a family task analytics assistant for a household chore tracker.
Analyse the family data and answer the parent's question with insights and recommendations.

Key principles:
- Answer ONLY in {language}.
- Be positive and encouraging; compare family members fairly and constructively.
- Use specific numbers and percentages from the data.
- Give practical, actionable advice.

Return ONLY a JSON object:
{{"answer": "formatted text with bullet points and line breaks",
  "data": {{"metrics": {{}}, "insights": ["..."], "recommendations": ["..."],
           "charts": [{{"type": "bar" | "line" | "pie", "title": "...", "data": [...]}}]}},
  "confidence": 0.0-1.0}}
Do NOT put raw objects or JSON inside "answer" — only readable text.
"""


def _json_block(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, indent=2, default=str)


def build_analytics_prompt(
    query: AnalyticsQuery,
    family_context: FamilyContext,
    today: date,
) -> str:
    members = [
        {"id": m.id, "name": m.name, "role": m.role.value}
        for m in family_context.members
    ]
    stats = [asdict(s) for s in member_statistics(family_context, today)]
    overdue = sum(1 for t in family_context.active_tasks if _is_overdue(t.due_date, today))
    completions = [
        {
            "title": c.title,
            "assignee": c.assignee_name,
            "points": c.points,
            "completedAt": _as_date(c.completed_at).isoformat(),
        }
        for c in family_context.completion_history[:_RECENT_COMPLETIONS]
    ]
    active = [
        {
            "title": t.title,
            "assignee": t.assignee_name or ("bonus" if t.assignee_id is None else t.assignee_id),
            "points": t.points,
            "dueDate": _as_date(t.due_date).isoformat(),
            "status": t.status,
        }
        for t in family_context.active_tasks
    ]
    points = [asdict(p) for p in family_context.points_data[-_RECENT_POINTS:]]

    parts = [
        f"FAMILY DATA ANALYSIS (today is {today.isoformat()}):",
        "",
        f"Family Members: {_json_block(members)}",
        f"Total Active Tasks: {len(family_context.active_tasks)}",
        f"Completed Tasks (recent): {len(family_context.completion_history)}",
        f"Overdue Tasks: {overdue}",
        "",
        f"MEMBER STATISTICS:\n{_json_block(stats)}",
        "",
        f"RECENT TASK COMPLETIONS:\n{_json_block(completions)}",
        "",
        f"ACTIVE TASKS:\n{_json_block(active)}",
        "",
        f"POINTS DATA:\n{_json_block(points)}",
        "",
        f'USER QUESTION: "{query.question}"',
    ]
    if query.timeframe:
        parts.append(f"TIMEFRAME: {query.timeframe}")
    if query.target_member:
        parts.append(f"FOCUS ON: {query.target_member}")
    parts += [
        "",
        "Answer the specific question directly, back it with numbers, add insights,"
        " recommendations and chart suggestions where they help.",
    ]
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [s for s in (coerce_str(v) for v in value) if s]


def _charts(value: Any) -> list[ChartSpec]:
    charts: list[ChartSpec] = []
    if not isinstance(value, list):
        return charts
    for raw in value:
        if not isinstance(raw, dict):
            continue
        chart_type = (coerce_str(raw.get("type")) or "").lower()
        if chart_type not in ("bar", "line", "pie"):
            logger.warning("Dropping chart with unsupported type '%s'", chart_type)
            continue
        data = raw.get("data")
        charts.append(ChartSpec(
            type=chart_type,
            title=coerce_str(raw.get("title")) or "",
            data=data if isinstance(data, list) else [],
        ))
    return charts


def decode_analytics_response(raw_text: str, language: Language) -> AnalyticsResponse:
    """Validate the model's analytics envelope.

    Raises MalformedOutputError when there is no JSON or no answer text.
    """
    payload = extract_json_object(raw_text)

    answer = coerce_str(payload.get("answer"))
    if answer is None:
        raise MalformedOutputError("Analytics response has no answer")

    raw_data = payload.get("data")
    if not isinstance(raw_data, dict):
        raw_data = {}
    metrics = raw_data.get("metrics")

    return AnalyticsResponse(
        answer=answer,
        data=AnalyticsData(
            metrics=metrics if isinstance(metrics, dict) else {},
            insights=_string_list(raw_data.get("insights")),
            recommendations=_string_list(raw_data.get("recommendations")),
            charts=_charts(raw_data.get("charts")),
        ),
        confidence=clamp(coerce_float(payload.get("confidence"), 0.5), 0.0, 1.0),
        detected_language=language,
    )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class AnalyticsEngine:
    """Answers analytical questions about a family's task activity."""

    def __init__(self, client: LanguageModelClient) -> None:
        self._client = client

    def quick_stats(self, family_context: FamilyContext, today: date | None = None) -> QuickStats:
        return quick_stats(family_context, today)

    async def analyze(
        self,
        query: AnalyticsQuery,
        family_context: FamilyContext,
        today: date | None = None,
    ) -> AnalyticsResponse:
        """Narrative answer to *query*. Never raises."""
        today = today or date.today()
        language = query.language or resolve_language(query.question)
        if language == Language.UNKNOWN:
            language = Language.EN

        prompt = build_analytics_prompt(query, family_context, today)
        options = CompletionOptions(
            system=_SYSTEM_PROMPT.format(language=language_name(language)),
            max_tokens=1500,
            temperature=0.2,
        )

        async def _attempt() -> AnalyticsResponse:
            raw = await self._client.complete(prompt, options)
            logger.debug("Analytics raw response: %s", raw)
            return decode_analytics_response(raw, language)

        try:
            return await with_retry(_attempt, attempts=2, label="Family analysis")
        except Exception as exc:
            logger.error("Family analysis failed, returning apology: %s", exc)
            return AnalyticsResponse(
                answer=messages.render("analytics_unavailable", language),
                confidence=0.0,
                detected_language=language,
            )


__all__ = [
    "AnalyticsData",
    "AnalyticsEngine",
    "AnalyticsQuery",
    "AnalyticsResponse",
    "ChartSpec",
    "MemberStats",
    "QuickStats",
    "member_statistics",
    "quick_stats",
]
