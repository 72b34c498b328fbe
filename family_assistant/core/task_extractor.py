"""
Family Task Assistant — Task Extractor.

Brain of task capture: converts a free-text family message (English/Russian)
into reviewable task proposals using the configured language model.

The model's answer is never trusted. Every field of every task is validated
on its own: out-of-range numbers are clamped, bad dates fall back to tomorrow,
and names that are not on the roster become clarification questions instead
of silent assignments. When the model fails twice, a keyword heuristic still
produces low-confidence proposals. extract() never raises.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Literal, Sequence

from pydantic import BaseModel, Field, model_validator

from family_assistant.core import messages
from family_assistant.core.decoding import (
    MalformedOutputError,
    clamp,
    coerce_bool,
    coerce_float,
    coerce_int,
    coerce_str,
    extract_json_payload,
)
from family_assistant.core.language import Language, resolve_language
from family_assistant.core.retry import with_retry
from family_assistant.core.roster import find_mentioned_member, resolve_assignee, roster_names
from family_assistant.data.models import ConversationMessage, FamilyContext, FamilyMember
from family_assistant.ports.llm_port import CompletionOptions, LanguageModelClient

logger = logging.getLogger(__name__)

DEFAULT_POINTS = 3
MIN_POINTS = 1
MAX_POINTS = 10
MAX_TITLE_LENGTH = 50
FALLBACK_CONFIDENCE = 0.3
_PROMPT_HISTORY_WINDOW = 4

# ---------------------------------------------------------------------------
# Shared JSON contract, consumed by the orchestrator and the chat front end
# ---------------------------------------------------------------------------


class RecurrencePattern(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


ClarificationField = Literal["points", "assignee", "dueDate", "description"]
_CLARIFICATION_FIELDS = ("points", "assignee", "dueDate", "description")


class ParsedTask(BaseModel):
    """A proposed, not-yet-persisted task.

    JSON example (model output):
    {
        "title": "Clean room",
        "description": "Organize toys and make bed",
        "suggestedPoints": 3,
        "suggestedAssignee": "Erik",
        "suggestedDueDate": "2025-02-14",
        "confidence": 0.95,
        "isBonusTask": false,
        "isRecurring": false,
        "recurrencePattern": null,
        "dueDateOnly": false
    }
    """
    title: str
    description: str | None = None
    suggested_assignee: str | None = None   # display name from the roster
    assignee_id: str | None = None          # resolved roster id
    suggested_points: int = Field(default=DEFAULT_POINTS, ge=MIN_POINTS, le=MAX_POINTS)
    suggested_due_date: date
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    is_bonus_task: bool = False
    is_recurring: bool = False
    recurrence_pattern: RecurrencePattern | None = None
    due_date_only: bool = False

    @model_validator(mode="after")
    def _normalize_flags(self) -> ParsedTask:
        # Bonus tasks are claimable by anyone
        if self.is_bonus_task:
            self.suggested_assignee = None
            self.assignee_id = None
        # Pattern present iff recurring
        if not self.is_recurring:
            self.recurrence_pattern = None
        elif self.recurrence_pattern is None:
            self.is_recurring = False
        return self

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "suggestedAssignee": self.suggested_assignee,
            "assigneeId": self.assignee_id,
            "suggestedPoints": self.suggested_points,
            "suggestedDueDate": self.suggested_due_date.isoformat(),
            "confidence": self.confidence,
            "isBonusTask": self.is_bonus_task,
            "isRecurring": self.is_recurring,
            "recurrencePattern": self.recurrence_pattern.value if self.recurrence_pattern else None,
            "dueDateOnly": self.due_date_only,
        }


class ClarificationQuestion(BaseModel):
    """A prompt-back about one field of one proposed task."""
    id: str
    question: str
    task_index: int = Field(ge=0)
    field: ClarificationField
    suggested_answers: list[str] = Field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "question": self.question,
            "taskIndex": self.task_index,
            "field": self.field,
            "suggestedAnswers": list(self.suggested_answers),
        }


@dataclass
class ExtractionResult:
    parsed_tasks: list[ParsedTask] = field(default_factory=list)
    clarification_questions: list[ClarificationQuestion] = field(default_factory=list)
    language: Language = Language.EN
    used_fallback: bool = False

    @property
    def confidence(self) -> float:
        """Lowest task confidence; 0.3 when nothing was extracted."""
        if not self.parsed_tasks:
            return FALLBACK_CONFIDENCE
        return min(t.confidence for t in self.parsed_tasks)


# ---------------------------------------------------------------------------
# Date helpers
# ---------------------------------------------------------------------------

_ISO_DATE = re.compile(r"^\s*(\d{4}-\d{2}-\d{2})")

_RELATIVE_DAYS = {
    "today": 0, "сегодня": 0,
    "tomorrow": 1, "завтра": 1,
    "day after tomorrow": 2, "послезавтра": 2,
}


def parse_due_date(value: Any, today: date) -> date | None:
    """Parse a model-supplied due date; None when it is not a calendar date.

    Accepts YYYY-MM-DD, full ISO datetimes (date part is kept), and a few
    relative words the model sometimes leaks ("tomorrow", "завтра").
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip().lower()
    if text in _RELATIVE_DAYS:
        return today + timedelta(days=_RELATIVE_DAYS[text])

    match = _ISO_DATE.match(text)
    if not match:
        return None
    try:
        return date.fromisoformat(match.group(1))
    except ValueError:
        return None


def default_task_points(family_context: FamilyContext) -> int:
    """Rounded mean of active task points, kept inside the 1-10 scale."""
    if not family_context.active_tasks:
        return DEFAULT_POINTS
    total = sum(t.points for t in family_context.active_tasks)
    average = total / len(family_context.active_tasks)
    return int(clamp(int(average + 0.5), MIN_POINTS, MAX_POINTS))


def _assignable_names(family_context: FamilyContext) -> list[str]:
    children = family_context.children()
    return roster_names(children or family_context.members)


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """\
You are a task extraction engine for a family chore tracker.
Parse the parent's message (English or Russian) into structured tasks.
A single message may contain several tasks; extract every one of them.

**Return ONLY a JSON object**, no markdown, no explanation:
{"parsedTasks": [...], "clarificationQuestions": [...]}

Task schema:
{"title": "string (max 50 chars)", "description": "string or null",
 "suggestedAssignee": "exact roster name or null", "suggestedPoints": integer 1-10,
 "suggestedDueDate": "YYYY-MM-DD", "confidence": number 0.0-1.0,
 "isBonusTask": boolean, "isRecurring": boolean,
 "recurrencePattern": "DAILY" | "WEEKLY" | "MONTHLY" | null, "dueDateOnly": boolean}

Clarification question schema:
{"id": "q1", "question": "string", "taskIndex": integer,
 "field": "points" | "assignee" | "dueDate" | "description", "suggestedAnswers": ["..."]}

Rules:
- suggestedDueDate is a date only, never a time, never a word like "tomorrow".
- suggestedAssignee must be copied exactly from the roster, or null.
- BONUS tasks ("bonus", "anyone can do", "extra credit", "someone", "кто-нибудь", "бонус") have isBonusTask true and no assignee.
- RECURRING tasks ("daily", "every week", "каждый день", "еженедельно") set isRecurring true plus recurrencePattern. Only DAILY, WEEKLY and MONTHLY exist; for "every other day" or "twice a week" ask a clarification question instead.
- DUE DATE ONLY tasks ("only on", "exactly on", "только в") set dueDateOnly true.
- Points reflect effort: quick chores 1-3, cleaning 2-4, homework 3-5.
- Write titles in the language of the message.
- If the message contains no tasks, return {"parsedTasks": [], "clarificationQuestions": []}.
"""


def build_extraction_prompt(
    utterance: str,
    family_context: FamilyContext,
    today: date,
    target_date: date | None,
    points: int,
    history: Sequence[ConversationMessage] = (),
) -> str:
    tomorrow = today + timedelta(days=1)
    children = ", ".join(m.name for m in family_context.children()) or "No children found"

    parts = [
        "FAMILY CONTEXT:",
        f"- Available children: {children}",
        f"- Default points to suggest: {points}",
        f"- Today's date: {today.isoformat()} ({today.strftime('%A')})",
        f"- Tomorrow: {tomorrow.isoformat()}",
        f"- Default due date: {(target_date or tomorrow).isoformat()}",
        "",
    ]
    recent = list(history)[-_PROMPT_HISTORY_WINDOW:]
    if recent:
        parts.append("CONVERSATION HISTORY (recent messages, use it for edits like \"make it 10 points\"):")
        parts += [f"{msg.role}: {msg.content}" for msg in recent]
        parts.append("")
    parts.append(f'INPUT TO PARSE: "{utterance}"')
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Decode and repair
# ---------------------------------------------------------------------------


class _QuestionBuilder:
    """Collects clarification questions; ids are assigned at the end."""

    def __init__(self) -> None:
        self.items: list[dict] = []

    def add(self, question: str, task_index: int, field_name: str, answers: Sequence[str] = ()) -> None:
        self.items.append({
            "question": question,
            "task_index": task_index,
            "field": field_name,
            "suggested_answers": [str(a) for a in answers],
        })

    def build(self) -> list[ClarificationQuestion]:
        return [
            ClarificationQuestion(id=f"q{i}", **item)
            for i, item in enumerate(self.items, start=1)
        ]


def _validate_task(
    item: dict,
    task_index: int,
    family_context: FamilyContext,
    today: date,
    default_points: int,
    language: Language,
    questions: _QuestionBuilder,
) -> ParsedTask | None:
    """Validate one model task, emitting questions for unresolved fields."""
    title = coerce_str(item.get("title"))
    if title is None:
        logger.warning("Skipping task without a title: %s", item)
        return None

    description = coerce_str(item.get("description"))
    if len(title) > MAX_TITLE_LENGTH:
        description = description or title
        title = title[:MAX_TITLE_LENGTH].rstrip()

    points = coerce_int(item.get("suggestedPoints", item.get("points")), default_points)
    if not MIN_POINTS <= points <= MAX_POINTS:
        logger.warning("Clamping out-of-range points %s for '%s'", points, title)
    points = int(clamp(points, MIN_POINTS, MAX_POINTS))

    confidence = clamp(coerce_float(item.get("confidence"), 0.8), 0.0, 1.0)

    tomorrow = today + timedelta(days=1)
    raw_date = item.get("suggestedDueDate", item.get("dueDate"))
    due_date = parse_due_date(raw_date, today)
    if due_date is None:
        if coerce_str(raw_date) is not None:
            logger.warning("Model generated invalid date '%s', using tomorrow", raw_date)
            questions.add(
                messages.render("clarify_due_date", language, title=title, raw=raw_date),
                task_index, "dueDate",
                [tomorrow.isoformat(), today.isoformat()],
            )
        due_date = tomorrow

    is_bonus = coerce_bool(item.get("isBonusTask", False))
    is_recurring = coerce_bool(item.get("isRecurring", False))

    pattern = None
    raw_pattern = coerce_str(item.get("recurrencePattern"))
    if is_recurring and raw_pattern:
        try:
            pattern = RecurrencePattern(raw_pattern.upper())
        except ValueError:
            logger.warning("Ignoring unsupported recurrence pattern '%s'", raw_pattern)

    assignee_name = None
    assignee_id = None
    raw_assignee = coerce_str(item.get("suggestedAssignee", item.get("assignee")))
    if raw_assignee and not is_bonus:
        assignee_id = resolve_assignee(family_context.members, raw_assignee)
        if assignee_id is None:
            logger.warning("Assignee '%s' not on roster for task '%s'", raw_assignee, title)
            questions.add(
                messages.render("clarify_assignee", language, name=raw_assignee, title=title),
                task_index, "assignee",
                _assignable_names(family_context),
            )
        else:
            assignee_name = family_context.member_by_id(assignee_id).name

    return ParsedTask(
        title=title,
        description=description,
        suggested_assignee=assignee_name,
        assignee_id=assignee_id,
        suggested_points=points,
        suggested_due_date=due_date,
        confidence=confidence,
        is_bonus_task=is_bonus,
        is_recurring=is_recurring,
        recurrence_pattern=pattern,
        due_date_only=coerce_bool(item.get("dueDateOnly", False)),
    )


def _model_questions(raw_questions: Any, task_count: int, questions: _QuestionBuilder) -> None:
    """Keep only well-formed model questions that point at an existing task."""
    if not isinstance(raw_questions, list):
        return
    for raw in raw_questions:
        if not isinstance(raw, dict):
            continue
        text = coerce_str(raw.get("question"))
        field_name = coerce_str(raw.get("field")) or "description"
        if text is None or field_name not in _CLARIFICATION_FIELDS:
            logger.warning("Dropping malformed clarification question: %s", raw)
            continue
        index = coerce_int(raw.get("taskIndex"), 0)
        if task_count and not 0 <= index < task_count:
            logger.warning("Dropping question for unknown task index %s", index)
            continue
        if not task_count:
            index = 0
        answers = raw.get("suggestedAnswers", raw.get("options"))
        if not isinstance(answers, list):
            answers = []
        questions.add(text, index, field_name, [a for a in answers if isinstance(a, (str, int, float))])


def decode_task_response(
    raw_text: str,
    family_context: FamilyContext,
    today: date,
    default_points: int,
    language: Language,
) -> ExtractionResult:
    """Turn raw model output into validated tasks and questions.

    Raises MalformedOutputError when the envelope cannot be recovered.
    """
    payload = extract_json_payload(raw_text)

    if isinstance(payload, list):
        raw_tasks, raw_questions = payload, []
    else:
        raw_tasks = payload.get("parsedTasks", payload.get("tasks"))
        raw_questions = payload.get("clarificationQuestions", [])

    if not isinstance(raw_tasks, list):
        raise MalformedOutputError("Invalid parsedTasks structure")

    questions = _QuestionBuilder()
    tasks: list[ParsedTask] = []
    for item in raw_tasks:
        if not isinstance(item, dict):
            logger.warning("Skipping non-dict task item: %s", item)
            continue
        task = _validate_task(
            item, len(tasks), family_context, today, default_points, language, questions,
        )
        if task is not None:
            tasks.append(task)

    _model_questions(raw_questions, len(tasks), questions)

    logger.info("Extracted %d task(s), %d question(s)", len(tasks), len(questions.items))
    return ExtractionResult(
        parsed_tasks=tasks,
        clarification_questions=questions.build(),
        language=language,
    )


# ---------------------------------------------------------------------------
# Heuristic fallback
# ---------------------------------------------------------------------------

_CLAUSE_SPLIT = re.compile(r"[,.;!?\n]|\s+(?:and|и)\s+", re.IGNORECASE)

_TASK_KEYWORDS = re.compile(
    r"\b(clean|wash|organi[sz]|tidy|vacuum|sweep|mop|dust|read|study|homework|"
    r"dishes|laundry|trash|garbage|walk|feed|cook|water|practi[cs]|do\b|"
    r"убра|убер|помы|помо|почист|постира|пропылес|подмет|уроки|урок|домашн|посуд|"
    r"мусор|выгул|покорм|пригот|полей|полить|сделай|сделать|учи|прочита|читать)",
    re.IGNORECASE,
)

_BONUS_WORDS = re.compile(
    r"\b(bonus|anyone|someone|extra credit|бонус|кто-нибудь|кто-то|любой)", re.IGNORECASE,
)

_RECURRENCE_WORDS: tuple[tuple[re.Pattern, RecurrencePattern], ...] = (
    (re.compile(r"\b(daily|every day|каждый день|ежедневно)", re.IGNORECASE), RecurrencePattern.DAILY),
    (re.compile(r"\b(weekly|every week|каждую неделю|еженедельно)", re.IGNORECASE), RecurrencePattern.WEEKLY),
    (re.compile(r"\b(monthly|every month|каждый месяц|ежемесячно)", re.IGNORECASE), RecurrencePattern.MONTHLY),
)


def fallback_extract(
    utterance: str,
    family_context: FamilyContext,
    today: date,
    default_points: int,
    language: Language,
) -> ExtractionResult:
    """Split the message into clauses and keep the ones that sound like chores."""
    tomorrow = today + timedelta(days=1)
    tasks: list[ParsedTask] = []

    for clause in _CLAUSE_SPLIT.split(utterance or ""):
        clause = clause.strip()
        if len(clause) <= 3 or not _TASK_KEYWORDS.search(clause):
            continue

        is_bonus = bool(_BONUS_WORDS.search(clause))
        member: FamilyMember | None = None
        if not is_bonus:
            member = find_mentioned_member(family_context.members, clause)

        pattern = None
        for regex, candidate in _RECURRENCE_WORDS:
            if regex.search(clause):
                pattern = candidate
                break

        title = clause[0].upper() + clause[1:]
        tasks.append(ParsedTask(
            title=title[:MAX_TITLE_LENGTH].rstrip(),
            description=clause if len(title) > MAX_TITLE_LENGTH else None,
            suggested_assignee=member.name if member else None,
            assignee_id=member.id if member else None,
            suggested_points=default_points,
            suggested_due_date=tomorrow,
            confidence=FALLBACK_CONFIDENCE,
            is_bonus_task=is_bonus,
            is_recurring=pattern is not None,
            recurrence_pattern=pattern,
        ))

    logger.info("Heuristic fallback produced %d task(s)", len(tasks))
    return ExtractionResult(parsed_tasks=tasks, language=language, used_fallback=True)


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class TaskExtractor:
    """Turns free text into task proposals plus clarification questions."""

    def __init__(self, client: LanguageModelClient) -> None:
        self._client = client

    async def extract(
        self,
        utterance: str,
        family_context: FamilyContext,
        target_date: date | str | None = None,
        default_points: int | None = None,
        history: Sequence[ConversationMessage] = (),
        today: date | None = None,
    ) -> ExtractionResult:
        """Extract task proposals from *utterance*. Never raises."""
        today = today or date.today()
        language = resolve_language(utterance)

        if isinstance(target_date, str):
            target_date = parse_due_date(target_date, today)

        points = default_points if default_points is not None else default_task_points(family_context)
        points = int(clamp(points, MIN_POINTS, MAX_POINTS))

        prompt = build_extraction_prompt(
            utterance, family_context, today, target_date, points, history,
        )
        options = CompletionOptions(system=_SYSTEM_PROMPT, max_tokens=1500, temperature=0.1)

        async def _attempt() -> ExtractionResult:
            raw = await self._client.complete(prompt, options)
            logger.debug("Task extraction raw response: %s", raw)
            return decode_task_response(raw, family_context, today, points, language)

        try:
            return await with_retry(_attempt, attempts=2, label="Task extraction")
        except Exception as exc:
            logger.warning("Task extraction degraded to heuristic parsing: %s", exc)
            return fallback_extract(utterance, family_context, today, points, language)
