"""Canned replies in every supported language.

Templates are plain ``str.format`` strings keyed first by message key and
then by language. Unknown languages fall back to English.
"""

from __future__ import annotations

import logging

from family_assistant.core.language import Language

logger = logging.getLogger(__name__)

_TEMPLATES: dict[str, dict[Language, str]] = {
    # ---- task extraction ----
    "clarify_assignee": {
        Language.EN: "Who should do \"{title}\"? I couldn't find \"{name}\" in the family.",
        Language.RU: "Кто должен выполнить «{title}»? Я не нашёл «{name}» в семье.",
    },
    "clarify_due_date": {
        Language.EN: "When is \"{title}\" due? I couldn't understand the date \"{raw}\".",
        Language.RU: "Когда нужно выполнить «{title}»? Я не понял дату «{raw}».",
    },
    "questions_header": {
        Language.EN: "I understand you want to create tasks, but I need some clarification:",
        Language.RU: "Я понял, что вы хотите создать задачи, но мне нужны уточнения:",
    },
    "tasks_ready": {
        Language.EN: "Great! I prepared {count} {noun} for your family. Please review before saving:",
        Language.RU: "Отлично! Я подготовил {count} {noun} для вашей семьи. Проверьте перед сохранением:",
    },
    "nothing_extracted": {
        Language.EN: "I couldn't extract any tasks from your message. Could you be more specific?",
        Language.RU: "Я не смог извлечь задачи из вашего сообщения. Можете ли вы быть более конкретными?",
    },

    # ---- analytics ----
    "analytics_unavailable": {
        Language.EN: "Sorry, I couldn't analyze the family data right now. Please try rephrasing your question.",
        Language.RU: "Извините, не удалось проанализировать данные. Попробуйте переформулировать ваш вопрос.",
    },
    "query_overview": {
        Language.EN: (
            "📋 Here's a quick overview of your tasks:\n\n"
            "• Total active tasks: {active}\n"
            "• Tasks for today: {due_today}\n"
            "• Overdue tasks: {overdue}\n"
            "• Completed this week: {completed}\n"
            "{top}\n"
            "Need more detailed information?"
        ),
        Language.RU: (
            "📋 Вот краткий обзор задач:\n\n"
            "• Всего активных задач: {active}\n"
            "• Задач на сегодня: {due_today}\n"
            "• Просроченных задач: {overdue}\n"
            "• Выполнено на этой неделе: {completed}\n"
            "{top}\n"
            "Нужна более подробная информация?"
        ),
    },
    "top_performer": {
        Language.EN: "• Top performer: {name}\n",
        Language.RU: "• Лучший исполнитель: {name}\n",
    },

    # ---- small talk ----
    "greeting": {
        Language.EN: (
            "Hello! I'm your family assistant. I can help you create tasks, analyze "
            "family progress or answer questions about tasks. How can I help?"
        ),
        Language.RU: (
            "Привет! Я ваш семейный помощник. Я могу помочь создать задачи, проанализировать "
            "прогресс семьи или ответить на вопросы о задачах. Чем могу помочь?"
        ),
    },
    "thanks": {
        Language.EN: "You're welcome! Always happy to help your family. Anything else?",
        Language.RU: "Пожалуйста! Всегда рад помочь вашей семье. Есть ещё что-то, с чем я могу помочь?",
    },
    "farewell": {
        Language.EN: "Goodbye! Good luck with the tasks!",
        Language.RU: "До свидания! Удачи с выполнением задач!",
    },
    "redirect": {
        Language.EN: (
            "I'm here to help manage family tasks. I can create tasks, show statistics "
            "or answer questions. What would you like to do?"
        ),
        Language.RU: (
            "Я здесь, чтобы помочь с управлением семейными задачами. Могу создать задачи, "
            "показать статистику или ответить на вопросы. Что вас интересует?"
        ),
    },

    # ---- clarification ----
    "capabilities": {
        Language.EN: (
            "I'm not sure I understood your request. I can help with:\n\n"
            "• Creating tasks (e.g. \"tomorrow {example} clean room\")\n"
            "• Analyzing family statistics (e.g. \"how are the kids doing?\")\n"
            "• Task information (e.g. \"what needs to be done today?\")\n\n"
            "Family members: {roster}\n"
            "Active tasks: {active}, overdue: {overdue}, completed this week: {completed}\n\n"
            "Please try rephrasing your request."
        ),
        Language.RU: (
            "Извините, я не совсем понял ваш запрос. Я могу помочь с:\n\n"
            "• Созданием задач (например: \"завтра {example} убери комнату\")\n"
            "• Анализом семейной статистики (например: \"как дела у детей?\")\n"
            "• Информацией о задачах (например: \"что нужно сделать сегодня?\")\n\n"
            "Члены семьи: {roster}\n"
            "Активных задач: {active}, просрочено: {overdue}, выполнено за неделю: {completed}\n\n"
            "Попробуйте переформулировать ваш запрос."
        ),
    },

    # ---- errors ----
    "apology": {
        Language.EN: "Sorry, something went wrong. Please try again.",
        Language.RU: "Извините, произошла ошибка. Пожалуйста, попробуйте ещё раз.",
    },
}

_FOLLOW_UPS: dict[str, dict[Language, list[str]]] = {
    "clarify_tasks": {
        Language.EN: ["Answer the questions", "Create tasks anyway", "Start over"],
        Language.RU: ["Ответить на вопросы", "Создать задачи как есть", "Начать заново"],
    },
    "tasks_ready": {
        Language.EN: ["Review the proposed tasks", "Create more tasks", "View family statistics"],
        Language.RU: ["Просмотреть предложенные задачи", "Создать ещё задачи", "Посмотреть семейную статистику"],
    },
    "analytics": {
        Language.EN: ["View detailed statistics", "Create new tasks", "Check overdue tasks"],
        Language.RU: ["Посмотреть подробную статистику", "Создать новые задачи", "Проверить просроченные задачи"],
    },
    "query": {
        Language.EN: ["Show today's tasks", "Show overdue tasks", "Create a new task"],
        Language.RU: ["Показать задачи на сегодня", "Показать просроченные задачи", "Создать новую задачу"],
    },
    "chat": {
        Language.EN: ["Create new tasks", "View family statistics", "Check today's tasks"],
        Language.RU: ["Создать новые задачи", "Посмотреть статистику семьи", "Проверить сегодняшние задачи"],
    },
    "clarification": {
        Language.EN: ["Create a task", "View statistics", "Show today's tasks"],
        Language.RU: ["Создать задачу", "Посмотреть статистику", "Показать сегодняшние задачи"],
    },
}


def _pick(table: dict[Language, object], language: Language):
    return table.get(language) or table[Language.EN]


def render(key: str, language: Language, **kwargs) -> str:
    """Format the template *key* in *language*.

    Raises KeyError for an unknown key.
    """
    template = _pick(_TEMPLATES[key], language)
    return template.format(**kwargs)


def follow_ups(key: str, language: Language) -> list[str]:
    return list(_pick(_FOLLOW_UPS[key], language))


def task_noun(count: int, language: Language) -> str:
    """'task'/'tasks', or the Russian form that agrees with *count*."""
    if language == Language.RU:
        tail = count % 100
        if 11 <= tail <= 14:
            return "задач"
        if count % 10 == 1:
            return "задачу"
        if count % 10 in (2, 3, 4):
            return "задачи"
        return "задач"
    return "task" if count == 1 else "tasks"
