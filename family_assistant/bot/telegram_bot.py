"""
Family Task Assistant — Telegram Bot.

Chat front end for parents. Every text message is one conversation turn:
the family snapshot is rebuilt from the store, the orchestrator answers, and
task proposals are shown for review with Accept / Discard buttons. Nothing is
saved until a parent presses Accept.

Security-first: unauthorized users are silently ignored.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine
from zoneinfo import ZoneInfo

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)
from telegram.helpers import escape_markdown

from family_assistant.config import settings
from family_assistant.data.models import ConversationMessage, FamilyMember, MemberRole

if TYPE_CHECKING:
    from family_assistant.core.conversation import ConversationOrchestrator, ConversationResponse
    from family_assistant.core.task_extractor import ParsedTask
    from family_assistant.data.db import FamilyDB

logger = logging.getLogger(__name__)

# Previews still waiting for Accept / Discard, per chat.
MAX_PENDING_PREVIEWS = 5


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from unauthorized users.

    Does NOT send any response to strangers — the bot must not reveal
    its existence to unauthorized users.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if user is None or user.id not in settings.ALLOWED_USER_IDS:
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


def _current_parent(update: Update, context: ContextTypes.DEFAULT_TYPE) -> FamilyMember | None:
    """Roster entry of the sender when they are a parent, else None."""
    db: FamilyDB = context.bot_data["db"]
    member = db.get_member_by_telegram_id(update.effective_user.id)
    if member is None or member.role != MemberRole.PARENT:
        return None
    return member


def _today():
    return datetime.now(ZoneInfo(settings.TIMEZONE)).date()


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_task_preview(tasks: list[ParsedTask]) -> str:
    """One line per proposed task, for the review message."""
    lines = []
    for i, task in enumerate(tasks, start=1):
        who = "🎁 bonus" if task.is_bonus_task else escape_markdown(task.suggested_assignee or "unassigned")
        title = escape_markdown(task.title)
        line = f"{i}. *{title}* ({who}, {task.suggested_points} pts, due {task.suggested_due_date.isoformat()})"
        if task.recurrence_pattern:
            line += f" 🔁 {task.recurrence_pattern.value.lower()}"
        if task.due_date_only:
            line += " 📌"
        lines.append(line)
    return "\n".join(lines)


def _proposal_keyboard(token: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([[
        InlineKeyboardButton("✅ Accept", callback_data=f"proposal:accept:{token}"),
        InlineKeyboardButton("❌ Discard", callback_data=f"proposal:discard:{token}"),
    ]])


def _stash_proposal(context: ContextTypes.DEFAULT_TYPE, tasks: list[ParsedTask]) -> str:
    """Keep *tasks* under a fresh token; the oldest previews expire first."""
    pending: dict[str, list[ParsedTask]] = context.chat_data.setdefault("pending", {})
    token = uuid.uuid4().hex[:12]
    pending[token] = list(tasks)
    while len(pending) > MAX_PENDING_PREVIEWS:
        del pending[next(iter(pending))]
    return token


def _remember(context: ContextTypes.DEFAULT_TYPE, message: ConversationMessage) -> list[ConversationMessage]:
    """Append to the per-chat history, keeping it bounded."""
    history: list[ConversationMessage] = context.chat_data.setdefault("history", [])
    history.append(message)
    limit = settings.HISTORY_WINDOW * 2
    if len(history) > limit:
        del history[:-limit]
    return history


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — welcome message."""
    await update.message.reply_text(
        "Welcome to the *Family Task Assistant*!\n\n"
        "Write to me in English or Russian:\n"
        "• \"Tomorrow Erik clean his room\" to create tasks\n"
        "• \"How are the kids doing?\" for family statistics\n"
        "• \"What's overdue?\" to check tasks\n\n"
        "Type /help for the full command list.",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await update.message.reply_text(
        "*Available commands:*\n"
        "/health — Language model provider status\n"
        "/help — Show this message\n\n"
        "Any other message is read as a request. Proposed tasks are only "
        "saved after you press Accept.",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_health(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /health — report the configured provider without calling it."""
    from family_assistant.adapters.llm_factory import provider_health

    health = provider_health()
    icon = "✅" if health["status"] == "healthy" else "⚠️"
    await update.message.reply_text(
        f"{icon} Status: {health['status']}\n"
        f"Provider: {health['provider']}\n"
        f"Model: {health['model']}\n"
        f"API key: {health['api_key']}"
    )


# ---------------------------------------------------------------------------
# Message handlers
# ---------------------------------------------------------------------------


async def _send_response(
    response: ConversationResponse,
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
) -> None:
    await update.message.reply_text(response.message)

    tasks = response.data.tasks if response.data else None
    if not tasks:
        return

    token = _stash_proposal(context, tasks)
    await update.message.reply_text(
        format_task_preview(tasks),
        parse_mode="Markdown",
        reply_markup=_proposal_keyboard(token),
    )


@authorized_only
async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle plain text messages — one conversation turn."""
    parent = _current_parent(update, context)
    if parent is None:
        await update.message.reply_text("Only parents can use the family assistant.")
        return

    db: FamilyDB = context.bot_data["db"]
    orchestrator: ConversationOrchestrator = context.bot_data["orchestrator"]
    text = update.message.text or ""

    try:
        family_id = db.get_family_id_for_member(parent.id)
        family_context = db.build_context(family_id, window_days=settings.COMPLETION_WINDOW_DAYS)
        history = list(context.chat_data.get("history", []))
        response = await orchestrator.handle(text, family_context, history, today=_today())
    except Exception as exc:
        logger.error("Conversation error for member %s: %s", parent.id, exc)
        await update.message.reply_text("Sorry, something went wrong. Please try again.")
        return

    _remember(context, ConversationMessage(role="user", content=text))
    _remember(context, ConversationMessage(
        role="assistant",
        content=response.message,
        intent=response.intent.value,
        data=response.data.to_dict() if response.data else None,
    ))
    await _send_response(response, update, context)


async def _handle_proposal_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Handle Accept / Discard on a task preview."""
    query = update.callback_query
    await query.answer()

    # Verify the user is authorized
    user = query.from_user
    if user is None or user.id not in settings.ALLOWED_USER_IDS:
        return

    _, action, token = query.data.split(":", 2)
    pending: list[ParsedTask] | None = context.chat_data.get("pending", {}).pop(token, None)
    if not pending:
        await query.edit_message_text("No pending tasks found. Please send the request again.")
        return
    if action == "discard":
        await query.edit_message_text("Proposed tasks discarded.")
        return

    db: FamilyDB = context.bot_data["db"]
    parent = db.get_member_by_telegram_id(user.id)
    if parent is None or parent.role != MemberRole.PARENT:
        await query.edit_message_text("Only parents can create tasks.")
        return

    try:
        family_id = db.get_family_id_for_member(parent.id)
        created = [db.create_task_from_proposal(family_id, task, parent.id) for task in pending]
    except Exception as exc:
        logger.error("Task creation failed for member %s: %s", parent.id, exc)
        await query.edit_message_text("Sorry, I couldn't save the tasks. Please try again.")
        return

    await query.edit_message_text(f"✅ Saved {len(created)} task(s).")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def build_app(
    db: FamilyDB | None = None,
    orchestrator: ConversationOrchestrator | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        db: Family store. Defaults to FamilyDB at DATABASE_PATH.
        orchestrator: Conversation pipeline. Defaults to one backed by the
                      configured LLM_PROVIDER.
    """
    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    if db is None:
        from family_assistant.data.db import FamilyDB
        db = FamilyDB()

    if orchestrator is None:
        from family_assistant.adapters.llm_factory import create_llm_client
        from family_assistant.core.conversation import ConversationOrchestrator
        orchestrator = ConversationOrchestrator(
            create_llm_client(), history_window=settings.HISTORY_WINDOW,
        )

    app.bot_data["db"] = db
    app.bot_data["orchestrator"] = orchestrator

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("health", cmd_health))
    app.add_handler(CallbackQueryHandler(_handle_proposal_callback, pattern=r"^proposal:(accept|discard):\w+$"))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting Family Task Assistant bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
