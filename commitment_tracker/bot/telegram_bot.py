"""
Commitment Tracker — Telegram Bot.

Telegram is the only user interface. Every interaction (adding and
completing commitments, mood check-ins, AI advice, reminder permission)
flows through this bot; the business logic lives in CommitmentService.

Security-first: unauthorized users are silently ignored.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine
from zoneinfo import ZoneInfo

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, ReplyKeyboardMarkup, ReplyKeyboardRemove, Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    ConversationHandler,
    MessageHandler,
    filters,
)

from commitment_tracker.config import settings
from commitment_tracker.core.commitment_service import validate_date, validate_time, validate_title
from commitment_tracker.core.errors import TrackerError, ValidationFailure
from commitment_tracker.core.permission_gate import Permission
from commitment_tracker.data.models import MOODS

if TYPE_CHECKING:
    from commitment_tracker.core.commitment_service import CommitmentService
    from commitment_tracker.core.permission_gate import PermissionGate
    from commitment_tracker.core.reminders import ReminderScheduler
    from commitment_tracker.data.db import CommitmentDB
    from commitment_tracker.data.models import Commitment

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, Any]],
) -> Callable[..., Coroutine[Any, Any, Any]]:
    """Decorator that silently ignores updates from unauthorized users.

    Does NOT send any response to strangers — the bot must not reveal
    its existence to unauthorized users. Works for messages and button taps.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> Any:
        user = update.effective_user
        if user is None or user.id not in settings.ALLOWED_USER_IDS:
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _service(context: ContextTypes.DEFAULT_TYPE) -> CommitmentService:
    return context.bot_data["service"]


def _owner(update: Update) -> int | None:
    user = update.effective_user
    return user.id if user else None


async def _reply_error(update: Update, exc: TrackerError) -> None:
    """Show the user-facing text of a TrackerError."""
    logger.warning("%s for user %s: %s", type(exc).__name__, _owner(update), exc)
    await update.effective_message.reply_text(exc.user_message)


def _parse_id(args: list[str] | None) -> int | None:
    if not args:
        return None
    try:
        return int(args[0].lstrip("#"))
    except ValueError:
        return None


def _format_commitment(c: Commitment) -> str:
    mark = "✅" if c.completed else "⬜"
    line = f"{mark} #{c.id} {c.title} — {c.due_date} {c.due_time}"
    if c.priority:
        line += f" [{c.priority}]"
    return line


async def _analyze_priority_in_background(
    service: CommitmentService, owner: int, commitment_id: int,
) -> None:
    """Attach a priority annotation after add; failures only get logged."""
    try:
        annotation = await service.analyze_priority(owner, commitment_id)
        logger.info(
            "Commitment #%d prioritized: %s (%.2f)",
            commitment_id, annotation.urgency_level, annotation.priority_score,
        )
    except TrackerError as exc:
        logger.warning("Priority analysis for #%d failed: %s", commitment_id, exc)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — welcome message."""
    await update.message.reply_text(
        "Welcome to *Commitment Tracker*!\n\n"
        "I keep track of what you promised yourself:\n"
        "• Use /add to create a commitment with a due date and time\n"
        "• Use /mood to check in, then /suggest for a mood-aware plan\n"
        "• Use /reminders to get notified before things are due\n\n"
        "Type /help for the full command list.",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await update.message.reply_text(
        "*Available commands:*\n"
        "/add — Add a commitment\n"
        "/list — List your commitments\n"
        "/done <id> — Toggle a commitment done / not done\n"
        "/delete <id> — Delete a commitment\n"
        "/mood <mood> <energy 1-5> — Log how you feel\n"
        "/suggest [mood energy] — Order today's tasks for your mood\n"
        "/advice <id> — Should this commitment move?\n"
        "/adviseall — Reschedule advice for everything pending\n"
        "/move <id> <YYYY-MM-DD> <HH:MM> — Reschedule a commitment\n"
        "/skip <id> — Skip a commitment and get a new slot\n"
        "/patterns — Your completion patterns\n"
        "/reminders [reset] — Turn reminders on\n"
        "/help — Show this message",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_list(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /list — pending first, then completed."""
    try:
        commitments = _service(context).list_commitments(_owner(update))
    except TrackerError as exc:
        await _reply_error(update, exc)
        return

    if not commitments:
        await update.message.reply_text("No commitments yet. Use /add to create one.")
        return

    pending = [c for c in commitments if not c.completed]
    done = [c for c in commitments if c.completed]
    lines = ["Your commitments:\n"]
    lines.extend(_format_commitment(c) for c in pending)
    if done:
        lines.append("\nCompleted:")
        lines.extend(_format_commitment(c) for c in done)
    await update.message.reply_text("\n".join(lines))


@authorized_only
async def cmd_done(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /done <id> — toggle completion."""
    commitment_id = _parse_id(context.args)
    if commitment_id is None:
        await update.message.reply_text("Usage: /done <id>\nUse /list to see IDs.")
        return

    try:
        commitment = _service(context).toggle_complete(_owner(update), commitment_id)
    except TrackerError as exc:
        await _reply_error(update, exc)
        return

    if commitment.completed:
        await update.message.reply_text(f"✅ Done: {commitment.title}")
    else:
        await update.message.reply_text(f"↩️ Marked as not done: {commitment.title}")


@authorized_only
async def cmd_delete(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delete <id>."""
    commitment_id = _parse_id(context.args)
    if commitment_id is None:
        await update.message.reply_text("Usage: /delete <id>\nUse /list to see IDs.")
        return

    try:
        commitment = _service(context).delete_commitment(_owner(update), commitment_id)
    except TrackerError as exc:
        await _reply_error(update, exc)
        return
    await update.message.reply_text(f"🗑 Deleted: {commitment.title}")


# ---------------------------------------------------------------------------
# /add conversation
# ---------------------------------------------------------------------------

ADD_TITLE, ADD_DATE, ADD_TIME, ADD_DETAILS = range(4)


@authorized_only
async def cmd_add(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Handle /add — start the commitment conversation."""
    context.user_data.pop("draft", None)
    await update.message.reply_text("What do you want to commit to? (/cancel to stop)")
    return ADD_TITLE


async def add_title(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    try:
        title = validate_title(update.message.text)
    except ValidationFailure as exc:
        await update.message.reply_text(exc.user_message)
        return ADD_TITLE

    context.user_data["draft"] = {"title": title}
    keyboard = ReplyKeyboardMarkup(
        [["Today", "Tomorrow"]], one_time_keyboard=True, resize_keyboard=True,
    )
    await update.message.reply_text(
        "When is it due? (YYYY-MM-DD, or pick one)", reply_markup=keyboard,
    )
    return ADD_DATE


async def add_date(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    text = update.message.text.strip().lower()
    today = context.bot_data["today"]()
    if text == "today":
        text = today.isoformat()
    elif text == "tomorrow":
        text = (today + timedelta(days=1)).isoformat()

    try:
        due_date = validate_date(text)
    except ValidationFailure as exc:
        await update.message.reply_text(exc.user_message)
        return ADD_DATE

    context.user_data["draft"]["due_date"] = due_date
    await update.message.reply_text(
        "At what time? (HH:MM, 24h)", reply_markup=ReplyKeyboardRemove(),
    )
    return ADD_TIME


async def add_time(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    try:
        due_time = validate_time(update.message.text)
    except ValidationFailure as exc:
        await update.message.reply_text(exc.user_message)
        return ADD_TIME

    context.user_data.setdefault("draft", {})["due_time"] = due_time
    keyboard = ReplyKeyboardMarkup([["Skip"]], one_time_keyboard=True, resize_keyboard=True)
    await update.message.reply_text(
        "Any details? Send a note, optionally starting with a #category "
        "(e.g. #health leg day), or tap Skip.",
        reply_markup=keyboard,
    )
    return ADD_DETAILS


def _parse_details(text: str) -> tuple[str, str | None]:
    """'#health leg day' -> ('leg day', 'health'); 'skip' -> ('', None)."""
    text = (text or "").strip()
    if text.lower() == "skip":
        return "", None
    if text.startswith("#"):
        tag, _, rest = text.partition(" ")
        return rest.strip(), tag.lstrip("#") or None
    return text, None


async def add_details(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    draft = context.user_data.pop("draft", None) or {}
    service = _service(context)
    owner = _owner(update)
    description, category = _parse_details(update.message.text)

    try:
        commitment = service.add_commitment(
            owner,
            draft.get("title", ""),
            draft.get("due_date", ""),
            draft.get("due_time", ""),
            description=description,
            category=category,
        )
    except TrackerError as exc:
        await _reply_error(update, exc)
        return ConversationHandler.END

    await update.message.reply_text(
        f"✅ Commitment added: {commitment.title} — {commitment.due_date} at {commitment.due_time}",
        reply_markup=ReplyKeyboardRemove(),
    )
    context.application.create_task(
        _analyze_priority_in_background(service, owner, commitment.id),
        update=update,
    )
    return ConversationHandler.END


async def add_cancel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    context.user_data.pop("draft", None)
    await update.message.reply_text("Cancelled.", reply_markup=ReplyKeyboardRemove())
    return ConversationHandler.END


# ---------------------------------------------------------------------------
# Mood & AI advice
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_mood(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /mood <mood> <energy> [notes]."""
    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text(
            f"Usage: /mood <mood> <energy 1-5> [notes]\nMoods: {', '.join(MOODS)}"
        )
        return

    try:
        log = _service(context).log_mood(_owner(update), args[0], args[1], " ".join(args[2:]))
    except TrackerError as exc:
        await _reply_error(update, exc)
        return
    await update.message.reply_text(f"Mood logged: {log.mood}, energy {log.energy_level}/5")


@authorized_only
async def cmd_suggest(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /suggest [mood energy] — rank today's tasks for the mood."""
    service = _service(context)
    owner = _owner(update)
    args = context.args or []
    if len(args) == 1:
        await update.message.reply_text(
            "Usage: /suggest [mood energy]\nWithout arguments your last logged mood is used."
        )
        return

    try:
        if len(args) >= 2:
            mood, energy = args[0], args[1]
        else:
            current = service.current_mood(owner)
            mood, energy = current.mood, current.energy_level
        recommendation = await service.recommend_for_mood(owner, mood, energy)
    except TrackerError as exc:
        await _reply_error(update, exc)
        return

    lines = []
    if recommendation.recommended_order:
        lines.append("Suggested order for today:")
        lines.extend(f"{i}. {title}" for i, title in enumerate(recommendation.recommended_order, 1))
        lines.append("")
    lines.append(recommendation.reasoning)
    await update.message.reply_text("\n".join(lines))


@authorized_only
async def cmd_advice(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /advice <id> — single reschedule advice."""
    commitment_id = _parse_id(context.args)
    if commitment_id is None:
        await update.message.reply_text("Usage: /advice <id>")
        return

    try:
        commitment, advice = await _service(context).reschedule_advice(_owner(update), commitment_id)
    except TrackerError as exc:
        await _reply_error(update, exc)
        return

    verdict = "🔁 Consider rescheduling" if advice.should_reschedule else "👍 Keep it as planned"
    text = f"{verdict}: {commitment.title}\n{advice.suggestion}"
    if not advice.recommended_time:
        await update.message.reply_text(text)
        return

    text += f"\nSuggested time: {advice.recommended_time}"
    keyboard = InlineKeyboardMarkup([[
        InlineKeyboardButton(
            f"🕒 Move to {advice.recommended_time}",
            callback_data=f"move:{commitment.id}:{commitment.due_date}:{advice.recommended_time}",
        ),
    ]])
    await update.message.reply_text(text, reply_markup=keyboard)


@authorized_only
async def cmd_adviseall(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /adviseall — bulk reschedule advice."""
    try:
        entries = await _service(context).bulk_reschedule_advice(_owner(update))
    except TrackerError as exc:
        await _reply_error(update, exc)
        return

    if not entries:
        await update.message.reply_text("Nothing pending. 🎉")
        return

    lines = ["Reschedule advice:\n"]
    for entry in entries:
        if entry.should_reschedule:
            slot = " ".join(s for s in (entry.suggested_date, entry.suggested_time) if s)
            lines.append(f"🔁 #{entry.commitment_id} {entry.commitment_title} → {slot or 'later'}")
        else:
            lines.append(f"👍 #{entry.commitment_id} {entry.commitment_title}")
        lines.append(f"   {entry.reason}")
    await update.message.reply_text("\n".join(lines))


@authorized_only
async def cmd_skip(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /skip <id> — propose a new slot with Accept / Reject buttons."""
    commitment_id = _parse_id(context.args)
    if commitment_id is None:
        await update.message.reply_text("Usage: /skip <id>")
        return

    try:
        suggestion = await _service(context).skip_commitment(_owner(update), commitment_id)
    except TrackerError as exc:
        await _reply_error(update, exc)
        return

    keyboard = InlineKeyboardMarkup([[
        InlineKeyboardButton("✅ Accept", callback_data=f"suggestion:accept:{suggestion.id}"),
        InlineKeyboardButton("❌ Reject", callback_data=f"suggestion:reject:{suggestion.id}"),
    ]])
    await update.message.reply_text(
        f"How about {suggestion.suggested_date} at {suggestion.suggested_time}?\n"
        f"{suggestion.reason}",
        reply_markup=keyboard,
    )


@authorized_only
async def _handle_suggestion_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Handle Accept / Reject on a reschedule suggestion."""
    query = update.callback_query
    await query.answer()

    _, action, raw_id = query.data.split(":")
    service = _service(context)
    owner = _owner(update)

    try:
        if action == "accept":
            commitment = service.accept_suggestion(owner, int(raw_id))
            await query.edit_message_text(
                f"✅ Moved {commitment.title} to {commitment.due_date} at {commitment.due_time}"
            )
        else:
            service.reject_suggestion(owner, int(raw_id))
            await query.edit_message_text("Okay, keeping the original schedule.")
    except TrackerError as exc:
        logger.warning("Suggestion %s %s failed: %s", raw_id, action, exc)
        await query.edit_message_text(exc.user_message)


@authorized_only
async def cmd_move(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /move <id> <YYYY-MM-DD> <HH:MM> — reschedule by hand."""
    args = context.args or []
    commitment_id = _parse_id(args)
    if commitment_id is None or len(args) != 3:
        await update.message.reply_text("Usage: /move <id> <YYYY-MM-DD> <HH:MM>")
        return

    try:
        commitment = _service(context).reschedule(_owner(update), commitment_id, args[1], args[2])
    except TrackerError as exc:
        await _reply_error(update, exc)
        return
    await update.message.reply_text(
        f"📅 Moved {commitment.title} to {commitment.due_date} at {commitment.due_time}"
    )


@authorized_only
async def _handle_move_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle the move button under /advice: move:<id>:<date>:<HH:MM>."""
    query = update.callback_query
    await query.answer()

    _, raw_id, due_date, due_time = query.data.split(":", 3)
    try:
        commitment = _service(context).reschedule(_owner(update), int(raw_id), due_date, due_time)
    except TrackerError as exc:
        logger.warning("Move of #%s failed: %s", raw_id, exc)
        await query.edit_message_text(exc.user_message)
        return
    await query.edit_message_text(
        f"📅 Moved {commitment.title} to {commitment.due_date} at {commitment.due_time}"
    )


@authorized_only
async def cmd_patterns(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /patterns — recompute and show behavior patterns."""
    try:
        pattern = _service(context).refresh_patterns(_owner(update))
    except TrackerError as exc:
        await _reply_error(update, exc)
        return

    if pattern is None:
        await update.message.reply_text("Not enough data yet. Complete a few commitments first.")
        return

    hour = (
        f"{pattern.typical_completion_hour:02d}:00"
        if pattern.typical_completion_hour is not None else "n/a"
    )
    days = ", ".join(d.capitalize() for d in pattern.preferred_days) or "n/a"
    await update.message.reply_text(
        "Your patterns:\n"
        f"• Usually done around: {hour}\n"
        f"• Most productive days: {days}\n"
        f"• Completion rate: {pattern.average_completion_rate:.0%}"
    )


# ---------------------------------------------------------------------------
# Reminder permission
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_reminders(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /reminders [reset] — ask for notification permission.

    Registered with block=False: it waits for the button tap, which is a
    separate update.
    """
    gate: PermissionGate = context.bot_data["gate"]
    owner = _owner(update)

    if context.args and context.args[0].lower() == "reset":
        gate.reset(owner)
        await update.message.reply_text("Reminder permission cleared. Use /reminders to choose again.")
        return

    prompted = False

    async def prompt(_owner_id: int) -> None:
        nonlocal prompted
        prompted = True
        keyboard = InlineKeyboardMarkup([[
            InlineKeyboardButton("🔔 Allow", callback_data="notify:allow"),
            InlineKeyboardButton("🔕 Deny", callback_data="notify:deny"),
        ]])
        await update.message.reply_text(
            "Send you reminders 1 hour, 30, 10, 5 and 1 minute before commitments are due?",
            reply_markup=keyboard,
        )

    result = await gate.request_permission(owner, prompt)
    if not prompted:
        if result is Permission.GRANTED:
            await update.message.reply_text("🔔 Reminders are on. (/reminders reset to change)")
        else:
            await update.message.reply_text("🔕 Reminders are off. (/reminders reset to change)")


@authorized_only
async def _handle_permission_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Handle Allow / Deny on the permission prompt."""
    query = update.callback_query
    await query.answer()

    gate: PermissionGate = context.bot_data["gate"]
    result = gate.resolve(_owner(update), query.data == "notify:allow")
    if result is Permission.GRANTED:
        await query.edit_message_text("🔔 Reminders enabled.")
    else:
        await query.edit_message_text("🔕 Reminders disabled.")


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


async def _post_init(app: Application) -> None:
    """Follow commitment changes and queue reminders for what is already pending."""
    commitments: CommitmentDB = app.bot_data["commitments"]
    scheduler: ReminderScheduler = app.bot_data["scheduler"]

    for owner in settings.ALLOWED_USER_IDS:
        commitments.subscribe(owner, scheduler.on_change)
        queued = scheduler.schedule_all_pending(
            commitments.list_commitments(owner, completed=False)
        )
        logger.info("Queued %d reminder(s) for user %d", queued, owner)


def build_app() -> Application:
    """Build and configure the Telegram Application with all handlers."""
    from commitment_tracker.adapters.job_queue_reminders import JobQueueReminders
    from commitment_tracker.adapters.telegram_notifier import TelegramNotifier
    from commitment_tracker.core.commitment_service import CommitmentService
    from commitment_tracker.core.permission_gate import PermissionGate
    from commitment_tracker.core.reminders import ReminderScheduler
    from commitment_tracker.data.db import (
        CommitmentDB,
        MoodDB,
        NotificationPrefDB,
        PatternDB,
        PriorityDB,
        RescheduleDB,
    )

    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).post_init(_post_init).build()

    tz = ZoneInfo(settings.TIMEZONE)

    def today():
        return datetime.now(tz).date()

    commitments = CommitmentDB()
    service = CommitmentService(
        commitments,
        MoodDB(),
        PatternDB(),
        RescheduleDB(),
        PriorityDB(),
        today=today,
        mood_history_limit=settings.MOOD_HISTORY_LIMIT,
        priority_history_limit=settings.PRIORITY_HISTORY_LIMIT,
        busy_window_days=settings.BUSY_WINDOW_DAYS,
    )
    gate = PermissionGate(NotificationPrefDB())
    scheduler = ReminderScheduler(
        JobQueueReminders(app.job_queue),
        gate,
        TelegramNotifier(app.bot),
        tz=tz,
        offsets_ms=[m * 60_000 for m in settings.REMINDER_OFFSETS_MINUTES],
    )

    # Store collaborators in bot_data for handler access
    app.bot_data["service"] = service
    app.bot_data["commitments"] = commitments
    app.bot_data["gate"] = gate
    app.bot_data["scheduler"] = scheduler
    app.bot_data["today"] = today

    # Commands
    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("list", cmd_list))
    app.add_handler(CommandHandler("done", cmd_done))
    app.add_handler(CommandHandler("delete", cmd_delete))
    app.add_handler(CommandHandler("mood", cmd_mood))
    app.add_handler(CommandHandler("suggest", cmd_suggest))
    app.add_handler(CommandHandler("advice", cmd_advice))
    app.add_handler(CommandHandler("adviseall", cmd_adviseall))
    app.add_handler(CommandHandler("move", cmd_move))
    app.add_handler(CommandHandler("skip", cmd_skip))
    app.add_handler(CommandHandler("patterns", cmd_patterns))
    app.add_handler(CommandHandler("reminders", cmd_reminders, block=False))
    app.add_handler(CallbackQueryHandler(
        _handle_suggestion_callback, pattern=r"^suggestion:(accept|reject):\d+$",
    ))
    app.add_handler(CallbackQueryHandler(
        _handle_move_callback, pattern=r"^move:\d+:\d{4}-\d{2}-\d{2}:\d{1,2}:\d{2}$",
    ))
    app.add_handler(CallbackQueryHandler(_handle_permission_callback, pattern=r"^notify:(allow|deny)$"))

    # /add conversation handler
    _text = filters.TEXT & ~filters.COMMAND
    add_conv = ConversationHandler(
        entry_points=[CommandHandler("add", cmd_add)],
        states={
            ADD_TITLE: [MessageHandler(_text, add_title)],
            ADD_DATE: [MessageHandler(_text, add_date)],
            ADD_TIME: [MessageHandler(_text, add_time)],
            ADD_DETAILS: [MessageHandler(_text, add_details)],
        },
        fallbacks=[CommandHandler("cancel", add_cancel)],
    )
    app.add_handler(add_conv)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting Commitment Tracker bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
