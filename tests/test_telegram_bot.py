"""Tests for commitment_tracker.bot.telegram_bot — Telegram bot handlers.

Tests the conversation flow logic, command handlers, and authorization.
The service and gate are mocked; no network, no database.
"""

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram.ext import ConversationHandler

from commitment_tracker.bot.telegram_bot import (
    ADD_DATE,
    ADD_DETAILS,
    ADD_TIME,
    ADD_TITLE,
    _format_commitment,
    _parse_details,
    _parse_id,
)
from commitment_tracker.core.errors import MalformedResponse, NotFound, ValidationFailure
from commitment_tracker.core.permission_gate import Permission
from commitment_tracker.core.recommender import RescheduleAdvice
from commitment_tracker.data.models import Commitment, RescheduleSuggestion


def _make_update(text="", user_id=12345):
    """Create a mock Update with a text message from an authorized user."""
    update = MagicMock()
    update.message.text = text
    update.message.reply_text = AsyncMock()
    update.effective_message = update.message
    update.effective_user.id = user_id
    return update


def _make_callback_update(data, user_id=12345):
    update = MagicMock()
    update.message = None
    update.effective_user.id = user_id
    update.callback_query.data = data
    update.callback_query.answer = AsyncMock()
    update.callback_query.edit_message_text = AsyncMock()
    return update


def _make_context(args=None, service=None, gate=None):
    """Create a mock context with user_data dict and bot_data collaborators."""
    context = MagicMock()
    context.user_data = {}
    context.args = args or []
    context.bot_data = {
        "service": service or MagicMock(),
        "gate": gate or MagicMock(),
        "today": lambda: date(2026, 3, 2),
    }
    context.application.create_task = MagicMock(side_effect=lambda coro, **kw: coro.close())
    return context


def _commitment(**kwargs):
    defaults = dict(id=4, owner=12345, title="Gym", due_date="2026-03-02", due_time="18:00")
    defaults.update(kwargs)
    return Commitment(**defaults)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_parse_id(self):
        assert _parse_id(["7"]) == 7
        assert _parse_id(["#7"]) == 7
        assert _parse_id(["seven"]) is None
        assert _parse_id([]) is None
        assert _parse_id(None) is None

    def test_format_commitment(self):
        line = _format_commitment(_commitment(priority="high"))
        assert line == "⬜ #4 Gym — 2026-03-02 18:00 [high]"
        assert _format_commitment(_commitment(completed=True)).startswith("✅")


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class TestAuthorization:
    @pytest.mark.asyncio
    async def test_stranger_is_ignored(self):
        from commitment_tracker.bot.telegram_bot import cmd_list

        update = _make_update(user_id=999)
        context = _make_context()
        await cmd_list(update, context)
        update.message.reply_text.assert_not_awaited()
        context.bot_data["service"].list_commitments.assert_not_called()

    @pytest.mark.asyncio
    async def test_stranger_button_tap_is_ignored(self):
        from commitment_tracker.bot.telegram_bot import _handle_permission_callback

        update = _make_callback_update("notify:allow", user_id=999)
        context = _make_context()
        await _handle_permission_callback(update, context)
        context.bot_data["gate"].resolve.assert_not_called()


# ---------------------------------------------------------------------------
# /add conversation
# ---------------------------------------------------------------------------


class TestAddConversation:
    @pytest.mark.asyncio
    async def test_entry_asks_for_title(self):
        from commitment_tracker.bot.telegram_bot import cmd_add

        assert await cmd_add(_make_update("/add"), _make_context()) == ADD_TITLE

    @pytest.mark.asyncio
    async def test_title_stored(self):
        from commitment_tracker.bot.telegram_bot import add_title

        context = _make_context()
        assert await add_title(_make_update("  Gym  "), context) == ADD_DATE
        assert context.user_data["draft"] == {"title": "Gym"}

    @pytest.mark.asyncio
    async def test_empty_title_retries(self):
        from commitment_tracker.bot.telegram_bot import add_title

        update = _make_update("   ")
        assert await add_title(update, _make_context()) == ADD_TITLE
        update.message.reply_text.assert_awaited_once_with("Commitment cannot be empty.")

    @pytest.mark.asyncio
    async def test_tomorrow_shortcut(self):
        from commitment_tracker.bot.telegram_bot import add_date

        context = _make_context()
        context.user_data["draft"] = {"title": "Gym"}
        assert await add_date(_make_update("Tomorrow"), context) == ADD_TIME
        assert context.user_data["draft"]["due_date"] == "2026-03-03"

    @pytest.mark.asyncio
    async def test_bad_date_retries(self):
        from commitment_tracker.bot.telegram_bot import add_date

        context = _make_context()
        context.user_data["draft"] = {"title": "Gym"}
        assert await add_date(_make_update("next week"), context) == ADD_DATE

    @pytest.mark.asyncio
    async def test_time_moves_on_to_details(self):
        from commitment_tracker.bot.telegram_bot import add_time

        service = MagicMock()
        context = _make_context(service=service)
        context.user_data["draft"] = {"title": "Gym", "due_date": "2026-03-02"}

        assert await add_time(_make_update("7:30"), context) == ADD_DETAILS
        assert context.user_data["draft"]["due_time"] == "07:30"
        service.add_commitment.assert_not_called()

    @pytest.mark.asyncio
    async def test_bad_time_retries(self):
        from commitment_tracker.bot.telegram_bot import add_time

        context = _make_context()
        context.user_data["draft"] = {"title": "Gym", "due_date": "2026-03-02"}

        update = _make_update("6pm")
        assert await add_time(update, context) == ADD_TIME
        update.message.reply_text.assert_awaited_once_with("Please enter a valid time (HH:MM, 24h).")

    @pytest.mark.asyncio
    async def test_details_create_and_start_priority_analysis(self):
        from commitment_tracker.bot.telegram_bot import add_details

        service = MagicMock()
        service.add_commitment.return_value = _commitment()
        context = _make_context(service=service)
        context.user_data["draft"] = {"title": "Gym", "due_date": "2026-03-02", "due_time": "18:00"}

        result = await add_details(_make_update("#health leg day"), context)

        assert result == ConversationHandler.END
        service.add_commitment.assert_called_once_with(
            12345, "Gym", "2026-03-02", "18:00", description="leg day", category="health",
        )
        context.application.create_task.assert_called_once()
        assert "draft" not in context.user_data

    @pytest.mark.asyncio
    async def test_skipping_details(self):
        from commitment_tracker.bot.telegram_bot import add_details

        service = MagicMock()
        service.add_commitment.return_value = _commitment()
        context = _make_context(service=service)
        context.user_data["draft"] = {"title": "Gym", "due_date": "2026-03-02", "due_time": "18:00"}

        await add_details(_make_update("Skip"), context)

        _, kwargs = service.add_commitment.call_args
        assert kwargs == {"description": "", "category": None}

    def test_parse_details(self):
        assert _parse_details("#health leg day") == ("leg day", "health")
        assert _parse_details("#errands") == ("", "errands")
        assert _parse_details("bring towel") == ("bring towel", None)
        assert _parse_details(" skip ") == ("", None)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestCommands:
    @pytest.mark.asyncio
    async def test_done_usage(self):
        from commitment_tracker.bot.telegram_bot import cmd_done

        update = _make_update("/done")
        await cmd_done(update, _make_context())
        assert "Usage" in update.message.reply_text.call_args.args[0]

    @pytest.mark.asyncio
    async def test_done_not_found_shows_user_message(self):
        from commitment_tracker.bot.telegram_bot import cmd_done

        service = MagicMock()
        service.toggle_complete.side_effect = NotFound("nope")
        update = _make_update("/done 9")
        await cmd_done(update, _make_context(args=["9"], service=service))
        update.message.reply_text.assert_awaited_once_with(NotFound.user_message)

    @pytest.mark.asyncio
    async def test_suggest_uses_current_mood(self):
        from commitment_tracker.bot.telegram_bot import cmd_suggest
        from commitment_tracker.core.recommender import MoodRecommendation

        service = MagicMock()
        service.current_mood.return_value = MagicMock(mood="tired", energy_level=2)
        service.recommend_for_mood = AsyncMock(return_value=MoodRecommendation(
            recommended_order=["Call mom", "Gym"], reasoning="Ease in.",
        ))
        update = _make_update("/suggest")
        await cmd_suggest(update, _make_context(service=service))

        service.recommend_for_mood.assert_awaited_once_with(12345, "tired", 2)
        text = update.message.reply_text.call_args.args[0]
        assert "1. Call mom" in text
        assert "Ease in." in text

    @pytest.mark.asyncio
    async def test_suggest_malformed(self):
        from commitment_tracker.bot.telegram_bot import cmd_suggest

        service = MagicMock()
        service.recommend_for_mood = AsyncMock(side_effect=MalformedResponse("junk"))
        update = _make_update("/suggest stressed 2")
        await cmd_suggest(update, _make_context(args=["stressed", "2"], service=service))
        update.message.reply_text.assert_awaited_once_with(MalformedResponse.user_message)

    @pytest.mark.asyncio
    async def test_skip_offers_buttons(self):
        from commitment_tracker.bot.telegram_bot import cmd_skip

        service = MagicMock()
        service.skip_commitment = AsyncMock(return_value=RescheduleSuggestion(
            id=7, owner=12345, commitment_id=4,
            original_date="2026-03-02", original_time="18:00",
            suggested_date="2026-03-03", suggested_time="07:00", reason="Morning person.",
        ))
        update = _make_update("/skip 4")
        await cmd_skip(update, _make_context(args=["4"], service=service))

        markup = update.message.reply_text.call_args.kwargs["reply_markup"]
        buttons = markup.inline_keyboard[0]
        assert [b.callback_data for b in buttons] == ["suggestion:accept:7", "suggestion:reject:7"]

    @pytest.mark.asyncio
    async def test_suggest_single_argument_shows_usage(self):
        from commitment_tracker.bot.telegram_bot import cmd_suggest

        service = MagicMock()
        service.recommend_for_mood = AsyncMock()
        update = _make_update("/suggest stressed")
        await cmd_suggest(update, _make_context(args=["stressed"], service=service))

        assert "Usage" in update.message.reply_text.call_args.args[0]
        service.current_mood.assert_not_called()
        service.recommend_for_mood.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_advice_with_time_offers_move_button(self):
        from commitment_tracker.bot.telegram_bot import cmd_advice

        service = MagicMock()
        service.reschedule_advice = AsyncMock(return_value=(
            _commitment(),
            RescheduleAdvice(should_reschedule=True, suggestion="Later.", recommended_time="20:00"),
        ))
        update = _make_update("/advice 4")
        await cmd_advice(update, _make_context(args=["4"], service=service))

        markup = update.message.reply_text.call_args.kwargs["reply_markup"]
        assert [b.callback_data for b in markup.inline_keyboard[0]] == ["move:4:2026-03-02:20:00"]

    @pytest.mark.asyncio
    async def test_advice_without_time_has_no_button(self):
        from commitment_tracker.bot.telegram_bot import cmd_advice

        service = MagicMock()
        service.reschedule_advice = AsyncMock(return_value=(
            _commitment(),
            RescheduleAdvice(should_reschedule=False, suggestion="Keep it."),
        ))
        update = _make_update("/advice 4")
        await cmd_advice(update, _make_context(args=["4"], service=service))

        assert "reply_markup" not in update.message.reply_text.call_args.kwargs

    @pytest.mark.asyncio
    async def test_move(self):
        from commitment_tracker.bot.telegram_bot import cmd_move

        service = MagicMock()
        service.reschedule.return_value = _commitment(due_date="2026-03-05", due_time="07:00")
        update = _make_update("/move 4 2026-03-05 07:00")
        await cmd_move(update, _make_context(args=["4", "2026-03-05", "07:00"], service=service))

        service.reschedule.assert_called_once_with(12345, 4, "2026-03-05", "07:00")
        assert "2026-03-05 at 07:00" in update.message.reply_text.call_args.args[0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("args", [[], ["4"], ["4", "2026-03-05"], ["four", "2026-03-05", "07:00"]])
    async def test_move_usage(self, args):
        from commitment_tracker.bot.telegram_bot import cmd_move

        service = MagicMock()
        update = _make_update("/move")
        await cmd_move(update, _make_context(args=args, service=service))

        assert "Usage" in update.message.reply_text.call_args.args[0]
        service.reschedule.assert_not_called()

    @pytest.mark.asyncio
    async def test_move_invalid_time_shows_user_message(self):
        from commitment_tracker.bot.telegram_bot import cmd_move

        service = MagicMock()
        service.reschedule.side_effect = ValidationFailure(
            "bad", user_message="Please enter a valid time (HH:MM, 24h).",
        )
        update = _make_update("/move 4 2026-03-05 7pm")
        await cmd_move(update, _make_context(args=["4", "2026-03-05", "7pm"], service=service))
        update.message.reply_text.assert_awaited_once_with("Please enter a valid time (HH:MM, 24h).")

    @pytest.mark.asyncio
    async def test_patterns_not_enough_data(self):
        from commitment_tracker.bot.telegram_bot import cmd_patterns

        service = MagicMock()
        service.refresh_patterns.return_value = None
        update = _make_update("/patterns")
        await cmd_patterns(update, _make_context(service=service))
        assert "Not enough data" in update.message.reply_text.call_args.args[0]


# ---------------------------------------------------------------------------
# Callbacks
# ---------------------------------------------------------------------------


class TestCallbacks:
    @pytest.mark.asyncio
    async def test_accept_suggestion(self):
        from commitment_tracker.bot.telegram_bot import _handle_suggestion_callback

        service = MagicMock()
        service.accept_suggestion.return_value = _commitment(due_date="2026-03-03", due_time="07:00")
        update = _make_callback_update("suggestion:accept:7")
        await _handle_suggestion_callback(update, _make_context(service=service))

        service.accept_suggestion.assert_called_once_with(12345, 7)
        text = update.callback_query.edit_message_text.call_args.args[0]
        assert "2026-03-03 at 07:00" in text

    @pytest.mark.asyncio
    async def test_reject_suggestion(self):
        from commitment_tracker.bot.telegram_bot import _handle_suggestion_callback

        service = MagicMock()
        update = _make_callback_update("suggestion:reject:7")
        await _handle_suggestion_callback(update, _make_context(service=service))
        service.reject_suggestion.assert_called_once_with(12345, 7)
        service.accept_suggestion.assert_not_called()

    @pytest.mark.asyncio
    async def test_move_button_applies_recommended_time(self):
        from commitment_tracker.bot.telegram_bot import _handle_move_callback

        service = MagicMock()
        service.reschedule.return_value = _commitment(due_time="20:00")
        update = _make_callback_update("move:4:2026-03-02:20:00")
        await _handle_move_callback(update, _make_context(service=service))

        service.reschedule.assert_called_once_with(12345, 4, "2026-03-02", "20:00")
        assert "2026-03-02 at 20:00" in update.callback_query.edit_message_text.call_args.args[0]

    @pytest.mark.asyncio
    async def test_move_button_on_deleted_commitment(self):
        from commitment_tracker.bot.telegram_bot import _handle_move_callback

        service = MagicMock()
        service.reschedule.side_effect = NotFound("gone")
        update = _make_callback_update("move:4:2026-03-02:20:00")
        await _handle_move_callback(update, _make_context(service=service))
        update.callback_query.edit_message_text.assert_awaited_once_with(NotFound.user_message)

    @pytest.mark.asyncio
    async def test_permission_allow(self):
        from commitment_tracker.bot.telegram_bot import _handle_permission_callback

        gate = MagicMock()
        gate.resolve.return_value = Permission.GRANTED
        update = _make_callback_update("notify:allow")
        await _handle_permission_callback(update, _make_context(gate=gate))
        gate.resolve.assert_called_once_with(12345, True)
        update.callback_query.edit_message_text.assert_awaited_once_with("🔔 Reminders enabled.")


class TestRemindersCommand:
    @pytest.mark.asyncio
    async def test_already_granted_replies_without_prompt(self):
        from commitment_tracker.bot.telegram_bot import cmd_reminders

        gate = MagicMock()
        gate.request_permission = AsyncMock(return_value=Permission.GRANTED)
        update = _make_update("/reminders")
        await cmd_reminders(update, _make_context(gate=gate))
        assert "Reminders are on" in update.message.reply_text.call_args.args[0]

    @pytest.mark.asyncio
    async def test_prompt_sends_buttons(self):
        from commitment_tracker.bot.telegram_bot import cmd_reminders

        async def fake_request(owner, prompt):
            await prompt(owner)
            return Permission.DENIED

        gate = MagicMock()
        gate.request_permission = fake_request
        update = _make_update("/reminders")
        await cmd_reminders(update, _make_context(gate=gate))

        update.message.reply_text.assert_awaited_once()
        markup = update.message.reply_text.call_args.kwargs["reply_markup"]
        assert [b.callback_data for b in markup.inline_keyboard[0]] == ["notify:allow", "notify:deny"]

    @pytest.mark.asyncio
    async def test_reset(self):
        from commitment_tracker.bot.telegram_bot import cmd_reminders

        gate = MagicMock()
        update = _make_update("/reminders reset")
        await cmd_reminders(update, _make_context(args=["reset"], gate=gate))
        gate.reset.assert_called_once_with(12345)
