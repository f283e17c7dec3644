"""Telegram notification adapter — implements NotificationSurface.

Wraps a telegram.Bot instance. Telegram has no notification tags, so the
adapter remembers the last message sent per (owner, tag) and deletes it
when a newer one with the same tag arrives: only the latest reminder for
a commitment stays in the chat.
"""

from __future__ import annotations

import logging

from telegram import Bot
from telegram.error import TelegramError

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Telegram implementation of NotificationSurface."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot
        self._last_by_tag: dict[tuple[int, str], int] = {}

    async def show(
        self, owner: int, title: str, body: str, tag: str, final: bool = False,
    ) -> None:
        previous = self._last_by_tag.pop((owner, tag), None)
        if previous is not None:
            try:
                await self._bot.delete_message(chat_id=owner, message_id=previous)
            except TelegramError as exc:
                logger.debug("Couldn't collapse previous '%s' reminder: %s", tag, exc)

        message = await self._bot.send_message(chat_id=owner, text=f"{title}\n{body}")
        if not final:
            self._last_by_tag[(owner, tag)] = message.message_id

    def forget(self, owner: int, tag: str) -> None:
        """Stop tracking a tag; its last message stays in the chat."""
        self._last_by_tag.pop((owner, tag), None)
