"""Notification permission gate.

Tri-state capability per owner: default until the user answers, then
granted or denied. The reminder scheduler receives the gate explicitly and
asks it at fire time, so a reminder only becomes a visible message if the
owner has granted permission by then.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable

if TYPE_CHECKING:
    from commitment_tracker.data.db import NotificationPrefDB

logger = logging.getLogger(__name__)

PermissionPrompt = Callable[[int], Awaitable[None]]


class Permission(Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


class PermissionGate:
    """Per-owner notification permission, persisted in NotificationPrefDB."""

    def __init__(self, prefs: NotificationPrefDB) -> None:
        self._prefs = prefs
        self._pending: dict[int, asyncio.Future[Permission]] = {}

    def permission(self, owner: int) -> Permission:
        value = self._prefs.get_permission(owner)
        return Permission(value) if value else Permission.DEFAULT

    def is_granted(self, owner: int) -> bool:
        return self.permission(owner) is Permission.GRANTED

    async def request_permission(self, owner: int, prompt: PermissionPrompt) -> Permission:
        """Ask the owner for permission and wait for their answer.

        If the owner already answered, returns that answer without
        prompting. Otherwise ``prompt(owner)`` is awaited (it should show
        the question) and the call suspends until ``resolve()`` is called
        for this owner. There is no timeout.
        """
        current = self.permission(owner)
        if current is not Permission.DEFAULT:
            return current

        future = self._pending.get(owner)
        if future is None or future.done():
            future = asyncio.get_running_loop().create_future()
            self._pending[owner] = future
            try:
                await prompt(owner)
            except Exception:
                self._pending.pop(owner, None)
                raise
            logger.info("Notification permission requested from %d", owner)

        return await future

    def resolve(self, owner: int, granted: bool) -> Permission:
        """Record the owner's answer and wake up any pending request."""
        result = Permission.GRANTED if granted else Permission.DENIED
        self._prefs.set_permission(owner, result.value)

        future = self._pending.pop(owner, None)
        if future is not None and not future.done():
            future.set_result(result)

        logger.info("Notification permission for %d resolved: %s", owner, result.value)
        return result

    def reset(self, owner: int) -> None:
        """Forget the owner's answer; the next request prompts again."""
        self._prefs.set_permission(owner, Permission.DEFAULT.value)
        logger.info("Notification permission for %d reset", owner)
