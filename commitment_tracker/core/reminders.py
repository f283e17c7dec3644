"""
Commitment Tracker — Reminder scheduling.

For every pending commitment, a reminder is queued 60, 30, 10, 5 and 1
minutes before its due time, plus one at the due time itself. Offsets
already in the past are skipped, never fired late.

Reminders are jobs in a ReminderQueue keyed by commitment, so completing
or deleting a commitment cancels whatever is still pending for it. When a
job fires it checks the PermissionGate; without permission it does
nothing.

This module is provider-agnostic: it depends on ReminderQueue and
NotificationSurface protocols, not on Telegram.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Callable, Iterable
from zoneinfo import ZoneInfo

if TYPE_CHECKING:
    from commitment_tracker.core.permission_gate import PermissionGate
    from commitment_tracker.data.db import ChangeEvent
    from commitment_tracker.data.models import Commitment
    from commitment_tracker.ports.notification_port import NotificationSurface
    from commitment_tracker.ports.reminder_port import ReminderCallback, ReminderQueue

logger = logging.getLogger(__name__)

REMINDER_OFFSETS_MS = (3_600_000, 1_800_000, 600_000, 300_000, 60_000, 0)

_MESSAGES: dict[int, tuple[str, str]] = {
    3_600_000: ("Upcoming Commitment - 1 Hour", "{title} is due in 1 hour! 🎯"),
    1_800_000: ("Upcoming Commitment - 30 Minutes", "{title} is due in 30 minutes! ⏰"),
    600_000: ("Upcoming Commitment - 10 Minutes", "{title} is due in 10 minutes! 🔔"),
    300_000: ("Upcoming Commitment - 5 Minutes", "{title} is due in 5 minutes! 🚨"),
    60_000: ("Upcoming Commitment - 1 Minute", "{title} is due in 1 minute! ⚡"),
    0: ("Commitment Time! ⏰", "Time to complete: {title}"),
}


def reminder_message(title: str, offset_ms: int) -> tuple[str, str]:
    """Return (heading, body) for a reminder ``offset_ms`` before the due time."""
    if offset_ms in _MESSAGES:
        heading, body = _MESSAGES[offset_ms]
        return heading, body.format(title=title)
    minutes = offset_ms // 60_000
    return (
        f"Upcoming Commitment - {minutes} Minutes",
        f"{title} is due in {minutes} minutes!",
    )


def reminder_key(commitment_id: int) -> str:
    """Queue key (and notification tag) shared by all reminders of a commitment."""
    return f"commitment-{commitment_id}"


def due_instant(commitment: Commitment, tz: ZoneInfo) -> datetime:
    """The aware datetime a commitment is due at.

    Raises ValueError on a malformed due_date/due_time.
    """
    due_day = date.fromisoformat(commitment.due_date)
    due_time = datetime.strptime(commitment.due_time, "%H:%M").time()
    return datetime.combine(due_day, due_time, tzinfo=tz)


class ReminderScheduler:
    """Queues, fires and cancels commitment reminders."""

    def __init__(
        self,
        queue: ReminderQueue,
        gate: PermissionGate,
        surface: NotificationSurface,
        tz: ZoneInfo | None = None,
        offsets_ms: Iterable[int] = REMINDER_OFFSETS_MS,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._queue = queue
        self._gate = gate
        self._surface = surface
        self._tz = tz or ZoneInfo("UTC")
        self._offsets_ms = tuple(offsets_ms)
        self._now = now or (lambda: datetime.now(self._tz))

    def schedule_reminders(
        self,
        owner: int,
        commitment_id: int,
        title: str,
        fires_at: datetime,
        offsets_ms: Iterable[int] | None = None,
    ) -> int:
        """Queue one reminder per offset that is still in the future.

        Returns the number of reminders queued (0 if fires_at has passed).
        """
        offsets = self._offsets_ms if offsets_ms is None else tuple(offsets_ms)
        until_due_ms = (fires_at - self._now()).total_seconds() * 1000
        key = reminder_key(commitment_id)

        last = min(offsets, default=0)
        arranged = 0
        for offset in offsets:
            delay_ms = until_due_ms - offset
            if delay_ms <= 0:
                continue
            job = self._make_job(owner, key, title, offset, final=offset == last)
            self._queue.schedule(key, delay_ms / 1000, job)
            arranged += 1

        if arranged:
            logger.info(
                "Scheduled %d reminder(s) for commitment #%d '%s'", arranged, commitment_id, title,
            )
        return arranged

    def _make_job(
        self, owner: int, tag: str, title: str, offset_ms: int, final: bool = False,
    ) -> ReminderCallback:
        heading, body = reminder_message(title, offset_ms)

        async def fire() -> None:
            if not self._gate.is_granted(owner):
                logger.debug("Reminder '%s' for %d dropped: permission not granted", tag, owner)
                return
            try:
                await self._surface.show(owner, heading, body, tag, final=final)
            except Exception as exc:
                logger.error("Failed to show reminder '%s' to %d: %s", tag, owner, exc)

        return fire

    def schedule_commitment(self, commitment: Commitment) -> int:
        """(Re)schedule a single commitment, replacing its pending reminders."""
        self.cancel(commitment.id)
        if commitment.completed:
            return 0
        try:
            fires_at = due_instant(commitment, self._tz)
        except ValueError as exc:
            logger.warning("Can't schedule commitment #%d: %s", commitment.id, exc)
            return 0
        return self.schedule_reminders(commitment.owner, commitment.id, commitment.title, fires_at)

    def schedule_all_pending(self, commitments: Iterable[Commitment]) -> int:
        """Schedule every commitment that isn't completed. Returns total queued."""
        return sum(self.schedule_commitment(c) for c in commitments if not c.completed)

    def cancel(self, commitment_id: int) -> int:
        """Cancel every pending reminder for a commitment."""
        cancelled = self._queue.cancel(reminder_key(commitment_id))
        if cancelled:
            logger.info("Cancelled %d reminder(s) for commitment #%d", cancelled, commitment_id)
        return cancelled

    def on_change(self, event: ChangeEvent) -> None:
        """Commitment store subscriber: keep reminders in step with the data."""
        if event.table != "commitments":
            return
        commitment = event.record
        if event.kind == "delete" or commitment.completed:
            self.cancel(commitment.id)
            self._surface.forget(event.owner, reminder_key(commitment.id))
        else:
            self.schedule_commitment(commitment)
