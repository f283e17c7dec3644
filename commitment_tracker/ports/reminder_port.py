"""Reminder queue port — one-shot deferred jobs that can be cancelled by key.

Core modules depend on this protocol, never on a specific job runner.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Protocol

ReminderCallback = Callable[[], Awaitable[None]]


class ReminderQueue(Protocol):
    """Abstract work queue used by the reminder scheduler."""

    def schedule(self, key: str, delay_seconds: float, callback: ReminderCallback) -> None:
        """Run ``callback`` once, ``delay_seconds`` from now, filed under ``key``."""
        ...

    def cancel(self, key: str) -> int:
        """Drop every pending job filed under ``key``. Returns how many were dropped."""
        ...
