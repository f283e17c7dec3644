"""Notification port — abstract interface for showing reminders to users.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import Protocol


class NotificationSurface(Protocol):
    """Abstract notification surface used by the reminder scheduler.

    ``tag`` identifies what the notification is about; a surface may
    collapse notifications that share a tag. ``final`` marks the last
    notification a tag will get, so the surface can stop tracking it.
    """

    async def show(
        self, owner: int, title: str, body: str, tag: str, final: bool = False,
    ) -> None: ...

    def forget(self, owner: int, tag: str) -> None: ...
