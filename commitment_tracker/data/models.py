"""
Commitment Tracker — Data Models.

Commitments, mood logs and the AI-derived records attached to them.
Every record belongs to exactly one owner (a Telegram user id); there are
no cross-user relationships.
"""

from __future__ import annotations

from dataclasses import dataclass, field

MOODS = ("happy", "neutral", "stressed", "energized", "tired", "overwhelmed")
URGENCY_LEVELS = ("low", "medium", "high", "critical")


@dataclass
class Commitment:
    """A user-defined intention with a due date and time.

    due_date + due_time (in settings.TIMEZONE) is the single instant
    reminders are computed against.
    """

    id: int
    owner: int
    title: str
    due_date: str                     # ISO date YYYY-MM-DD
    due_time: str                     # HH:MM, 24h
    completed: bool = False
    completed_at: str | None = None   # ISO datetime
    description: str = ""
    priority: str | None = None       # urgency level from the last priority analysis
    category: str | None = None
    image_ref: str | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class MoodLog:
    """A timestamped self-report. Append-only; the latest one is current."""

    id: int
    owner: int
    mood: str              # one of MOODS
    energy_level: int      # 1-5
    notes: str = ""
    logged_at: str = ""


@dataclass
class BehaviorPattern:
    """Derived completion habits, at most one per owner."""

    owner: int
    typical_completion_hour: int | None        # 0-23, None if nothing completed
    preferred_days: list[str] = field(default_factory=list)   # top-3 weekday names
    average_completion_rate: float = 0.0       # 0.0-1.0, 2 dp
    last_updated: str = ""


@dataclass
class RescheduleSuggestion:
    """An AI-proposed alternate slot for a commitment.

    accepted is None while the user hasn't decided.
    """

    id: int
    owner: int
    commitment_id: int
    original_date: str
    original_time: str
    suggested_date: str
    suggested_time: str
    reason: str
    accepted: bool | None = None
    created_at: str = ""


@dataclass
class PriorityAnnotation:
    """Append-only AI priority analysis attached to a commitment."""

    id: int
    owner: int
    commitment_id: int
    priority_score: float      # 0.0-1.0
    urgency_level: str         # one of URGENCY_LEVELS
    reasoning: str
    created_at: str = ""
