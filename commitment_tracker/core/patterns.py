"""Behavior pattern aggregator — pure business logic.

Summarizes a user's completion habits: the hour they usually complete
things, their top-3 weekdays, and how much of what they commit to gets
done.

No I/O: this module only transforms data. Storage (upsert) is done by
PatternDB.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import date

from commitment_tracker.data.models import BehaviorPattern, Commitment

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)

_TOP_DAYS = 3


def _hour_of(commitment: Commitment) -> int | None:
    try:
        hour = int(commitment.due_time.split(":")[0])
    except (ValueError, AttributeError):
        logger.warning("Skipping commitment #%s with bad time %r", commitment.id, commitment.due_time)
        return None
    if not 0 <= hour <= 23:
        logger.warning("Skipping commitment #%s with bad hour %d", commitment.id, hour)
        return None
    return hour


def _weekday_of(commitment: Commitment) -> str | None:
    try:
        return WEEKDAY_NAMES[date.fromisoformat(commitment.due_date).weekday()]
    except (ValueError, TypeError):
        logger.warning("Skipping commitment #%s with bad date %r", commitment.id, commitment.due_date)
        return None


def typical_completion_hour(completed: list[Commitment]) -> int | None:
    """Most common due hour among completed commitments.

    Ties go to the hour encountered first in input order, not the lowest.
    """
    hours = Counter(h for h in map(_hour_of, completed) if h is not None)
    if not hours:
        return None
    return hours.most_common(1)[0][0]


def preferred_days(completed: list[Commitment], top: int = _TOP_DAYS) -> list[str]:
    """Top weekdays by completed count, first-encountered order on ties."""
    days = Counter(d for d in map(_weekday_of, completed) if d is not None)
    return [day for day, _ in days.most_common(top)]


def completion_rate(all_commitments: list[Commitment]) -> float:
    """Share of all commitments that are completed, 2 dp; 0 when there are none."""
    if not all_commitments:
        return 0.0
    done = sum(1 for c in all_commitments if c.completed)
    return round(done / len(all_commitments), 2)


def compute_patterns(
    owner: int,
    completed: list[Commitment],
    all_commitments: list[Commitment],
) -> BehaviorPattern:
    """Build a BehaviorPattern snapshot from the owner's history.

    Args:
        owner: The user the pattern belongs to.
        completed: Completed commitments (hour and weekday statistics).
        all_commitments: Every commitment of the owner (completion rate).
    """
    pattern = BehaviorPattern(
        owner=owner,
        typical_completion_hour=typical_completion_hour(completed),
        preferred_days=preferred_days(completed),
        average_completion_rate=completion_rate(all_commitments),
    )
    logger.debug(
        "Computed pattern for %d from %d completed / %d total",
        owner, len(completed), len(all_commitments),
    )
    return pattern
