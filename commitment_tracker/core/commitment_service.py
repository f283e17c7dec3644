"""
Commitment Tracker — UI-Agnostic Commitment Service.

Orchestrates every user action: validate input -> read the stores -> ask
the AI client -> write results back. Each operation takes the owner first
and raises a TrackerError subclass on failure; UI adapters catch those and
render ``user_message``.

AI results are only written after they validate, so a failed or malformed
call leaves the stores untouched.
"""

from __future__ import annotations

import logging
import re
from datetime import date, timedelta
from typing import TYPE_CHECKING, Callable

from commitment_tracker.core import recommender
from commitment_tracker.core.errors import NotFound, ValidationFailure
from commitment_tracker.core.patterns import compute_patterns
from commitment_tracker.data.models import MOODS

if TYPE_CHECKING:
    from commitment_tracker.core.recommender import (
        BulkRescheduleAdvice,
        MoodRecommendation,
        RescheduleAdvice,
    )
    from commitment_tracker.data.db import (
        CommitmentDB,
        MoodDB,
        PatternDB,
        PriorityDB,
        RescheduleDB,
    )
    from commitment_tracker.data.models import (
        BehaviorPattern,
        Commitment,
        MoodLog,
        PriorityAnnotation,
        RescheduleSuggestion,
    )

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 200
_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")
_ENERGY_WORDS = {"low": 1, "medium": 3, "high": 5}
_PATTERN_SAMPLE = 100


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


def validate_title(title: str) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationFailure("empty title", user_message="Commitment cannot be empty.")
    if len(cleaned) > TITLE_MAX_LENGTH:
        raise ValidationFailure(
            "title too long",
            user_message=f"Commitment too long (max {TITLE_MAX_LENGTH} characters).",
        )
    return cleaned


def validate_time(value: str) -> str:
    """Accept H:MM or HH:MM (24h) and normalize to HH:MM."""
    match = _TIME_RE.match((value or "").strip())
    if match is None:
        raise ValidationFailure(
            f"bad time {value!r}", user_message="Please enter a valid time (HH:MM, 24h).",
        )
    return f"{int(match.group(1)):02d}:{match.group(2)}"


def validate_date(value: str) -> str:
    try:
        return date.fromisoformat((value or "").strip()).isoformat()
    except ValueError:
        raise ValidationFailure(
            f"bad date {value!r}", user_message="Please enter a valid date (YYYY-MM-DD).",
        ) from None


def validate_mood(mood: str) -> str:
    cleaned = (mood or "").strip().lower()
    if cleaned not in MOODS:
        raise ValidationFailure(
            f"bad mood {mood!r}", user_message=f"Mood must be one of: {', '.join(MOODS)}.",
        )
    return cleaned


def validate_energy(value: int | str) -> int:
    """Energy is 1-5; low/medium/high map to 1/3/5."""
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _ENERGY_WORDS:
            return _ENERGY_WORDS[word]
        try:
            value = int(word)
        except ValueError:
            value = 0
    if not 1 <= value <= 5:
        raise ValidationFailure(
            f"bad energy {value!r}",
            user_message="Energy must be 1-5 (or low/medium/high).",
        )
    return value


# ---------------------------------------------------------------------------
# CommitmentService
# ---------------------------------------------------------------------------


class CommitmentService:
    """Business logic over the stores and the AI client.

    Never sends messages; returns records or raises TrackerError.
    """

    def __init__(
        self,
        commitments: CommitmentDB,
        moods: MoodDB,
        patterns: PatternDB,
        reschedules: RescheduleDB,
        priorities: PriorityDB,
        today: Callable[[], date] | None = None,
        mood_history_limit: int = 5,
        priority_history_limit: int = 20,
        busy_window_days: int = 7,
    ) -> None:
        self._commitments = commitments
        self._moods = moods
        self._patterns = patterns
        self._reschedules = reschedules
        self._priorities = priorities
        self._today = today or date.today
        self._mood_history_limit = mood_history_limit
        self._priority_history_limit = priority_history_limit
        self._busy_window_days = busy_window_days

    # ------------------------------------------------------------------
    # Commitments CRUD
    # ------------------------------------------------------------------

    def add_commitment(
        self,
        owner: int | None,
        title: str,
        due_date: str,
        due_time: str,
        description: str = "",
        category: str | None = None,
    ) -> Commitment:
        """Validate and store a new commitment. Nothing is written on bad input."""
        title = validate_title(title)
        due_date = validate_date(due_date)
        due_time = validate_time(due_time)
        return self._commitments.add_commitment(
            owner, title, due_date, due_time,
            description=description.strip(), category=category,
        )

    def get_commitment(self, owner: int | None, commitment_id: int) -> Commitment:
        commitment = self._commitments.get_commitment(owner, commitment_id)
        if commitment is None:
            raise NotFound(f"Commitment {commitment_id} not found")
        return commitment

    def list_commitments(
        self, owner: int | None, include_completed: bool = True,
    ) -> list[Commitment]:
        completed = None if include_completed else False
        return self._commitments.list_commitments(owner, completed=completed)

    def toggle_complete(self, owner: int | None, commitment_id: int) -> Commitment:
        """Flip a commitment between done and not done."""
        commitment = self.get_commitment(owner, commitment_id)
        return self._commitments.set_completed(owner, commitment_id, not commitment.completed)

    def delete_commitment(self, owner: int | None, commitment_id: int) -> Commitment:
        """Delete a commitment; returns what was deleted."""
        commitment = self.get_commitment(owner, commitment_id)
        self._commitments.delete_commitment(owner, commitment_id)
        return commitment

    def reschedule(
        self, owner: int | None, commitment_id: int, due_date: str, due_time: str,
    ) -> Commitment:
        """Move a commitment to a slot the user picked. Only due_date/due_time change."""
        due_date = validate_date(due_date)
        due_time = validate_time(due_time)
        self.get_commitment(owner, commitment_id)
        commitment = self._commitments.update_commitment(
            owner, commitment_id, due_date=due_date, due_time=due_time,
        )
        logger.info(
            "Commitment #%d rescheduled to %s %s", commitment_id, due_date, due_time,
        )
        return commitment

    # ------------------------------------------------------------------
    # Mood
    # ------------------------------------------------------------------

    def log_mood(
        self, owner: int | None, mood: str, energy_level: int | str, notes: str = "",
    ) -> MoodLog:
        mood = validate_mood(mood)
        energy = validate_energy(energy_level)
        return self._moods.log_mood(owner, mood, energy, notes=notes.strip())

    def current_mood(self, owner: int | None) -> MoodLog:
        latest = self._moods.latest_mood(owner)
        if latest is None:
            raise NotFound(
                "No mood logged", user_message="Log your mood first, e.g. /mood tired 2",
            )
        return latest

    # ------------------------------------------------------------------
    # AI: mood-based ranking
    # ------------------------------------------------------------------

    async def recommend_for_mood(
        self, owner: int | None, mood: str, energy_level: int | str,
    ) -> MoodRecommendation:
        """Rank today's incomplete commitments for the given mood.

        The mood is logged after a successful recommendation.
        """
        mood = validate_mood(mood)
        energy = validate_energy(energy_level)
        today = self._today().isoformat()
        pending = self._commitments.list_commitments(owner, completed=False, due_date=today)

        recommendation = await recommender.recommend_by_mood(mood, energy, pending)
        if pending:
            self._moods.log_mood(owner, mood, energy)
        return recommendation

    # ------------------------------------------------------------------
    # AI: reschedule advice
    # ------------------------------------------------------------------

    async def reschedule_advice(
        self, owner: int | None, commitment_id: int,
    ) -> tuple[Commitment, RescheduleAdvice]:
        """Ask whether one commitment should move, given the current mood."""
        commitment = self.get_commitment(owner, commitment_id)
        current = self.current_mood(owner)
        history = self._moods.recent_moods(owner, limit=self._mood_history_limit)
        advice = await recommender.advise_reschedule(
            commitment, current.mood, current.energy_level, history,
        )
        return commitment, advice

    async def bulk_reschedule_advice(self, owner: int | None) -> list[BulkRescheduleAdvice]:
        """Reschedule advice for every pending commitment, one entry each."""
        current = self.current_mood(owner)
        pending = self._commitments.list_commitments(owner, completed=False)
        history = self._moods.recent_moods(owner, limit=self._mood_history_limit)
        return await recommender.advise_bulk_reschedule(
            pending, current.mood, current.energy_level, history,
        )

    # ------------------------------------------------------------------
    # AI: skipped commitment -> suggestion
    # ------------------------------------------------------------------

    def busy_slots(self, owner: int | None, exclude_id: int | None = None) -> list[str]:
        """'YYYY-MM-DD at HH:MM' for commitments in the coming window."""
        today = self._today()
        upcoming = self._commitments.list_commitments(
            owner,
            date_from=today.isoformat(),
            date_to=(today + timedelta(days=self._busy_window_days)).isoformat(),
        )
        return [f"{c.due_date} at {c.due_time}" for c in upcoming if c.id != exclude_id]

    async def skip_commitment(
        self, owner: int | None, commitment_id: int,
    ) -> RescheduleSuggestion:
        """Get a new slot for a skipped commitment and store it as a pending suggestion."""
        commitment = self.get_commitment(owner, commitment_id)
        pattern = self._patterns.get_pattern(owner)
        slot = await recommender.suggest_new_slot(
            commitment,
            pattern,
            self.busy_slots(owner, exclude_id=commitment_id),
            today=self._today(),
            window_days=self._busy_window_days,
        )
        return self._reschedules.add_suggestion(
            owner,
            commitment_id,
            original_date=commitment.due_date,
            original_time=commitment.due_time,
            suggested_date=slot.suggested_date,
            suggested_time=slot.suggested_time,
            reason=slot.reasoning,
        )

    def _pending_suggestion(self, owner: int | None, suggestion_id: int) -> RescheduleSuggestion:
        suggestion = self._reschedules.get_suggestion(owner, suggestion_id)
        if suggestion is None:
            raise NotFound(f"Suggestion {suggestion_id} not found")
        if suggestion.accepted is not None:
            raise ValidationFailure(
                f"Suggestion {suggestion_id} already handled",
                user_message="That suggestion was already handled.",
            )
        return suggestion

    def accept_suggestion(self, owner: int | None, suggestion_id: int) -> Commitment:
        """Move the commitment to the suggested slot. Only due_date/due_time change."""
        suggestion = self._pending_suggestion(owner, suggestion_id)
        self.get_commitment(owner, suggestion.commitment_id)
        commitment = self._commitments.update_commitment(
            owner,
            suggestion.commitment_id,
            due_date=suggestion.suggested_date,
            due_time=suggestion.suggested_time,
        )
        self._reschedules.set_accepted(owner, suggestion_id, True)
        logger.info(
            "Suggestion #%d accepted: commitment #%d moved to %s %s",
            suggestion_id, commitment.id, commitment.due_date, commitment.due_time,
        )
        return commitment

    def reject_suggestion(self, owner: int | None, suggestion_id: int) -> RescheduleSuggestion:
        self._pending_suggestion(owner, suggestion_id)
        return self._reschedules.set_accepted(owner, suggestion_id, False)

    # ------------------------------------------------------------------
    # AI: priority analysis
    # ------------------------------------------------------------------

    async def analyze_priority(
        self, owner: int | None, commitment_id: int,
    ) -> PriorityAnnotation:
        """Score a commitment and attach the annotation to it."""
        commitment = self.get_commitment(owner, commitment_id)
        history = [
            c for c in self._commitments.list_commitments(
                owner, newest_first=True, limit=self._priority_history_limit + 1,
            )
            if c.id != commitment_id
        ][: self._priority_history_limit]

        assessment = await recommender.analyze_priority(commitment, history)
        annotation = self._priorities.add_annotation(
            owner,
            commitment_id,
            priority_score=assessment.priority_score,
            urgency_level=assessment.urgency_level,
            reasoning=assessment.reasoning,
        )
        self._commitments.update_commitment(owner, commitment_id, priority=assessment.urgency_level)
        return annotation

    # ------------------------------------------------------------------
    # Behavior patterns
    # ------------------------------------------------------------------

    def refresh_patterns(self, owner: int | None) -> BehaviorPattern | None:
        """Recompute and store the owner's pattern; None until something is completed."""
        completed = self._commitments.list_commitments(
            owner, completed=True, newest_first=True, limit=_PATTERN_SAMPLE,
        )
        if not completed:
            return None
        everything = self._commitments.list_commitments(owner)
        pattern = compute_patterns(owner, completed, everything)
        return self._patterns.upsert_pattern(pattern)
