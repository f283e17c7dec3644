"""
Commitment Tracker — AI Recommendation Client.

Builds prompts from commitments and the user's mood/energy, calls the LLM
through a forced tool call, and validates the answer into typed models.

Every call is schema-constrained. If a provider still answers in plain
text, the text is unwrapped from any markdown fence and parsed as JSON;
anything that doesn't validate raises MalformedResponse. No retries.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import TYPE_CHECKING, Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from commitment_tracker.core.errors import MalformedResponse
from commitment_tracker.core.llm import ToolSpec, complete, parse_json_payload

if TYPE_CHECKING:
    from commitment_tracker.data.models import BehaviorPattern, Commitment, MoodLog

logger = logging.getLogger(__name__)

_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


def _empty_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


class MoodRecommendation(BaseModel):
    """Today's tasks reordered for the user's current mood.

    JSON example:
    {"recommended_order": ["Call friend", "Write report"],
     "reasoning": "Start with a quick win while stressed."}
    """
    recommended_order: list[str]
    reasoning: str

    @field_validator("reasoning")
    @classmethod
    def reasoning_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("reasoning is empty")
        return v.strip()


class RescheduleAdvice(BaseModel):
    """Should one commitment move, and where to.

    JSON example:
    {"shouldReschedule": true, "suggestion": "Move it to the morning.",
     "recommendedTime": "09:30"}
    """
    model_config = ConfigDict(populate_by_name=True)

    should_reschedule: bool = Field(alias="shouldReschedule")
    suggestion: str
    recommended_time: str | None = Field(default=None, alias="recommendedTime", pattern=_TIME_PATTERN)

    @field_validator("recommended_time", mode="before")
    @classmethod
    def blank_time_is_none(cls, v: Any) -> Any:
        return _empty_to_none(v)


class BulkRescheduleAdvice(BaseModel):
    """Per-commitment entry of a bulk reschedule analysis."""
    model_config = ConfigDict(populate_by_name=True)

    commitment_id: int = Field(alias="commitmentId")
    commitment_title: str = Field(alias="commitmentTitle")
    current_schedule: str = Field(default="", alias="currentSchedule")
    should_reschedule: bool = Field(alias="shouldReschedule")
    suggested_date: str | None = Field(default=None, alias="suggestedDate", pattern=_DATE_PATTERN)
    suggested_time: str | None = Field(default=None, alias="suggestedTime", pattern=_TIME_PATTERN)
    reason: str

    @field_validator("suggested_date", "suggested_time", mode="before")
    @classmethod
    def blank_slot_is_none(cls, v: Any) -> Any:
        return _empty_to_none(v)


class SlotSuggestion(BaseModel):
    """A new slot for a skipped commitment."""
    suggested_date: str = Field(pattern=_DATE_PATTERN)
    suggested_time: str = Field(pattern=_TIME_PATTERN)
    reasoning: str


class PriorityAssessment(BaseModel):
    """AI-assigned priority for a new commitment."""
    priority_score: float = Field(ge=0.0, le=1.0)
    urgency_level: Literal["low", "medium", "high", "critical"]
    reasoning: str


_M = TypeVar("_M", bound=BaseModel)


def _coerce_payload(data: Any) -> Any:
    """Text answers are unwrapped from markdown fences and parsed as JSON."""
    if isinstance(data, str):
        return parse_json_payload(data)
    return data


def _validate(model: type[_M], data: Any) -> _M:
    if not isinstance(data, dict):
        raise MalformedResponse(
            f"Expected a JSON object for {model.__name__}, got {type(data).__name__}"
        )
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.error("AI response failed %s validation: %s", model.__name__, exc)
        raise MalformedResponse(f"AI response missing or invalid fields: {exc}") from exc


# ---------------------------------------------------------------------------
# Tool schemas
# ---------------------------------------------------------------------------

RECOMMEND_TASKS_TOOL = ToolSpec(
    name="recommend_tasks",
    description="Recommend tasks based on mood",
    parameters={
        "type": "object",
        "properties": {
            "recommended_order": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Task titles in recommended order",
            },
            "reasoning": {"type": "string", "description": "Short rationale, max 200 characters"},
        },
        "required": ["recommended_order", "reasoning"],
    },
)

ADVISE_RESCHEDULE_TOOL = ToolSpec(
    name="advise_reschedule",
    description="Decide whether a commitment should be rescheduled",
    parameters={
        "type": "object",
        "properties": {
            "shouldReschedule": {"type": "boolean"},
            "suggestion": {"type": "string", "description": "Concise, actionable suggestion"},
            "recommendedTime": {
                "type": "string",
                "description": "Best time as HH:MM (24h), or empty if it should stay",
            },
        },
        "required": ["shouldReschedule", "suggestion"],
    },
)

BULK_RESCHEDULE_TOOL = ToolSpec(
    name="advise_bulk_reschedule",
    description="Scheduling recommendation for each commitment",
    parameters={
        "type": "object",
        "properties": {
            "recommendations": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "commitmentId": {"type": "integer"},
                        "commitmentTitle": {"type": "string"},
                        "currentSchedule": {"type": "string", "description": "YYYY-MM-DD HH:MM"},
                        "shouldReschedule": {"type": "boolean"},
                        "suggestedDate": {"type": "string", "description": "YYYY-MM-DD, or empty"},
                        "suggestedTime": {"type": "string", "description": "HH:MM, or empty"},
                        "reason": {
                            "type": "string",
                            "description": "Specific explanation matching their mood and energy",
                        },
                    },
                    "required": [
                        "commitmentId", "commitmentTitle", "currentSchedule",
                        "shouldReschedule", "reason",
                    ],
                },
            },
        },
        "required": ["recommendations"],
    },
)

SUGGEST_SLOT_TOOL = ToolSpec(
    name="suggest_reschedule",
    description="Suggest a new time for the commitment",
    parameters={
        "type": "object",
        "properties": {
            "suggested_date": {"type": "string", "description": "YYYY-MM-DD"},
            "suggested_time": {"type": "string", "description": "HH:MM (24h)"},
            "reasoning": {"type": "string", "description": "Max 100 words"},
        },
        "required": ["suggested_date", "suggested_time", "reasoning"],
    },
)

SET_PRIORITY_TOOL = ToolSpec(
    name="set_priority",
    description="Set priority information for a commitment",
    parameters={
        "type": "object",
        "properties": {
            "priority_score": {"type": "number", "description": "0.0-1.0, 1.0 is highest"},
            "urgency_level": {"type": "string", "enum": ["low", "medium", "high", "critical"]},
            "reasoning": {"type": "string", "description": "Max 50 words"},
        },
        "required": ["priority_score", "urgency_level", "reasoning"],
    },
)


# ---------------------------------------------------------------------------
# Prompt helpers
# ---------------------------------------------------------------------------

_MOOD_RULES = """\
- High energy: Schedule demanding tasks (work, exercise, learning)
- Low energy: Schedule light tasks (admin, planning, rest)
- Stressed: Avoid social events, prioritize stress-relief activities
- Happy: Good time for creative or social tasks
- Consider task priority and deadlines"""


def _mood_history(recent_moods: list[MoodLog]) -> str:
    return json.dumps([{"mood": m.mood, "energy": m.energy_level} for m in recent_moods])


# ---------------------------------------------------------------------------
# Mood-based task ranking
# ---------------------------------------------------------------------------

_RECOMMEND_SYSTEM = "You are a helpful AI that recommends tasks based on mood and energy."

_RECOMMEND_PROMPT = """\
Based on the user's current mood and energy, recommend which commitments to tackle now.

User State:
- Mood: {mood}
- Energy Level: {energy}/5

Available Commitments:
{commitments}

Return every commitment title exactly as written, in the order to tackle them.
Consider:
- High energy/happy: Complex or challenging tasks
- Low energy/tired: Simple, routine tasks
- Stressed: Quick wins or calming activities
- Match task complexity to energy levels"""


async def recommend_by_mood(
    mood: str, energy_level: int, commitments: list[Commitment],
) -> MoodRecommendation:
    """Order today's incomplete commitments for the user's mood and energy.

    The answer must be a permutation of the given titles with a non-empty
    reasoning; anything else raises MalformedResponse.
    """
    if not commitments:
        return MoodRecommendation(
            recommended_order=[], reasoning="No pending commitments for today!",
        )

    listing = "\n".join(
        f'{i}. "{c.title}" (due at {c.due_time})' for i, c in enumerate(commitments, start=1)
    )
    data = await complete(
        system=_RECOMMEND_SYSTEM,
        user_message=_RECOMMEND_PROMPT.format(mood=mood, energy=energy_level, commitments=listing),
        max_tokens=512,
        tool=RECOMMEND_TASKS_TOOL,
    )
    recommendation = _validate(MoodRecommendation, _coerce_payload(data))

    if sorted(recommendation.recommended_order) != sorted(c.title for c in commitments):
        raise MalformedResponse(
            f"Recommended order {recommendation.recommended_order} "
            "doesn't match the commitments that were sent"
        )

    logger.info("Mood recommendation (%s/%d): %s", mood, energy_level, recommendation.recommended_order)
    return recommendation


# ---------------------------------------------------------------------------
# Single-commitment reschedule advice
# ---------------------------------------------------------------------------

_ADVICE_SYSTEM = (
    "You are a productivity assistant that helps reschedule commitments based on "
    "user mood and energy levels. Provide concise, actionable suggestions."
)

_ADVICE_PROMPT = """\
Current mood: {mood}, Energy level: {energy}.
Commitment: "{title}" scheduled for {due_date} at {due_time}.
Recent mood patterns: {history}.

Should this task be rescheduled? If yes, suggest the best time based on the user's energy patterns."""


async def advise_reschedule(
    commitment: Commitment,
    mood: str,
    energy_level: int,
    recent_moods: list[MoodLog],
) -> RescheduleAdvice:
    data = await complete(
        system=_ADVICE_SYSTEM,
        user_message=_ADVICE_PROMPT.format(
            mood=mood,
            energy=energy_level,
            title=commitment.title,
            due_date=commitment.due_date,
            due_time=commitment.due_time,
            history=_mood_history(recent_moods),
        ),
        max_tokens=512,
        tool=ADVISE_RESCHEDULE_TOOL,
    )
    advice = _validate(RescheduleAdvice, _coerce_payload(data))
    logger.info(
        "Reschedule advice for #%d: reschedule=%s time=%s",
        commitment.id, advice.should_reschedule, advice.recommended_time,
    )
    return advice


# ---------------------------------------------------------------------------
# Bulk reschedule advice
# ---------------------------------------------------------------------------

_BULK_SYSTEM = (
    "You are a productivity assistant. Analyze commitments and provide scheduling "
    "recommendations."
)

_BULK_PROMPT = """\
Current mood: {mood}, Energy level: {energy}.
Recent mood patterns: {history}.

Commitments to analyze: {commitments}

Analyze each commitment and determine:
1. If it should be rescheduled based on current mood/energy
2. Best time considering task type, priority, and user's energy patterns
3. Provide actionable reasoning

Rules:
{rules}

Return exactly one recommendation per commitment, using its id as commitmentId."""


def parse_bulk_advice(payload: Any, commitments: list[Commitment]) -> list[BulkRescheduleAdvice]:
    """Validate a bulk answer against the commitments that were sent.

    Accepts the tool's ``{"recommendations": [...]}``, a bare array, or
    either of those as (optionally fenced) JSON text. Returns entries in
    the order of ``commitments``.
    """
    data = _coerce_payload(payload)
    if isinstance(data, dict) and "recommendations" in data:
        data = data["recommendations"]
    if not isinstance(data, list):
        raise MalformedResponse(f"Expected a list of recommendations, got {type(data).__name__}")

    entries = [_validate(BulkRescheduleAdvice, item) for item in data]
    by_id = {entry.commitment_id: entry for entry in entries}
    expected = [c.id for c in commitments]
    if len(entries) != len(expected) or set(by_id) != set(expected):
        raise MalformedResponse(
            f"Expected one recommendation per commitment {expected}, "
            f"got {[e.commitment_id for e in entries]}"
        )
    return [by_id[cid] for cid in expected]


async def advise_bulk_reschedule(
    commitments: list[Commitment],
    mood: str,
    energy_level: int,
    recent_moods: list[MoodLog],
) -> list[BulkRescheduleAdvice]:
    if not commitments:
        return []

    listing = json.dumps([
        {
            "id": c.id,
            "title": c.title,
            "date": c.due_date,
            "time": c.due_time,
            "priority": c.priority,
            "category": c.category,
        }
        for c in commitments
    ])
    data = await complete(
        system=_BULK_SYSTEM,
        user_message=_BULK_PROMPT.format(
            mood=mood,
            energy=energy_level,
            history=_mood_history(recent_moods),
            commitments=listing,
            rules=_MOOD_RULES,
        ),
        max_tokens=2048,
        tool=BULK_RESCHEDULE_TOOL,
    )
    advice = parse_bulk_advice(data, commitments)
    logger.info(
        "Bulk advice: %d of %d commitments to reschedule",
        sum(1 for a in advice if a.should_reschedule), len(advice),
    )
    return advice


# ---------------------------------------------------------------------------
# Skipped commitment: new slot
# ---------------------------------------------------------------------------

_SLOT_SYSTEM = "You are an AI scheduling assistant."

_SLOT_PROMPT = """\
Suggest a new time for this skipped commitment.

Today is {today}.

Commitment: "{title}"
Original: {due_date} at {due_time}

User Patterns:
- Typical completion hour: {typical_hour}
- Completion rate: {rate}%

Busy slots in next {window} days: {busy}

Suggest:
1. New date (YYYY-MM-DD format, within next {window} days)
2. New time (HH:MM format, prefer user's typical hour)
3. Reasoning (max 100 words)

Avoid busy slots and consider user's patterns."""


async def suggest_new_slot(
    commitment: Commitment,
    pattern: BehaviorPattern | None,
    busy_slots: list[str],
    today: date | None = None,
    window_days: int = 7,
) -> SlotSuggestion:
    today = today or date.today()
    typical_hour = "Unknown"
    rate = 0
    if pattern is not None:
        if pattern.typical_completion_hour is not None:
            typical_hour = f"{pattern.typical_completion_hour:02d}:00"
        rate = round(pattern.average_completion_rate * 100)

    data = await complete(
        system=_SLOT_SYSTEM,
        user_message=_SLOT_PROMPT.format(
            today=today.isoformat(),
            title=commitment.title,
            due_date=commitment.due_date,
            due_time=commitment.due_time,
            typical_hour=typical_hour,
            rate=rate,
            window=window_days,
            busy=", ".join(busy_slots) or "None",
        ),
        max_tokens=512,
        tool=SUGGEST_SLOT_TOOL,
    )
    suggestion = _validate(SlotSuggestion, _coerce_payload(data))
    logger.info(
        "Slot suggestion for #%d: %s %s", commitment.id,
        suggestion.suggested_date, suggestion.suggested_time,
    )
    return suggestion


# ---------------------------------------------------------------------------
# Priority analysis
# ---------------------------------------------------------------------------

_PRIORITY_SYSTEM = "You are an AI assistant that analyzes task priority."

_PRIORITY_PROMPT = """\
Analyze this commitment and assign a priority score and urgency level.

Commitment Details:
- Title: "{title}"
- Due Date: {due_date}
- Due Time: {due_time}

User Context:
- Recent completion rate: {rate}%
- Recent commitments: {recent}

Provide:
1. Priority score (0.0-1.0, where 1.0 is highest priority)
2. Urgency level (low/medium/high/critical)
3. Brief reasoning (max 50 words)

Consider: deadline proximity, task complexity indicated by title, user's completion patterns."""


async def analyze_priority(
    commitment: Commitment, history: list[Commitment],
) -> PriorityAssessment:
    """Score a commitment against the owner's recent history (newest first)."""
    rate = round(sum(1 for c in history if c.completed) / len(history) * 100) if history else 0
    recent = ", ".join(c.title for c in history[:5]) or "None"

    data = await complete(
        system=_PRIORITY_SYSTEM,
        user_message=_PRIORITY_PROMPT.format(
            title=commitment.title,
            due_date=commitment.due_date,
            due_time=commitment.due_time,
            rate=rate,
            recent=recent,
        ),
        max_tokens=256,
        tool=SET_PRIORITY_TOOL,
    )
    assessment = _validate(PriorityAssessment, _coerce_payload(data))
    logger.info(
        "Priority for #%d: %.2f (%s)", commitment.id,
        assessment.priority_score, assessment.urgency_level,
    )
    return assessment
