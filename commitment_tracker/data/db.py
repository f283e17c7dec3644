"""
Commitment Tracker — SQLite storage.

One store class per table, all sharing a single database file. Every
read and write is scoped to an owner (the Telegram user id); a missing
owner raises AuthRequired before anything touches the database.

Stores also act as a change feed: ``subscribe(owner, on_change)``
registers a callback that runs after each successful write for that
owner. The reminder scheduler uses it to follow commitment changes.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from commitment_tracker.core.errors import AuthRequired, NotFound
from commitment_tracker.data.models import (
    BehaviorPattern,
    Commitment,
    MoodLog,
    PriorityAnnotation,
    RescheduleSuggestion,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS commitments (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    owner         INTEGER NOT NULL,
    title         TEXT    NOT NULL,
    description   TEXT    NOT NULL DEFAULT '',
    due_date      TEXT    NOT NULL,
    due_time      TEXT    NOT NULL,
    completed     INTEGER NOT NULL DEFAULT 0,
    completed_at  TEXT,
    priority      TEXT,
    category      TEXT,
    image_ref     TEXT,
    created_at    TEXT    NOT NULL,
    updated_at    TEXT    NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_commitments_owner_due
    ON commitments (owner, due_date, due_time);

CREATE TABLE IF NOT EXISTS mood_logs (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    owner         INTEGER NOT NULL,
    mood          TEXT    NOT NULL,
    energy_level  INTEGER NOT NULL,
    notes         TEXT    NOT NULL DEFAULT '',
    logged_at     TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS behavior_patterns (
    owner                    INTEGER PRIMARY KEY,
    typical_completion_hour  INTEGER,
    preferred_days           TEXT    NOT NULL DEFAULT '[]',
    average_completion_rate  REAL    NOT NULL DEFAULT 0,
    last_updated             TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS reschedule_suggestions (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    owner           INTEGER NOT NULL,
    commitment_id   INTEGER NOT NULL,
    original_date   TEXT    NOT NULL,
    original_time   TEXT    NOT NULL,
    suggested_date  TEXT    NOT NULL,
    suggested_time  TEXT    NOT NULL,
    reason          TEXT    NOT NULL DEFAULT '',
    accepted        INTEGER,
    created_at      TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS priority_annotations (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    owner           INTEGER NOT NULL,
    commitment_id   INTEGER NOT NULL,
    priority_score  REAL    NOT NULL,
    urgency_level   TEXT    NOT NULL,
    reasoning       TEXT    NOT NULL DEFAULT '',
    created_at      TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS notification_prefs (
    owner       INTEGER PRIMARY KEY,
    permission  TEXT    NOT NULL
);
"""


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _require_owner(owner: int | None) -> int:
    if owner is None:
        raise AuthRequired("No authenticated owner")
    return owner


@dataclass
class ChangeEvent:
    """A single write, delivered to subscribers after it is committed."""

    table: str
    kind: str       # "insert" | "update" | "delete"
    owner: int
    record: Any


ChangeCallback = Callable[[ChangeEvent], None]


class _SQLiteStore:
    """Connection handling, schema bootstrap and the change feed."""

    TABLE = ""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from commitment_tracker.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        self._subscribers: dict[int, list[ChangeCallback]] = {}
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("%s table initialized at %s", self.TABLE, self._db_path)

    def subscribe(self, owner: int | None, on_change: ChangeCallback) -> Callable[[], None]:
        """Register ``on_change`` for writes to this table by ``owner``.

        Returns a callable that removes the subscription.
        """
        owner = _require_owner(owner)
        self._subscribers.setdefault(owner, []).append(on_change)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(owner, [])
            if on_change in callbacks:
                callbacks.remove(on_change)

        return unsubscribe

    def _notify(self, kind: str, owner: int, record: Any) -> None:
        event = ChangeEvent(table=self.TABLE, kind=kind, owner=owner, record=record)
        for callback in list(self._subscribers.get(owner, [])):
            try:
                callback(event)
            except Exception as exc:
                logger.error("Change subscriber failed on %s %s: %s", self.TABLE, kind, exc)


# ---------------------------------------------------------------------------
# Commitments
# ---------------------------------------------------------------------------


class CommitmentDB(_SQLiteStore):
    """Owner-scoped storage for commitments."""

    TABLE = "commitments"

    _UPDATABLE = frozenset({
        "title", "description", "due_date", "due_time", "completed",
        "completed_at", "priority", "category", "image_ref",
    })

    @staticmethod
    def _row_to_commitment(row: sqlite3.Row) -> Commitment:
        return Commitment(
            id=row["id"],
            owner=row["owner"],
            title=row["title"],
            description=row["description"],
            due_date=row["due_date"],
            due_time=row["due_time"],
            completed=bool(row["completed"]),
            completed_at=row["completed_at"],
            priority=row["priority"],
            category=row["category"],
            image_ref=row["image_ref"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def add_commitment(
        self,
        owner: int | None,
        title: str,
        due_date: str,
        due_time: str,
        description: str = "",
        category: str | None = None,
        image_ref: str | None = None,
    ) -> Commitment:
        """Insert a new, incomplete commitment."""
        owner = _require_owner(owner)
        now = _now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO commitments
                    (owner, title, description, due_date, due_time, completed,
                     category, image_ref, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, 0, ?, ?, ?, ?)
                """,
                (owner, title, description, due_date, due_time,
                 category, image_ref, now, now),
            )
            commitment_id = cursor.lastrowid

        commitment = Commitment(
            id=commitment_id,
            owner=owner,
            title=title,
            due_date=due_date,
            due_time=due_time,
            description=description,
            category=category,
            image_ref=image_ref,
            created_at=now,
            updated_at=now,
        )
        logger.info(
            "Commitment added: #%d '%s' due %s %s", commitment_id, title, due_date, due_time,
        )
        self._notify("insert", owner, commitment)
        return commitment

    def get_commitment(self, owner: int | None, commitment_id: int) -> Commitment | None:
        """Fetch a single commitment, or None if it doesn't exist for this owner."""
        owner = _require_owner(owner)
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM commitments WHERE id = ? AND owner = ?",
                (commitment_id, owner),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_commitment(row)

    def list_commitments(
        self,
        owner: int | None,
        completed: bool | None = None,
        due_date: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        newest_first: bool = False,
        limit: int | None = None,
    ) -> list[Commitment]:
        """List commitments, filtered and ordered.

        Default order is by due date and time; ``newest_first`` orders by
        creation instead (used for history context).
        """
        owner = _require_owner(owner)
        conditions = ["owner = ?"]
        params: list = [owner]
        if completed is not None:
            conditions.append("completed = ?")
            params.append(int(completed))
        if due_date is not None:
            conditions.append("due_date = ?")
            params.append(due_date)
        if date_from is not None:
            conditions.append("due_date >= ?")
            params.append(date_from)
        if date_to is not None:
            conditions.append("due_date <= ?")
            params.append(date_to)

        query = "SELECT * FROM commitments WHERE " + " AND ".join(conditions)
        if newest_first:
            query += " ORDER BY created_at DESC, id DESC"
        else:
            query += " ORDER BY due_date, due_time, id"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()

        return [self._row_to_commitment(r) for r in rows]

    def update_commitment(
        self, owner: int | None, commitment_id: int, **patch: Any,
    ) -> Commitment:
        """Apply a partial update and return the updated commitment.

        Raises NotFound if the commitment doesn't exist for this owner.
        """
        owner = _require_owner(owner)
        unknown = set(patch) - self._UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update columns: {', '.join(sorted(unknown))}")

        values = dict(patch)
        if "completed" in values:
            values["completed"] = int(values["completed"])
        values["updated_at"] = _now()

        assignments = ", ".join(f"{col} = ?" for col in values)
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE commitments SET {assignments} WHERE id = ? AND owner = ?",
                (*values.values(), commitment_id, owner),
            )
            if cursor.rowcount == 0:
                raise NotFound(f"Commitment {commitment_id} not found")
            row = conn.execute(
                "SELECT * FROM commitments WHERE id = ?", (commitment_id,),
            ).fetchone()

        commitment = self._row_to_commitment(row)
        logger.info("Commitment #%d updated: %s", commitment_id, ", ".join(sorted(patch)))
        self._notify("update", owner, commitment)
        return commitment

    def set_completed(
        self, owner: int | None, commitment_id: int, completed: bool,
    ) -> Commitment:
        """Mark a commitment complete (stamping completed_at) or reopen it."""
        completed_at = _now() if completed else None
        return self.update_commitment(
            owner, commitment_id, completed=completed, completed_at=completed_at,
        )

    def delete_commitment(self, owner: int | None, commitment_id: int) -> bool:
        """Permanently delete a commitment and the AI records attached to it."""
        owner = _require_owner(owner)
        existing = self.get_commitment(owner, commitment_id)
        if existing is None:
            return False

        with self._connect() as conn:
            conn.execute(
                "DELETE FROM commitments WHERE id = ? AND owner = ?",
                (commitment_id, owner),
            )
            conn.execute(
                "DELETE FROM reschedule_suggestions WHERE commitment_id = ? AND owner = ?",
                (commitment_id, owner),
            )
            conn.execute(
                "DELETE FROM priority_annotations WHERE commitment_id = ? AND owner = ?",
                (commitment_id, owner),
            )

        logger.info("Commitment #%d deleted", commitment_id)
        self._notify("delete", owner, existing)
        return True


# ---------------------------------------------------------------------------
# Mood logs
# ---------------------------------------------------------------------------


class MoodDB(_SQLiteStore):
    """Append-only mood/energy log."""

    TABLE = "mood_logs"

    @staticmethod
    def _row_to_mood(row: sqlite3.Row) -> MoodLog:
        return MoodLog(
            id=row["id"],
            owner=row["owner"],
            mood=row["mood"],
            energy_level=row["energy_level"],
            notes=row["notes"],
            logged_at=row["logged_at"],
        )

    def log_mood(
        self, owner: int | None, mood: str, energy_level: int, notes: str = "",
    ) -> MoodLog:
        owner = _require_owner(owner)
        now = _now()
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO mood_logs (owner, mood, energy_level, notes, logged_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (owner, mood, energy_level, notes, now),
            )
            mood_id = cursor.lastrowid

        log = MoodLog(
            id=mood_id, owner=owner, mood=mood, energy_level=energy_level,
            notes=notes, logged_at=now,
        )
        logger.info("Mood logged for %d: %s (energy %d)", owner, mood, energy_level)
        self._notify("insert", owner, log)
        return log

    def recent_moods(self, owner: int | None, limit: int = 5) -> list[MoodLog]:
        """Most recent mood logs first."""
        owner = _require_owner(owner)
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM mood_logs WHERE owner = ? "
                "ORDER BY logged_at DESC, id DESC LIMIT ?",
                (owner, limit),
            ).fetchall()
        return [self._row_to_mood(r) for r in rows]

    def latest_mood(self, owner: int | None) -> MoodLog | None:
        moods = self.recent_moods(owner, limit=1)
        return moods[0] if moods else None


# ---------------------------------------------------------------------------
# Behavior patterns
# ---------------------------------------------------------------------------


class PatternDB(_SQLiteStore):
    """At most one derived BehaviorPattern per owner."""

    TABLE = "behavior_patterns"

    def get_pattern(self, owner: int | None) -> BehaviorPattern | None:
        owner = _require_owner(owner)
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM behavior_patterns WHERE owner = ?", (owner,),
            ).fetchone()
        if row is None:
            return None
        return BehaviorPattern(
            owner=row["owner"],
            typical_completion_hour=row["typical_completion_hour"],
            preferred_days=json.loads(row["preferred_days"]),
            average_completion_rate=row["average_completion_rate"],
            last_updated=row["last_updated"],
        )

    def upsert_pattern(self, pattern: BehaviorPattern) -> BehaviorPattern:
        """Overwrite the owner's pattern in place, or insert the first one.

        Always bumps last_updated.
        """
        owner = _require_owner(pattern.owner)
        pattern.last_updated = _now()
        days_json = json.dumps(pattern.preferred_days)

        with self._connect() as conn:
            exists = conn.execute(
                "SELECT 1 FROM behavior_patterns WHERE owner = ?", (owner,),
            ).fetchone() is not None
            if exists:
                conn.execute(
                    """
                    UPDATE behavior_patterns
                    SET typical_completion_hour = ?, preferred_days = ?,
                        average_completion_rate = ?, last_updated = ?
                    WHERE owner = ?
                    """,
                    (pattern.typical_completion_hour, days_json,
                     pattern.average_completion_rate, pattern.last_updated, owner),
                )
            else:
                conn.execute(
                    """
                    INSERT INTO behavior_patterns
                        (owner, typical_completion_hour, preferred_days,
                         average_completion_rate, last_updated)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (owner, pattern.typical_completion_hour, days_json,
                     pattern.average_completion_rate, pattern.last_updated),
                )

        logger.info(
            "Behavior pattern %s for %d: hour=%s days=%s rate=%.2f",
            "updated" if exists else "created", owner,
            pattern.typical_completion_hour, pattern.preferred_days,
            pattern.average_completion_rate,
        )
        self._notify("update" if exists else "insert", owner, pattern)
        return pattern


# ---------------------------------------------------------------------------
# Reschedule suggestions
# ---------------------------------------------------------------------------


class RescheduleDB(_SQLiteStore):
    """AI-proposed alternate slots, pending until the user decides."""

    TABLE = "reschedule_suggestions"

    @staticmethod
    def _row_to_suggestion(row: sqlite3.Row) -> RescheduleSuggestion:
        accepted = row["accepted"]
        return RescheduleSuggestion(
            id=row["id"],
            owner=row["owner"],
            commitment_id=row["commitment_id"],
            original_date=row["original_date"],
            original_time=row["original_time"],
            suggested_date=row["suggested_date"],
            suggested_time=row["suggested_time"],
            reason=row["reason"],
            accepted=None if accepted is None else bool(accepted),
            created_at=row["created_at"],
        )

    def add_suggestion(
        self,
        owner: int | None,
        commitment_id: int,
        original_date: str,
        original_time: str,
        suggested_date: str,
        suggested_time: str,
        reason: str,
    ) -> RescheduleSuggestion:
        owner = _require_owner(owner)
        now = _now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO reschedule_suggestions
                    (owner, commitment_id, original_date, original_time,
                     suggested_date, suggested_time, reason, accepted, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, NULL, ?)
                """,
                (owner, commitment_id, original_date, original_time,
                 suggested_date, suggested_time, reason, now),
            )
            suggestion_id = cursor.lastrowid

        suggestion = RescheduleSuggestion(
            id=suggestion_id,
            owner=owner,
            commitment_id=commitment_id,
            original_date=original_date,
            original_time=original_time,
            suggested_date=suggested_date,
            suggested_time=suggested_time,
            reason=reason,
            created_at=now,
        )
        logger.info(
            "Reschedule suggestion #%d for commitment #%d: %s %s",
            suggestion_id, commitment_id, suggested_date, suggested_time,
        )
        self._notify("insert", owner, suggestion)
        return suggestion

    def get_suggestion(
        self, owner: int | None, suggestion_id: int,
    ) -> RescheduleSuggestion | None:
        owner = _require_owner(owner)
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM reschedule_suggestions WHERE id = ? AND owner = ?",
                (suggestion_id, owner),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_suggestion(row)

    def set_accepted(
        self, owner: int | None, suggestion_id: int, accepted: bool,
    ) -> RescheduleSuggestion:
        owner = _require_owner(owner)
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE reschedule_suggestions SET accepted = ? WHERE id = ? AND owner = ?",
                (int(accepted), suggestion_id, owner),
            )
            if cursor.rowcount == 0:
                raise NotFound(f"Suggestion {suggestion_id} not found")
            row = conn.execute(
                "SELECT * FROM reschedule_suggestions WHERE id = ?", (suggestion_id,),
            ).fetchone()

        suggestion = self._row_to_suggestion(row)
        self._notify("update", owner, suggestion)
        return suggestion

    def list_suggestions(
        self, owner: int | None, commitment_id: int | None = None,
    ) -> list[RescheduleSuggestion]:
        owner = _require_owner(owner)
        query = "SELECT * FROM reschedule_suggestions WHERE owner = ?"
        params: list = [owner]
        if commitment_id is not None:
            query += " AND commitment_id = ?"
            params.append(commitment_id)
        query += " ORDER BY created_at DESC, id DESC"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_suggestion(r) for r in rows]


# ---------------------------------------------------------------------------
# Priority annotations
# ---------------------------------------------------------------------------


class PriorityDB(_SQLiteStore):
    """Append-only AI priority analyses."""

    TABLE = "priority_annotations"

    @staticmethod
    def _row_to_annotation(row: sqlite3.Row) -> PriorityAnnotation:
        return PriorityAnnotation(
            id=row["id"],
            owner=row["owner"],
            commitment_id=row["commitment_id"],
            priority_score=row["priority_score"],
            urgency_level=row["urgency_level"],
            reasoning=row["reasoning"],
            created_at=row["created_at"],
        )

    def add_annotation(
        self,
        owner: int | None,
        commitment_id: int,
        priority_score: float,
        urgency_level: str,
        reasoning: str,
    ) -> PriorityAnnotation:
        owner = _require_owner(owner)
        now = _now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO priority_annotations
                    (owner, commitment_id, priority_score, urgency_level, reasoning, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (owner, commitment_id, priority_score, urgency_level, reasoning, now),
            )
            annotation_id = cursor.lastrowid

        annotation = PriorityAnnotation(
            id=annotation_id,
            owner=owner,
            commitment_id=commitment_id,
            priority_score=priority_score,
            urgency_level=urgency_level,
            reasoning=reasoning,
            created_at=now,
        )
        logger.info(
            "Priority for commitment #%d: %.2f (%s)", commitment_id, priority_score, urgency_level,
        )
        self._notify("insert", owner, annotation)
        return annotation

    def list_annotations(
        self, owner: int | None, commitment_id: int | None = None,
    ) -> list[PriorityAnnotation]:
        owner = _require_owner(owner)
        query = "SELECT * FROM priority_annotations WHERE owner = ?"
        params: list = [owner]
        if commitment_id is not None:
            query += " AND commitment_id = ?"
            params.append(commitment_id)
        query += " ORDER BY created_at DESC, id DESC"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_annotation(r) for r in rows]


# ---------------------------------------------------------------------------
# Notification preferences
# ---------------------------------------------------------------------------


class NotificationPrefDB(_SQLiteStore):
    """Persisted notification permission per owner."""

    TABLE = "notification_prefs"

    def get_permission(self, owner: int | None) -> str | None:
        owner = _require_owner(owner)
        with self._connect() as conn:
            row = conn.execute(
                "SELECT permission FROM notification_prefs WHERE owner = ?", (owner,),
            ).fetchone()
        return row["permission"] if row else None

    def set_permission(self, owner: int | None, permission: str) -> None:
        owner = _require_owner(owner)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO notification_prefs (owner, permission) VALUES (?, ?)
                ON CONFLICT(owner) DO UPDATE SET permission = excluded.permission
                """,
                (owner, permission),
            )
        logger.info("Notification permission for %d set to %s", owner, permission)
        self._notify("update", owner, permission)
