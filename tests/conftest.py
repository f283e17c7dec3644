"""Shared test fixtures and configuration.

Sets up fake environment variables so commitment_tracker.config doesn't
sys.exit(), and provides common fixtures like temp-file stores.
"""

import os

# Patch env vars BEFORE any commitment_tracker imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "UTC")

import pytest

OWNER = 12345
OTHER_OWNER = 67890


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_commitments.db")


@pytest.fixture
def commitment_db(tmp_db_path):
    from commitment_tracker.data.db import CommitmentDB
    return CommitmentDB(db_path=tmp_db_path)


@pytest.fixture
def mood_db(tmp_db_path):
    from commitment_tracker.data.db import MoodDB
    return MoodDB(db_path=tmp_db_path)


@pytest.fixture
def pattern_db(tmp_db_path):
    from commitment_tracker.data.db import PatternDB
    return PatternDB(db_path=tmp_db_path)


@pytest.fixture
def reschedule_db(tmp_db_path):
    from commitment_tracker.data.db import RescheduleDB
    return RescheduleDB(db_path=tmp_db_path)


@pytest.fixture
def priority_db(tmp_db_path):
    from commitment_tracker.data.db import PriorityDB
    return PriorityDB(db_path=tmp_db_path)


@pytest.fixture
def pref_db(tmp_db_path):
    from commitment_tracker.data.db import NotificationPrefDB
    return NotificationPrefDB(db_path=tmp_db_path)


def make_commitment(
    id=1, title="Write report", due_date="2026-03-02", due_time="09:00",
    completed=False, owner=OWNER, **kwargs,
):
    """Build a Commitment without touching the database."""
    from commitment_tracker.data.models import Commitment
    return Commitment(
        id=id, owner=owner, title=title, due_date=due_date, due_time=due_time,
        completed=completed, **kwargs,
    )
