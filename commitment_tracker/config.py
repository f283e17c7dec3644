"""
Commitment Tracker — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

# Load .env from project root (one level up from commitment_tracker/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

LLM_PROVIDERS = ("gemini", "anthropic", "openai", "cohere", "gateway")


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # LLM: provider-agnostic (gemini, anthropic, openai, cohere, gateway)
    LLM_PROVIDER: str = "gemini"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str
    LLM_BASE_URL: str = "https://ai.gateway.lovable.dev/v1"   # gateway provider only
    LLM_TIMEOUT_SECONDS: float = 60.0

    # SQLite
    DATABASE_PATH: str = "data/commitments.db"

    # Security
    ALLOWED_USER_IDS: list[int] = []

    # Due dates/times are wall-clock values in this zone
    TIMEZONE: str = "UTC"

    # Reminders fire this many minutes before the due time
    REMINDER_OFFSETS_MINUTES: list[int] = [60, 30, 10, 5, 1, 0]

    # AI context sizes
    PRIORITY_HISTORY_LIMIT: int = 20
    MOOD_HISTORY_LIMIT: int = 5
    BUSY_WINDOW_DAYS: int = 7

    @field_validator("LLM_PROVIDER", mode="before")
    @classmethod
    def known_provider(cls, v: str) -> str:
        name = (v or "").strip().lower()
        if name not in LLM_PROVIDERS:
            raise ValueError(
                f"Unknown LLM_PROVIDER={v!r}. Supported: {', '.join(LLM_PROVIDERS)}"
            )
        return name

    @field_validator("ALLOWED_USER_IDS", "REMINDER_OFFSETS_MINUTES", mode="before")
    @classmethod
    def parse_int_list(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(item.strip()) for item in v.split(",") if item.strip()]
        return []

    @field_validator("REMINDER_OFFSETS_MINUTES")
    @classmethod
    def offsets_not_negative(cls, v: list[int]) -> list[int]:
        if any(m < 0 for m in v):
            raise ValueError("Reminder offsets must be >= 0 minutes")
        return v


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")
    llm_api_key = os.getenv("LLM_API_KEY", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    if not llm_api_key or llm_api_key.startswith("your-"):
        print("ERROR: LLM_API_KEY is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    try:
        return _build_settings(token, llm_api_key)
    except ValidationError as exc:
        print(f"ERROR: invalid settings in .env\n{exc}", file=sys.stderr)
        sys.exit(1)


def _build_settings(token: str, llm_api_key: str) -> Settings:
    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "gemini"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=llm_api_key,
        LLM_BASE_URL=os.getenv("LLM_BASE_URL", "https://ai.gateway.lovable.dev/v1"),
        LLM_TIMEOUT_SECONDS=os.getenv("LLM_TIMEOUT_SECONDS", "60"),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/commitments.db"),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        TIMEZONE=os.getenv("TIMEZONE", "UTC"),
        REMINDER_OFFSETS_MINUTES=os.getenv("REMINDER_OFFSETS_MINUTES", "60,30,10,5,1,0"),
        PRIORITY_HISTORY_LIMIT=os.getenv("PRIORITY_HISTORY_LIMIT", "20"),
        MOOD_HISTORY_LIMIT=os.getenv("MOOD_HISTORY_LIMIT", "5"),
        BUSY_WINDOW_DAYS=os.getenv("BUSY_WINDOW_DAYS", "7"),
    )


# Singleton, imported by all other modules as:
#   from commitment_tracker.config import settings
settings = _load_settings()
