"""Tests for commitment_tracker.config — settings parsing and validation."""

import pytest
from pydantic import ValidationError

from commitment_tracker.config import Settings, _load_settings


def _settings(**overrides):
    values = dict(TELEGRAM_BOT_TOKEN="t", LLM_API_KEY="k")
    values.update(overrides)
    return Settings(**values)


class TestSettings:
    def test_defaults(self):
        s = _settings()
        assert s.LLM_PROVIDER == "gemini"
        assert s.REMINDER_OFFSETS_MINUTES == [60, 30, 10, 5, 1, 0]
        assert s.ALLOWED_USER_IDS == []

    def test_comma_separated_ids(self):
        assert _settings(ALLOWED_USER_IDS="1, 2,3").ALLOWED_USER_IDS == [1, 2, 3]

    def test_blank_ids(self):
        assert _settings(ALLOWED_USER_IDS="  ").ALLOWED_USER_IDS == []

    def test_custom_offsets(self):
        assert _settings(REMINDER_OFFSETS_MINUTES="15,0").REMINDER_OFFSETS_MINUTES == [15, 0]

    def test_negative_offset_rejected(self):
        with pytest.raises(ValidationError):
            _settings(REMINDER_OFFSETS_MINUTES="10,-1")


class TestLoadSettings:
    def test_missing_token_exits(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "")
        with pytest.raises(SystemExit):
            _load_settings()

    def test_placeholder_key_exits(self, monkeypatch):
        monkeypatch.setenv("LLM_API_KEY", "your-key-here")
        with pytest.raises(SystemExit):
            _load_settings()

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("ALLOWED_USER_IDS", "12345,67890")
        monkeypatch.setenv("BUSY_WINDOW_DAYS", "3")
        s = _load_settings()
        assert s.ALLOWED_USER_IDS == [12345, 67890]
        assert s.BUSY_WINDOW_DAYS == 3


class TestLlmProvider:
    def test_normalized(self):
        assert _settings(LLM_PROVIDER=" OpenAI ").LLM_PROVIDER == "openai"

    def test_unknown_rejected(self):
        with pytest.raises(ValidationError, match="Unknown LLM_PROVIDER"):
            _settings(LLM_PROVIDER="mistral")

    def test_unknown_provider_exits_at_startup(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "carrier-pigeon")
        with pytest.raises(SystemExit):
            _load_settings()
