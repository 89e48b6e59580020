"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest

from brand_interview import config
from brand_interview.config import DEFAULT_COURSE_URL, AppSettings

ENV_VARS = (
    "OPENAI_API_KEY",
    "BRAND_ASSISTANT_ID",
    "OPENAI_BASE_URL",
    "BRAND_REDIS_URL",
    "BRAND_REDIS_JSON",
    "BRAND_MAX_POLL_ATTEMPTS",
    "BRAND_POLL_RETRY_LIMIT",
    "BRAND_MAX_STEP_ATTEMPTS",
    "BRAND_RETRY_DELAY_SECONDS",
    "BRAND_COURSE_URL",
    "BRAND_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.setattr(config, "_ensure_dotenv", lambda: None)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("BRAND_ASSISTANT_ID", "asst_123")


def test_defaults():
    settings = AppSettings.load()
    assert settings.assistant.api_key == "sk-test"
    assert settings.assistant.assistant_id == "asst_123"
    assert settings.assistant.base_url is None
    assert settings.redis_url == "redis://localhost:6379/0"
    assert settings.redis_json is True
    assert settings.log_level == "INFO"
    assert settings.engine.max_poll_attempts == 60
    assert settings.engine.max_step_attempts == 3
    assert settings.engine.retry_delay_seconds == 2.0
    assert settings.engine.course_url == DEFAULT_COURSE_URL


def test_overrides(monkeypatch):
    monkeypatch.setenv("BRAND_MAX_POLL_ATTEMPTS", "12")
    monkeypatch.setenv("BRAND_RETRY_DELAY_SECONDS", "0.5")
    monkeypatch.setenv("BRAND_REDIS_JSON", "false")
    monkeypatch.setenv("BRAND_LOG_LEVEL", "debug")
    monkeypatch.setenv("BRAND_COURSE_URL", "https://example.com/learn")

    settings = AppSettings.load()

    assert settings.engine.max_poll_attempts == 12
    assert settings.engine.retry_delay_seconds == 0.5
    assert settings.redis_json is False
    assert settings.log_level == "DEBUG"
    assert settings.engine.course_url == "https://example.com/learn"


@pytest.mark.parametrize("missing", ["OPENAI_API_KEY", "BRAND_ASSISTANT_ID"])
def test_required_credentials(monkeypatch, missing):
    monkeypatch.delenv(missing)
    with pytest.raises(RuntimeError, match=missing):
        AppSettings.load()


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("BRAND_MAX_POLL_ATTEMPTS", "many"),
        ("BRAND_MAX_STEP_ATTEMPTS", "0"),
        ("BRAND_RETRY_DELAY_SECONDS", "-1"),
    ],
)
def test_invalid_numbers_are_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(RuntimeError, match=name):
        AppSettings.load()
