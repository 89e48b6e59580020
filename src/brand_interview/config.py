"""Configuration helpers for the brand interview engine."""

from __future__ import annotations

import os
from dataclasses import dataclass
from importlib import import_module
from typing import Optional

DEFAULT_COURSE_URL = "https://dfl0.us/s/ab4d2c7a"


@dataclass(slots=True)
class AssistantSettings:
    """Holds the assistant service configuration."""

    api_key: str
    assistant_id: str
    base_url: Optional[str] = None


@dataclass(slots=True)
class EngineSettings:
    """Polling and retry budgets used by the progression engine."""

    max_poll_attempts: int = 60
    poll_retry_limit: int = 3
    max_step_attempts: int = 3
    retry_delay_seconds: float = 2.0
    cancel_poll_attempts: int = 30
    course_url: str = DEFAULT_COURSE_URL


@dataclass(slots=True)
class AppSettings:
    """Top-level application settings loaded from environment variables."""

    assistant: AssistantSettings
    engine: EngineSettings
    redis_url: Optional[str]
    log_level: str
    redis_json: bool = True

    @classmethod
    def load(cls) -> "AppSettings":
        """Load settings from the environment or .env file."""
        _ensure_dotenv()
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY environment variable is required.")
        assistant_id = os.getenv("BRAND_ASSISTANT_ID")
        if not assistant_id:
            raise RuntimeError(
                "BRAND_ASSISTANT_ID environment variable is required."
            )
        base_url = os.getenv("OPENAI_BASE_URL") or None
        redis_url = os.getenv("BRAND_REDIS_URL", "redis://localhost:6379/0")
        if redis_url and not redis_url.strip():
            redis_url = None
        engine = EngineSettings(
            max_poll_attempts=_read_int("BRAND_MAX_POLL_ATTEMPTS", 60),
            poll_retry_limit=_read_int("BRAND_POLL_RETRY_LIMIT", 3),
            max_step_attempts=_read_int("BRAND_MAX_STEP_ATTEMPTS", 3),
            retry_delay_seconds=_read_float("BRAND_RETRY_DELAY_SECONDS", 2.0),
            course_url=os.getenv("BRAND_COURSE_URL", DEFAULT_COURSE_URL),
        )
        log_level = os.getenv("BRAND_LOG_LEVEL", "INFO").strip().upper()
        redis_json = os.getenv("BRAND_REDIS_JSON", "true").strip().lower() not in {
            "0",
            "false",
            "no",
        }
        return cls(
            assistant=AssistantSettings(
                api_key=api_key,
                assistant_id=assistant_id,
                base_url=base_url,
            ),
            engine=engine,
            redis_url=redis_url,
            log_level=log_level or "INFO",
            redis_json=redis_json,
        )


def _read_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc
    if value < 1:
        raise RuntimeError(f"{name} must be at least 1")
    return value


def _read_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default))
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number") from exc
    if value < 0:
        raise RuntimeError(f"{name} must not be negative")
    return value


def _ensure_dotenv() -> None:
    """Load dotenv variables and provide a helpful error if missing."""

    try:
        dotenv_module = import_module("dotenv")
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dep
        raise RuntimeError(
            "python-dotenv is required. Install with `pip install "
            "python-dotenv`."
        ) from exc

    load_dotenv = getattr(dotenv_module, "load_dotenv")
    load_dotenv()
