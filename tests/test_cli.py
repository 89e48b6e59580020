"""Tests for the command line front-end."""

from __future__ import annotations

import pytest

from brand_interview import cli
from brand_interview.config import AppSettings, AssistantSettings, EngineSettings
from brand_interview.phases import InterviewPhase

from conftest import InMemoryInterviewStore, answered_history


class ClosableStore(InMemoryInterviewStore):
    def __init__(self) -> None:
        super().__init__()
        self.closed = False

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        assistant=AssistantSettings(api_key="sk-test", assistant_id="asst_123"),
        engine=EngineSettings(),
        redis_url="redis://localhost:6379/0",
        log_level="INFO",
    )


def test_parse_start_with_demo():
    args = cli._parse_args(["start", "--brand", "Acme", "--demo"])
    assert args.command == "start"
    assert args.brand == "Acme"
    assert args.demo is True


def test_parse_requires_a_command():
    with pytest.raises(SystemExit):
        cli._parse_args([])


@pytest.mark.asyncio
async def test_show_prints_progress_and_reports(monkeypatch, capsys, settings):
    store = ClosableStore()
    store.documents["abc"] = {
        "brandName": "Acme",
        "conversationId": "thread_1",
        "currentPhase": InterviewPhase.MESSAGING.value,
        "questionCount": 3,
        "messages": [m.to_dict() for m in answered_history(3)],
        "reports": {"discovery": "# Brand Elements Discovery"},
    }
    monkeypatch.setattr(cli, "RedisInterviewStore", lambda *args, **kwargs: store)

    await cli.show_interview(settings, "abc")

    output = capsys.readouterr().out
    assert "Phase: Messaging" in output
    assert "Questions answered: 3/9" in output
    assert "=== Discovery report ===" in output
    assert "# Brand Elements Discovery" in output
    assert store.closed
