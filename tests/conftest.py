"""Shared fakes for the interview engine tests."""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pytest

from brand_interview.assistant_client import AssistantMessage, RunSnapshot, RunStatus
from brand_interview.config import EngineSettings
from brand_interview.controller import LoggingNotifier, ProgressionController
from brand_interview.errors import InterviewNotFoundError, ServiceError
from brand_interview.interview_store import apply_field_paths, new_interview_id
from brand_interview.models import InterviewDocument, InterviewMessage
from brand_interview.phases import QUESTION_PLAN, InterviewPhase


class FakeAssistantService:
    """In-memory stand-in for the Assistants thread/run API.

    Each started run consumes one scripted reply; the reply is appended to the
    thread once the run reports ``completed``. Poll scripts control the
    statuses a run walks through before it settles.
    """

    def __init__(self, replies: Sequence[str] = ()) -> None:
        self.replies: List[str] = list(replies)
        self.poll_scripts: List[List[str]] = []
        self.failures: Dict[str, List[BaseException]] = {}
        self.threads: Dict[str, List[AssistantMessage]] = {}
        self.posted: List[Tuple[str, str, str]] = []
        self.runs: Dict[str, Dict[str, Any]] = {}
        self.calls: Dict[str, int] = {}
        self.max_active_runs = 0

    def fail(self, method: str, *errors: BaseException) -> None:
        self.failures.setdefault(method, []).extend(errors)

    def _enter(self, method: str) -> None:
        self.calls[method] = self.calls.get(method, 0) + 1
        queued = self.failures.get(method)
        if queued:
            raise queued.pop(0)

    def _active(self, thread_id: str) -> List[Dict[str, Any]]:
        return [
            run
            for run in self.runs.values()
            if run["thread_id"] == thread_id
            and not RunStatus(run["status"]).is_terminal
        ]

    async def create_thread(self) -> str:
        self._enter("create_thread")
        thread_id = f"thread_{len(self.threads) + 1}"
        self.threads[thread_id] = []
        return thread_id

    async def append_message(self, thread_id: str, role: str, content: str) -> None:
        self._enter("append_message")
        if self._active(thread_id):
            raise ServiceError("Can't add messages while a run is active")
        self.posted.append((thread_id, role, content))
        self.threads.setdefault(thread_id, []).append(
            AssistantMessage(role=role, content=content)
        )

    async def start_run(self, thread_id: str) -> RunSnapshot:
        self._enter("start_run")
        if self._active(thread_id):
            raise ServiceError(f"Thread {thread_id} already has an active run")
        run_id = f"run_{len(self.runs) + 1}"
        script = self.poll_scripts.pop(0) if self.poll_scripts else ["completed"]
        self.runs[run_id] = {
            "thread_id": thread_id,
            "status": "queued",
            "script": list(script),
            "reply": self.replies.pop(0) if self.replies else None,
        }
        active = sum(len(self._active(thread)) for thread in self.threads)
        self.max_active_runs = max(self.max_active_runs, active)
        return RunSnapshot(id=run_id, status=RunStatus.QUEUED)

    async def get_run(self, thread_id: str, run_id: str) -> RunSnapshot:
        self._enter("get_run")
        run = self.runs[run_id]
        if run["script"] and not RunStatus(run["status"]).is_terminal:
            run["status"] = run["script"].pop(0)
            if run["status"] == "completed" and run["reply"] is not None:
                self.threads[thread_id].append(
                    AssistantMessage(role="assistant", content=run["reply"])
                )
        return RunSnapshot(id=run_id, status=RunStatus(run["status"]))

    async def cancel_run(self, thread_id: str, run_id: str) -> RunSnapshot:
        self._enter("cancel_run")
        run = self.runs[run_id]
        run["status"] = "cancelled"
        run["script"] = []
        return RunSnapshot(id=run_id, status=RunStatus.CANCELLED)

    async def list_runs(self, thread_id: str) -> List[RunSnapshot]:
        self._enter("list_runs")
        return [
            RunSnapshot(id=run_id, status=RunStatus(run["status"]))
            for run_id, run in self.runs.items()
            if run["thread_id"] == thread_id
        ]

    async def list_messages(self, thread_id: str) -> List[AssistantMessage]:
        self._enter("list_messages")
        return list(reversed(self.threads.get(thread_id, [])))

    def user_posts(self) -> List[str]:
        return [content for _, role, content in self.posted if role == "user"]


class InMemoryInterviewStore:
    """Dict-backed document store applying dotted-path updates."""

    def __init__(self) -> None:
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.updates: List[Tuple[str, Dict[str, Any]]] = []
        self.update_failures: List[Exception] = []

    async def create_document(self, document: InterviewDocument) -> str:
        interview_id = new_interview_id()
        self.documents[interview_id] = document.to_dict()
        return interview_id

    async def read_document(self, interview_id: str) -> InterviewDocument:
        if interview_id not in self.documents:
            raise InterviewNotFoundError(interview_id)
        return InterviewDocument.from_dict(copy.deepcopy(self.documents[interview_id]))

    async def update_document(
        self,
        interview_id: str,
        fields: Mapping[str, Any],
    ) -> None:
        if self.update_failures:
            raise self.update_failures.pop(0)
        if interview_id not in self.documents:
            raise InterviewNotFoundError(interview_id)
        apply_field_paths(self.documents[interview_id], copy.deepcopy(dict(fields)))
        self.updates.append((interview_id, dict(fields)))


class RecordingSleep:
    """Zero-delay sleep that remembers the requested delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class RecordingNotifier(LoggingNotifier):
    def __init__(self) -> None:
        self.notices: List[Tuple[str, str]] = []

    def info(self, message: str) -> None:
        self.notices.append(("info", message))

    def warning(self, message: str) -> None:
        self.notices.append(("warning", message))

    def error(self, message: str) -> None:
        self.notices.append(("error", message))


def answered_history(
    answered: int,
    *,
    ask_next: bool = True,
    phase: Optional[InterviewPhase] = None,
) -> List[InterviewMessage]:
    """History in which the first ``answered`` questions got demo answers."""

    messages: List[InterviewMessage] = []
    for question in QUESTION_PLAN[:answered]:
        messages.append(
            InterviewMessage(
                role="assistant",
                content=f"Great. {question.text}",
                phase=phase or question.phase,
            )
        )
        messages.append(
            InterviewMessage(
                role="user",
                content=question.demo_answer,
                phase=phase or question.phase,
            )
        )
    if ask_next and answered < len(QUESTION_PLAN):
        question = QUESTION_PLAN[answered]
        messages.append(
            InterviewMessage(
                role="assistant",
                content=f"Thanks for that. {question.text}",
                phase=phase or question.phase,
            )
        )
    return messages


@pytest.fixture
def service() -> FakeAssistantService:
    return FakeAssistantService()


@pytest.fixture
def store() -> InMemoryInterviewStore:
    return InMemoryInterviewStore()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def engine_settings() -> EngineSettings:
    return EngineSettings(retry_delay_seconds=0.0)


@pytest.fixture
def make_controller(service, store, sleep, notifier, engine_settings):
    def _factory() -> ProgressionController:
        return ProgressionController(
            service,
            store,
            settings=engine_settings,
            notifier=notifier,
            sleep=sleep,
        )

    return _factory


@pytest.fixture
def seed_interview(store):
    """Store an interview document and return its id."""

    def _seed(
        messages: Sequence[InterviewMessage],
        *,
        phase: InterviewPhase = InterviewPhase.DISCOVERY,
        conversation_id: Optional[str] = "thread_seeded",
        question_count: int = 0,
        reports: Optional[Dict[str, str]] = None,
    ) -> str:
        document = InterviewDocument(
            brand_name="Acme Robotics",
            conversation_id=conversation_id,
            current_phase=phase,
            question_count=question_count,
            messages=list(messages),
            reports=dict(reports or {}),
        )
        interview_id = new_interview_id()
        store.documents[interview_id] = document.to_dict()
        return interview_id

    return _seed
