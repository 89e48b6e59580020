"""Thin wrapper around the OpenAI Assistants thread/run API.

This module centralizes the integration with the conversational service so the
rest of the engine can stay SDK-agnostic. Every SDK exception is translated
into the engine's error taxonomy at this boundary.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, Iterator, List, Optional, Protocol

import openai
from openai import AsyncOpenAI

from .config import AssistantSettings
from .errors import NetworkError, ServiceError


class RunStatus(str, Enum):
    """Lifecycle states reported for a run."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    INCOMPLETE = "incomplete"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_RUN_STATUSES


TERMINAL_RUN_STATUSES: FrozenSet[RunStatus] = frozenset(
    {
        RunStatus.COMPLETED,
        RunStatus.FAILED,
        RunStatus.CANCELLED,
        RunStatus.EXPIRED,
        RunStatus.INCOMPLETE,
    }
)


@dataclass(slots=True)
class AssistantMessage:
    """Simple representation of a thread message."""

    role: str
    content: str


@dataclass(slots=True)
class RunSnapshot:
    """Status of one run at the time it was fetched."""

    id: str
    status: RunStatus
    error_detail: Optional[str] = None


class ChatAssistantService(Protocol):
    """Operations the engine needs from the conversational service."""

    async def create_thread(self) -> str: ...

    async def append_message(self, thread_id: str, role: str, content: str) -> None: ...

    async def start_run(self, thread_id: str) -> RunSnapshot: ...

    async def get_run(self, thread_id: str, run_id: str) -> RunSnapshot: ...

    async def cancel_run(self, thread_id: str, run_id: str) -> RunSnapshot: ...

    async def list_runs(self, thread_id: str) -> List[RunSnapshot]: ...

    async def list_messages(self, thread_id: str) -> List[AssistantMessage]: ...


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except openai.APIConnectionError as exc:
        raise NetworkError(f"Unable to {action}: {exc}") from exc
    except openai.APIStatusError as exc:
        raise ServiceError(
            f"Unable to {action}: HTTP {exc.status_code} {exc.message}"
        ) from exc
    except openai.OpenAIError as exc:
        raise ServiceError(f"Unable to {action}: {exc}") from exc


def _snapshot(run: Any) -> RunSnapshot:
    raw_status = str(getattr(run, "status", ""))
    try:
        status = RunStatus(raw_status)
    except ValueError as exc:
        raise ServiceError(f"Unexpected run status '{raw_status}'") from exc
    last_error = getattr(run, "last_error", None)
    detail = getattr(last_error, "message", None) if last_error else None
    return RunSnapshot(id=str(run.id), status=status, error_detail=detail)


def _message_text(message: Any) -> str:
    fragments: List[str] = []
    for block in getattr(message, "content", None) or []:
        if getattr(block, "type", None) != "text":
            continue
        text = getattr(block, "text", None)
        value = getattr(text, "value", None)
        if isinstance(value, str):
            fragments.append(value)
    return "\n\n".join(fragments)


class OpenAIAssistantClient:
    """Dispatches thread, message and run calls through the OpenAI SDK."""

    def __init__(
        self,
        settings: AssistantSettings,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._settings = settings
        self._client = client or AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
        )

    async def create_thread(self) -> str:
        with _translate_errors("create a thread"):
            thread = await self._client.beta.threads.create()
        return str(thread.id)

    async def append_message(self, thread_id: str, role: str, content: str) -> None:
        if role not in {"user", "assistant"}:
            raise ValueError(f"Unsupported role for thread message: {role}")
        with _translate_errors("post a message"):
            await self._client.beta.threads.messages.create(
                thread_id=thread_id,
                role=role,
                content=content,
            )

    async def start_run(self, thread_id: str) -> RunSnapshot:
        with _translate_errors("start a run"):
            run = await self._client.beta.threads.runs.create(
                thread_id=thread_id,
                assistant_id=self._settings.assistant_id,
            )
        return _snapshot(run)

    async def get_run(self, thread_id: str, run_id: str) -> RunSnapshot:
        with _translate_errors("fetch run status"):
            run = await self._client.beta.threads.runs.retrieve(
                run_id=run_id,
                thread_id=thread_id,
            )
        return _snapshot(run)

    async def cancel_run(self, thread_id: str, run_id: str) -> RunSnapshot:
        with _translate_errors("cancel a run"):
            run = await self._client.beta.threads.runs.cancel(
                run_id=run_id,
                thread_id=thread_id,
            )
        return _snapshot(run)

    async def list_runs(self, thread_id: str) -> List[RunSnapshot]:
        with _translate_errors("list runs"):
            page = await self._client.beta.threads.runs.list(
                thread_id=thread_id,
            )
        return [_snapshot(run) for run in page.data]

    async def list_messages(self, thread_id: str) -> List[AssistantMessage]:
        """Return thread messages newest first, text content only."""

        with _translate_errors("list messages"):
            page = await self._client.beta.threads.messages.list(
                thread_id=thread_id,
                order="desc",
            )
        return [
            AssistantMessage(role=str(message.role), content=_message_text(message))
            for message in page.data
        ]

    async def close(self) -> None:
        await self._client.close()
