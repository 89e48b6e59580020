"""Drives assistant runs from creation to a terminal status."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence, Tuple

from .assistant_client import ChatAssistantService, RunSnapshot, RunStatus
from .config import EngineSettings
from .errors import (
    NetworkError,
    RunCancelledError,
    RunFailedError,
    RunTimeoutError,
    ServiceError,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

# (attempts below threshold, delay in seconds)
DEFAULT_POLL_SCHEDULE: Tuple[Tuple[int, float], ...] = ((10, 1.0), (20, 2.0))
DEFAULT_POLL_CEILING = 3.0


def poll_delay(
    attempt: int,
    schedule: Sequence[Tuple[int, float]] = DEFAULT_POLL_SCHEDULE,
    ceiling: float = DEFAULT_POLL_CEILING,
) -> float:
    """Delay before the poll following ``attempt`` (zero-based)."""

    for threshold, delay in schedule:
        if attempt < threshold:
            return delay
    return ceiling


class RunOrchestrator:
    """Starts runs on a thread and waits for them with bounded polling."""

    def __init__(
        self,
        service: ChatAssistantService,
        *,
        max_poll_attempts: int = 60,
        poll_retry_limit: int = 3,
        retry_delay: float = 2.0,
        cancel_poll_attempts: int = 30,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._service = service
        self._max_poll_attempts = max_poll_attempts
        self._poll_retry_limit = poll_retry_limit
        self._retry_delay = retry_delay
        self._cancel_poll_attempts = cancel_poll_attempts
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        service: ChatAssistantService,
        settings: EngineSettings,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> "RunOrchestrator":
        return cls(
            service,
            max_poll_attempts=settings.max_poll_attempts,
            poll_retry_limit=settings.poll_retry_limit,
            retry_delay=settings.retry_delay_seconds,
            cancel_poll_attempts=settings.cancel_poll_attempts,
            sleep=sleep,
        )

    async def execute(self, thread_id: str) -> RunSnapshot:
        """Start a fresh run on ``thread_id`` and wait for it to complete."""

        run = await self.start_run(thread_id)
        return await self.run_to_completion(thread_id, run.id)

    async def start_run(self, thread_id: str) -> RunSnapshot:
        """Cancel stale runs, then start a new one."""

        await self.ensure_no_active_runs(thread_id)
        run = await self._service.start_run(thread_id)
        logger.debug("Started run %s on thread %s", run.id, thread_id)
        return run

    async def run_to_completion(self, thread_id: str, run_id: str) -> RunSnapshot:
        """Poll ``run_id`` until it completes.

        Raises :class:`RunFailedError` or :class:`RunCancelledError` when the
        run settles unsuccessfully and :class:`RunTimeoutError` once the
        polling budget is spent.
        """

        for attempt in range(self._max_poll_attempts):
            snapshot = await self._poll(thread_id, run_id)
            if snapshot.status is RunStatus.COMPLETED:
                logger.debug(
                    "Run %s completed after %d poll(s)", run_id, attempt + 1
                )
                return snapshot
            if snapshot.status is RunStatus.CANCELLED:
                raise RunCancelledError(
                    run_id, snapshot.status.value, snapshot.error_detail
                )
            if snapshot.status.is_terminal:
                raise RunFailedError(
                    run_id, snapshot.status.value, snapshot.error_detail
                )
            await self._sleep(poll_delay(attempt))
        raise RunTimeoutError(run_id, self._max_poll_attempts)

    async def ensure_no_active_runs(self, thread_id: str) -> int:
        """Cancel every in-flight run on the thread; return how many."""

        runs = await self._service.list_runs(thread_id)
        active = [run for run in runs if not run.status.is_terminal]
        for run in active:
            logger.info(
                "Cancelling stale run %s (%s) on thread %s",
                run.id,
                run.status.value,
                thread_id,
            )
            await self.cancel_and_settle(thread_id, run)
        return len(active)

    async def cancel_and_settle(
        self,
        thread_id: str,
        run: RunSnapshot,
    ) -> RunSnapshot:
        """Request cancellation and wait until the run reaches a final state."""

        snapshot = run
        if snapshot.status is not RunStatus.CANCELLING:
            try:
                snapshot = await self._service.cancel_run(thread_id, run.id)
            except ServiceError as exc:
                # The run may have settled between listing and cancelling.
                logger.info("Cancel request for run %s rejected: %s", run.id, exc)
                snapshot = await self._poll(thread_id, run.id)
        for _ in range(self._cancel_poll_attempts):
            if snapshot.status.is_terminal:
                return snapshot
            await self._sleep(poll_delay(0))
            snapshot = await self._poll(thread_id, run.id)
        if snapshot.status.is_terminal:
            return snapshot
        raise RunTimeoutError(run.id, self._cancel_poll_attempts)

    async def _poll(self, thread_id: str, run_id: str) -> RunSnapshot:
        failures = 0
        while True:
            try:
                return await self._service.get_run(thread_id, run_id)
            except NetworkError as exc:
                failures += 1
                if failures >= self._poll_retry_limit:
                    raise
                logger.warning(
                    "Polling run %s failed (%d/%d): %s",
                    run_id,
                    failures,
                    self._poll_retry_limit,
                    exc,
                )
                await self._sleep(self._retry_delay)
