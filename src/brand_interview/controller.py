"""Interview progression state machine.

The controller owns the message history of one interview. It forwards user
replies to the assistant service, waits for the resulting run, reconciles the
assistant's completion claims against the locally computed progress, and
commits every logical step to the document store with a single update.
"""

from __future__ import annotations

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import (
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    TypeVar,
)

from .assistant_client import ChatAssistantService, OpenAIAssistantClient
from .config import AppSettings, EngineSettings
from .errors import (
    InterviewError,
    InterviewValidationError,
    InvalidReplyError,
    ServiceError,
)
from .interview_store import InterviewStore, RedisInterviewStore
from .models import InterviewDocument, InterviewMessage, format_timestamp, utc_now
from .phase_tracker import PhaseTracker
from .phases import InterviewPhase
from .prompts import (
    BRIEF_ANSWER_NOTICE,
    BRIEF_ANSWER_TEMPLATE,
    ERROR_MESSAGES,
    KICKOFF_TEMPLATE,
    PREMATURE_COMPLETION_WARNING,
    REPORT_FILLER_PHRASES,
    TRANSITION_PHRASES,
    ProcessingStage,
    build_completion_message,
    build_download_message,
)
from .report_validator import ReportValidator
from .response_parser import ParsedResponse, ResponseParser
from .run_orchestrator import RunOrchestrator, Sleep

logger = logging.getLogger(__name__)

MAX_REPLY_LENGTH = 5000

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def sanitize_reply(text: str) -> str:
    """Strip markup brackets, collapse whitespace and cap the length."""

    cleaned = (text or "").strip().replace("<", "").replace(">", "")
    return " ".join(cleaned.split())[:MAX_REPLY_LENGTH]


def split_acknowledgement(
    text: str,
    transition_phrases: Sequence[str] = TRANSITION_PHRASES,
    filler_phrases: Sequence[str] = REPORT_FILLER_PHRASES,
) -> Tuple[str, str]:
    """Split prose into the closing acknowledgement and the next-phase opener.

    Everything from the first paragraph containing a transition phrase onward
    opens the next phase; filler paragraphs that only point at the report are
    dropped from the acknowledgement.
    """

    acknowledgement: List[str] = []
    opener: List[str] = []
    for paragraph in _PARAGRAPH_BREAK.split(text or ""):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        lowered = paragraph.lower()
        if not opener and any(phrase in lowered for phrase in transition_phrases):
            opener.append(paragraph)
            continue
        if opener:
            opener.append(paragraph)
        elif not any(phrase in lowered for phrase in filler_phrases):
            acknowledgement.append(paragraph)
    return "\n\n".join(acknowledgement), "\n\n".join(opener)


class LoggingNotifier:
    """Receives user-facing notifications. Presentation layers subclass it."""

    def info(self, message: str) -> None:
        logger.info("Notice: %s", message)

    def warning(self, message: str) -> None:
        logger.warning("Notice: %s", message)

    def error(self, message: str) -> None:
        logger.error("Notice: %s", message)


class ConversationGuard:
    """Allows one send/run/parse pipeline per conversation at a time."""

    def __init__(self) -> None:
        self._in_flight: Dict[str, asyncio.Event] = {}

    def is_busy(self, conversation_id: str) -> bool:
        return conversation_id in self._in_flight

    @asynccontextmanager
    async def hold(self, conversation_id: str) -> AsyncIterator[None]:
        while conversation_id in self._in_flight:
            await self._in_flight[conversation_id].wait()
        settled = asyncio.Event()
        self._in_flight[conversation_id] = settled
        try:
            yield
        finally:
            del self._in_flight[conversation_id]
            settled.set()


def _empty_messages() -> List[InterviewMessage]:
    return []


def _empty_reports() -> Dict[str, str]:
    return {}


@dataclass(slots=True)
class ProgressionState:
    """Everything the presentation layer observes about one interview."""

    interview_id: str
    brand_name: str
    conversation_id: Optional[str]
    current_phase: InterviewPhase = InterviewPhase.DISCOVERY
    question_count: int = 0
    messages: List[InterviewMessage] = field(default_factory=_empty_messages)
    reports: Dict[str, str] = field(default_factory=_empty_reports)
    suggested_answer: Optional[str] = None
    processing_stage: ProcessingStage = ProcessingStage.IDLE


@dataclass(slots=True)
class ReplyOutcome:
    """What a single user reply changed."""

    new_messages: List[InterviewMessage]
    previous_phase: InterviewPhase
    current_phase: InterviewPhase
    accepted_reports: List[InterviewPhase]
    completion_rejected: bool = False

    @property
    def phase_advanced(self) -> bool:
        return self.current_phase is not self.previous_phase


@dataclass(slots=True)
class _TransitionPlan:
    messages: List[InterviewMessage]
    final_phase: InterviewPhase
    reports: Dict[InterviewPhase, str] = field(default_factory=dict)
    accepted: List[InterviewPhase] = field(default_factory=list)
    completion_rejected: bool = False


@dataclass(slots=True)
class _StepProgress:
    posted: bool = False
    run_completed: bool = False
    raw_text: Optional[str] = None
    plan: Optional[_TransitionPlan] = None


T = TypeVar("T")

PlanBuilder = Callable[[str], Awaitable[_TransitionPlan]]
StateListener = Callable[[ProgressionState], None]


class ProgressionController:
    """Drives one interview through its phases."""

    def __init__(
        self,
        service: ChatAssistantService,
        store: InterviewStore,
        *,
        settings: Optional[EngineSettings] = None,
        orchestrator: Optional[RunOrchestrator] = None,
        parser: Optional[ResponseParser] = None,
        tracker: Optional[PhaseTracker] = None,
        validator: Optional[ReportValidator] = None,
        notifier: Optional[LoggingNotifier] = None,
        guard: Optional[ConversationGuard] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings or EngineSettings()
        self._service = service
        self._store = store
        self._orchestrator = orchestrator or RunOrchestrator.from_settings(
            service, self._settings, sleep=sleep
        )
        self._parser = parser or ResponseParser(link_url=self._settings.course_url)
        self._tracker = tracker or PhaseTracker()
        self._validator = validator or ReportValidator()
        self._notifier = notifier or LoggingNotifier()
        self._guard = guard or ConversationGuard()
        self._sleep = sleep
        self._state: Optional[ProgressionState] = None
        self._listeners: List[StateListener] = []

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        *,
        notifier: Optional[LoggingNotifier] = None,
    ) -> "ProgressionController":
        return cls(
            OpenAIAssistantClient(settings.assistant),
            RedisInterviewStore(settings.redis_url, use_json=settings.redis_json),
            settings=settings.engine,
            notifier=notifier,
        )

    @property
    def state(self) -> ProgressionState:
        return self._require_state()

    @property
    def tracker(self) -> PhaseTracker:
        return self._tracker

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    async def close(self) -> None:
        """Release the service and store connections."""

        for resource in (self._service, self._store):
            close = getattr(resource, "close", None)
            if close is not None:
                await close()

    async def create_interview(self, brand_name: str) -> str:
        """Create a fresh interview document and return its id."""

        cleaned = sanitize_reply(brand_name)
        if not cleaned:
            raise InvalidReplyError("A brand name is required.")
        return await self._store.create_document(InterviewDocument(brand_name=cleaned))

    async def initialize_from_persisted(self, interview_id: str) -> ProgressionState:
        """Load an interview, repair its cached counter and resume it."""

        try:
            document = await self._retrying(
                "load interview", lambda: self._store.read_document(interview_id)
            )
        except InterviewValidationError:
            self._notifier.error(ERROR_MESSAGES[InterviewValidationError.kind])
            raise
        conversation_id = document.conversation_id
        if not conversation_id:
            conversation_id = await self._retrying(
                "create conversation", self._service.create_thread
            )
            await self._store.update_document(
                interview_id,
                {
                    "conversationId": conversation_id,
                    "lastUpdated": format_timestamp(utc_now()),
                },
            )
            logger.info("Created conversation %s for %s", conversation_id, interview_id)
        derived = self._tracker.compute_progress(document.messages).answered_count
        if derived != document.question_count:
            logger.warning(
                "Stored question count %d for %s is stale; recomputed %d",
                document.question_count,
                interview_id,
                derived,
            )
            await self._store.update_document(interview_id, {"questionCount": derived})
        self._state = ProgressionState(
            interview_id=interview_id,
            brand_name=document.brand_name,
            conversation_id=conversation_id,
            current_phase=document.current_phase,
            question_count=derived,
            messages=list(document.messages),
            reports=dict(document.reports),
        )
        if not document.messages:
            await self.start_conversation()
        else:
            self._refresh_suggestion()
            self._emit()
        return self._state

    async def start_conversation(self) -> List[InterviewMessage]:
        """Ask the assistant for its opening turn."""

        state = self._require_state()
        prompt = KICKOFF_TEMPLATE.substitute(brand_name=state.brand_name)
        async with self._guard.hold(self._conversation_id()):
            try:
                plan = await self._run_pipeline(prompt, self._build_opening_plan)
            except InterviewError as exc:
                self._notifier.error(ERROR_MESSAGES[exc.kind])
                raise
            finally:
                self._set_stage(ProcessingStage.IDLE)
        return plan.messages

    async def send_user_reply(self, text: str) -> ReplyOutcome:
        """Forward a user reply and apply whatever the assistant answers."""

        cleaned = sanitize_reply(text)
        if not cleaned:
            raise InvalidReplyError("Please enter a valid response.")
        state = self._require_state()
        async with self._guard.hold(self._conversation_id()):
            history_before = len(state.messages)
            previous_phase = state.current_phase
            outbound = cleaned
            if not previous_phase.is_terminal:
                expected = self._tracker.compute_progress(
                    state.messages
                ).next_question_index
                if not self._tracker.is_substantive(cleaned, expected):
                    self._notifier.info(BRIEF_ANSWER_NOTICE)
                    outbound = BRIEF_ANSWER_TEMPLATE.substitute(answer=cleaned)
            state.messages.append(
                InterviewMessage(role="user", content=cleaned, phase=previous_phase)
            )
            state.suggested_answer = None
            self._emit()
            try:
                plan = await self._run_pipeline(outbound, self._build_reply_plan)
            except BaseException as exc:
                del state.messages[history_before:]
                self._refresh_suggestion()
                if isinstance(exc, InterviewError):
                    self._notifier.error(ERROR_MESSAGES[exc.kind])
                raise
            finally:
                self._set_stage(ProcessingStage.IDLE)
        return ReplyOutcome(
            new_messages=plan.messages,
            previous_phase=previous_phase,
            current_phase=state.current_phase,
            accepted_reports=list(plan.accepted),
            completion_rejected=plan.completion_rejected,
        )

    async def _run_pipeline(
        self,
        outbound: str,
        build_plan: PlanBuilder,
    ) -> _TransitionPlan:
        """Post, run, fetch, plan and commit with a bounded retry budget.

        Finished steps are remembered so a retry never re-posts the message
        or repeats the report fix-up.
        """

        thread_id = self._conversation_id()
        progress = _StepProgress()
        max_attempts = self._settings.max_step_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                if not progress.posted:
                    self._set_stage(ProcessingStage.SENDING)
                    await self._orchestrator.ensure_no_active_runs(thread_id)
                    await self._service.append_message(thread_id, "user", outbound)
                    progress.posted = True
                if not progress.run_completed:
                    self._set_stage(ProcessingStage.THINKING)
                    await self._orchestrator.execute(thread_id)
                    progress.run_completed = True
                if progress.raw_text is None:
                    self._set_stage(ProcessingStage.READING)
                    progress.raw_text = await self._latest_assistant_text(thread_id)
                if progress.plan is None:
                    self._set_stage(ProcessingStage.FORMULATING)
                    progress.plan = await build_plan(progress.raw_text)
                self._set_stage(ProcessingStage.FINALIZING)
                await self._commit(progress.plan)
                return progress.plan
            except InterviewError as exc:
                if not exc.retryable or attempt >= max_attempts:
                    logger.error(
                        "Pipeline failed after %d attempt(s): %s", attempt, exc
                    )
                    raise
                logger.warning(
                    "Pipeline attempt %d/%d failed: %s", attempt, max_attempts, exc
                )
                self._notifier.warning(
                    f"Processing error. Retrying... ({attempt}/{max_attempts})"
                )
                self._set_stage(ProcessingStage.RETRYING)
                await self._sleep(self._settings.retry_delay_seconds)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _latest_assistant_text(self, thread_id: str) -> str:
        messages = await self._service.list_messages(thread_id)
        if not messages:
            raise ServiceError("No messages received from the assistant")
        latest = messages[0]
        if latest.role != "assistant" or not latest.content.strip():
            raise ServiceError("Latest thread message is not an assistant reply")
        return latest.content

    async def _build_opening_plan(self, raw_text: str) -> _TransitionPlan:
        state = self._require_state()
        parsed = self._parser.parse(raw_text)
        content = parsed.remaining_text or raw_text.strip()
        return _TransitionPlan(
            messages=[
                InterviewMessage(
                    role="assistant", content=content, phase=state.current_phase
                )
            ],
            final_phase=state.current_phase,
        )

    async def _build_reply_plan(self, raw_text: str) -> _TransitionPlan:
        state = self._require_state()
        parsed = self._parser.parse(raw_text)
        current = state.current_phase
        answered = set(self._tracker.compute_progress(state.messages).answered_indices)
        plan = _TransitionPlan(messages=[], final_phase=current)

        marker = parsed.marker_phase
        if marker is not None:
            if marker is current and not self._satisfied(marker, answered):
                logger.warning(
                    "Discarding premature completion marker for %s (%d answered)",
                    marker.value,
                    len(answered),
                )
                plan.completion_rejected = True
            elif marker.ordinal < current.ordinal:
                logger.info("Late completion marker for finished phase %s", marker.value)
            elif marker.ordinal > current.ordinal:
                logger.warning(
                    "Ignoring completion marker for %s while in %s",
                    marker.value,
                    current.value,
                )

        await self._accept_reports(parsed, current, answered, plan)
        self._emit_messages(parsed, current, plan)
        return plan

    async def _accept_reports(
        self,
        parsed: ParsedResponse,
        current: InterviewPhase,
        answered: Set[int],
        plan: _TransitionPlan,
    ) -> None:
        state = self._require_state()
        working = current
        for report in parsed.reports:
            phase = report.phase
            if phase.value in state.reports:
                logger.info("Ignoring %s report; already stored", phase.value)
                continue
            if phase in plan.reports:
                logger.info("Ignoring duplicate %s report in one reply", phase.value)
                continue
            if phase.ordinal < current.ordinal:
                logger.info("Storing late %s report without transition", phase.value)
                plan.reports[phase] = report.content
                continue
            if phase is not working:
                logger.warning(
                    "Rejecting %s report while in %s phase", phase.value, working.value
                )
                continue
            if not self._satisfied(phase, answered):
                logger.warning(
                    "Rejecting %s report: phase questions not all answered",
                    phase.value,
                )
                plan.completion_rejected = True
                continue
            content = report.content
            if phase.is_terminal:
                content = await self._fix_terminal_report(content)
            plan.reports[phase] = content
            plan.accepted.append(phase)
            successor = phase.next_phase()
            if successor is not None:
                logger.info("Advancing phase %s -> %s", phase.value, successor.value)
                working = successor
        plan.final_phase = working

    def _emit_messages(
        self,
        parsed: ParsedResponse,
        current: InterviewPhase,
        plan: _TransitionPlan,
    ) -> None:
        text = parsed.remaining_text
        transitions = [phase for phase in plan.accepted if not phase.is_terminal]
        terminal = InterviewPhase.COMPLETE in plan.accepted

        def add(content: str, phase: InterviewPhase) -> None:
            if content:
                plan.messages.append(
                    InterviewMessage(role="assistant", content=content, phase=phase)
                )

        if transitions:
            acknowledgement, opener = split_acknowledgement(text)
            add(acknowledgement, current)
            for phase in transitions:
                add(build_download_message(phase), phase)
            if terminal:
                add(build_completion_message(), InterviewPhase.COMPLETE)
            else:
                add(opener, plan.final_phase)
        elif terminal:
            add(text, InterviewPhase.COMPLETE)
            add(build_completion_message(), InterviewPhase.COMPLETE)
        elif plan.completion_rejected:
            content = f"{text}\n\n{PREMATURE_COMPLETION_WARNING}" if text else (
                PREMATURE_COMPLETION_WARNING
            )
            add(content, current)
        else:
            add(text, current)

    async def _fix_terminal_report(self, report: str) -> str:
        """One corrective round-trip when the terminal report is malformed."""

        validation = self._validator.validate(report)
        if validation.is_valid:
            return report
        logger.info(
            "Terminal report needs fixing (missing=%s, matrix_valid=%s)",
            validation.missing_sections,
            validation.matrix_valid,
        )
        self._set_stage(ProcessingStage.FIXING)
        thread_id = self._conversation_id()
        try:
            await self._service.append_message(
                thread_id, "user", validation.fix_prompt()
            )
            await self._orchestrator.execute(thread_id)
            raw_text = await self._latest_assistant_text(thread_id)
        except InterviewError as exc:
            logger.warning("Report fix-up failed; keeping original report: %s", exc)
            return report
        parsed = self._parser.parse(raw_text)
        fixed = parsed.report_for(InterviewPhase.COMPLETE)
        if fixed is None and parsed.reports:
            fixed = parsed.reports[0]
        if fixed is None:
            logger.warning("Fix-up reply carried no report; keeping original report")
            return report
        return fixed.content

    async def _commit(self, plan: _TransitionPlan) -> None:
        state = self._require_state()
        history = state.messages + plan.messages
        question_count = self._tracker.compute_progress(history).answered_count
        fields: Dict[str, object] = {
            "messages": [message.to_dict() for message in history],
            "questionCount": question_count,
            "lastUpdated": format_timestamp(utc_now()),
        }
        if plan.final_phase is not state.current_phase:
            fields["currentPhase"] = plan.final_phase.value
        for phase, content in plan.reports.items():
            fields[f"reports.{phase.value}"] = content
        await self._store.update_document(state.interview_id, fields)

        state.messages.extend(plan.messages)
        state.question_count = question_count
        state.current_phase = plan.final_phase
        for phase, content in plan.reports.items():
            state.reports[phase.value] = content
        self._refresh_suggestion()
        self._emit()

    def _satisfied(self, phase: InterviewPhase, answered: Set[int]) -> bool:
        if phase.is_terminal:
            return len(answered) >= self._tracker.total_questions
        return set(phase.question_range()).issubset(answered)

    def _refresh_suggestion(self) -> None:
        state = self._require_state()
        state.suggested_answer = None
        if state.current_phase.is_terminal:
            return
        for message in reversed(state.messages):
            if message.role == "assistant":
                expected = self._tracker.compute_progress(
                    state.messages
                ).next_question_index
                state.suggested_answer = self._tracker.suggest_answer(
                    message.content, expected
                )
                return
            if message.role == "user":
                return

    async def _retrying(self, action: str, call: Callable[[], Awaitable[T]]) -> T:
        max_attempts = self._settings.max_step_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                return await call()
            except InterviewError as exc:
                if not exc.retryable or attempt >= max_attempts:
                    raise
                logger.warning(
                    "Unable to %s (%d/%d): %s", action, attempt, max_attempts, exc
                )
                await self._sleep(self._settings.retry_delay_seconds)
        raise AssertionError("unreachable")  # pragma: no cover

    def _set_stage(self, stage: ProcessingStage) -> None:
        state = self._state
        if state is None or state.processing_stage is stage:
            return
        state.processing_stage = stage
        self._emit()

    def _emit(self) -> None:
        state = self._state
        if state is None:
            return
        for listener in self._listeners:
            listener(state)

    def _conversation_id(self) -> str:
        state = self._require_state()
        if not state.conversation_id:
            raise InterviewValidationError("Interview has no conversation.")
        return state.conversation_id

    def _require_state(self) -> ProgressionState:
        if self._state is None:
            raise InterviewValidationError(
                "Call initialize_from_persisted() before using the interview."
            )
        return self._state
