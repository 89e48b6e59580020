"""Command line entry-point for the brand interview engine."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Iterable, List, Optional

from .config import AppSettings
from .controller import LoggingNotifier, ProgressionController, ProgressionState
from .errors import InterviewError, InterviewValidationError, InvalidReplyError
from .interview_store import RedisInterviewStore
from .models import InterviewMessage
from .phases import PHASE_ORDER, QUESTION_PLAN, InterviewPhase
from .prompts import PROCESSING_MESSAGES, ProcessingStage

TERMINATION_TOKENS = {"/quit", "/exit"}
DEMO_TOKEN = "/demo"
MAX_AUTOPILOT_TURNS = 40


class ConsoleNotifier(LoggingNotifier):
    """Prints notifications next to the conversation."""

    def info(self, message: str) -> None:
        super().info(message)
        print(f"[notice] {message}")  # noqa: T201 - CLI output

    def warning(self, message: str) -> None:
        super().warning(message)
        print(f"[warning] {message}")  # noqa: T201

    def error(self, message: str) -> None:
        super().error(message)
        print(f"[error] {message}")  # noqa: T201


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="brand-interview",
        description="Run AI-guided brand discovery interviews",
    )
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = True

    start_parser = subparsers.add_parser("start", help="Begin a new interview")
    start_parser.add_argument("--brand", required=True, help="Brand name")
    start_parser.add_argument(
        "--demo",
        action="store_true",
        help="Answer every question with its demo answer.",
    )

    resume_parser = subparsers.add_parser(
        "resume",
        help="Continue a persisted interview",
    )
    resume_parser.add_argument("id", help="Interview identifier")
    resume_parser.add_argument(
        "--demo",
        action="store_true",
        help="Answer every remaining question with its demo answer.",
    )

    show_parser = subparsers.add_parser(
        "show",
        help="Display phase, progress and stored reports",
    )
    show_parser.add_argument("id", help="Interview identifier")

    list_parser = subparsers.add_parser("list", help="Show recent interviews")
    list_parser.add_argument(
        "-n",
        "--limit",
        type=int,
        default=10,
        help="Maximum number of interviews to display (default: 10)",
    )
    return parser.parse_args(argv)


def run_cli(argv: Optional[List[str]] = None) -> None:
    """Entry-point invoked from ``python -m brand_interview``."""

    arg_list = list(argv) if argv is not None else sys.argv[1:]
    args = _parse_args(arg_list)
    settings = AppSettings.load()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        if args.command == "show":
            asyncio.run(show_interview(settings, args.id))
        elif args.command == "list":
            asyncio.run(list_interviews(settings, args.limit))
        elif args.command == "start":
            asyncio.run(
                run_interview(settings, brand_name=args.brand, autopilot=args.demo)
            )
        else:
            asyncio.run(
                run_interview(settings, interview_id=args.id, autopilot=args.demo)
            )
    except InterviewValidationError as exc:
        raise SystemExit(
            f"{exc}\nPlease start a new interview with `brand-interview start`."
        ) from exc
    except InterviewError as exc:
        raise SystemExit(str(exc)) from exc


async def run_interview(
    settings: AppSettings,
    *,
    brand_name: Optional[str] = None,
    interview_id: Optional[str] = None,
    autopilot: bool = False,
) -> ProgressionState:
    """Conduct an interview in the terminal and return its final state."""

    controller = ProgressionController.from_settings(
        settings, notifier=ConsoleNotifier()
    )
    controller.subscribe(_StagePrinter())
    try:
        if interview_id is None:
            if brand_name is None:
                raise ValueError("brand_name or interview_id is required")
            interview_id = await controller.create_interview(brand_name)
            print(f"Interview {interview_id} created for {brand_name}.")  # noqa: T201
        state = await controller.initialize_from_persisted(interview_id)
        _print_messages(state.messages)
        if autopilot:
            await _autopilot(controller)
        else:
            await _console_loop(controller)
    finally:
        await controller.close()
    _print_progress(controller.state)
    return controller.state


async def _console_loop(controller: ProgressionController) -> None:
    while True:
        state = controller.state
        if state.suggested_answer:
            print(f"(type {DEMO_TOKEN} to send the demo answer)")  # noqa: T201
        answer = input("You: ")  # noqa: PLW1514 - intentional CLI input
        token = answer.strip().lower()
        if token in TERMINATION_TOKENS:
            break
        if token == DEMO_TOKEN:
            if not state.suggested_answer:
                print("No demo answer for this turn.")  # noqa: T201
                continue
            answer = state.suggested_answer
            print(f"You: {answer}")  # noqa: T201
        try:
            outcome = await controller.send_user_reply(answer)
        except InvalidReplyError as exc:
            print(str(exc))  # noqa: T201
            continue
        except InterviewValidationError:
            raise
        except InterviewError:
            # Already reported through the notifier; the reply was rolled back.
            continue
        _print_messages(outcome.new_messages)


async def _autopilot(controller: ProgressionController) -> None:
    for _ in range(MAX_AUTOPILOT_TURNS):
        state = controller.state
        if InterviewPhase.COMPLETE.value in state.reports:
            return
        answer = state.suggested_answer
        if not answer:
            index = controller.tracker.compute_progress(
                state.messages
            ).next_question_index
            answer = QUESTION_PLAN[index].demo_answer
        print(f"You: {answer}")  # noqa: T201
        outcome = await controller.send_user_reply(answer)
        _print_messages(outcome.new_messages)
    print("Autopilot stopped before the final report.")  # noqa: T201


async def show_interview(settings: AppSettings, interview_id: str) -> None:
    store = RedisInterviewStore(settings.redis_url, use_json=settings.redis_json)
    try:
        document = await store.read_document(interview_id)
    finally:
        await store.close()
    print(f"Brand: {document.brand_name}")  # noqa: T201
    print(f"Phase: {document.current_phase.label}")  # noqa: T201
    print(  # noqa: T201
        f"Questions answered: {document.question_count}/{len(QUESTION_PLAN)}"
    )
    print(f"Messages: {len(document.messages)}")  # noqa: T201
    for phase in PHASE_ORDER:
        report = document.reports.get(phase.value)
        if not report:
            continue
        print()  # noqa: T201
        print(f"=== {phase.label} report ===")  # noqa: T201
        print(report)  # noqa: T201


async def list_interviews(settings: AppSettings, limit: int) -> None:
    store = RedisInterviewStore(settings.redis_url, use_json=settings.redis_json)
    try:
        interview_ids = await store.list_interview_ids(limit)
        if not interview_ids:
            print("No interviews found.")  # noqa: T201
            return
        for interview_id in interview_ids:
            document = await store.read_document(interview_id)
            print(  # noqa: T201
                f"{interview_id}  {document.brand_name}  "
                f"{document.current_phase.label}  "
                f"{document.question_count}/{len(QUESTION_PLAN)}"
            )
    finally:
        await store.close()


class _StagePrinter:
    """Prints each processing stage once as it is entered."""

    def __init__(self) -> None:
        self._last = ProcessingStage.IDLE

    def __call__(self, state: ProgressionState) -> None:
        stage = state.processing_stage
        if stage is self._last:
            return
        self._last = stage
        if stage is not ProcessingStage.IDLE:
            print(f"... {PROCESSING_MESSAGES[stage]}")  # noqa: T201


def _print_messages(messages: Iterable[InterviewMessage]) -> None:
    for message in messages:
        if message.role != "assistant":
            continue
        print()  # noqa: T201
        print(f"Brand Coach: {message.content}")  # noqa: T201
    print()  # noqa: T201


def _print_progress(state: ProgressionState) -> None:
    print(  # noqa: T201
        f"Interview {state.interview_id}: {state.current_phase.label}, "
        f"{state.question_count}/{len(QUESTION_PLAN)} questions answered."
    )


if __name__ == "__main__":  # pragma: no cover - manual execution hook
    run_cli()
