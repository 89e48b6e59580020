"""Infer interview progress from the message history alone."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence, Set, Tuple

from .phases import QUESTION_PLAN, InterviewPhase, InterviewQuestion

MIN_ANSWER_LENGTH = 20

_WORD_PATTERN = re.compile(r"[a-z][a-z'-]*")


class HistoryMessage(Protocol):
    role: str
    content: str


def normalize_reply(text: str) -> str:
    return " ".join((text or "").split())


class QuestionMatcher:
    """Decides whether an assistant message renders a given question."""

    name = "base"

    def matches(self, content: str, question: InterviewQuestion) -> bool:
        raise NotImplementedError


class SignatureMatcher(QuestionMatcher):
    """Near-verbatim signature phrase match."""

    name = "signature"

    def matches(self, content: str, question: InterviewQuestion) -> bool:
        return any(signature.lower() in content for signature in question.signatures)


class PartialPhraseMatcher(QuestionMatcher):
    """Match on the opening words of the canonical question text."""

    name = "partial-phrase"

    def __init__(self, prefix_length: int = 50) -> None:
        self._prefix_length = prefix_length

    def matches(self, content: str, question: InterviewQuestion) -> bool:
        prefix = question.text[: self._prefix_length].lower().strip()
        return bool(prefix) and prefix in content


class KeywordDensityMatcher(QuestionMatcher):
    """Fallback: most of the question's keywords appear in a question-like turn."""

    name = "keyword-density"

    def __init__(self, threshold: float = 0.8) -> None:
        self._threshold = threshold

    def matches(self, content: str, question: InterviewQuestion) -> bool:
        if "?" not in content or not question.keywords:
            return False
        words = set(_WORD_PATTERN.findall(content))
        hits = sum(1 for keyword in question.keywords if keyword in words)
        return hits / len(question.keywords) >= self._threshold


DEFAULT_MATCHERS: Tuple[QuestionMatcher, ...] = (
    SignatureMatcher(),
    PartialPhraseMatcher(),
    KeywordDensityMatcher(),
)


@dataclass(frozen=True, slots=True)
class Progress:
    """How far the interview has progressed."""

    answered_count: int
    next_question_index: int
    answered_indices: Tuple[int, ...] = ()


class PhaseTracker:
    """Counts substantively answered questions in a message history."""

    def __init__(
        self,
        questions: Sequence[InterviewQuestion] = QUESTION_PLAN,
        matchers: Sequence[QuestionMatcher] = DEFAULT_MATCHERS,
        min_answer_length: int = MIN_ANSWER_LENGTH,
    ) -> None:
        self._questions = list(questions)
        self._matchers = list(matchers)
        self._min_answer_length = min_answer_length
        self._demo_answers: Dict[str, int] = {
            normalize_reply(question.demo_answer): question.index
            for question in self._questions
        }

    @property
    def total_questions(self) -> int:
        return len(self._questions)

    def compute_progress(self, history: Sequence[HistoryMessage]) -> Progress:
        answered: Set[int] = set()
        ordered: List[int] = []
        for position, message in enumerate(history[:-1]):
            if message.role != "assistant":
                continue
            question = self.match_question(message.content, exclude=answered)
            if question is None:
                continue
            reply = history[position + 1]
            if reply.role == "user" and self.is_substantive(
                reply.content, question.index
            ):
                answered.add(question.index)
                ordered.append(question.index)
        count = min(len(answered), self.total_questions)
        return Progress(
            answered_count=count,
            next_question_index=min(count, self.total_questions - 1),
            answered_indices=tuple(ordered),
        )

    def match_question(
        self,
        content: str,
        exclude: Optional[Set[int]] = None,
    ) -> Optional[InterviewQuestion]:
        """First question hit by the highest-priority matcher, if any."""

        lowered = (content or "").lower()
        excluded = exclude or set()
        candidates = [q for q in self._questions if q.index not in excluded]
        for matcher in self._matchers:
            for question in candidates:
                if matcher.matches(lowered, question):
                    return question
        return None

    def is_substantive(self, reply: str, expected_index: int) -> bool:
        """Long enough, and not someone else's demo answer."""

        normalized = normalize_reply(reply)
        if len(normalized) < self._min_answer_length:
            return False
        owner = self._demo_answers.get(normalized)
        if owner is not None:
            return owner == expected_index
        return True

    def answered_in_phase(
        self,
        history: Sequence[HistoryMessage],
        phase: InterviewPhase,
    ) -> int:
        indices = set(self.compute_progress(history).answered_indices)
        return len(indices.intersection(phase.question_range()))

    def phase_satisfied(
        self,
        history: Sequence[HistoryMessage],
        phase: InterviewPhase,
    ) -> bool:
        """True once every question of ``phase`` is answered.

        The terminal phase has no questions of its own and requires the
        whole plan to be answered.
        """

        if phase.is_terminal:
            return self.compute_progress(history).answered_count >= self.total_questions
        return self.answered_in_phase(history, phase) >= len(phase.question_range())

    def suggest_answer(self, assistant_text: str, question_index: int) -> Optional[str]:
        """Demo answer for the expected question when the text asks it."""

        if not 0 <= question_index < self.total_questions:
            return None
        question = self._questions[question_index]
        lowered = (assistant_text or "").lower()
        if SignatureMatcher().matches(lowered, question):
            return question.demo_answer
        return None
