"""Tests for history-derived interview progress."""

from __future__ import annotations

import pytest

from brand_interview.models import InterviewMessage
from brand_interview.phase_tracker import (
    KeywordDensityMatcher,
    PartialPhraseMatcher,
    PhaseTracker,
    SignatureMatcher,
)
from brand_interview.phases import QUESTION_PLAN, InterviewPhase

from conftest import answered_history


def message(role: str, content: str) -> InterviewMessage:
    return InterviewMessage(role=role, content=content, phase=InterviewPhase.DISCOVERY)


@pytest.fixture
def tracker() -> PhaseTracker:
    return PhaseTracker()


class TestComputeProgress:
    def test_empty_history_starts_at_first_question(self, tracker):
        progress = tracker.compute_progress([])
        assert progress.answered_count == 0
        assert progress.next_question_index == 0

    def test_demo_answers_count_each_question(self, tracker):
        progress = tracker.compute_progress(answered_history(4))
        assert progress.answered_count == 4
        assert progress.next_question_index == 4
        assert progress.answered_indices == (0, 1, 2, 3)

    def test_brief_reply_does_not_count(self, tracker):
        history = answered_history(1) + [message("user", "Trust.")]
        assert tracker.compute_progress(history).answered_count == 1

    def test_foreign_demo_answer_does_not_count(self, tracker):
        history = answered_history(2) + [
            message("user", QUESTION_PLAN[5].demo_answer)
        ]
        assert tracker.compute_progress(history).answered_count == 2

    def test_repeated_question_is_counted_once(self, tracker):
        history = answered_history(1, ask_next=False) + [
            message("assistant", f"Let me ask again. {QUESTION_PLAN[0].text}"),
            message("user", "We build interpretable automation for factories."),
        ]
        assert tracker.compute_progress(history).answered_count == 1

    def test_progress_is_monotone_over_prefixes(self, tracker):
        history = answered_history(9, ask_next=False)
        history.insert(2, message("user", "ok"))
        counts = [
            tracker.compute_progress(history[:end]).answered_count
            for end in range(len(history) + 1)
        ]
        assert counts == sorted(counts)
        assert counts[-1] == 9

    def test_next_index_is_clamped_to_last_question(self, tracker):
        progress = tracker.compute_progress(answered_history(9))
        assert progress.answered_count == 9
        assert progress.next_question_index == 8


class TestMatching:
    def test_signature_beats_keyword_density(self, tracker):
        content = (
            "Competitors ask customers why they choose a business over others, "
            "and what positive difference is your answer? "
            f"Also: {QUESTION_PLAN[3].signatures[0]}?"
        )
        question = tracker.match_question(content)
        assert question is not None
        assert question.index == 3

    def test_excluded_questions_are_skipped(self, tracker):
        content = QUESTION_PLAN[0].text
        assert tracker.match_question(content, exclude={0}) is None

    def test_partial_phrase_matches_opening_words(self):
        question = QUESTION_PLAN[1]
        matcher = PartialPhraseMatcher()
        assert matcher.matches(question.text[:60].lower(), question)
        assert not SignatureMatcher().matches("nothing relevant", question)

    def test_keyword_density_requires_a_question(self):
        question = QUESTION_PLAN[0]
        statement = " ".join(question.keywords)
        matcher = KeywordDensityMatcher()
        assert not matcher.matches(statement, question)
        assert matcher.matches(statement + "?", question)


class TestSubstantive:
    def test_short_reply_is_not_substantive(self, tracker):
        assert not tracker.is_substantive("Yes, that's right.", 0)

    def test_demo_answer_only_counts_for_its_own_question(self, tracker):
        answer = QUESTION_PLAN[5].demo_answer
        assert tracker.is_substantive(answer, 5)
        assert not tracker.is_substantive(answer, 2)

    def test_is_substantive_is_pure(self, tracker):
        reply = "  We help small clinics   automate their paperwork safely. "
        first = tracker.is_substantive(reply, 1)
        second = tracker.is_substantive(reply, 1)
        assert first is second is True


class TestPhaseQueries:
    def test_phase_satisfied_after_three_answers(self, tracker):
        history = answered_history(3)
        assert tracker.answered_in_phase(history, InterviewPhase.DISCOVERY) == 3
        assert tracker.phase_satisfied(history, InterviewPhase.DISCOVERY)
        assert not tracker.phase_satisfied(history, InterviewPhase.MESSAGING)

    def test_terminal_phase_requires_every_question(self, tracker):
        assert not tracker.phase_satisfied(answered_history(8), InterviewPhase.COMPLETE)
        assert tracker.phase_satisfied(answered_history(9), InterviewPhase.COMPLETE)

    def test_suggest_answer_follows_expected_question(self, tracker):
        text = f"Great! {QUESTION_PLAN[4].text}"
        assert tracker.suggest_answer(text, 4) == QUESTION_PLAN[4].demo_answer
        assert tracker.suggest_answer(text, 5) is None
        assert tracker.suggest_answer(text, 12) is None
