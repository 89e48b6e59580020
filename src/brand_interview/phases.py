"""Interview phases and the fixed question plan."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

QUESTIONS_PER_PHASE = 3


class InterviewPhase(str, Enum):
    """Ordered interview phases. Only forward, single-step moves are legal."""

    DISCOVERY = "discovery"
    MESSAGING = "messaging"
    AUDIENCE = "audience"
    COMPLETE = "complete"

    @classmethod
    def from_string(
        cls,
        phase: str | None,
        default: Optional["InterviewPhase"] = None,
    ) -> "InterviewPhase":
        """Normalize a phase name, accepting ordinal aliases like ``phase1``."""
        if not phase:
            if default is None:
                raise ValueError("Interview phase is required.")
            return default
        normalized = phase.strip().lower().replace(" ", "_")
        normalized = _PHASE_ALIASES.get(normalized, normalized)
        for candidate in cls:
            if candidate.value == normalized:
                return candidate
        if default is not None:
            return default
        raise ValueError(f"Unsupported interview phase: {phase}")

    @property
    def ordinal(self) -> int:
        return PHASE_ORDER.index(self)

    @property
    def is_terminal(self) -> bool:
        return self is InterviewPhase.COMPLETE

    @property
    def label(self) -> str:
        return self.value.title()

    def next_phase(self) -> Optional["InterviewPhase"]:
        """Return the successor phase, or ``None`` for the terminal phase."""
        position = self.ordinal + 1
        if position >= len(PHASE_ORDER):
            return None
        return PHASE_ORDER[position]

    def question_range(self) -> range:
        """Indices of the questions that belong to this phase."""
        if self.is_terminal:
            return range(0)
        start = self.ordinal * QUESTIONS_PER_PHASE
        return range(start, start + QUESTIONS_PER_PHASE)


PHASE_ORDER: Tuple[InterviewPhase, ...] = tuple(InterviewPhase)

_PHASE_ALIASES: Dict[str, str] = {
    "phase1": InterviewPhase.DISCOVERY.value,
    "phase2": InterviewPhase.MESSAGING.value,
    "phase3": InterviewPhase.AUDIENCE.value,
    "terminal": InterviewPhase.COMPLETE.value,
}


@dataclass(frozen=True, slots=True)
class InterviewQuestion:
    """One of the fixed interview questions."""

    index: int
    phase: InterviewPhase
    text: str
    signatures: Tuple[str, ...]
    keywords: Tuple[str, ...]
    demo_answer: str


QUESTION_PLAN: List[InterviewQuestion] = [
    InterviewQuestion(
        index=0,
        phase=InterviewPhase.DISCOVERY,
        text=(
            "When customers ask why they should choose your business over "
            "competitors, what's your answer? Think beyond just making money "
            "– what positive difference do you want to make for your "
            "customers?"
        ),
        signatures=(
            "choose your business over competitors",
            "positive difference do you want to make",
        ),
        keywords=(
            "competitors", "choose", "business", "different", "why", "over",
            "customers", "ask", "answer", "difference", "positive",
        ),
        demo_answer=(
            "Most AI companies rush to market with black-box solutions that "
            "work until they don't. We're different - every system we build is "
            "interpretable and has built-in safety guardrails. While others "
            "promise magic, we deliver AI that businesses can actually trust "
            "and understand. Our mission: make AI adoption safe for companies "
            "who can't afford catastrophic mistakes. We're not trying to "
            "replace human judgment, we're amplifying it with transparent, "
            "reliable automation that grows with your business."
        ),
    ),
    InterviewQuestion(
        index=1,
        phase=InterviewPhase.DISCOVERY,
        text=(
            "What three principles or beliefs guide how you run your business "
            "and treat your customers? For each one, what's a specific way you "
            "demonstrate this in your day-to-day operations?"
        ),
        signatures=(
            "three principles or beliefs guide how you run your business",
            "demonstrate this in your day-to-day",
        ),
        keywords=(
            "principles", "beliefs", "guide", "demonstrate", "values", "three",
            "run", "treat", "customers", "operations", "way",
        ),
        demo_answer=(
            "Safety Before Speed: Every model goes through extensive testing "
            "scenarios, including adversarial inputs. We document failure "
            "cases and edge case handling before deployment. Interpretability "
            "Always: Our clients get plain-English explanations for every AI "
            "decision. Monthly reports show exactly how the system arrived at "
            "recommendations, no black boxes. Human-Centered Design: Regular "
            "check-ins with end users. AI suggests, humans decide. Built-in "
            "override capabilities and clear escalation paths when the system "
            "encounters uncertainty."
        ),
    ),
    InterviewQuestion(
        index=2,
        phase=InterviewPhase.DISCOVERY,
        text=(
            "If your business were a person walking into a networking event, "
            "how would they act and speak? Describe their personality as if "
            "you're describing a friend."
        ),
        signatures=(
            "business were a person walking into a networking event",
            "describe their personality",
        ),
        keywords=(
            "personality", "person", "networking", "act", "speak", "friend",
            "business", "walking", "event", "describe",
        ),
        demo_answer=(
            "Thoughtful listener who asks clarifying questions before offering "
            "solutions. Dressed professionally but approachably - think "
            "startup founder, not big tech executive. Explains AI concepts "
            "using relatable analogies instead of technical jargon. The person "
            "who stays engaged when others talk about their challenges, "
            "genuinely curious about how automation could help without "
            "overselling. Would follow up with relevant case studies, not "
            "generic sales pitches."
        ),
    ),
    InterviewQuestion(
        index=3,
        phase=InterviewPhase.MESSAGING,
        text=(
            "If you had to explain what makes your business special in one "
            "short sentence, what would you say? Try to capture both what you "
            "do and why customers should care."
        ),
        signatures=(
            "explain what makes your business special in one short sentence",
            "why customers should care",
        ),
        keywords=(
            "explain", "special", "sentence", "capture", "care", "short",
            "business", "what", "makes", "customers", "should",
        ),
        demo_answer=(
            "We build AI systems that businesses can actually trust - "
            "transparent, safe, and designed to augment human decision-making "
            "rather than replace it."
        ),
    ),
    InterviewQuestion(
        index=4,
        phase=InterviewPhase.MESSAGING,
        text=(
            "When you talk about your business, do you tend to be more casual "
            "and friendly, or more professional and formal? Write a few lines "
            "about your business in this style to see how it sounds."
        ),
        signatures=(
            "casual and friendly, or more professional and formal",
            "write a few lines about your business",
        ),
        keywords=(
            "casual", "friendly", "professional", "formal", "style", "talk",
            "business", "tend", "lines", "write", "sounds",
        ),
        demo_answer=(
            "Professional but accessible - we avoid both AI hype and overly "
            "technical language: 'AI doesn't have to be scary or mysterious. "
            "We build systems that show their work, explain their reasoning, "
            "and give you confidence in every recommendation. No black boxes, "
            "no unpredictable behavior - just reliable automation that makes "
            "your team more effective while keeping humans in control of "
            "important decisions.'"
        ),
    ),
    InterviewQuestion(
        index=5,
        phase=InterviewPhase.MESSAGING,
        text=(
            "Look at your website, social media, and any marketing materials. "
            "Are you telling the same story everywhere? Note any places where "
            "your message differs."
        ),
        signatures=(
            "telling the same story everywhere",
            "note any places where your message differs",
        ),
        keywords=(
            "website", "social", "materials", "story", "message", "everywhere",
            "marketing", "telling", "same", "differs", "places",
        ),
        demo_answer=(
            "Website emphasizes safety and interpretability strongly. LinkedIn "
            "posts sometimes focus too much on technical achievements, less on "
            "business value. Sales materials consistently highlight "
            "human-centered approach. Gap: case studies show impressive "
            "results but could better explain our safety methodology. Email "
            "nurture sequence needs more content addressing AI adoption fears "
            "and ROI concerns."
        ),
    ),
    InterviewQuestion(
        index=6,
        phase=InterviewPhase.AUDIENCE,
        text=(
            "Think about your favorite customer – the type you wish you had "
            "more of. What's the one thing that makes them such a great fit "
            "for your business?"
        ),
        signatures=(
            "think about your favorite customer",
            "makes them such a great fit",
        ),
        keywords=(
            "favorite", "customer", "wish", "fit", "great", "type", "think",
            "about", "more", "thing", "makes",
        ),
        demo_answer=(
            "Operations leaders at mid-sized companies who've been burned by "
            "overhyped tech solutions before. They value thorough vetting over "
            "flashy demos. Want to innovate but need to justify ROI and risk "
            "management to stakeholders. Appreciate vendors who understand "
            "regulatory constraints and the importance of explainable "
            "decisions in their industry."
        ),
    ),
    InterviewQuestion(
        index=7,
        phase=InterviewPhase.AUDIENCE,
        text=(
            "What are the three biggest problems or challenges that your best "
            "customers typically face before they find your business? "
            "Consider what really motivates them to seek help."
        ),
        signatures=(
            "three biggest problems or challenges that your best customers "
            "typically face",
            "motivates them to seek help",
        ),
        keywords=(
            "problems", "challenges", "customers", "face", "motivates",
            "biggest", "three", "before", "find", "business", "help",
        ),
        demo_answer=(
            "Problem 1: Fear of AI unpredictability - worried about system "
            "failures, biased outputs, or decisions they can't explain to "
            "customers/regulators. Problem 2: Resource constraints - need AI "
            "benefits but lack ML expertise to evaluate solutions or manage "
            "complex implementations. Problem 3: Stakeholder buy-in challenges "
            "- difficulty convincing leadership that AI investment is worth "
            "the risk, especially after hearing AI horror stories in the news."
        ),
    ),
    InterviewQuestion(
        index=8,
        phase=InterviewPhase.AUDIENCE,
        text=(
            "When you look at your recent social media posts or emails to "
            "customers, do they directly address the problems you just "
            "identified? If not, what specific changes would make your message "
            "more relevant to your ideal customers?"
        ),
        signatures=(
            "recent social media posts or emails to customers",
            "address the problems you just identified",
        ),
        keywords=(
            "posts", "emails", "address", "relevant", "changes", "recent",
            "social", "media", "directly", "problems", "identified",
        ),
        demo_answer=(
            "Content addresses safety concerns well but could better tackle "
            "the 'AI is too complex for us' worry. Recent posts focus on "
            "technical capabilities but miss the resource constraint angle - "
            "need more 'white glove implementation' messaging. Stakeholder "
            "buy-in challenge barely addressed in current materials. Should "
            "create more content around business cases, risk mitigation "
            "frameworks, and executive-level ROI discussions."
        ),
    ),
]

TOTAL_QUESTIONS = len(QUESTION_PLAN)


def questions_for_phase(phase: InterviewPhase) -> List[InterviewQuestion]:
    """Return the questions asked during ``phase`` in index order."""

    return [QUESTION_PLAN[index] for index in phase.question_range()]


def questions_required_through(phase: InterviewPhase) -> int:
    """Total answered questions needed before ``phase`` can be completed."""

    if phase.is_terminal:
        return TOTAL_QUESTIONS
    return phase.question_range().stop
