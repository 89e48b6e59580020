"""Prompt scaffolding and user-facing copy for the brand interview."""

from __future__ import annotations

from enum import Enum
from string import Template
from typing import Dict, Sequence, Tuple

from .errors import ErrorKind
from .phases import InterviewPhase


class ProcessingStage(str, Enum):
    """Pipeline stages surfaced to the presentation layer."""

    IDLE = "idle"
    SENDING = "sending"
    READING = "reading"
    THINKING = "thinking"
    FORMULATING = "formulating"
    FINALIZING = "finalizing"
    FIXING = "fixing"
    RETRYING = "retrying"


PROCESSING_MESSAGES: Dict[ProcessingStage, str] = {
    ProcessingStage.IDLE: "",
    ProcessingStage.SENDING: "Sending your message...",
    ProcessingStage.READING: "Analyzing your input...",
    ProcessingStage.THINKING: "Generating insights...",
    ProcessingStage.FORMULATING: "Crafting response...",
    ProcessingStage.FINALIZING: "Preparing recommendations...",
    ProcessingStage.FIXING: "Refining report format...",
    ProcessingStage.RETRYING: "Retrying connection...",
}

ERROR_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.NETWORK: (
        "Network error. Please check your connection and try again."
    ),
    ErrorKind.SERVICE: "Service temporarily unavailable. Please try again.",
    ErrorKind.TIMEOUT: "Request timed out. Please try again.",
    ErrorKind.VALIDATION: (
        "Session not found. Please start a new brand development journey."
    ),
}

KICKOFF_TEMPLATE = Template(
    "Please begin the brand development process for $brand_name."
)

BRIEF_ANSWER_TEMPLATE = Template(
    "[System Note: My previous answer was brief. Please ask me a clarifying "
    "follow-up question to help me provide more detail before we move on.]"
    "\n\nMy answer was: \"$answer\""
)

BRIEF_ANSWER_NOTICE = (
    "Your answer seems a bit brief. Asking the assistant for a follow-up."
)

PREMATURE_COMPLETION_WARNING = (
    "_Before we wrap up this phase, there are a few more things to cover "
    "first._"
)

# Lines that open the next phase in an assistant reply.
TRANSITION_PHRASES: Tuple[str, ...] = (
    "now that we",
    "building upon",
    "let's transform",
    "let's explore",
    "let's move on",
)

# Lines that only restate the report and are dropped from acknowledgements.
REPORT_FILLER_PHRASES: Tuple[str, ...] = (
    "report:",
    "insights have been",
    "now, let me summarize",
)

REPORT_NAMES: Dict[InterviewPhase, str] = {
    InterviewPhase.DISCOVERY: "Brand Elements Discovery",
    InterviewPhase.MESSAGING: "Brand Voice Analysis",
    InterviewPhase.AUDIENCE: "Brand Audience Alignment Analysis",
    InterviewPhase.COMPLETE: "Complete Brand Transformation",
}

PROMOTIONAL_TERMS: Tuple[str, ...] = (
    "Brand Alchemy Mastery course",
    "course",
)

TERMINAL_REQUIRED_SECTIONS: Tuple[str, ...] = (
    "Brand Breakthrough",
    "Your Brand at a Glance",
    "Key Observations and Insights",
    "Personalized Growth Roadmap",
    "Action Plan: Where to Focus Next",
    "Next Steps for Growth",
    "Prioritization Matrix",
    "The Brand Alchemy Mastery Course",
)

PRIORITIZATION_MATRIX_HEADER = "| Recommendation | Impact | Effort | Priority |"

TERMINAL_REPORT_TITLE = "# Elevate Your Brand, Empower Your Vision"

_MATRIX_EXAMPLE = """| Recommendation | Impact | Effort | Priority |
|---------------|--------|--------|----------|
| [Action 1]     | High   | Low    | Quick Win |
| [Action 2]     | High   | High   | Major Project |
| [Action 3]     | Medium | Low    | Filler |
| [Action 4]     | Low    | High   | Avoid or Postpone |"""


def build_download_message(phase: InterviewPhase) -> str:
    """Message offering the freshly generated phase report for download."""

    name = REPORT_NAMES[phase]
    lowered = name.lower()
    return (
        f"📋 **{name} Report Generated!**\n\n"
        f"Your {lowered} report is now ready. You can:\n\n"
        f"🔽 **Download it directly:** [Click here to download your {lowered} "
        f"report](#download-{phase.value})\n\n"
        "📊 **Access from progress ribbon:** Expand the progress ribbon at the "
        "top of the page to see all available reports\n\n"
        "This report contains personalized insights based on your responses "
        "and actionable recommendations for your brand development journey."
    )


def build_completion_message() -> str:
    """Closing message emitted once the terminal report is accepted."""

    download = build_download_message(InterviewPhase.COMPLETE)
    return (
        "🎉 **Congratulations! Your Brand Alchemy Spark is Complete!**\n\n"
        "Thank you for this illuminating journey through your brand's "
        "authentic essence. We've uncovered powerful insights about your "
        "brand identity, messaging consistency, and audience alignment.\n\n"
        f"{download}\n\n"
        "**Your Complete Analysis Includes:**\n"
        "- Strategic brand positioning recommendations\n"
        "- Actionable growth roadmap with prioritized steps\n"
        "- Professional brand analysis and insights\n"
        "- Personalized transformation strategy"
    )


def build_fix_prompt(
    missing_sections: Sequence[str],
    *,
    matrix_valid: bool,
) -> str:
    """Corrective instruction sent when the terminal report is malformed."""

    parts = [
        "Your last report is missing required elements or has formatting "
        "issues. Please fix and regenerate the final report with ALL these "
        "sections:\n"
    ]
    if missing_sections:
        parts.append(f"Missing sections: {', '.join(missing_sections)}\n")
    if not matrix_valid:
        parts.append(
            "The Prioritization Matrix table MUST be formatted as a proper "
            "markdown table with this exact format:\n\n"
            f"{_MATRIX_EXAMPLE}\n\n"
            "Each row should contain exactly one line of content per cell. The "
            "second line MUST contain dashes and separator pipes to properly "
            "format the header row.\n"
        )
    parts.append(
        "Please regenerate ONLY the final report inside a ```markdown block, "
        "exactly following the Final Transformation Summary template from the "
        "instructions, with all required sections. The report should start "
        f"with '{TERMINAL_REPORT_TITLE}' and include all sections in the "
        "correct order."
    )
    return "\n".join(parts)
