"""Split raw assistant output into reports, completion marker and prose."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Sequence, Tuple

from .config import DEFAULT_COURSE_URL
from .phases import InterviewPhase
from .prompts import PROMOTIONAL_TERMS

logger = logging.getLogger(__name__)

REPORT_BLOCK_PATTERN = re.compile(
    r"```(?:markdown|md)\b[ \t]*\n?(.*?)```",
    re.DOTALL | re.IGNORECASE,
)
HEADING_PATTERN = re.compile(r"^\s{0,3}#{1,6}\s*\S", re.MULTILINE)
MARKER_PATTERN = re.compile(
    r"PHASE_COMPLETE\s*:\s*([A-Za-z][A-Za-z0-9_-]*)",
    re.IGNORECASE,
)
_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")
_MARKDOWN_LINK = re.compile(r"\[[^\]\n]*\]\([^)\s]*\)")

# Precedence: explicit phrase, then terminal-only phrase, then the marker.
PHASE_PHRASES: Tuple[Tuple[InterviewPhase, str], ...] = (
    (InterviewPhase.DISCOVERY, "brand elements discovery"),
    (InterviewPhase.MESSAGING, "brand voice analysis"),
    (InterviewPhase.AUDIENCE, "brand audience alignment"),
    (InterviewPhase.COMPLETE, "elevate your brand"),
)
TERMINAL_ONLY_PHRASES: Tuple[str, ...] = ("prioritization matrix",)


@dataclass(frozen=True, slots=True)
class ParsedReport:
    """A fenced report block with the phase it was classified under."""

    phase: InterviewPhase
    content: str
    source: str


@dataclass(frozen=True, slots=True)
class ParsedResponse:
    """Outcome of parsing one assistant reply."""

    reports: Tuple[ParsedReport, ...] = ()
    remaining_text: str = ""
    marker_phase: Optional[InterviewPhase] = None
    discarded_reports: Tuple[str, ...] = field(default=())

    def report_for(self, phase: InterviewPhase) -> Optional[ParsedReport]:
        for report in self.reports:
            if report.phase is phase:
                return report
        return None


def classify_report(
    content: str,
    marker_phase: Optional[InterviewPhase] = None,
) -> Tuple[Optional[InterviewPhase], str]:
    """Return the report phase and which rule decided it."""

    lowered = content.lower()
    for phase, phrase in PHASE_PHRASES:
        if phrase in lowered:
            return phase, "phrase"
    if any(phrase in lowered for phrase in TERMINAL_ONLY_PHRASES):
        return InterviewPhase.COMPLETE, "terminal-phrase"
    if marker_phase is not None:
        return marker_phase, "marker"
    return None, "unclassified"


def build_link_pattern(terms: Sequence[str]) -> Pattern[str]:
    ordered = sorted(terms, key=len, reverse=True)
    alternation = "|".join(re.escape(term) for term in ordered)
    return re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE)


class ResponseParser:
    """Pure text transform over assistant replies."""

    def __init__(
        self,
        *,
        link_url: str = DEFAULT_COURSE_URL,
        promotional_terms: Sequence[str] = PROMOTIONAL_TERMS,
    ) -> None:
        self._link_url = link_url
        self._link_pattern = build_link_pattern(promotional_terms)

    def parse(self, raw_text: str) -> ParsedResponse:
        text, marker_phase = self.strip_marker(raw_text or "")
        reports: List[ParsedReport] = []
        discarded: List[str] = []
        remaining = text
        for match in REPORT_BLOCK_PATTERN.finditer(text):
            content = match.group(1).strip()
            if not HEADING_PATTERN.search(content):
                continue
            remaining = remaining.replace(match.group(0), "", 1)
            phase, source = classify_report(content, marker_phase)
            if phase is None:
                logger.warning(
                    "Discarding unclassifiable report block (%d chars)",
                    len(content),
                )
                discarded.append(content)
                continue
            reports.append(ParsedReport(phase=phase, content=content, source=source))
        remaining = _EXCESS_BLANK_LINES.sub("\n\n", remaining).strip()
        return ParsedResponse(
            reports=tuple(reports),
            remaining_text=self.link_promotions(remaining),
            marker_phase=marker_phase,
            discarded_reports=tuple(discarded),
        )

    @staticmethod
    def strip_marker(text: str) -> Tuple[str, Optional[InterviewPhase]]:
        """Remove completion marker lines and the blank lines that follow."""

        lines = text.split("\n")
        kept: List[str] = []
        marker_phase: Optional[InterviewPhase] = None
        seen_marker = False
        skipping_blank = False
        for line in lines:
            match = MARKER_PATTERN.search(line)
            if match:
                name = match.group(1)
                try:
                    phase = InterviewPhase.from_string(name)
                except ValueError:
                    logger.warning("Ignoring completion marker for unknown phase %r", name)
                    phase = None
                if seen_marker:
                    logger.warning("Ignoring additional completion marker %r", name)
                elif phase is not None:
                    marker_phase = phase
                    seen_marker = True
                skipping_blank = True
                continue
            if skipping_blank and not line.strip():
                continue
            skipping_blank = False
            kept.append(line)
        return "\n".join(kept), marker_phase

    def link_promotions(self, text: str) -> str:
        """Turn promotional phrases into inline markdown links.

        Existing markdown links are left untouched, so linking twice is a
        no-op.
        """

        pieces: List[str] = []
        position = 0
        for link in _MARKDOWN_LINK.finditer(text):
            pieces.append(self._link_segment(text[position : link.start()]))
            pieces.append(link.group(0))
            position = link.end()
        pieces.append(self._link_segment(text[position:]))
        return "".join(pieces)

    def _link_segment(self, segment: str) -> str:
        return self._link_pattern.sub(
            lambda match: f"[{match.group(0)}]({self._link_url})",
            segment,
        )
