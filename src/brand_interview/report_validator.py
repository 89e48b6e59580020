"""Structural checks for the terminal transformation report."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Sequence

from .prompts import (
    PRIORITIZATION_MATRIX_HEADER,
    TERMINAL_REQUIRED_SECTIONS,
    build_fix_prompt,
)

_SEPARATOR_ROW = re.compile(r"^\|?\s*:?-{3,}:?\s*(?:\|\s*:?-{3,}:?\s*)+\|?$")


def _compact(line: str) -> str:
    return re.sub(r"\s+", "", line).lower()


@dataclass(slots=True)
class ReportValidation:
    """Outcome of validating a terminal report."""

    missing_sections: List[str] = field(default_factory=list)
    matrix_valid: bool = True

    @property
    def is_valid(self) -> bool:
        return not self.missing_sections and self.matrix_valid

    def fix_prompt(self) -> str:
        return build_fix_prompt(
            self.missing_sections,
            matrix_valid=self.matrix_valid,
        )


class ReportValidator:
    """Checks required sections and the prioritization matrix table."""

    def __init__(
        self,
        required_sections: Sequence[str] = TERMINAL_REQUIRED_SECTIONS,
        matrix_header: str = PRIORITIZATION_MATRIX_HEADER,
    ) -> None:
        self._required_sections = tuple(required_sections)
        self._matrix_header = _compact(matrix_header)

    def validate(self, report: str) -> ReportValidation:
        lowered = report.lower()
        missing = [
            section
            for section in self._required_sections
            if section.lower() not in lowered
        ]
        return ReportValidation(
            missing_sections=missing,
            matrix_valid=self.has_matrix_table(report),
        )

    def has_matrix_table(self, report: str) -> bool:
        """Header row present and immediately followed by a separator row."""

        lines = [line.strip() for line in report.splitlines()]
        for position, line in enumerate(lines[:-1]):
            if _compact(line) != self._matrix_header:
                continue
            if _SEPARATOR_ROW.match(lines[position + 1]):
                return True
        return False
