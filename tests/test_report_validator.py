"""Tests for terminal report validation."""

from __future__ import annotations

from brand_interview.prompts import TERMINAL_REQUIRED_SECTIONS
from brand_interview.report_validator import ReportValidator

MATRIX = (
    "## Prioritization Matrix\n"
    "| Recommendation | Impact | Effort | Priority |\n"
    "|---------------|--------|--------|----------|\n"
    "| Launch a blog | High | Low | Quick Win |\n"
)


def full_report(matrix: str = MATRIX) -> str:
    sections = "\n\n".join(f"## {section}\nDetails." for section in TERMINAL_REQUIRED_SECTIONS)
    return f"# Elevate Your Brand, Empower Your Vision\n\n{sections}\n\n{matrix}"


def test_complete_report_is_valid():
    validation = ReportValidator().validate(full_report())
    assert validation.is_valid
    assert validation.missing_sections == []


def test_missing_sections_are_listed_in_order():
    report = full_report().replace("Next Steps for Growth", "Later")
    report = report.replace("Brand Breakthrough", "Intro")
    validation = ReportValidator().validate(report)
    assert validation.missing_sections == ["Brand Breakthrough", "Next Steps for Growth"]
    prompt = validation.fix_prompt()
    assert "Missing sections: Brand Breakthrough, Next Steps for Growth" in prompt
    assert "MUST be formatted as a proper markdown table" not in prompt


def test_section_check_ignores_case():
    validation = ReportValidator().validate(full_report().upper())
    assert validation.missing_sections == []


def test_matrix_without_separator_row_is_invalid():
    broken = MATRIX.replace("|---------------|--------|--------|----------|\n", "")
    validation = ReportValidator().validate(full_report(broken))
    assert not validation.matrix_valid
    assert not validation.is_valid
    assert "| Recommendation | Impact | Effort | Priority |" in validation.fix_prompt()


def test_matrix_header_spacing_is_flexible():
    compact = MATRIX.replace(
        "| Recommendation | Impact | Effort | Priority |",
        "|Recommendation|Impact|Effort|Priority|",
    ).replace("|---------------|--------|--------|----------|", "| :--- | --- | --- | ---: |")
    assert ReportValidator().has_matrix_table(compact)
