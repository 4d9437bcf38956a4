"""
Report assembly for completed grading runs.
"""

from typing import Optional

from .types import (
    DegradationKind,
    Grade,
    ProjectProfile,
    QualityAnalysis,
    ScoreBreakdownItem,
    TestResult,
)

DEGRADATION_NOTES = {
    DegradationKind.test_execution: (
        "The test command did not run cleanly, so the test score is 0."
    ),
    DegradationKind.quality_analysis: (
        "AI code review was unavailable, so the quality score is 0."
    ),
    DegradationKind.registry_lookup: (
        "Some dependency versions could not be checked against the "
        "package registry."
    ),
}


def _fmt(score: Optional[float]) -> str:
    if score is None:
        return "n/a"
    return f"{score:g}"


def build_breakdown(
    profile: ProjectProfile,
    test_score: float,
    test_result: Optional[TestResult],
    quality: QualityAnalysis,
) -> list[ScoreBreakdownItem]:
    """Per-category scores shown next to the total."""
    items = []
    if profile.executable:
        if test_result is not None and test_result.total > 0:
            feedback = (
                f"{test_result.passed} of {test_result.total} tests passed"
            )
        else:
            feedback = "No test results could be collected"
        items.append(ScoreBreakdownItem(
            category="Tests",
            score=test_score,
            feedback=feedback,
        ))

    items.append(ScoreBreakdownItem(
        category="Code Quality",
        score=quality.code_quality_score,
        feedback="LLM code quality score",
    ))

    if not profile.executable:
        items.append(ScoreBreakdownItem(
            category="Code Smell",
            score=quality.code_smell_score or 0.0,
            feedback="LLM code smell score",
        ))
    return items


def build_report(
    profile: ProjectProfile,
    total: float,
    grade: Grade,
    test_score: float,
    test_result: Optional[TestResult],
    quality: QualityAnalysis,
    degradations: list[DegradationKind],
) -> str:
    """
    Assemble the markdown report stored on a completed submission.

    The score summary comes first, then pipeline notes for anything
    that degraded, then the model's own review.
    """
    lines = [
        "# Grading Report",
        "",
        f"**Total Score:** {_fmt(round(total, 2))} / 100 ({grade.value})  ",
    ]
    if profile.executable:
        lines.append(f"**Test Score:** {_fmt(round(test_score, 2))} / 100  ")
    lines.append(
        f"**Code Quality Score:** {_fmt(quality.code_quality_score)} / 100  "
    )
    if not profile.executable:
        lines.append(
            f"**Code Smell Score:** {_fmt(quality.code_smell_score)} / 100  "
        )

    if degradations:
        lines += ["", "## Pipeline Notes"]
        lines += [f"- {DEGRADATION_NOTES[kind]}" for kind in degradations]

    if profile.executable:
        lines += ["", "## Test Results"]
        if test_result is not None:
            lines.append(f"- Passed: {test_result.passed}/{test_result.total}")
            if test_result.degraded and test_result.details.strip():
                lines.append(
                    f"- Diagnostic: {test_result.details.strip().splitlines()[0]}"
                )
        else:
            lines.append("- Tests were not run")

    lines += ["", "## Code Quality", "", quality.report]
    return "\n".join(lines)
