"""
Score composer: turns sub-scores into a total and a grade.
"""

from typing import Optional

from .types import Composition, Grade, ProjectType, ScoringPolicy, get_profile

DEFAULT_POLICY = ScoringPolicy()


def clamp_score(value: float) -> float:
    """Clamp a score into [0, 100]."""
    return max(0.0, min(100.0, float(value)))


def compose(
    test_score: float,
    quality_score: float,
    project_type: ProjectType,
    policy: Optional[ScoringPolicy] = None,
) -> tuple[float, Grade]:
    """
    Combine test and quality scores for a project type.

    Weighted projects: total = test * test_weight + quality * (1 - test_weight).
    Quality-only projects: total = quality.
    The grade is pass when total >= pass_threshold.

    Returns:
        tuple: (total, grade)
    """
    policy = policy or DEFAULT_POLICY
    profile = get_profile(project_type)

    if profile.composition is Composition.weighted:
        total = (
            test_score * policy.test_weight
            + quality_score * policy.quality_weight
        )
    else:
        total = quality_score

    total = clamp_score(total)
    grade = Grade.passed if total >= policy.pass_threshold else Grade.failed
    return total, grade
