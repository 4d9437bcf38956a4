"""
Submission grading pipeline.

Framework-free core shared by the API and the worker: clone, install,
test, review and score a repository.
"""

from .errors import (
    FetchFailed,
    GradingError,
    GradingFailed,
    InstallFailed,
    InvalidTransition,
)
from .orchestrator import GradingOrchestrator
from .reviewer import QualityReviewer
from .scoring import compose
from .types import (
    DegradationKind,
    Grade,
    GradingResult,
    PipelineConfig,
    ProjectType,
    QualityAnalysis,
    ReviewerConfig,
    ScoringPolicy,
    SubmissionSpec,
    SubmissionStatus,
    TestResult,
)

__all__ = [
    "DegradationKind",
    "FetchFailed",
    "Grade",
    "GradingError",
    "GradingFailed",
    "GradingOrchestrator",
    "GradingResult",
    "InstallFailed",
    "InvalidTransition",
    "PipelineConfig",
    "ProjectType",
    "QualityAnalysis",
    "QualityReviewer",
    "ReviewerConfig",
    "ScoringPolicy",
    "SubmissionSpec",
    "SubmissionStatus",
    "TestResult",
    "compose",
]
