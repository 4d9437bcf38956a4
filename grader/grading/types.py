"""
Domain types for the grading pipeline.

Project types are a closed enum with a single dispatch table
(PROJECT_PROFILES) that decides which pipeline phases run and how
scores are composed. No other module compares project type strings.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field


class ProjectType(str, Enum):
    """Kinds of repository the pipeline knows how to grade."""

    express = "express"
    react = "react"
    fullstack = "fullstack"
    c = "c"
    cpp = "cpp"


class Composition(str, Enum):
    """How test and quality scores combine into the total."""

    weighted = "weighted"
    quality_only = "quality_only"


class SubmissionStatus(str, Enum):
    """Pipeline phases, in the only order they may occur."""

    uploading = "uploading"
    installing = "installing"
    testing = "testing"
    reviewing = "reviewing"
    reporting = "reporting"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SubmissionStatus.completed, SubmissionStatus.failed)

    def can_advance_to(self, target: "SubmissionStatus") -> bool:
        """
        Check whether moving from this status to target is allowed.

        Transitions are strictly forward. Failed is reachable from any
        non-terminal status; nothing leaves a terminal status.
        """
        if self.is_terminal:
            return False
        if target is SubmissionStatus.failed:
            return True
        return _STATUS_ORDER.index(target) > _STATUS_ORDER.index(self)


_STATUS_ORDER = [
    SubmissionStatus.uploading,
    SubmissionStatus.installing,
    SubmissionStatus.testing,
    SubmissionStatus.reviewing,
    SubmissionStatus.reporting,
    SubmissionStatus.completed,
]


class Grade(str, Enum):
    """Final grade of a submission."""

    passed = "pass"
    failed = "fail"
    pending = "pending"


class DegradationKind(str, Enum):
    """Non-fatal failures that lower a score instead of failing a run."""

    test_execution = "test_execution"
    quality_analysis = "quality_analysis"
    registry_lookup = "registry_lookup"


@dataclass(frozen=True)
class ProjectProfile:
    """Pipeline behaviour for one project type."""

    runs_install: bool
    runs_tests: bool
    composition: Composition
    language_label: str
    default_file_globs: tuple[str, ...]

    @property
    def executable(self) -> bool:
        return self.runs_tests


JS_FILE_GLOBS = (
    "README.md",
    "readme.md",
    "package.json",
    "index.js", "index.ts", "app.js", "app.ts", "server.js", "server.ts",
    "src/**/*.js", "src/**/*.ts", "src/**/*.jsx", "src/**/*.tsx",
    "routes/**/*.js", "routes/**/*.ts",
    "controllers/**/*.js", "controllers/**/*.ts",
    "middleware/**/*.js", "middleware/**/*.ts",
)

C_FILE_GLOBS = (
    "README.md",
    "readme.md",
    "Makefile",
    "CMakeLists.txt",
    "*.c", "*.h", "*.cpp", "*.hpp", "*.cc",
    "src/**/*.c", "src/**/*.h", "src/**/*.cpp", "src/**/*.hpp",
    "include/**/*.h", "include/**/*.hpp",
)

_JS_PROFILE = dict(
    runs_install=True,
    runs_tests=True,
    composition=Composition.weighted,
    default_file_globs=JS_FILE_GLOBS,
)

_COMPILED_PROFILE = dict(
    runs_install=False,
    runs_tests=False,
    composition=Composition.quality_only,
    default_file_globs=C_FILE_GLOBS,
)

PROJECT_PROFILES: dict[ProjectType, ProjectProfile] = {
    ProjectType.express: ProjectProfile(
        language_label="Node.js/Express", **_JS_PROFILE
    ),
    ProjectType.react: ProjectProfile(
        language_label="React", **_JS_PROFILE
    ),
    ProjectType.fullstack: ProjectProfile(
        language_label="full-stack JavaScript/TypeScript", **_JS_PROFILE
    ),
    ProjectType.c: ProjectProfile(language_label="C", **_COMPILED_PROFILE),
    ProjectType.cpp: ProjectProfile(
        language_label="C++", **_COMPILED_PROFILE
    ),
}


def get_profile(project_type: ProjectType) -> ProjectProfile:
    """Look up the pipeline profile for a project type."""
    return PROJECT_PROFILES[ProjectType(project_type)]


@dataclass(frozen=True)
class ReviewerConfig:
    """Explicit LLM settings for the quality reviewer."""

    api_key: str
    model: str = "gpt-4o"
    base_url: Optional[str] = None
    temperature: float = 0.2
    max_tokens: int = 2000
    timeout: float = 120.0
    max_retries: int = 2


@dataclass(frozen=True)
class ScoringPolicy:
    """Policy constants for score composition."""

    test_weight: float = 0.8
    pass_threshold: float = 70.0

    @property
    def quality_weight(self) -> float:
        # 1 - 0.8 is 0.19999999999999996 in floating point
        return round(1.0 - self.test_weight, 10)


class TestResult(BaseModel):
    """Structured outcome of running a project's test command."""

    __test__ = False

    passed: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    details: str = ""
    duration: Optional[float] = None
    degraded: bool = False

    @property
    def failed(self) -> int:
        return self.total - self.passed


class QualityAnalysis(BaseModel):
    """Scores and markdown report produced by the quality reviewer."""

    code_quality_score: float = Field(default=0.0, ge=0, le=100)
    test_score: Optional[float] = Field(default=None, ge=0, le=100)
    code_smell_score: Optional[float] = Field(default=None, ge=0, le=100)
    report: str = ""
    degraded: bool = False
    model_used: Optional[str] = None
    prompt_tokens: int = 0
    completion_tokens: int = 0
    analysis_time: float = 0.0


class ScoreBreakdownItem(BaseModel):
    """One scored category of the final grade."""

    category: str
    score: float
    max_score: float = 100
    feedback: str


class GradingScores(BaseModel):
    """Final scores of a completed submission."""

    total: float = Field(..., ge=0, le=100)
    test_score: float = Field(..., ge=0, le=100)
    quality_score: float = Field(..., ge=0, le=100)
    breakdown: list[ScoreBreakdownItem] = Field(default_factory=list)


class GradingResult(BaseModel):
    """Terminal result of a successful grading run."""

    grade: Grade
    scores: GradingScores
    report: str
    test_result: Optional[TestResult] = None
    quality: Optional[QualityAnalysis] = None
    degradations: list[DegradationKind] = Field(default_factory=list)


@dataclass
class SubmissionSpec:
    """
    Input of one grading run.

    This is the slice of a persisted submission the pipeline needs; the
    store record itself never reaches the grading package.
    """

    submission_id: str
    repository_url: str
    project_type: ProjectType
    rubric: Optional[Any] = None
    file_selectors: Optional[list[str]] = None
    status: SubmissionStatus = SubmissionStatus.uploading
    history: list[SubmissionStatus] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.project_type = ProjectType(self.project_type)
        self.status = SubmissionStatus(self.status)


@dataclass(frozen=True)
class PipelineConfig:
    """Process, filesystem and network limits for one grading run."""

    workdir_root: Path = Path("./tmp")
    git_binary: str = "git"
    install_command: str = "npm install"
    test_command: str = "npm test"
    clone_timeout: Optional[float] = 300.0
    install_timeout: Optional[float] = 600.0
    test_timeout: Optional[float] = 300.0
    registry_url: str = "https://registry.npmjs.org"
    registry_timeout: float = 10.0
    max_file_chars: int = 10_000
    scoring: ScoringPolicy = field(default_factory=ScoringPolicy)
