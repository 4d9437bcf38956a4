"""
Pydantic schemas for API request and response models.
"""

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator

from grading.fetcher import is_github_url
from grading.types import Grade, ProjectType, SubmissionStatus


# Base response wrapper
class APIResponse(BaseModel):
    """Standard API response wrapper."""

    success: bool = Field(..., description="Operation success status")
    data: Optional[Union[dict[str, Any], list[Any]]] = Field(
        default=None,
        description="Response data"
    )
    error: Optional[str] = Field(
        default=None,
        description="Error message if success=False"
    )


# Health check schemas
class HealthData(BaseModel):
    """Health check response data."""

    status: str = Field(..., description="Service health status")


# Submission schemas
class SubmissionCreateRequest(BaseModel):
    """Request body for a grading request."""

    repository_url: str = Field(
        ...,
        description="GitHub repository URL to grade"
    )
    submitter_id: str = Field(
        ...,
        min_length=1,
        description="Identifier of the requesting principal"
    )
    instructor_id: Optional[str] = Field(
        default=None,
        description="Instructor responsible for the submission"
    )
    project_type: ProjectType = Field(
        default=ProjectType.express,
        description="Project type, selects the pipeline branch"
    )
    rubric: Optional[Union[str, dict[str, Any]]] = Field(
        default=None,
        description="Free-form grading criteria"
    )
    file_selectors: Optional[list[str]] = Field(
        default=None,
        description="Glob patterns overriding the default file selection"
    )

    @field_validator("repository_url")
    @classmethod
    def validate_repository_url(cls, value: str) -> str:
        value = value.strip()
        if not is_github_url(value):
            raise ValueError("Must be a valid GitHub repository URL")
        return value

    @field_validator("file_selectors")
    @classmethod
    def validate_file_selectors(
        cls,
        value: Optional[list[str]]
    ) -> Optional[list[str]]:
        if value is None:
            return None
        cleaned = [pattern.strip() for pattern in value if pattern.strip()]
        for pattern in cleaned:
            if pattern.startswith("/") or ".." in pattern.split("/"):
                raise ValueError(
                    f"File selector must stay inside the repository: {pattern}"
                )
        return cleaned or None


class SubmissionCreateData(BaseModel):
    """Response data for submission creation."""

    submission_id: str = Field(
        ...,
        description="Unique submission identifier"
    )
    status: SubmissionStatus = Field(..., description="Submission status")
    grade: Grade = Field(..., description="Grade (pending until graded)")
    created_at: datetime = Field(..., description="Submission timestamp")


class ScoreBreakdownData(BaseModel):
    """One scored category."""

    category: str
    score: float
    max_score: float
    feedback: str


class ScoresData(BaseModel):
    """Scores of a completed submission."""

    total: float = Field(..., ge=0, le=100)
    test_score: float = Field(..., ge=0, le=100)
    quality_score: float = Field(..., ge=0, le=100)
    breakdown: list[ScoreBreakdownData] = Field(default_factory=list)


class SubmissionData(BaseModel):
    """Full view of a submission."""

    submission_id: str = Field(..., description="Submission identifier")
    repository_url: str = Field(..., description="Graded repository")
    submitter_id: str = Field(..., description="Requesting principal")
    instructor_id: Optional[str] = None
    project_type: ProjectType
    status: SubmissionStatus
    grade: Grade
    scores: Optional[ScoresData] = Field(
        default=None,
        description="Present only when status is completed"
    )
    report: Optional[str] = Field(
        default=None,
        description="Markdown report, present only when completed"
    )
    error: Optional[str] = Field(
        default=None,
        description="Failure reason, present only when failed"
    )
    processing_time: Optional[float] = Field(
        default=None,
        description="Pipeline duration in seconds"
    )
    created_at: datetime = Field(..., description="Submission timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class SubmissionSummaryData(BaseModel):
    """List view of a submission."""

    submission_id: str
    repository_url: str
    submitter_id: str
    project_type: ProjectType
    status: SubmissionStatus
    grade: Grade
    total_score: Optional[float] = None
    created_at: datetime


class SubmissionStatsData(BaseModel):
    """Aggregate submission statistics."""

    total_submissions: int
    completed_submissions: int
    failed_submissions: int
    average_score: Optional[float] = None
    average_processing_time: Optional[float] = None
