"""
Submission store business logic.

This module contains pure persistence logic with NO framework
dependencies. Used by both API and Worker services.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from common.models import Submission
from common.models.submission import PROCESSING_STATUSES
from grading.types import (
    Grade,
    GradingResult,
    ProjectType,
    SubmissionSpec,
    SubmissionStatus,
)

logger = logging.getLogger(__name__)


class SubmissionNotFoundError(Exception):
    """Raised when a submission is not found."""

    pass


class ValidationError(Exception):
    """Raised when validation fails."""

    pass


def generate_submission_id() -> str:
    """Generate unique submission ID."""
    return f"sub-{uuid.uuid4().hex[:12]}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_submission(
    db: Session,
    repository_url: str,
    submitter_id: str,
    project_type: ProjectType,
    rubric: Optional[Any] = None,
    file_selectors: Optional[list[str]] = None,
    instructor_id: Optional[str] = None
) -> Submission:
    """
    Create a new submission record.

    Args:
        db: Database session
        repository_url: Validated GitHub repository URL
        submitter_id: Requesting principal
        project_type: Project type
        rubric: Optional grading criteria
        file_selectors: Optional glob patterns
        instructor_id: Optional instructor

    Returns:
        Created submission instance, status uploading, grade pending

    Raises:
        ValidationError: If the project type is unknown
    """
    try:
        project_type = ProjectType(project_type)
    except ValueError as e:
        raise ValidationError(f"Unknown project type: {project_type}") from e

    submission = Submission(
        submission_id=generate_submission_id(),
        repository_url=repository_url,
        submitter_id=submitter_id,
        instructor_id=instructor_id,
        project_type=project_type.value,
        rubric=rubric,
        file_selectors=file_selectors,
        status=SubmissionStatus.uploading.value,
        grade=Grade.pending.value
    )

    db.add(submission)
    db.commit()
    db.refresh(submission)

    logger.info(
        f"Created submission {submission.submission_id} for "
        f"{repository_url}"
    )
    return submission


def get_submission_by_id(
    db: Session,
    submission_id: str
) -> Optional[Submission]:
    """
    Retrieve submission by ID.

    Args:
        db: Database session
        submission_id: Submission identifier

    Returns:
        Submission instance or None
    """
    return db.get(Submission, submission_id)


def _require_submission(db: Session, submission_id: str) -> Submission:
    submission = get_submission_by_id(db, submission_id)
    if not submission:
        raise SubmissionNotFoundError(
            f"Submission {submission_id} not found"
        )
    return submission


def list_submissions(
    db: Session,
    submitter_id: Optional[str] = None,
    instructor_id: Optional[str] = None,
    status: Optional[SubmissionStatus] = None,
    grade: Optional[Grade] = None,
    project_type: Optional[ProjectType] = None,
    limit: int = 50,
    offset: int = 0
) -> list[Submission]:
    """
    Query submissions, newest first.

    Args:
        db: Database session
        submitter_id: Filter by requesting principal
        instructor_id: Filter by instructor
        status: Filter by status
        grade: Filter by grade
        project_type: Filter by project type
        limit: Page size
        offset: Page offset

    Returns:
        list: Matching submissions
    """
    query = select(Submission)
    if submitter_id:
        query = query.where(Submission.submitter_id == submitter_id)
    if instructor_id:
        query = query.where(Submission.instructor_id == instructor_id)
    if status:
        query = query.where(
            Submission.status == SubmissionStatus(status).value
        )
    if grade:
        query = query.where(Submission.grade == Grade(grade).value)
    if project_type:
        query = query.where(
            Submission.project_type == ProjectType(project_type).value
        )

    query = query.order_by(
        Submission.created_at.desc(),
        Submission.submission_id
    ).limit(limit).offset(offset)
    return list(db.scalars(query))


def list_pending_submissions(db: Session) -> list[Submission]:
    """Submissions whose pipeline has not reached a terminal state."""
    return list(db.scalars(
        select(Submission).where(Submission.status.in_(PROCESSING_STATUSES))
    ))


def to_spec(submission: Submission) -> SubmissionSpec:
    """Build the grading input from a stored submission."""
    return SubmissionSpec(
        submission_id=submission.submission_id,
        repository_url=submission.repository_url,
        project_type=ProjectType(submission.project_type),
        rubric=submission.rubric,
        file_selectors=submission.file_selectors,
        status=SubmissionStatus(submission.status),
    )


def update_submission_status(
    db: Session,
    submission_id: str,
    status: SubmissionStatus
) -> Submission:
    """
    Advance a submission to a new pipeline status.

    Args:
        db: Database session
        submission_id: Submission identifier
        status: New status, must be later than the current one

    Returns:
        Updated submission

    Raises:
        SubmissionNotFoundError: If submission doesn't exist
        ValidationError: If the transition would move backwards or
            leave a terminal state
    """
    submission = _require_submission(db, submission_id)
    status = SubmissionStatus(status)
    current = SubmissionStatus(submission.status)

    if current != status and not current.can_advance_to(status):
        raise ValidationError(
            f"Submission {submission_id} cannot move from "
            f"{current.value} to {status.value}"
        )

    submission.status = status.value
    submission.updated_at = _now()
    db.commit()

    logger.info(f"Updated submission {submission_id}: {status.value}")
    return submission


def complete_submission(
    db: Session,
    submission_id: str,
    result: GradingResult,
    processing_time: Optional[float] = None
) -> Submission:
    """
    Store the terminal result of a successful grading run.

    Args:
        db: Database session
        submission_id: Submission identifier
        result: Grading result
        processing_time: Pipeline duration in seconds

    Returns:
        Updated submission

    Raises:
        SubmissionNotFoundError: If submission doesn't exist
        ValidationError: If the submission already reached a terminal state
    """
    submission = _require_submission(db, submission_id)
    if SubmissionStatus(submission.status).is_terminal:
        raise ValidationError(
            f"Submission {submission_id} is already {submission.status}"
        )

    submission.status = SubmissionStatus.completed.value
    submission.grade = result.grade.value
    submission.scores = result.scores.model_dump()
    submission.report = result.report
    submission.error = None
    submission.processing_time = processing_time
    if result.test_result is not None:
        submission.test_results = result.test_result.model_dump()
    if result.quality is not None:
        submission.ai_analysis = result.quality.model_dump(
            include={
                "model_used",
                "prompt_tokens",
                "completion_tokens",
                "analysis_time",
                "degraded",
            }
        )
    submission.updated_at = _now()
    db.commit()

    logger.info(
        f"Completed submission {submission_id}: "
        f"{result.scores.total:.1f} ({result.grade.value})"
    )
    return submission


def fail_submission(
    db: Session,
    submission_id: str,
    error: str,
    processing_time: Optional[float] = None
) -> Submission:
    """
    Mark a submission as failed with the causing message.

    Scores and report are cleared; grade is fail.

    Raises:
        SubmissionNotFoundError: If submission doesn't exist
        ValidationError: If the submission already completed
    """
    submission = _require_submission(db, submission_id)
    if submission.status == SubmissionStatus.completed.value:
        raise ValidationError(
            f"Submission {submission_id} is already completed"
        )

    submission.status = SubmissionStatus.failed.value
    submission.grade = Grade.failed.value
    submission.error = error or "Grading failed"
    submission.scores = None
    submission.report = None
    submission.processing_time = processing_time
    submission.updated_at = _now()
    db.commit()

    logger.info(f"Failed submission {submission_id}: {error}")
    return submission


def get_submission_stats(db: Session) -> dict[str, Any]:
    """
    Aggregate statistics across all submissions.

    Returns:
        dict: total/completed/failed counts and average score and
        processing time of completed submissions
    """
    completed = SubmissionStatus.completed.value
    failed = SubmissionStatus.failed.value

    row = db.execute(
        select(
            func.count(Submission.submission_id),
            func.sum(case((Submission.status == completed, 1), else_=0)),
            func.sum(case((Submission.status == failed, 1), else_=0)),
            func.avg(
                case(
                    (Submission.status == completed, Submission.processing_time),
                    else_=None
                )
            ),
        )
    ).one()

    # JSON columns are not portable to aggregate on; average in Python
    totals = [
        scores["total"]
        for scores in db.scalars(
            select(Submission.scores).where(Submission.status == completed)
        )
        if scores and "total" in scores
    ]

    return {
        "total_submissions": row[0] or 0,
        "completed_submissions": row[1] or 0,
        "failed_submissions": row[2] or 0,
        "average_score": sum(totals) / len(totals) if totals else None,
        "average_processing_time": (
            float(row[3]) if row[3] is not None else None
        ),
    }
