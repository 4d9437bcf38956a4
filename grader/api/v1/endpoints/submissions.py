"""
Submission API endpoints: request grading and read results.
"""

import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from api.dependencies import get_db, get_dispatcher, verify_token
from common.models import Submission
from common.schemas import (
    APIResponse,
    ScoresData,
    SubmissionCreateData,
    SubmissionCreateRequest,
    SubmissionData,
    SubmissionStatsData,
    SubmissionSummaryData,
)
from grading.types import Grade, ProjectType, SubmissionStatus
from modules import grading_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _submission_data(submission: Submission) -> SubmissionData:
    completed = submission.is_completed
    return SubmissionData(
        submission_id=submission.submission_id,
        repository_url=submission.repository_url,
        submitter_id=submission.submitter_id,
        instructor_id=submission.instructor_id,
        project_type=submission.project_type,
        status=submission.status,
        grade=submission.grade,
        scores=(
            ScoresData(**submission.scores)
            if completed and submission.scores else None
        ),
        report=submission.report if completed else None,
        error=submission.error if submission.is_failed else None,
        processing_time=submission.processing_time,
        created_at=submission.created_at,
        updated_at=submission.updated_at,
    )


@router.post(
    "/submissions",
    response_model=APIResponse,
    status_code=202,
    tags=["Submissions"]
)
async def create_submission(
    request: SubmissionCreateRequest,
    _token: str = Depends(verify_token),
    db: Session = Depends(get_db),
    dispatch: Callable[[str], object] = Depends(get_dispatcher)
):
    """
    Request grading of a GitHub repository.

    The submission is stored and queued; grading runs in the background
    and this call returns immediately.

    Args:
        request: Grading request

    Returns:
        APIResponse: Created submission data
    """
    try:
        submission = grading_service.create_submission(
            db,
            repository_url=request.repository_url,
            submitter_id=request.submitter_id,
            project_type=request.project_type,
            rubric=request.rubric,
            file_selectors=request.file_selectors,
            instructor_id=request.instructor_id
        )
    except grading_service.ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to create submission: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )

    try:
        dispatch(submission.submission_id)
    except Exception as e:
        logger.error(
            f"Failed to dispatch grading for "
            f"{submission.submission_id}: {e}"
        )
        grading_service.fail_submission(
            db,
            submission.submission_id,
            "Grading could not be scheduled"
        )
        raise HTTPException(
            status_code=503,
            detail="Grading queue unavailable"
        )

    logger.info(
        f"Dispatched grading task for submission "
        f"{submission.submission_id}"
    )

    return APIResponse(
        success=True,
        data=SubmissionCreateData(
            submission_id=submission.submission_id,
            status=submission.status,
            grade=submission.grade,
            created_at=submission.created_at
        ).model_dump(mode="json")
    )


@router.get(
    "/submissions/stats",
    response_model=APIResponse,
    tags=["Submissions"]
)
async def get_submission_stats(
    _token: str = Depends(verify_token),
    db: Session = Depends(get_db)
):
    """
    Aggregate grading statistics.

    Returns:
        APIResponse: Submission statistics
    """
    try:
        stats = grading_service.get_submission_stats(db)
    except Exception as e:
        logger.error(f"Failed to compute submission stats: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )

    return APIResponse(
        success=True,
        data=SubmissionStatsData(**stats).model_dump()
    )


@router.get(
    "/submissions/{submission_id}",
    response_model=APIResponse,
    tags=["Submissions"]
)
async def get_submission(
    submission_id: str,
    _token: str = Depends(verify_token),
    db: Session = Depends(get_db)
):
    """
    Get submission status and, once graded, its result.

    Args:
        submission_id: Submission identifier

    Returns:
        APIResponse: Submission data
    """
    try:
        submission = grading_service.get_submission_by_id(
            db,
            submission_id
        )

        if not submission:
            raise HTTPException(
                status_code=404,
                detail=f"Submission {submission_id} not found"
            )

        return APIResponse(
            success=True,
            data=_submission_data(submission).model_dump(mode="json")
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to fetch submission {submission_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )


@router.get(
    "/submissions",
    response_model=APIResponse,
    tags=["Submissions"]
)
async def list_submissions(
    submitter_id: Optional[str] = None,
    instructor_id: Optional[str] = None,
    status: Optional[SubmissionStatus] = None,
    grade: Optional[Grade] = None,
    project_type: Optional[ProjectType] = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    _token: str = Depends(verify_token),
    db: Session = Depends(get_db)
):
    """
    List submissions matching the given filters, newest first.

    Returns:
        APIResponse: List of submission summaries
    """
    try:
        submissions = grading_service.list_submissions(
            db,
            submitter_id=submitter_id,
            instructor_id=instructor_id,
            status=status,
            grade=grade,
            project_type=project_type,
            limit=limit,
            offset=offset
        )
    except Exception as e:
        logger.error(f"Failed to list submissions: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )

    return APIResponse(
        success=True,
        data=[
            SubmissionSummaryData(
                submission_id=s.submission_id,
                repository_url=s.repository_url,
                submitter_id=s.submitter_id,
                project_type=s.project_type,
                status=s.status,
                grade=s.grade,
                total_score=(s.scores or {}).get("total"),
                created_at=s.created_at
            ).model_dump(mode="json")
            for s in submissions
        ]
    )
