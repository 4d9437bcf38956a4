"""
Celery tasks for submission grading.

This module runs the grading pipeline for one submission, persisting
every status change and the terminal result to the submission store
and publishing them on the notification channel.
"""

import asyncio
import logging
import time
from typing import Any, Optional

from langfuse import Langfuse
from sqlalchemy.orm import Session

from common.config import Settings, get_settings
from common.db import create_engine_from_url, create_session_factory
from grading import GradingFailed, GradingOrchestrator, QualityReviewer
from grading.types import GradingResult, SubmissionSpec, SubmissionStatus
from modules import grading_service
from modules.notifications import RedisNotificationChannel
from worker.celery_app import celery_app

logger = logging.getLogger(__name__)


def get_langfuse_client(settings: Settings) -> Optional[Langfuse]:
    """Create the Langfuse client, or None when tracing is not configured."""
    if not settings.langfuse_enabled:
        return None
    return Langfuse(
        secret_key=settings.langfuse_secret_key,
        public_key=settings.langfuse_public_key,
        host=settings.langfuse_base_url
    )


def get_reviewer(settings: Settings) -> QualityReviewer:
    """Create the quality reviewer from explicit configuration."""
    return QualityReviewer(
        settings.reviewer_config(),
        langfuse=get_langfuse_client(settings)
    )


def result_event(result: GradingResult) -> dict[str, Any]:
    """Notification payload for a completed submission."""
    return {
        "type": "completed",
        "status": SubmissionStatus.completed.value,
        "grade": result.grade.value,
        "scores": result.scores.model_dump(),
    }


def run_grading(
    db: Session,
    submission_id: str,
    orchestrator_factory,
    channel: Optional[RedisNotificationChannel] = None
) -> dict[str, Any]:
    """
    Grade one stored submission and persist the outcome.

    Args:
        db: Database session
        submission_id: Submission identifier
        orchestrator_factory: Callable taking the status callback and
            returning a GradingOrchestrator
        channel: Optional notification channel

    Returns:
        dict: Task summary
    """
    submission = grading_service.get_submission_by_id(db, submission_id)
    if submission is None:
        logger.error(f"Submission {submission_id} not found")
        return {"status": "missing"}
    if not submission.is_processing:
        logger.warning(
            f"Submission {submission_id} is already {submission.status}"
        )
        return {"status": submission.status}

    spec = grading_service.to_spec(submission)

    def record_status(submission_id: str, status: SubmissionStatus) -> None:
        grading_service.update_submission_status(db, submission_id, status)
        if channel is not None:
            channel.publish_status(submission_id, status.value)

    async def on_status(
        spec: SubmissionSpec,
        status: SubmissionStatus
    ) -> None:
        # Terminal states are written below together with their payload
        if status.is_terminal:
            return
        # Blocking store and Redis calls stay off the pipeline's event loop
        await asyncio.to_thread(record_status, spec.submission_id, status)

    orchestrator = orchestrator_factory(on_status)
    started = time.monotonic()

    try:
        result = asyncio.run(orchestrator.grade_submission(spec))
    except GradingFailed as e:
        elapsed = time.monotonic() - started
        grading_service.fail_submission(db, submission_id, str(e), elapsed)
        if channel is not None:
            channel.publish_status(
                submission_id,
                SubmissionStatus.failed.value,
                error=str(e)
            )
        return {"status": "failed", "error": str(e)}

    elapsed = time.monotonic() - started
    grading_service.complete_submission(db, submission_id, result, elapsed)
    if channel is not None:
        channel.publish(submission_id, result_event(result))

    return {
        "status": "completed",
        "grade": result.grade.value,
        "total": result.scores.total,
    }


@celery_app.task(name="worker.tasks.grade_submission")
def grade_submission(submission_id: str) -> dict[str, Any]:
    """
    Grade a submission through the complete pipeline.

    Args:
        submission_id: Submission identifier

    Returns:
        dict: Processing result

    Workflow:
        1. Clone the repository (uploading)
        2. Install dependencies (installing, executable projects)
        3. Run tests (testing, executable projects)
        4. AI code review (reviewing)
        5. Compose scores and report (reporting -> completed)
    """
    settings = get_settings()
    engine = create_engine_from_url(settings.database_url)
    session_factory = create_session_factory(engine)
    db = session_factory()
    channel = RedisNotificationChannel.from_url(settings.redis_url)

    def orchestrator_factory(on_status):
        return GradingOrchestrator(
            get_reviewer(settings),
            config=settings.pipeline_config(),
            on_status=on_status
        )

    try:
        logger.info(f"Grading submission {submission_id}")
        return run_grading(db, submission_id, orchestrator_factory, channel)

    except Exception as e:
        logger.error(
            f"Error grading submission {submission_id}: {e}",
            exc_info=True
        )
        db.rollback()
        try:
            grading_service.fail_submission(
                db,
                submission_id,
                f"Grading failed: {e}"
            )
            channel.publish_status(
                submission_id,
                SubmissionStatus.failed.value,
                error=str(e)
            )
        except Exception as mark_error:
            logger.error(
                f"Could not mark {submission_id} as failed: {mark_error}"
            )
        raise
    finally:
        db.close()
        engine.dispose()
        channel.close()
