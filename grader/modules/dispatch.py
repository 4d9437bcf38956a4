"""
Background dispatch of grading runs.

The API never imports the worker package (its module-level Celery app
loads worker settings), so tasks are sent by name.
"""

import logging
from typing import Optional

from celery import Celery

logger = logging.getLogger(__name__)

GRADE_TASK_NAME = "worker.tasks.grade_submission"


class GradingDispatcher:
    """
    Queues grading tasks on the Celery broker.

    Args:
        broker_url: Celery broker URL (Redis)
        celery_client: Optional preconfigured client
    """

    def __init__(
        self,
        broker_url: str,
        celery_client: Optional[Celery] = None
    ):
        self.celery = celery_client or Celery(
            broker=broker_url,
            backend=broker_url
        )

    def __call__(self, submission_id: str) -> str:
        """
        Queue grading of one submission.

        Returns:
            str: Celery task ID

        Raises:
            kombu.exceptions.OperationalError: If the broker is unreachable
        """
        result = self.celery.send_task(GRADE_TASK_NAME, args=[submission_id])
        logger.debug(f"Queued {GRADE_TASK_NAME}[{result.id}] for {submission_id}")
        return result.id

    def close(self) -> None:
        self.celery.close()
