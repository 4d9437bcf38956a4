"""
Celery application for the grading worker.

Start with:
    celery -A worker.celery_app worker --loglevel=INFO

Worker concurrency bounds how many grading pipelines run at once.
"""

import logging

from celery import Celery

from common.config import Settings, get_settings
from common.logging_conf import setup_celery_logging

logger = logging.getLogger(__name__)

# Headroom above the summed phase timeouts before Celery intervenes
SOFT_LIMIT_MARGIN_SECONDS = 120
HARD_LIMIT_MARGIN_SECONDS = 300


def pipeline_time_budget(settings: Settings) -> int:
    """Worst-case seconds a single grading run may take."""
    return int(
        settings.clone_timeout_seconds
        + settings.install_timeout_seconds
        + settings.test_timeout_seconds
        + settings.llm_timeout_seconds
    )


def create_celery_app(settings: Settings) -> Celery:
    """
    Build the worker's Celery app from settings.

    Args:
        settings: Application settings

    Returns:
        Celery: Configured app with the grading tasks registered
    """
    app = Celery(
        "grader_worker",
        broker=settings.redis_url,
        backend=settings.redis_url,
        include=["worker.tasks.submission_tasks"]
    )

    budget = pipeline_time_budget(settings)
    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        task_track_started=True,
        task_acks_late=True,
        task_soft_time_limit=budget + SOFT_LIMIT_MARGIN_SECONDS,
        task_time_limit=budget + HARD_LIMIT_MARGIN_SECONDS,
        worker_concurrency=settings.max_concurrent_pipelines,
        # One long pipeline per process; never hoard queued submissions
        worker_prefetch_multiplier=1,
        worker_max_tasks_per_child=100,
    )
    return app


settings = get_settings()

setup_celery_logging(
    sentry_dsn=settings.sentry_dsn,
    sentry_environment=settings.sentry_environment,
    sentry_traces_sample_rate=settings.sentry_traces_sample_rate,
    sentry_profiles_sample_rate=settings.sentry_profiles_sample_rate,
    log_level="DEBUG" if settings.debug else "INFO"
)

celery_app = create_celery_app(settings)

logger.info(
    f"Celery app initialized (concurrency="
    f"{settings.max_concurrent_pipelines})"
)


if __name__ == "__main__":
    celery_app.start()
