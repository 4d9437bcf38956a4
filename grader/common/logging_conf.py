"""
Centralized logging configuration with Sentry.io integration.

This module provides logging setup for both API and Worker services.
"""

import logging
from typing import Any, Optional

import sentry_sdk

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Libraries that log every HTTP request at INFO. A single submission
# makes one registry request per dependency.
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "urllib3")


def setup_logging(
    sentry_dsn: Optional[str] = None,
    sentry_environment: str = "development",
    sentry_traces_sample_rate: float = 0.1,
    sentry_profiles_sample_rate: float = 1.0,
    log_level: str = "INFO",
    service_name: str = "grader",
    integrations: Optional[list[Any]] = None
) -> None:
    """
    Configure application logging and Sentry integration.

    Args:
        sentry_dsn: Sentry DSN URL (if None, Sentry is disabled)
        sentry_environment: Environment name for Sentry
        sentry_traces_sample_rate: Sampling rate for traces (0.0-1.0)
        sentry_profiles_sample_rate: Sampling rate for profiles (0.0-1.0)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        service_name: Name of the service for logging context
        integrations: Service-specific Sentry integrations
    """
    level = getattr(logging, log_level.upper())
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    if level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    if not sentry_dsn:
        logging.info(f"Sentry disabled for {service_name} (no DSN provided)")
        return

    sentry_sdk.init(
        dsn=sentry_dsn,
        environment=sentry_environment,
        traces_sample_rate=sentry_traces_sample_rate,
        profiles_sample_rate=sentry_profiles_sample_rate,
        integrations=integrations or [],
        attach_stacktrace=True,
        send_default_pii=False,
    )
    sentry_sdk.set_tag("service", service_name)
    logging.info(
        f"Sentry initialized for {service_name} in "
        f"{sentry_environment} environment"
    )


def setup_fastapi_logging(
    sentry_dsn: Optional[str] = None,
    sentry_environment: str = "development",
    sentry_traces_sample_rate: float = 0.1,
    sentry_profiles_sample_rate: float = 1.0,
    log_level: str = "INFO"
) -> None:
    """Logging for the API service, tracing requests per endpoint."""
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.starlette import StarletteIntegration

    setup_logging(
        sentry_dsn=sentry_dsn,
        sentry_environment=sentry_environment,
        sentry_traces_sample_rate=sentry_traces_sample_rate,
        sentry_profiles_sample_rate=sentry_profiles_sample_rate,
        log_level=log_level,
        service_name="grader-api",
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ]
    )


def setup_celery_logging(
    sentry_dsn: Optional[str] = None,
    sentry_environment: str = "development",
    sentry_traces_sample_rate: float = 0.1,
    sentry_profiles_sample_rate: float = 1.0,
    log_level: str = "INFO"
) -> None:
    """Logging for the grading worker, tracing each task."""
    from sentry_sdk.integrations.celery import CeleryIntegration

    setup_logging(
        sentry_dsn=sentry_dsn,
        sentry_environment=sentry_environment,
        sentry_traces_sample_rate=sentry_traces_sample_rate,
        sentry_profiles_sample_rate=sentry_profiles_sample_rate,
        log_level=log_level,
        service_name="grader-worker",
        integrations=[
            CeleryIntegration(
                monitor_beat_tasks=False,
                propagate_traces=True,
            ),
        ]
    )
