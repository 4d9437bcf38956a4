"""
Grader API service.

Accepts grading requests, queues them for the worker and serves
results. Long-lived clients live on app.state and are created in the
lifespan handler.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import redis
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from common.config import Settings, get_settings
from common.db import (
    create_engine_from_url,
    create_session_factory,
    session_scope,
)
from common.logging_conf import setup_fastapi_logging
from common.models import Base
from common.schemas import APIResponse
from modules import grading_service
from modules.dispatch import GradingDispatcher

from .v1.router import api_router

logger = logging.getLogger(__name__)


def _open_resources(app: FastAPI, settings: Settings) -> None:
    engine = create_engine_from_url(
        settings.database_url,
        echo=settings.debug
    )
    if engine.dialect.name == "sqlite":
        # PostgreSQL schemas are managed by Alembic
        Base.metadata.create_all(engine)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.redis_client = redis.from_url(
        settings.redis_url,
        decode_responses=True
    )
    app.state.dispatch_grading = GradingDispatcher(settings.redis_url)


def _close_resources(app: FastAPI) -> None:
    app.state.dispatch_grading.close()
    app.state.redis_client.close()
    app.state.engine.dispose()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    setup_fastapi_logging(
        sentry_dsn=settings.sentry_dsn,
        sentry_environment=settings.sentry_environment,
        sentry_traces_sample_rate=settings.sentry_traces_sample_rate,
        sentry_profiles_sample_rate=settings.sentry_profiles_sample_rate,
        log_level="DEBUG" if settings.debug else "INFO"
    )

    _open_resources(app, settings)

    with session_scope(app.state.session_factory) as db:
        in_flight = len(grading_service.list_pending_submissions(db))
    if in_flight:
        logger.warning(f"{in_flight} submissions are still being graded")

    logger.info(f"{settings.app_name} started")
    yield

    _close_resources(app)
    logger.info(f"{settings.app_name} stopped")


async def http_error_handler(
    request: Request,
    exc: HTTPException
) -> JSONResponse:
    """Wrap HTTP errors in the standard APIResponse envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content=APIResponse(success=False, error=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None)
    )


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title="Repo Grader API",
        description="Automated grading of GitHub repositories",
        version="0.1.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(HTTPException, http_error_handler)
    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
