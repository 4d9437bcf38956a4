"""
Health check endpoint.
"""

import logging

from fastapi import APIRouter, Depends
from redis import Redis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.dependencies import get_db, get_redis
from common.schemas import APIResponse, HealthData

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/health",
    response_model=APIResponse,
    tags=["Health"]
)
async def health_check(
    redis_client: Redis = Depends(get_redis),
    db: Session = Depends(get_db)
):
    """
    Health check endpoint.

    Checks the task broker (Redis) and the submission store.

    Returns:
        APIResponse: Health status of the service
    """
    status = "healthy"

    try:
        redis_client.ping()
    except RedisError as e:
        logger.warning(f"Redis health check failed: {e}")
        status = "unhealthy"

    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning(f"Database health check failed: {e}")
        status = "unhealthy"

    return APIResponse(
        success=True,
        data=HealthData(status=status).model_dump()
    )
