"""
API v1 router aggregation.
"""

from fastapi import APIRouter

from .endpoints import health, submissions

api_router = APIRouter(prefix="/api/v1")

# Include all endpoint routers
api_router.include_router(health.router, prefix="", tags=["Health"])
api_router.include_router(
    submissions.router,
    prefix="",
    tags=["Submissions"]
)
