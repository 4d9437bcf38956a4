"""
FastAPI dependencies.

Everything here reads the clients that the lifespan handler placed on
app.state; nothing is constructed per request except the DB session.
"""

import secrets
from typing import Callable, Generator, Optional

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis import Redis
from sqlalchemy.orm import Session

from common.config import Settings
from common.db import session_scope

# auto_error=False so a missing header is a 401 like a wrong token
bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Provide a database session for one request.

    Yields:
        Session: Closed (and rolled back on error) after the response
    """
    with session_scope(request.app.state.session_factory) as session:
        yield session


def get_redis(request: Request) -> Redis:
    return request.app.state.redis_client


def get_dispatcher(request: Request) -> Callable[[str], object]:
    """Callable that queues grading of a submission ID."""
    return request.app.state.dispatch_grading


def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(
        bearer_scheme
    ),
    settings: Settings = Depends(get_settings)
) -> str:
    """
    Verify static bearer token authentication.

    The static token stands in for a real identity provider; every
    caller holding it is treated as the same principal.

    Returns:
        str: Verified token

    Raises:
        HTTPException: 401 if the token is missing or wrong
    """
    if credentials is None or not secrets.compare_digest(
        credentials.credentials.encode(),
        settings.static_token.encode()
    ):
        raise HTTPException(
            status_code=401,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"}
        )

    return credentials.credentials
