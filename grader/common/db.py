"""
Engine and session factories for the submission store.

No engine is created at import time; each service builds its own from
Settings.database_url.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


def _is_in_memory(url: URL) -> bool:
    return url.database in (None, "", ":memory:")


def create_engine_from_url(
    database_url: str,
    pool_pre_ping: bool = True,
    pool_size: int = 5,
    max_overflow: int = 10,
    echo: bool = False
) -> Engine:
    """
    Create SQLAlchemy engine from database URL.

    PostgreSQL gets a pre-pinged connection pool. SQLite (local runs and
    tests) is opened for use from worker threads; an in-memory database
    keeps a single shared connection so all sessions see the same data.

    Args:
        database_url: SQLAlchemy URL
        pool_pre_ping: Enable connection health checks
        pool_size: Number of connections to maintain
        max_overflow: Maximum overflow connections
        echo: Enable SQL query logging

    Returns:
        Engine: Configured SQLAlchemy engine
    """
    url = make_url(database_url)

    if url.get_backend_name() != "sqlite":
        return create_engine(
            url,
            pool_pre_ping=pool_pre_ping,
            pool_size=pool_size,
            max_overflow=max_overflow,
            echo=echo
        )

    options = {}
    if _is_in_memory(url):
        options["poolclass"] = StaticPool
    return create_engine(
        url,
        connect_args={"check_same_thread": False},
        echo=echo,
        **options
    )


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """
    Session factory whose objects stay readable after commit.

    Service functions commit per operation and hand the ORM objects
    back to callers that serialize them afterwards.
    """
    return sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False
    )


@contextmanager
def session_scope(
    session_factory: sessionmaker[Session]
) -> Generator[Session, None, None]:
    """
    Session for one unit of work; rolled back on error, always closed.
    """
    session = session_factory()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
