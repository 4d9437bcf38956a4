"""
Shared fixtures.

Settings are read from the environment, so the variables below are set
before any service module is imported.
"""

import os

os.environ.setdefault("STATIC_TOKEN", "test-token")
os.environ.setdefault("LLM_API_KEY", "test-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

import asyncio
from pathlib import Path
from types import SimpleNamespace

import pytest

from common.db import create_engine_from_url, create_session_factory
from common.models import Base
from grading.types import QualityAnalysis


@pytest.fixture
def engine():
    engine = create_engine_from_url("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = create_session_factory(engine)()
    yield session
    session.close()


class FakeLLM:
    """Chat model stand-in returning canned responses."""

    def __init__(self, content="", error=None, delay=0.0, usage=None):
        self.content = content
        self.error = error
        self.delay = delay
        self.usage = usage
        self.prompts = []

    async def ainvoke(self, prompt):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(
            content=self.content,
            usage_metadata=self.usage
        )


class FakeReviewer:
    """Reviewer stand-in returning a fixed analysis."""

    def __init__(self, analysis: QualityAnalysis):
        self.analysis = analysis
        self.calls = []

    async def review(self, files, project_type, **kwargs):
        self.calls.append({"files": files, "project_type": project_type, **kwargs})
        return self.analysis


@pytest.fixture
def fake_llm():
    return FakeLLM


@pytest.fixture
def make_reviewer():
    return FakeReviewer


@pytest.fixture
def write_files():
    def write(root: Path, files: dict[str, str]) -> None:
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
    return write
