"""
Submission model for storing grading requests and their results.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Float, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from .base import Base

PROCESSING_STATUSES = (
    "uploading",
    "installing",
    "testing",
    "reviewing",
    "reporting",
)


class Submission(Base):
    """
    Submission entity.

    One row per grading request. The grading worker advances status
    and, on completion, stores scores and the markdown report; on
    failure it stores the error instead.
    """

    __tablename__ = "submissions"
    __table_args__ = (
        Index("ix_submissions_submitter_created", "submitter_id", "created_at"),
        Index(
            "ix_submissions_instructor_created",
            "instructor_id",
            "created_at"
        ),
    )

    submission_id: Mapped[str] = mapped_column(
        String(50),
        primary_key=True,
        index=True
    )
    repository_url: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        index=True
    )
    submitter_id: Mapped[str] = mapped_column(String(100), nullable=False)
    instructor_id: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True
    )
    project_type: Mapped[str] = mapped_column(String(20), nullable=False)
    rubric: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    file_selectors: Mapped[Optional[list[str]]] = mapped_column(
        JSON,
        nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="uploading",
        index=True
    )
    grade: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="pending",
        index=True
    )
    scores: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True
    )
    report: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processing_time: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True
    )
    test_results: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True
    )
    ai_analysis: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    @property
    def is_failed(self) -> bool:
        return self.status == "failed"

    @property
    def is_processing(self) -> bool:
        return self.status in PROCESSING_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Submission(submission_id={self.submission_id}, "
            f"status={self.status}, grade={self.grade})>"
        )
