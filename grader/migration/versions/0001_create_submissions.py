"""create submissions table

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "submissions",
        sa.Column("submission_id", sa.String(length=50), nullable=False),
        sa.Column("repository_url", sa.String(length=500), nullable=False),
        sa.Column("submitter_id", sa.String(length=100), nullable=False),
        sa.Column("instructor_id", sa.String(length=100), nullable=True),
        sa.Column("project_type", sa.String(length=20), nullable=False),
        sa.Column("rubric", sa.JSON(), nullable=True),
        sa.Column("file_selectors", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("grade", sa.String(length=10), nullable=False),
        sa.Column("scores", sa.JSON(), nullable=True),
        sa.Column("report", sa.Text(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("processing_time", sa.Float(), nullable=True),
        sa.Column("test_results", sa.JSON(), nullable=True),
        sa.Column("ai_analysis", sa.JSON(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False
        ),
        sa.PrimaryKeyConstraint("submission_id"),
    )
    op.create_index(
        "ix_submissions_submission_id",
        "submissions",
        ["submission_id"]
    )
    op.create_index(
        "ix_submissions_repository_url",
        "submissions",
        ["repository_url"]
    )
    op.create_index("ix_submissions_status", "submissions", ["status"])
    op.create_index("ix_submissions_grade", "submissions", ["grade"])
    op.create_index(
        "ix_submissions_submitter_created",
        "submissions",
        ["submitter_id", "created_at"]
    )
    op.create_index(
        "ix_submissions_instructor_created",
        "submissions",
        ["instructor_id", "created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_submissions_instructor_created", table_name="submissions")
    op.drop_index("ix_submissions_submitter_created", table_name="submissions")
    op.drop_index("ix_submissions_grade", table_name="submissions")
    op.drop_index("ix_submissions_status", table_name="submissions")
    op.drop_index("ix_submissions_repository_url", table_name="submissions")
    op.drop_index("ix_submissions_submission_id", table_name="submissions")
    op.drop_table("submissions")
