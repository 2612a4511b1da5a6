"""create template, session and progress tables

Revision ID: 3b7e1c9d2a40
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e1c9d2a40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "session_templates",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("code", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "total_duration_minutes", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "estimated_break_minutes", sa.Integer(), nullable=False, server_default="0"
        ),
    )
    op.create_table(
        "template_components",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "template_id",
            sa.Uuid(),
            sa.ForeignKey("session_templates.id"),
            nullable=False,
        ),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("sequence_order", sa.Integer(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("is_mandatory", sa.Boolean(), nullable=False),
        sa.Column("has_assessment", sa.Boolean(), nullable=False),
        sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("passing_score", sa.Float(), nullable=False, server_default="80"),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
    )
    op.create_index(
        "ix_template_components_template_id", "template_components", ["template_id"]
    )
    op.create_table(
        "training_sessions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("template_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("components_json", sa.Text(), nullable=False),
        sa.Column("created_at", sa.Integer(), nullable=False),
    )
    op.create_table(
        "session_enrollments",
        sa.Column(
            "session_id",
            sa.Uuid(),
            sa.ForeignKey("training_sessions.id"),
            primary_key=True,
        ),
        sa.Column("enrollment_id", sa.Uuid(), primary_key=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("email", sa.String(length=320), nullable=False, server_default=""),
        sa.Column("attendance_percentage", sa.Float(), nullable=True),
        sa.Column("participation_score", sa.Float(), nullable=True),
    )
    op.create_table(
        "component_progress",
        sa.Column(
            "session_id",
            sa.Uuid(),
            sa.ForeignKey("training_sessions.id"),
            primary_key=True,
        ),
        sa.Column("enrollment_id", sa.Uuid(), primary_key=True),
        sa.Column("component_id", sa.Uuid(), primary_key=True),
        sa.Column(
            "status", sa.String(length=32), nullable=False, server_default="NOT_STARTED"
        ),
        sa.Column(
            "attendance_status",
            sa.String(length=32),
            nullable=False,
            server_default="REGISTERED",
        ),
        sa.Column("start_time", sa.Integer(), nullable=True),
        sa.Column("end_time", sa.Integer(), nullable=True),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("passed", sa.Boolean(), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("participation_score", sa.Float(), nullable=True),
        sa.Column("instructor_notes", sa.Text(), nullable=True),
        sa.Column("participant_feedback", sa.Text(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("component_progress")
    op.drop_table("session_enrollments")
    op.drop_table("training_sessions")
    op.drop_index("ix_template_components_template_id", "template_components")
    op.drop_table("template_components")
    op.drop_table("session_templates")
