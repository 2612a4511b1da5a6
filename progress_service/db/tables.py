"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in progress_service/models/.
Repos convert between rows and domain dataclasses.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from progress_service.db.engine import Base

# --- Templates ---


class SessionTemplateRow(Base):
    __tablename__ = "session_templates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    code: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_duration_minutes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    estimated_break_minutes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )


class TemplateComponentRow(Base):
    __tablename__ = "template_components"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("session_templates.id"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(
        String(32), nullable=False
    )  # COURSE|BREAK|LUNCH|ASSESSMENT|ACTIVITY
    sequence_order: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    is_mandatory: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    has_assessment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    passing_score: Mapped[float] = mapped_column(Float, nullable=False, default=80.0)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")


# --- Sessions ---


class TrainingSessionRow(Base):
    __tablename__ = "training_sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    template_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    # Snapshot of the template's components at instantiation time.
    components_json: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)


class SessionEnrollmentRow(Base):
    __tablename__ = "session_enrollments"

    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("training_sessions.id"), primary_key=True
    )
    enrollment_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(320), nullable=False, default="")
    attendance_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    participation_score: Mapped[float | None] = mapped_column(Float, nullable=True)


# --- Component progress ---


class ComponentProgressRow(Base):
    __tablename__ = "component_progress"

    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("training_sessions.id"), primary_key=True
    )
    enrollment_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    component_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="NOT_STARTED"
    )  # NOT_STARTED|IN_PROGRESS|COMPLETED|PASSED|FAILED|SKIPPED|EXCUSED
    attendance_status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="REGISTERED"
    )
    start_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    end_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    passed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    participation_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    instructor_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    participant_feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
