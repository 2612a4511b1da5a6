"""SQLAlchemy implementation of SessionRepo."""

from __future__ import annotations

import json
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from progress_service.db.tables import SessionEnrollmentRow, TrainingSessionRow
from progress_service.models.component import ComponentDefinition, ComponentType
from progress_service.models.session import SessionEnrollment, SessionInstance


class SqlSessionRepo:
    """Satisfies the SessionRepo Protocol using SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get(self, session_id: UUID) -> SessionInstance | None:
        with self._session_factory() as session:
            return _load(session, session_id)

    def add(self, instance: SessionInstance) -> None:
        with self._session_factory.begin() as session:
            if session.get(TrainingSessionRow, instance.id) is not None:
                raise ValueError("session already exists")
            session.add(
                TrainingSessionRow(
                    id=instance.id,
                    template_id=instance.template_id,
                    title=instance.title,
                    components_json=_dump_components(instance.components),
                    created_at=instance.created_at,
                )
            )
            session.flush()
            session.add_all(
                SessionEnrollmentRow(
                    session_id=instance.id,
                    enrollment_id=e.enrollment_id,
                    position=i,
                    name=e.name,
                    email=e.email,
                    attendance_percentage=e.attendance_percentage,
                    participation_score=e.participation_score,
                )
                for i, e in enumerate(instance.enrollments)
            )

    def update_enrollment(
        self, session_id: UUID, enrollment: SessionEnrollment
    ) -> SessionInstance | None:
        with self._session_factory.begin() as session:
            stmt = (
                update(SessionEnrollmentRow)
                .where(
                    SessionEnrollmentRow.session_id == session_id,
                    SessionEnrollmentRow.enrollment_id == enrollment.enrollment_id,
                )
                .values(
                    name=enrollment.name,
                    email=enrollment.email,
                    attendance_percentage=enrollment.attendance_percentage,
                    participation_score=enrollment.participation_score,
                )
            )
            if session.execute(stmt).rowcount == 0:
                return None
            return _load(session, session_id)


def _load(session: Session, session_id: UUID) -> SessionInstance | None:
    row = session.get(TrainingSessionRow, session_id)
    if row is None:
        return None
    enrollments = (
        session.execute(
            select(SessionEnrollmentRow)
            .where(SessionEnrollmentRow.session_id == session_id)
            .order_by(SessionEnrollmentRow.position)
        )
        .scalars()
        .all()
    )
    return SessionInstance(
        id=row.id,
        template_id=row.template_id,
        title=row.title or "",
        components=_load_components(row.components_json),
        enrollments=tuple(
            SessionEnrollment(
                enrollment_id=e.enrollment_id,
                name=e.name or "",
                email=e.email or "",
                attendance_percentage=e.attendance_percentage,
                participation_score=e.participation_score,
            )
            for e in enrollments
        ),
        created_at=row.created_at,
    )


def _dump_components(components: tuple[ComponentDefinition, ...]) -> str:
    return json.dumps(
        [
            {
                "id": str(c.id),
                "type": c.type.value,
                "sequence_order": c.sequence_order,
                "duration_minutes": c.duration_minutes,
                "is_mandatory": c.is_mandatory,
                "has_assessment": c.has_assessment,
                "max_attempts": c.max_attempts,
                "passing_score": c.passing_score,
                "name": c.name,
            }
            for c in components
        ]
    )


def _load_components(raw: str) -> tuple[ComponentDefinition, ...]:
    return tuple(
        ComponentDefinition(
            id=UUID(d["id"]),
            type=ComponentType(d["type"]),
            sequence_order=d["sequence_order"],
            duration_minutes=d["duration_minutes"],
            is_mandatory=d["is_mandatory"],
            has_assessment=d["has_assessment"],
            max_attempts=d["max_attempts"],
            passing_score=d["passing_score"],
            name=d.get("name", ""),
        )
        for d in json.loads(raw)
    )
