"""SQLAlchemy implementation of ProgressRepo."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from progress_service.db.tables import ComponentProgressRow
from progress_service.models.progress import (
    AttendanceStatus,
    ComponentProgress,
    ProgressStatus,
)
from progress_service.repos.progress_repo import stale_write


class SqlProgressRepo:
    """Satisfies the ProgressRepo Protocol using SQLAlchemy.

    Each call runs in its own transaction. ``put`` is a single-row UPDATE
    keyed by the composite primary key; with ``expected`` it also matches
    the status and attempts the caller read, so of two API instances racing
    on one record only the first write lands.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get(
        self, session_id: UUID, enrollment_id: UUID, component_id: UUID
    ) -> ComponentProgress | None:
        with self._session_factory() as session:
            row = session.get(
                ComponentProgressRow, (session_id, enrollment_id, component_id)
            )
            if row is None:
                return None
            return _row_to_progress(row)

    def add_many(self, records: Iterable[ComponentProgress]) -> None:
        with self._session_factory.begin() as session:
            session.add_all(
                ComponentProgressRow(
                    session_id=r.session_id,
                    enrollment_id=r.enrollment_id,
                    component_id=r.component_id,
                    **_values(r),
                )
                for r in records
            )

    def put(
        self, record: ComponentProgress, *, expected: ComponentProgress | None = None
    ) -> None:
        key = (record.session_id, record.enrollment_id, record.component_id)
        with self._session_factory.begin() as session:
            stmt = update(ComponentProgressRow).where(
                ComponentProgressRow.session_id == record.session_id,
                ComponentProgressRow.enrollment_id == record.enrollment_id,
                ComponentProgressRow.component_id == record.component_id,
            )
            if expected is not None:
                stmt = stmt.where(
                    ComponentProgressRow.status == expected.status.value,
                    ComponentProgressRow.attempts == expected.attempts,
                )
            stmt = stmt.values(**_values(record)).execution_options(
                synchronize_session=False
            )
            if session.execute(stmt).rowcount == 1:
                return
            if session.get(ComponentProgressRow, key) is None:
                raise KeyError("progress record not found")
            raise stale_write(record)

    def list_by_session(self, session_id: UUID) -> list[ComponentProgress]:
        with self._session_factory() as session:
            stmt = select(ComponentProgressRow).where(
                ComponentProgressRow.session_id == session_id
            )
            return [_row_to_progress(r) for r in session.execute(stmt).scalars()]


def _values(record: ComponentProgress) -> dict[str, object]:
    return {
        "status": record.status.value,
        "attendance_status": record.attendance_status.value,
        "start_time": record.start_time,
        "end_time": record.end_time,
        "score": record.score,
        "passed": record.passed,
        "attempts": record.attempts,
        "participation_score": record.participation_score,
        "instructor_notes": record.instructor_notes,
        "participant_feedback": record.participant_feedback,
    }


def _row_to_progress(row: ComponentProgressRow) -> ComponentProgress:
    return ComponentProgress(
        session_id=row.session_id,
        enrollment_id=row.enrollment_id,
        component_id=row.component_id,
        status=ProgressStatus(row.status),
        attendance_status=AttendanceStatus(row.attendance_status),
        start_time=row.start_time,
        end_time=row.end_time,
        score=row.score,
        passed=row.passed,
        attempts=row.attempts,
        participation_score=row.participation_score,
        instructor_notes=row.instructor_notes,
        participant_feedback=row.participant_feedback,
    )
