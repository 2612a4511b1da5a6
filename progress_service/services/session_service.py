"""Training session service: templates in, per-student progress out.

This is the in-process surface the HTTP layer (and any other presentation
or reporting layer) talks to. It owns the repositories, one ProgressStore
per session, and the aggregate read queries.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Sequence
from dataclasses import replace
from uuid import UUID

from progress_service.core.errors import NotFoundError, ValidationError
from progress_service.core.metrics import SESSIONS_INSTANTIATED
from progress_service.db.engine import session_factory
from progress_service.models.aggregate import (
    ComponentBreakdown,
    OverallStatus,
    SessionSummary,
    StudentSessionProgress,
)
from progress_service.models.component import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_PASSING_SCORE,
    ComponentDefinition,
    ComponentType,
    Template,
)
from progress_service.models.progress import ComponentProgress, ProgressPatch
from progress_service.models.session import SessionInstance
from progress_service.repos.enrollment_provider import (
    EnrollmentProvider,
    InMemoryEnrollmentProvider,
)
from progress_service.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from progress_service.repos.session_repo import InMemorySessionRepo, SessionRepo
from progress_service.repos.sql_progress_repo import SqlProgressRepo
from progress_service.repos.sql_session_repo import SqlSessionRepo
from progress_service.repos.sql_template_repo import SqlTemplateRepo
from progress_service.repos.template_repo import InMemoryTemplateRepo, TemplateRepo
from progress_service.services import assembler
from progress_service.services.aggregator import compute_student_progress
from progress_service.services.event_sink import ProgressEventSink, build_event_sink
from progress_service.services.progress_store import (
    BulkUpdate,
    BulkUpdateResult,
    Clock,
    ProgressStore,
    utc_now,
)
from progress_service.services.summary import component_breakdown, summarize_session

logger = logging.getLogger(__name__)


def _check_percentage(name: str, value: float | None) -> None:
    if value is not None and not 0 <= value <= 100:
        raise ValidationError(f"{name} must be between 0 and 100 (got {value})")


class TrainingSessionService:
    def __init__(
        self,
        *,
        templates: TemplateRepo,
        sessions: SessionRepo,
        progress: ProgressRepo,
        enrollments: EnrollmentProvider,
        sink: ProgressEventSink,
        clock: Clock = utc_now,
    ) -> None:
        self.templates = templates
        self.sessions = sessions
        self.progress = progress
        self.enrollments = enrollments
        self.sink = sink
        self._clock = clock
        self._stores: dict[UUID, ProgressStore] = {}
        # Guards store creation only; updates never take this lock.
        self._stores_lock = threading.Lock()

    # ----- templates -------------------------------------------------------

    def create_template(
        self,
        components: Sequence[ComponentDefinition],
        *,
        name: str,
        code: str,
        description: str | None = None,
    ) -> Template:
        if not code.strip():
            raise ValidationError("template code is required")
        template = assembler.create_template(
            components, name=name, code=code, description=description
        )
        self.templates.save(template)
        return template

    def get_template(self, template_id: UUID) -> Template:
        template = self.templates.get(template_id)
        if template is None:
            raise NotFoundError(f"template {template_id} not found")
        return template

    def list_templates(self) -> list[Template]:
        return sorted(self.templates.list_all(), key=lambda t: (t.code, t.name))

    def reorder_component(
        self, template_id: UUID, component_id: UUID, new_order: int
    ) -> Template:
        template = assembler.reorder_component(
            self.get_template(template_id), component_id, new_order
        )
        self.templates.save(template)
        return template

    def move_component(
        self, template_id: UUID, component_id: UUID, new_position: int
    ) -> Template:
        template = assembler.move_component(
            self.get_template(template_id), component_id, new_position
        )
        self.templates.save(template)
        return template

    def append_component(
        self,
        template_id: UUID,
        type: ComponentType,
        *,
        name: str | None = None,
        duration_minutes: int | None = None,
        is_mandatory: bool | None = None,
        has_assessment: bool | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        passing_score: float = DEFAULT_PASSING_SCORE,
    ) -> Template:
        template = assembler.append_component(
            self.get_template(template_id),
            type,
            name=name,
            duration_minutes=duration_minutes,
            is_mandatory=is_mandatory,
            has_assessment=has_assessment,
            max_attempts=max_attempts,
            passing_score=passing_score,
        )
        self.templates.save(template)
        return template

    def remove_component(self, template_id: UUID, component_id: UUID) -> Template:
        template = assembler.remove_component(
            self.get_template(template_id), component_id
        )
        self.templates.save(template)
        return template

    # ----- sessions --------------------------------------------------------

    def instantiate_session(
        self, session_id: UUID, template_id: UUID, *, title: str = ""
    ) -> SessionInstance:
        """Create the session and its progress rows from the current roster."""
        if self.sessions.get(session_id) is not None:
            raise ValidationError(f"session {session_id} already exists")

        template = self.get_template(template_id)
        roster = self.enrollments.list_active(session_id)
        session, records = assembler.instantiate_session(
            template,
            roster,
            session_id=session_id,
            title=title or template.name,
            now=self._clock(),
        )
        self.sessions.add(session)
        self.progress.add_many(records)
        SESSIONS_INSTANTIATED.inc()
        logger.info(
            "Session instantiated template=%s students=%d components=%d",
            template.code,
            len(session.enrollments),
            len(session.components),
            extra={"session_id": str(session_id)},
        )
        return session

    def get_session(self, session_id: UUID) -> SessionInstance:
        session = self.sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"session {session_id} not found")
        return session

    def store(self, session_id: UUID) -> ProgressStore:
        store = self._stores.get(session_id)
        if store is not None:
            return store
        session = self.get_session(session_id)
        with self._stores_lock:
            store = self._stores.get(session_id)
            if store is None:
                store = ProgressStore(
                    session, self.progress, self.sink, clock=self._clock
                )
                self._stores[session_id] = store
        return store

    def get_progress(
        self, session_id: UUID, enrollment_id: UUID, component_id: UUID
    ) -> ComponentProgress:
        return self.store(session_id).get(enrollment_id, component_id)

    def update_progress(
        self,
        session_id: UUID,
        enrollment_id: UUID,
        component_id: UUID,
        patch: ProgressPatch,
    ) -> ComponentProgress:
        return self.store(session_id).update(enrollment_id, component_id, patch)

    def bulk_update(
        self, session_id: UUID, updates: Iterable[BulkUpdate]
    ) -> list[BulkUpdateResult]:
        return self.store(session_id).bulk_update(updates)

    def record_student_metrics(
        self,
        session_id: UUID,
        enrollment_id: UUID,
        *,
        attendance_percentage: float | None,
        participation_score: float | None,
    ) -> StudentSessionProgress:
        """Store instructor-entered overrides; None reverts to the derived value."""
        _check_percentage("attendance_percentage", attendance_percentage)
        _check_percentage("participation_score", participation_score)
        enrollment = self.get_session(session_id).enrollment(enrollment_id)
        if enrollment is None:
            raise NotFoundError(f"enrollment {enrollment_id} not in session")
        self.sessions.update_enrollment(
            session_id,
            replace(
                enrollment,
                attendance_percentage=attendance_percentage,
                participation_score=participation_score,
            ),
        )
        return self.get_student_progress(session_id, enrollment_id)

    # ----- aggregate queries (pure reads) -----------------------------------

    def get_student_progress(
        self, session_id: UUID, enrollment_id: UUID
    ) -> StudentSessionProgress:
        session = self.get_session(session_id)
        enrollment = session.enrollment(enrollment_id)
        if enrollment is None:
            raise NotFoundError(f"enrollment {enrollment_id} not in session")
        return compute_student_progress(
            enrollment, session.components, self.store(session_id).snapshot()
        )

    def list_student_progress(
        self, session_id: UUID, status: OverallStatus | None = None
    ) -> list[StudentSessionProgress]:
        session = self.get_session(session_id)
        records = self.store(session_id).snapshot()
        students = [
            compute_student_progress(e, session.components, records)
            for e in session.enrollments
        ]
        if status is not None:
            students = [s for s in students if s.overall_status is status]
        return students

    def get_session_summary(self, session_id: UUID) -> SessionSummary:
        session = self.get_session(session_id)
        records = self.store(session_id).snapshot()
        students = [
            compute_student_progress(e, session.components, records)
            for e in session.enrollments
        ]
        return summarize_session(session, students, records)

    def get_component_breakdown(
        self, session_id: UUID, component_id: UUID
    ) -> ComponentBreakdown:
        session = self.get_session(session_id)
        component = session.component(component_id)
        if component is None:
            raise NotFoundError(f"component {component_id} not in session")
        return component_breakdown(component, self.store(session_id).snapshot())


def build_service(enrollments: EnrollmentProvider) -> TrainingSessionService:
    """Wire SQL repos when DATABASE_URL is set, in-memory ones otherwise."""
    if session_factory is not None:
        return TrainingSessionService(
            templates=SqlTemplateRepo(session_factory),
            sessions=SqlSessionRepo(session_factory),
            progress=SqlProgressRepo(session_factory),
            enrollments=enrollments,
            sink=build_event_sink(),
        )
    return TrainingSessionService(
        templates=InMemoryTemplateRepo(),
        sessions=InMemorySessionRepo(),
        progress=InMemoryProgressRepo(),
        enrollments=enrollments,
        sink=build_event_sink(),
    )


# Rosters arrive with the session-creation request; the provider holds them
# until instantiation reads them.
enrollment_provider = InMemoryEnrollmentProvider()
training_service = build_service(enrollment_provider)
