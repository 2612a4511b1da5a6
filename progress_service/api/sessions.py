"""Training session endpoints: instantiation, progress updates, roll-ups.

Every read here is recomputed from the current progress records, so the
"by student" and "by component" views never disagree.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID, uuid4

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from progress_service.api.errors import raise_http, status_for
from progress_service.core.errors import ProgressError
from progress_service.models.aggregate import (
    ComponentBreakdown,
    OverallStatus,
    SessionSummary,
    StudentSessionProgress,
)
from progress_service.models.progress import (
    AttendanceStatus,
    ComponentProgress,
    ProgressPatch,
    ProgressStatus,
)
from progress_service.models.session import Enrollment, SessionInstance
from progress_service.services.progress_store import BulkUpdate
from progress_service.services.session_service import (
    enrollment_provider,
    training_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/sessions", tags=["sessions"])


# --- Pydantic schemas ---


class EnrollmentIn(BaseModel):
    enrollment_id: UUID | None = None
    name: str
    email: str


class SessionCreateIn(BaseModel):
    template_id: UUID
    session_id: UUID | None = None
    title: str = ""
    enrollments: list[EnrollmentIn]


class ProgressPatchIn(BaseModel):
    status: ProgressStatus | None = None
    attendance_status: AttendanceStatus | None = None
    score: float | None = Field(default=None, ge=0, le=100)
    participation_score: float | None = Field(default=None, ge=0, le=100)
    instructor_notes: str | None = None
    participant_feedback: str | None = None

    def to_patch(self) -> ProgressPatch:
        return ProgressPatch(**self.model_dump())


class BulkEntryIn(BaseModel):
    enrollment_id: UUID
    component_id: UUID
    patch: ProgressPatchIn


class BulkUpdateIn(BaseModel):
    updates: list[BulkEntryIn]


class StudentMetricsIn(BaseModel):
    attendance_percentage: float | None = Field(default=None, ge=0, le=100)
    participation_score: float | None = Field(default=None, ge=0, le=100)


class EnrollmentOut(BaseModel):
    enrollment_id: str
    name: str
    email: str


class SessionOut(BaseModel):
    id: str
    template_id: str
    title: str
    created_at: int
    component_ids: list[str]
    enrollments: list[EnrollmentOut]


class ComponentProgressOut(BaseModel):
    enrollment_id: str
    component_id: str
    status: ProgressStatus
    attendance_status: AttendanceStatus
    start_time: int | None
    end_time: int | None
    actual_duration_minutes: int | None
    score: float | None
    passed: bool | None
    attempts: int
    participation_score: float | None
    instructor_notes: str | None
    participant_feedback: str | None


class StudentProgressOut(BaseModel):
    enrollment_id: str
    student_name: str
    student_email: str
    overall_status: OverallStatus
    completion_rate: float
    completion_percentage: float
    overall_score: float | None
    overall_passed: bool
    attendance_percentage: float | None
    participation_score: float | None
    component_progress: list[ComponentProgressOut]


class BulkResultOut(BaseModel):
    enrollment_id: str
    component_id: str
    ok: bool
    record: ComponentProgressOut | None = None
    error: str | None = None
    message: str | None = None
    status_code: int | None = None


class ComponentBreakdownOut(BaseModel):
    component_id: str
    name: str
    type: str
    sequence_order: int
    is_mandatory: bool
    has_assessment: bool
    status_counts: dict[str, int]
    attendance_counts: dict[str, int]
    mean_score: float | None
    pass_rate: float | None


class SessionSummaryOut(BaseModel):
    session_id: str
    student_count: int
    status_counts: dict[str, int]
    mean_attendance_percentage: float | None
    mean_completion_rate: float
    components: list[ComponentBreakdownOut]


# --- Converters ---


def _session_out(s: SessionInstance) -> SessionOut:
    return SessionOut(
        id=str(s.id),
        template_id=str(s.template_id),
        title=s.title,
        created_at=s.created_at,
        component_ids=[str(c.id) for c in s.components],
        enrollments=[
            EnrollmentOut(enrollment_id=str(e.enrollment_id), name=e.name, email=e.email)
            for e in s.enrollments
        ],
    )


def _progress_out(p: ComponentProgress) -> ComponentProgressOut:
    return ComponentProgressOut(
        enrollment_id=str(p.enrollment_id),
        component_id=str(p.component_id),
        status=p.status,
        attendance_status=p.attendance_status,
        start_time=p.start_time,
        end_time=p.end_time,
        actual_duration_minutes=p.actual_duration_minutes,
        score=p.score,
        passed=p.passed,
        attempts=p.attempts,
        participation_score=p.participation_score,
        instructor_notes=p.instructor_notes,
        participant_feedback=p.participant_feedback,
    )


def _student_out(s: StudentSessionProgress) -> StudentProgressOut:
    return StudentProgressOut(
        enrollment_id=str(s.enrollment_id),
        student_name=s.student_name,
        student_email=s.student_email,
        overall_status=s.overall_status,
        completion_rate=s.completion_rate,
        completion_percentage=s.completion_percentage,
        overall_score=s.overall_score,
        overall_passed=s.overall_passed,
        attendance_percentage=s.attendance_percentage,
        participation_score=s.participation_score,
        component_progress=[_progress_out(p) for p in s.component_progress],
    )


def _breakdown_out(b: ComponentBreakdown) -> ComponentBreakdownOut:
    return ComponentBreakdownOut(
        component_id=str(b.component_id),
        name=b.name,
        type=b.type.value,
        sequence_order=b.sequence_order,
        is_mandatory=b.is_mandatory,
        has_assessment=b.has_assessment,
        status_counts=b.status_counts,
        attendance_counts=b.attendance_counts,
        mean_score=b.mean_score,
        pass_rate=b.pass_rate,
    )


def _summary_out(s: SessionSummary) -> SessionSummaryOut:
    return SessionSummaryOut(
        session_id=str(s.session_id),
        student_count=s.student_count,
        status_counts=s.status_counts,
        mean_attendance_percentage=s.mean_attendance_percentage,
        mean_completion_rate=s.mean_completion_rate,
        components=[_breakdown_out(b) for b in s.components],
    )


# --- Endpoints ---


@router.post("", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
def create_session(body: SessionCreateIn) -> SessionOut:
    """Register the roster and instantiate the session from its template."""
    session_id = body.session_id or uuid4()
    enrollment_provider.register(
        session_id,
        [
            Enrollment(
                enrollment_id=e.enrollment_id or uuid4(),
                name=e.name,
                email=e.email.strip().lower(),
            )
            for e in body.enrollments
        ],
    )
    try:
        session = training_service.instantiate_session(
            session_id, body.template_id, title=body.title
        )
    except ProgressError as e:
        logger.warning("Session instantiation rejected: %s", e)
        raise_http(e)
    finally:
        # The roster is read once, at instantiation.
        enrollment_provider.discard(session_id)
    return _session_out(session)


@router.get("/{session_id}", response_model=SessionOut)
def get_session(session_id: UUID) -> SessionOut:
    try:
        return _session_out(training_service.get_session(session_id))
    except ProgressError as e:
        raise_http(e)


@router.get("/{session_id}/students", response_model=list[StudentProgressOut])
def list_students(
    session_id: UUID,
    status_filter: Annotated[OverallStatus | None, Query(alias="status")] = None,
) -> list[StudentProgressOut]:
    try:
        students = training_service.list_student_progress(session_id, status_filter)
    except ProgressError as e:
        raise_http(e)
    return [_student_out(s) for s in students]


@router.get(
    "/{session_id}/students/{enrollment_id}", response_model=StudentProgressOut
)
def get_student(session_id: UUID, enrollment_id: UUID) -> StudentProgressOut:
    try:
        return _student_out(
            training_service.get_student_progress(session_id, enrollment_id)
        )
    except ProgressError as e:
        raise_http(e)


@router.put(
    "/{session_id}/students/{enrollment_id}/metrics",
    response_model=StudentProgressOut,
)
def put_student_metrics(
    session_id: UUID, enrollment_id: UUID, body: StudentMetricsIn
) -> StudentProgressOut:
    try:
        return _student_out(
            training_service.record_student_metrics(
                session_id,
                enrollment_id,
                attendance_percentage=body.attendance_percentage,
                participation_score=body.participation_score,
            )
        )
    except ProgressError as e:
        raise_http(e)


@router.get(
    "/{session_id}/progress/{enrollment_id}/{component_id}",
    response_model=ComponentProgressOut,
)
def get_progress(
    session_id: UUID, enrollment_id: UUID, component_id: UUID
) -> ComponentProgressOut:
    try:
        return _progress_out(
            training_service.get_progress(session_id, enrollment_id, component_id)
        )
    except ProgressError as e:
        raise_http(e)


@router.patch(
    "/{session_id}/progress/{enrollment_id}/{component_id}",
    response_model=ComponentProgressOut,
)
def patch_progress(
    session_id: UUID,
    enrollment_id: UUID,
    component_id: UUID,
    body: ProgressPatchIn,
) -> ComponentProgressOut:
    try:
        record = training_service.update_progress(
            session_id, enrollment_id, component_id, body.to_patch()
        )
    except ProgressError as e:
        raise_http(e)
    return _progress_out(record)


@router.post("/{session_id}/progress/bulk", response_model=list[BulkResultOut])
def bulk_update_progress(session_id: UUID, body: BulkUpdateIn) -> list[BulkResultOut]:
    """Apply each entry independently.

    Always 200 when the session exists: per-entry failures are reported
    in the body so the caller can reconcile partial application.
    """
    try:
        results = training_service.bulk_update(
            session_id,
            [
                BulkUpdate(u.enrollment_id, u.component_id, u.patch.to_patch())
                for u in body.updates
            ],
        )
    except ProgressError as e:
        raise_http(e)

    out = []
    for r in results:
        if r.error is None and r.record is not None:
            out.append(
                BulkResultOut(
                    enrollment_id=str(r.enrollment_id),
                    component_id=str(r.component_id),
                    ok=True,
                    record=_progress_out(r.record),
                )
            )
        elif r.error is not None:
            out.append(
                BulkResultOut(
                    enrollment_id=str(r.enrollment_id),
                    component_id=str(r.component_id),
                    ok=False,
                    error=r.error.kind,
                    message=str(r.error),
                    status_code=status_for(r.error),
                )
            )
    return out


@router.get("/{session_id}/summary", response_model=SessionSummaryOut)
def get_summary(session_id: UUID) -> SessionSummaryOut:
    try:
        return _summary_out(training_service.get_session_summary(session_id))
    except ProgressError as e:
        raise_http(e)


@router.get(
    "/{session_id}/components/{component_id}", response_model=ComponentBreakdownOut
)
def get_component_breakdown(
    session_id: UUID, component_id: UUID
) -> ComponentBreakdownOut:
    try:
        return _breakdown_out(
            training_service.get_component_breakdown(session_id, component_id)
        )
    except ProgressError as e:
        raise_http(e)
