"""Session-wide statistics for the "by student" and "by component" views.

Both views read the same progress records; nothing here is stored.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from statistics import fmean

from progress_service.models.aggregate import (
    ComponentBreakdown,
    OverallStatus,
    SessionSummary,
    StudentSessionProgress,
)
from progress_service.models.component import ComponentDefinition
from progress_service.models.progress import (
    AttendanceStatus,
    ComponentProgress,
    ProgressStatus,
)
from progress_service.models.session import SessionInstance


def component_breakdown(
    component: ComponentDefinition, records: Iterable[ComponentProgress]
) -> ComponentBreakdown:
    rows = [r for r in records if r.component_id == component.id]

    status_counts = {s.value: 0 for s in ProgressStatus}
    status_counts.update(Counter(r.status.value for r in rows))
    attendance_counts = {a.value: 0 for a in AttendanceStatus}
    attendance_counts.update(Counter(r.attendance_status.value for r in rows))

    mean_score = None
    pass_rate = None
    if component.has_assessment:
        scores = [r.score for r in rows if r.score is not None]
        if scores:
            mean_score = round(fmean(scores), 2)
        resolved = [r for r in rows if r.passed is not None]
        if resolved:
            pass_rate = sum(1 for r in resolved if r.passed) / len(resolved)

    return ComponentBreakdown(
        component_id=component.id,
        name=component.name,
        type=component.type,
        sequence_order=component.sequence_order,
        is_mandatory=component.is_mandatory,
        has_assessment=component.has_assessment,
        status_counts=status_counts,
        attendance_counts=attendance_counts,
        mean_score=mean_score,
        pass_rate=pass_rate,
    )


def summarize_session(
    session: SessionInstance,
    students: Sequence[StudentSessionProgress],
    records: Sequence[ComponentProgress],
) -> SessionSummary:
    status_counts = {s.value: 0 for s in OverallStatus}
    status_counts.update(Counter(s.overall_status.value for s in students))

    attendance = [
        s.attendance_percentage for s in students if s.attendance_percentage is not None
    ]

    return SessionSummary(
        session_id=session.id,
        student_count=len(students),
        status_counts=status_counts,
        mean_attendance_percentage=round(fmean(attendance), 2) if attendance else None,
        mean_completion_rate=(
            fmean(s.completion_rate for s in students) if students else 0.0
        ),
        components=tuple(
            component_breakdown(c, records)
            for c in sorted(session.components, key=lambda c: c.sequence_order)
        ),
    )
