"""Student-level roll-up of component progress.

Everything here is a pure function of its inputs and is recomputed from
scratch on every read; nothing is cached or patched incrementally.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from statistics import fmean

from progress_service.models.aggregate import OverallStatus, StudentSessionProgress
from progress_service.models.component import ComponentDefinition
from progress_service.models.progress import (
    ATTENDED_STATUSES,
    RESOLVED_STATUSES,
    AttendanceStatus,
    ComponentProgress,
    ProgressStatus,
)
from progress_service.models.session import SessionEnrollment

logger = logging.getLogger(__name__)

_Pair = tuple[ComponentDefinition, ComponentProgress]


def completion_rate(mandatory: Sequence[_Pair]) -> float:
    if not mandatory:
        return 0.0
    done = sum(1 for _, p in mandatory if p.status in RESOLVED_STATUSES)
    return done / len(mandatory)


def derive_overall_status(mandatory: Sequence[_Pair]) -> OverallStatus:
    statuses = [p.status for _, p in mandatory]

    if not statuses or all(s is ProgressStatus.NOT_STARTED for s in statuses):
        return OverallStatus.NOT_STARTED

    # A FAILED assessment is terminal, so it decides the outcome even
    # while other components are still open.
    if any(
        c.has_assessment and p.status is ProgressStatus.FAILED for c, p in mandatory
    ):
        return OverallStatus.FAILED

    if not all(s.is_terminal for s in statuses):
        return OverallStatus.IN_PROGRESS

    assessed = [p for c, p in mandatory if c.has_assessment]
    if not assessed:
        return OverallStatus.COMPLETED
    if any(p.status is ProgressStatus.PASSED for p in assessed):
        return OverallStatus.PASSED
    # Every mandatory assessment was skipped or excused: nothing has been
    # passed yet, so the outcome is still open.
    return OverallStatus.IN_PROGRESS


def overall_score(mandatory: Sequence[_Pair]) -> float | None:
    scores = [p.score for c, p in mandatory if c.has_assessment and p.score is not None]
    if not scores:
        return None
    return round(fmean(scores), 2)


def derived_attendance_percentage(mandatory: Sequence[_Pair]) -> float | None:
    recorded = [
        p.attendance_status
        for _, p in mandatory
        if p.attendance_status
        not in (AttendanceStatus.REGISTERED, AttendanceStatus.EXCUSED)
    ]
    if not recorded:
        return None
    attended = sum(1 for a in recorded if a in ATTENDED_STATUSES)
    return round(attended / len(recorded) * 100, 2)


def derived_participation_score(mandatory: Sequence[_Pair]) -> float | None:
    scores = [p.participation_score for _, p in mandatory if p.participation_score is not None]
    if not scores:
        return None
    return round(fmean(scores), 2)


def compute_student_progress(
    enrollment: SessionEnrollment,
    components: Sequence[ComponentDefinition],
    records: Iterable[ComponentProgress],
) -> StudentSessionProgress:
    """Roll a student's component records up into a StudentSessionProgress.

    ``records`` may include other students' rows; only rows for
    ``enrollment`` are considered.
    """
    by_component = {
        r.component_id: r for r in records if r.enrollment_id == enrollment.enrollment_id
    }
    pairs = [
        (c, by_component[c.id])
        for c in sorted(components, key=lambda c: c.sequence_order)
        if c.id in by_component
    ]
    mandatory = [(c, p) for c, p in pairs if c.is_mandatory]
    if not mandatory:
        logger.warning(
            "No mandatory components for enrollment; session is misconfigured",
            extra={"enrollment_id": str(enrollment.enrollment_id)},
        )

    status = derive_overall_status(mandatory)
    attendance = enrollment.attendance_percentage
    if attendance is None:
        attendance = derived_attendance_percentage(mandatory)
    participation = enrollment.participation_score
    if participation is None:
        participation = derived_participation_score(mandatory)

    return StudentSessionProgress(
        enrollment_id=enrollment.enrollment_id,
        student_name=enrollment.name,
        student_email=enrollment.email,
        overall_status=status,
        completion_rate=completion_rate(mandatory),
        overall_score=overall_score(mandatory),
        overall_passed=status in (OverallStatus.PASSED, OverallStatus.COMPLETED),
        attendance_percentage=attendance,
        participation_score=participation,
        component_progress=tuple(p for _, p in pairs),
    )
