"""Component progress state machine.

    NOT_STARTED -> IN_PROGRESS -> COMPLETED | PASSED | FAILED | SKIPPED | EXCUSED

The two left-hand states are the only non-terminal ones. Once a record
is terminal its status is frozen; notes, feedback, attendance and
participation may still be amended.

Assessed components never take COMPLETED. Their terminal status is
derived from the submitted score against the component's passing score.
A failing score submitted together with ``status=IN_PROGRESS`` is
recorded as an attempt and leaves the component open for a retake,
unless it was the last allowed attempt.

``apply_patch`` is pure: it either returns the replacement record or
raises, and never touches storage.
"""

from __future__ import annotations

from dataclasses import replace

from progress_service.core.errors import (
    AttemptsExceededError,
    InvalidTransitionError,
    ValidationError,
)
from progress_service.models.component import ComponentDefinition
from progress_service.models.progress import (
    ComponentProgress,
    ProgressPatch,
    ProgressStatus,
)

_SCORE_TARGETS = frozenset(
    {ProgressStatus.IN_PROGRESS, ProgressStatus.PASSED, ProgressStatus.FAILED}
)


def _check_range(name: str, value: float | None) -> None:
    if value is not None and not 0 <= value <= 100:
        raise ValidationError(f"{name} must be between 0 and 100 (got {value})")


def apply_patch(
    component: ComponentDefinition,
    record: ComponentProgress,
    patch: ProgressPatch,
    *,
    now: int,
) -> ComponentProgress:
    """Return ``record`` with ``patch`` applied, or raise.

    Raises:
        ValidationError: score or participation score out of 0..100.
        InvalidTransitionError: the status change is not allowed.
        AttemptsExceededError: a score arrives after the last attempt.
    """
    _check_range("score", patch.score)
    _check_range("participation_score", patch.participation_score)

    changes: dict[str, object] = {}
    if patch.instructor_notes is not None:
        changes["instructor_notes"] = patch.instructor_notes
    if patch.participant_feedback is not None:
        changes["participant_feedback"] = patch.participant_feedback
    if patch.attendance_status is not None:
        changes["attendance_status"] = patch.attendance_status
    if patch.participation_score is not None:
        changes["participation_score"] = patch.participation_score
    updated = replace(record, **changes) if changes else record

    if patch.score is not None:
        return _apply_score(component, updated, patch.score, patch.status, now)

    if patch.status is None or patch.status == record.status:
        return updated

    return _transition(component, updated, patch.status, now)


def _transition(
    component: ComponentDefinition,
    record: ComponentProgress,
    target: ProgressStatus,
    now: int,
) -> ComponentProgress:
    current = record.status

    if current.is_terminal:
        raise InvalidTransitionError(
            f"component is {current}; cannot move to {target}"
        )

    if target is ProgressStatus.NOT_STARTED:
        raise InvalidTransitionError("a started component cannot be reset")

    if target is ProgressStatus.IN_PROGRESS:
        return replace(
            record,
            status=ProgressStatus.IN_PROGRESS,
            start_time=record.start_time if record.start_time is not None else now,
        )

    if target is ProgressStatus.COMPLETED:
        if component.has_assessment:
            raise InvalidTransitionError(
                "assessed components are resolved by score, not completed"
            )
        if current is ProgressStatus.NOT_STARTED:
            raise InvalidTransitionError("component must be started before completion")
        return replace(
            record,
            status=ProgressStatus.COMPLETED,
            start_time=record.start_time if record.start_time is not None else now,
            end_time=now,
        )

    if target in (ProgressStatus.PASSED, ProgressStatus.FAILED):
        if not component.has_assessment:
            raise InvalidTransitionError(
                f"component has no assessment and cannot be {target}"
            )
        raise InvalidTransitionError(f"{target} requires a score")

    # SKIPPED / EXCUSED: bypassed without attending, so no start is backfilled.
    return replace(record, status=target, end_time=now)


def _apply_score(
    component: ComponentDefinition,
    record: ComponentProgress,
    score: float,
    requested: ProgressStatus | None,
    now: int,
) -> ComponentProgress:
    if not component.has_assessment:
        raise InvalidTransitionError("component has no assessment; score rejected")

    if record.attempts >= component.max_attempts:
        raise AttemptsExceededError(
            f"all {component.max_attempts} attempt(s) already used"
        )

    if record.is_terminal:
        raise InvalidTransitionError(
            f"component is {record.status}; no further scores accepted"
        )

    if requested is not None and requested not in _SCORE_TARGETS:
        raise InvalidTransitionError(f"a score cannot resolve to {requested}")

    if record.status is ProgressStatus.NOT_STARTED:
        if requested is not ProgressStatus.IN_PROGRESS:
            raise InvalidTransitionError("component must be started before scoring")
        record = replace(
            record,
            status=ProgressStatus.IN_PROGRESS,
            start_time=record.start_time if record.start_time is not None else now,
        )

    attempts = record.attempts + 1
    passed = score >= component.passing_score

    if (
        not passed
        and requested is ProgressStatus.IN_PROGRESS
        and attempts < component.max_attempts
    ):
        return replace(record, score=score, attempts=attempts, passed=None)

    return replace(
        record,
        status=ProgressStatus.PASSED if passed else ProgressStatus.FAILED,
        score=score,
        passed=passed,
        attempts=attempts,
        start_time=record.start_time if record.start_time is not None else now,
        end_time=now,
    )
