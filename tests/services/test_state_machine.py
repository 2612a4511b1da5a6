from __future__ import annotations

from uuid import uuid4

import pytest

from progress_service.core.errors import (
    AttemptsExceededError,
    InvalidTransitionError,
    ValidationError,
)
from progress_service.models.progress import (
    AttendanceStatus,
    ComponentProgress,
    ProgressPatch,
    ProgressStatus,
)
from progress_service.services.state_machine import apply_patch
from tests.conftest import assessment, course

NOW = 1_700_000_000

S = ProgressStatus


def _record(status: ProgressStatus = S.NOT_STARTED, **kwargs) -> ComponentProgress:
    return ComponentProgress(
        session_id=uuid4(),
        enrollment_id=uuid4(),
        component_id=uuid4(),
        status=status,
        **kwargs,
    )


# ---- basic lifecycle ----


def test_start_sets_start_time() -> None:
    out = apply_patch(course(1), _record(), ProgressPatch(status=S.IN_PROGRESS), now=NOW)
    assert out.status is S.IN_PROGRESS
    assert out.start_time == NOW
    assert out.end_time is None


def test_complete_sets_end_time_and_keeps_start() -> None:
    started = _record(S.IN_PROGRESS, start_time=NOW)
    out = apply_patch(
        course(1), started, ProgressPatch(status=S.COMPLETED), now=NOW + 3600
    )
    assert out.status is S.COMPLETED
    assert out.start_time == NOW
    assert out.end_time == NOW + 3600
    assert out.actual_duration_minutes == 60


def test_restart_keeps_first_start_time() -> None:
    started = _record(S.IN_PROGRESS, start_time=NOW)
    out = apply_patch(
        course(1), started, ProgressPatch(status=S.IN_PROGRESS), now=NOW + 10
    )
    assert out is started


def test_cannot_complete_without_starting() -> None:
    with pytest.raises(InvalidTransitionError, match="started"):
        apply_patch(course(1), _record(), ProgressPatch(status=S.COMPLETED), now=NOW)


def test_cannot_reset_to_not_started() -> None:
    started = _record(S.IN_PROGRESS, start_time=NOW)
    with pytest.raises(InvalidTransitionError):
        apply_patch(course(1), started, ProgressPatch(status=S.NOT_STARTED), now=NOW)


@pytest.mark.parametrize("target", [S.SKIPPED, S.EXCUSED])
def test_skip_and_excuse_from_not_started(target: ProgressStatus) -> None:
    out = apply_patch(course(1), _record(), ProgressPatch(status=target), now=NOW)
    assert out.status is target
    assert out.start_time is None
    assert out.end_time == NOW


@pytest.mark.parametrize(
    "terminal", [S.COMPLETED, S.PASSED, S.FAILED, S.SKIPPED, S.EXCUSED]
)
def test_terminal_status_is_frozen(terminal: ProgressStatus) -> None:
    with pytest.raises(InvalidTransitionError):
        apply_patch(
            course(1), _record(terminal), ProgressPatch(status=S.IN_PROGRESS), now=NOW
        )


def test_same_status_patch_is_a_no_op() -> None:
    done = _record(S.COMPLETED, start_time=NOW, end_time=NOW + 60)
    out = apply_patch(course(1), done, ProgressPatch(status=S.COMPLETED), now=NOW + 999)
    assert out == done


# ---- notes and side fields ----


def test_notes_and_feedback_on_terminal_record() -> None:
    done = _record(S.COMPLETED, start_time=NOW, end_time=NOW + 60)
    out = apply_patch(
        course(1),
        done,
        ProgressPatch(instructor_notes="good", participant_feedback="loved it"),
        now=NOW,
    )
    assert out.status is S.COMPLETED
    assert out.instructor_notes == "good"
    assert out.participant_feedback == "loved it"
    assert out.end_time == NOW + 60


def test_attendance_and_participation_recorded_alongside_status() -> None:
    out = apply_patch(
        course(1),
        _record(),
        ProgressPatch(
            status=S.IN_PROGRESS,
            attendance_status=AttendanceStatus.LATE,
            participation_score=70,
        ),
        now=NOW,
    )
    assert out.attendance_status is AttendanceStatus.LATE
    assert out.participation_score == 70


def test_participation_score_out_of_range() -> None:
    with pytest.raises(ValidationError):
        apply_patch(
            course(1), _record(), ProgressPatch(participation_score=101), now=NOW
        )


def test_rejected_patch_leaves_input_untouched() -> None:
    rec = _record()
    with pytest.raises(InvalidTransitionError):
        apply_patch(
            course(1),
            rec,
            ProgressPatch(status=S.COMPLETED, instructor_notes="x"),
            now=NOW,
        )
    assert rec.instructor_notes is None


# ---- assessments ----


def test_passing_score_resolves_to_passed() -> None:
    started = _record(S.IN_PROGRESS, start_time=NOW)
    out = apply_patch(
        assessment(1), started, ProgressPatch(status=S.PASSED, score=92), now=NOW + 60
    )
    assert out.status is S.PASSED
    assert out.passed is True
    assert out.score == 92
    assert out.attempts == 1
    assert out.end_time == NOW + 60


def test_score_decides_outcome_over_requested_status() -> None:
    started = _record(S.IN_PROGRESS, start_time=NOW)
    out = apply_patch(
        assessment(1), started, ProgressPatch(status=S.PASSED, score=40), now=NOW
    )
    assert out.status is S.FAILED
    assert out.passed is False


def test_score_without_status_resolves() -> None:
    started = _record(S.IN_PROGRESS, start_time=NOW)
    out = apply_patch(assessment(1), started, ProgressPatch(score=80), now=NOW)
    assert out.status is S.PASSED


def test_custom_passing_score() -> None:
    started = _record(S.IN_PROGRESS, start_time=NOW)
    out = apply_patch(
        assessment(1, passing_score=60), started, ProgressPatch(score=65), now=NOW
    )
    assert out.status is S.PASSED


def test_score_rejected_on_unassessed_component() -> None:
    started = _record(S.IN_PROGRESS, start_time=NOW)
    with pytest.raises(InvalidTransitionError, match="no assessment"):
        apply_patch(course(1), started, ProgressPatch(score=90), now=NOW)


def test_score_requires_started_component() -> None:
    with pytest.raises(InvalidTransitionError, match="started"):
        apply_patch(assessment(1), _record(), ProgressPatch(score=90), now=NOW)


def test_start_and_score_in_one_patch() -> None:
    out = apply_patch(
        assessment(1), _record(), ProgressPatch(status=S.IN_PROGRESS, score=95), now=NOW
    )
    assert out.status is S.PASSED
    assert out.start_time == NOW


def test_score_out_of_range() -> None:
    started = _record(S.IN_PROGRESS, start_time=NOW)
    with pytest.raises(ValidationError):
        apply_patch(assessment(1), started, ProgressPatch(score=-1), now=NOW)


def test_assessment_cannot_be_completed() -> None:
    started = _record(S.IN_PROGRESS, start_time=NOW)
    with pytest.raises(InvalidTransitionError):
        apply_patch(assessment(1), started, ProgressPatch(status=S.COMPLETED), now=NOW)


def test_passed_requires_score() -> None:
    started = _record(S.IN_PROGRESS, start_time=NOW)
    with pytest.raises(InvalidTransitionError, match="requires a score"):
        apply_patch(assessment(1), started, ProgressPatch(status=S.PASSED), now=NOW)


def test_unassessed_component_cannot_pass() -> None:
    started = _record(S.IN_PROGRESS, start_time=NOW)
    with pytest.raises(InvalidTransitionError):
        apply_patch(course(1), started, ProgressPatch(status=S.PASSED), now=NOW)


def test_assessment_can_be_skipped() -> None:
    out = apply_patch(assessment(1), _record(), ProgressPatch(status=S.SKIPPED), now=NOW)
    assert out.status is S.SKIPPED
    assert out.score is None


# ---- retakes and attempts ----


def test_failed_attempt_stays_open_when_retake_requested() -> None:
    comp = assessment(1, max_attempts=2)
    started = _record(S.IN_PROGRESS, start_time=NOW)
    out = apply_patch(
        comp, started, ProgressPatch(status=S.IN_PROGRESS, score=50), now=NOW
    )
    assert out.status is S.IN_PROGRESS
    assert out.attempts == 1
    assert out.score == 50
    assert out.passed is None

    retake = apply_patch(comp, out, ProgressPatch(score=85), now=NOW + 60)
    assert retake.status is S.PASSED
    assert retake.attempts == 2
    assert retake.score == 85


def test_last_failed_attempt_resolves_to_failed() -> None:
    comp = assessment(1, max_attempts=2)
    rec = _record(S.IN_PROGRESS, start_time=NOW, attempts=1, score=50)
    out = apply_patch(
        comp, rec, ProgressPatch(status=S.IN_PROGRESS, score=60), now=NOW
    )
    assert out.status is S.FAILED
    assert out.attempts == 2


def test_attempts_exceeded() -> None:
    comp = assessment(1, max_attempts=1)
    failed = _record(S.FAILED, start_time=NOW, end_time=NOW, attempts=1, score=40)
    with pytest.raises(AttemptsExceededError):
        apply_patch(comp, failed, ProgressPatch(score=90), now=NOW)


def test_score_on_passed_record_with_attempts_left() -> None:
    comp = assessment(1, max_attempts=3)
    passed = _record(S.PASSED, start_time=NOW, end_time=NOW, attempts=1, score=90)
    with pytest.raises(InvalidTransitionError):
        apply_patch(comp, passed, ProgressPatch(score=95), now=NOW)
