from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID


class ProgressStatus(StrEnum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    PASSED = "PASSED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    EXCUSED = "EXCUSED"

    @property
    def is_terminal(self) -> bool:
        return self not in (ProgressStatus.NOT_STARTED, ProgressStatus.IN_PROGRESS)


TERMINAL_STATUSES = frozenset(s for s in ProgressStatus if s.is_terminal)

# Terminal statuses that count as "done" toward completion.
RESOLVED_STATUSES = frozenset(
    {ProgressStatus.COMPLETED, ProgressStatus.PASSED, ProgressStatus.FAILED}
)


class AttendanceStatus(StrEnum):
    REGISTERED = "REGISTERED"
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"
    EARLY_DEPARTURE = "EARLY_DEPARTURE"
    EXCUSED = "EXCUSED"


ATTENDED_STATUSES = frozenset(
    {
        AttendanceStatus.PRESENT,
        AttendanceStatus.LATE,
        AttendanceStatus.EARLY_DEPARTURE,
    }
)


@dataclass(frozen=True, slots=True)
class ComponentProgress:
    """One student's state on one component of a session.

    Timestamps are unix seconds (UTC). Records are replaced, never
    mutated: the progress store swaps in a new instance per update.
    """

    session_id: UUID
    enrollment_id: UUID
    component_id: UUID
    status: ProgressStatus = ProgressStatus.NOT_STARTED
    attendance_status: AttendanceStatus = AttendanceStatus.REGISTERED
    start_time: int | None = None
    end_time: int | None = None
    score: float | None = None
    passed: bool | None = None
    attempts: int = 0
    participation_score: float | None = None
    instructor_notes: str | None = None
    participant_feedback: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def actual_duration_minutes(self) -> int | None:
        if self.start_time is None or self.end_time is None:
            return None
        return max(0, self.end_time - self.start_time) // 60

    @staticmethod
    def initial(
        *, session_id: UUID, enrollment_id: UUID, component_id: UUID
    ) -> ComponentProgress:
        return ComponentProgress(
            session_id=session_id,
            enrollment_id=enrollment_id,
            component_id=component_id,
        )


@dataclass(frozen=True, slots=True)
class ProgressPatch:
    """Requested change to one progress record.

    ``None`` means "leave unchanged". ``status`` is a request, not a
    command: for assessed components the state machine derives the
    final PASSED/FAILED value from ``score``.
    """

    status: ProgressStatus | None = None
    attendance_status: AttendanceStatus | None = None
    score: float | None = None
    participation_score: float | None = None
    instructor_notes: str | None = None
    participant_feedback: str | None = None

    @property
    def is_notes_only(self) -> bool:
        return (
            self.status is None
            and self.attendance_status is None
            and self.score is None
            and self.participation_score is None
        )


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """Emitted once per applied status change."""

    session_id: UUID
    enrollment_id: UUID
    component_id: UUID
    previous_status: ProgressStatus
    new_status: ProgressStatus
    timestamp: int

    def to_payload(self) -> dict[str, object]:
        return {
            "session_id": str(self.session_id),
            "enrollment_id": str(self.enrollment_id),
            "component_id": str(self.component_id),
            "previous_status": self.previous_status.value,
            "new_status": self.new_status.value,
            "timestamp": self.timestamp,
        }
