from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from uuid import UUID

from progress_service.models.component import ComponentType
from progress_service.models.progress import ComponentProgress


class OverallStatus(StrEnum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    PASSED = "PASSED"
    FAILED = "FAILED"


@dataclass(frozen=True, slots=True)
class StudentSessionProgress:
    """Derived view of one student's session; never stored."""

    enrollment_id: UUID
    student_name: str
    student_email: str
    overall_status: OverallStatus
    completion_rate: float  # 0.0..1.0 over mandatory components
    overall_score: float | None
    overall_passed: bool
    attendance_percentage: float | None
    participation_score: float | None
    component_progress: tuple[ComponentProgress, ...]

    @property
    def completion_percentage(self) -> float:
        return round(self.completion_rate * 100, 1)


@dataclass(frozen=True, slots=True)
class ComponentBreakdown:
    """Distribution of student statuses across a single component."""

    component_id: UUID
    name: str
    type: ComponentType
    sequence_order: int
    is_mandatory: bool
    has_assessment: bool
    status_counts: dict[str, int] = field(default_factory=dict)
    attendance_counts: dict[str, int] = field(default_factory=dict)
    mean_score: float | None = None
    pass_rate: float | None = None


@dataclass(frozen=True, slots=True)
class SessionSummary:
    session_id: UUID
    student_count: int
    status_counts: dict[str, int]
    mean_attendance_percentage: float | None
    mean_completion_rate: float
    components: tuple[ComponentBreakdown, ...]
