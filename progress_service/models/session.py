from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from progress_service.models.component import ComponentDefinition


@dataclass(frozen=True, slots=True)
class Enrollment:
    """Student identity as reported by the enrollment provider."""

    enrollment_id: UUID
    name: str
    email: str


@dataclass(frozen=True, slots=True)
class SessionEnrollment:
    enrollment_id: UUID
    name: str
    email: str
    # Directly entered by an instructor; derived from components when None.
    attendance_percentage: float | None = None
    participation_score: float | None = None


@dataclass(frozen=True, slots=True)
class SessionInstance:
    """A concrete session built from a template.

    ``components`` is a snapshot of the template at instantiation time;
    later template edits do not reach sessions already created.
    """

    id: UUID
    template_id: UUID
    title: str
    components: tuple[ComponentDefinition, ...]
    enrollments: tuple[SessionEnrollment, ...]
    created_at: int

    def component(self, component_id: UUID) -> ComponentDefinition | None:
        for c in self.components:
            if c.id == component_id:
                return c
        return None

    def enrollment(self, enrollment_id: UUID) -> SessionEnrollment | None:
        for e in self.enrollments:
            if e.enrollment_id == enrollment_id:
                return e
        return None
