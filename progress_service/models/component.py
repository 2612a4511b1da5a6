from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID, uuid4

DEFAULT_PASSING_SCORE = 80.0
DEFAULT_MAX_ATTEMPTS = 1


class ComponentType(StrEnum):
    COURSE = "COURSE"
    BREAK = "BREAK"
    LUNCH = "LUNCH"
    ASSESSMENT = "ASSESSMENT"
    ACTIVITY = "ACTIVITY"


@dataclass(frozen=True, slots=True)
class ComponentDefaults:
    name: str
    duration_minutes: int
    is_mandatory: bool
    has_assessment: bool


# Defaults applied when a component is appended without explicit values.
TYPE_DEFAULTS: dict[ComponentType, ComponentDefaults] = {
    ComponentType.COURSE: ComponentDefaults("New Component", 120, True, False),
    ComponentType.BREAK: ComponentDefaults("Break", 15, False, False),
    ComponentType.LUNCH: ComponentDefaults("Lunch Break", 60, True, False),
    ComponentType.ASSESSMENT: ComponentDefaults("New Component", 120, True, True),
    ComponentType.ACTIVITY: ComponentDefaults("New Component", 120, True, False),
}


@dataclass(frozen=True, slots=True)
class ComponentDefinition:
    """One slot in a session template.

    ``id`` is stable across every session instantiated from the template,
    so progress rows can be correlated template-wide.
    """

    id: UUID
    type: ComponentType
    sequence_order: int
    duration_minutes: int
    is_mandatory: bool = True
    has_assessment: bool = False
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    passing_score: float = DEFAULT_PASSING_SCORE
    name: str = ""

    @property
    def is_break(self) -> bool:
        return self.type in (ComponentType.BREAK, ComponentType.LUNCH)

    @staticmethod
    def new(
        *,
        type: ComponentType,
        sequence_order: int,
        duration_minutes: int,
        is_mandatory: bool = True,
        has_assessment: bool = False,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        passing_score: float = DEFAULT_PASSING_SCORE,
        name: str = "",
    ) -> ComponentDefinition:
        return ComponentDefinition(
            id=uuid4(),
            type=type,
            sequence_order=sequence_order,
            duration_minutes=duration_minutes,
            is_mandatory=is_mandatory,
            has_assessment=has_assessment,
            max_attempts=max_attempts,
            passing_score=passing_score,
            name=name,
        )


@dataclass(frozen=True, slots=True)
class Template:
    """Reusable, ordered set of components.

    ``components`` is always sorted by ``sequence_order``; the totals are
    recomputed by the assembler whenever the component list changes.
    """

    id: UUID
    name: str
    code: str
    components: tuple[ComponentDefinition, ...]
    total_duration_minutes: int = 0
    estimated_break_minutes: int = 0
    description: str | None = None

    def component(self, component_id: UUID) -> ComponentDefinition | None:
        for c in self.components:
            if c.id == component_id:
                return c
        return None
