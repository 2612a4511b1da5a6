"""Template and session assembly.

Templates are immutable: every operation here returns a new Template
whose components are sorted by ``sequence_order`` and whose duration
totals are recomputed from scratch.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace
from uuid import UUID, uuid4

from progress_service.core.errors import NotFoundError, ValidationError
from progress_service.models.component import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_PASSING_SCORE,
    TYPE_DEFAULTS,
    ComponentDefinition,
    ComponentType,
    Template,
)
from progress_service.models.progress import ComponentProgress
from progress_service.models.session import (
    Enrollment,
    SessionEnrollment,
    SessionInstance,
)

logger = logging.getLogger(__name__)


def _validate_component(c: ComponentDefinition) -> None:
    if c.sequence_order < 1:
        raise ValidationError(
            f"sequence_order must be a positive integer (got {c.sequence_order})"
        )
    if c.duration_minutes < 0:
        raise ValidationError(
            f"duration_minutes must be non-negative (got {c.duration_minutes})"
        )
    if c.max_attempts < 1:
        raise ValidationError(f"max_attempts must be at least 1 (got {c.max_attempts})")
    if not 0 <= c.passing_score <= 100:
        raise ValidationError(
            f"passing_score must be between 0 and 100 (got {c.passing_score})"
        )


def _with_totals(template: Template, components: Iterable[ComponentDefinition]) -> Template:
    ordered = tuple(sorted(components, key=lambda c: c.sequence_order))
    return replace(
        template,
        components=ordered,
        total_duration_minutes=sum(c.duration_minutes for c in ordered),
        estimated_break_minutes=sum(c.duration_minutes for c in ordered if c.is_break),
    )


def _renumbered(components: Sequence[ComponentDefinition]) -> list[ComponentDefinition]:
    return [replace(c, sequence_order=i) for i, c in enumerate(components, start=1)]


def _require(template: Template, component_id: UUID) -> ComponentDefinition:
    component = template.component(component_id)
    if component is None:
        raise NotFoundError(f"component {component_id} not found in template")
    return component


def create_template(
    components: Sequence[ComponentDefinition],
    *,
    name: str = "",
    code: str = "",
    description: str | None = None,
    template_id: UUID | None = None,
) -> Template:
    """Validate ``components`` and build a template from them.

    Sequence orders must be strictly increasing in the order given;
    gaps are allowed.
    """
    if not components:
        raise ValidationError("a template needs at least one component")

    seen_ids: set[UUID] = set()
    previous = 0
    for c in components:
        _validate_component(c)
        if c.id in seen_ids:
            raise ValidationError(f"duplicate component id {c.id}")
        seen_ids.add(c.id)
        if c.sequence_order <= previous:
            raise ValidationError(
                "sequence_order values must be strictly increasing and unique "
                f"(got {c.sequence_order} after {previous})"
            )
        previous = c.sequence_order

    template = _with_totals(
        Template(
            id=template_id or uuid4(),
            name=name.strip(),
            code=code.strip().upper(),
            components=(),
            description=description,
        ),
        components,
    )
    logger.info(
        "Template assembled code=%s components=%d total_minutes=%d",
        template.code,
        len(template.components),
        template.total_duration_minutes,
    )
    return template


def reorder_component(template: Template, component_id: UUID, new_order: int) -> Template:
    """Swap ``component_id`` with whichever component holds ``new_order``."""
    moving = _require(template, component_id)
    occupant = next(
        (c for c in template.components if c.sequence_order == new_order), None
    )
    if occupant is None:
        raise NotFoundError(f"no component at sequence_order {new_order}")
    if occupant.id == moving.id:
        return template

    swapped = []
    for c in template.components:
        if c.id == moving.id:
            swapped.append(replace(c, sequence_order=new_order))
        elif c.id == occupant.id:
            swapped.append(replace(c, sequence_order=moving.sequence_order))
        else:
            swapped.append(c)
    return _with_totals(template, swapped)


def move_component(template: Template, component_id: UUID, new_position: int) -> Template:
    """Drag-and-drop move to a 1-based position, renumbering 1..N."""
    moving = _require(template, component_id)
    if not 1 <= new_position <= len(template.components):
        raise ValidationError(
            f"position must be between 1 and {len(template.components)} "
            f"(got {new_position})"
        )
    rest = [c for c in template.components if c.id != moving.id]
    rest.insert(new_position - 1, moving)
    return _with_totals(template, _renumbered(rest))


def append_component(
    template: Template,
    type: ComponentType,
    *,
    name: str | None = None,
    duration_minutes: int | None = None,
    is_mandatory: bool | None = None,
    has_assessment: bool | None = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    passing_score: float = DEFAULT_PASSING_SCORE,
) -> Template:
    """Add a component after the last one, filling gaps from the type defaults."""
    defaults = TYPE_DEFAULTS[type]
    last = max((c.sequence_order for c in template.components), default=0)
    component = ComponentDefinition.new(
        type=type,
        sequence_order=last + 1,
        duration_minutes=(
            defaults.duration_minutes if duration_minutes is None else duration_minutes
        ),
        is_mandatory=defaults.is_mandatory if is_mandatory is None else is_mandatory,
        has_assessment=(
            defaults.has_assessment if has_assessment is None else has_assessment
        ),
        max_attempts=max_attempts,
        passing_score=passing_score,
        name=defaults.name if name is None else name,
    )
    _validate_component(component)
    return _with_totals(template, [*template.components, component])


def remove_component(template: Template, component_id: UUID) -> Template:
    _require(template, component_id)
    if len(template.components) == 1:
        raise ValidationError("a template needs at least one component")
    rest = [c for c in template.components if c.id != component_id]
    return _with_totals(template, _renumbered(rest))


def instantiate_session(
    template: Template,
    enrollments: Sequence[Enrollment],
    *,
    session_id: UUID,
    title: str,
    now: int,
) -> tuple[SessionInstance, list[ComponentProgress]]:
    """Build a session and one NOT_STARTED record per (student, component)."""
    if not template.components:
        raise ValidationError("template has no components")
    if not enrollments:
        raise ValidationError("a session needs at least one enrollment")

    ids = [e.enrollment_id for e in enrollments]
    if len(set(ids)) != len(ids):
        raise ValidationError("duplicate enrollment ids in roster")

    session = SessionInstance(
        id=session_id,
        template_id=template.id,
        title=title,
        components=template.components,
        enrollments=tuple(
            SessionEnrollment(enrollment_id=e.enrollment_id, name=e.name, email=e.email)
            for e in enrollments
        ),
        created_at=now,
    )
    records = [
        ComponentProgress.initial(
            session_id=session_id,
            enrollment_id=e.enrollment_id,
            component_id=c.id,
        )
        for e in enrollments
        for c in template.components
    ]
    return session, records
