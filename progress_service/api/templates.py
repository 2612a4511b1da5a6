"""Session template endpoints.

Templates are edited as whole values: every endpoint returns the full
template with components in sequence order and recomputed totals.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from progress_service.api.errors import raise_http
from progress_service.core.errors import ProgressError
from progress_service.models.component import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_PASSING_SCORE,
    ComponentDefinition,
    ComponentType,
    Template,
)
from progress_service.services.session_service import training_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/templates", tags=["templates"])


class ComponentIn(BaseModel):
    type: ComponentType
    sequence_order: int
    duration_minutes: int
    is_mandatory: bool = True
    has_assessment: bool = False
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    passing_score: float = DEFAULT_PASSING_SCORE
    name: str = ""


class TemplateCreateIn(BaseModel):
    name: str = Field(min_length=1)
    code: str = Field(min_length=1)
    description: str | None = None
    components: list[ComponentIn]


class AppendComponentIn(BaseModel):
    type: ComponentType
    name: str | None = None
    duration_minutes: int | None = None
    is_mandatory: bool | None = None
    has_assessment: bool | None = None
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    passing_score: float = DEFAULT_PASSING_SCORE


class ReorderIn(BaseModel):
    component_id: UUID
    new_order: int


class MoveIn(BaseModel):
    component_id: UUID
    position: int


class ComponentOut(BaseModel):
    id: str
    type: ComponentType
    sequence_order: int
    duration_minutes: int
    is_mandatory: bool
    has_assessment: bool
    max_attempts: int
    passing_score: float
    name: str


class TemplateOut(BaseModel):
    id: str
    name: str
    code: str
    description: str | None
    total_duration_minutes: int
    estimated_break_minutes: int
    components: list[ComponentOut]


def _template_out(t: Template) -> TemplateOut:
    return TemplateOut(
        id=str(t.id),
        name=t.name,
        code=t.code,
        description=t.description,
        total_duration_minutes=t.total_duration_minutes,
        estimated_break_minutes=t.estimated_break_minutes,
        components=[
            ComponentOut(
                id=str(c.id),
                type=c.type,
                sequence_order=c.sequence_order,
                duration_minutes=c.duration_minutes,
                is_mandatory=c.is_mandatory,
                has_assessment=c.has_assessment,
                max_attempts=c.max_attempts,
                passing_score=c.passing_score,
                name=c.name,
            )
            for c in t.components
        ],
    )


@router.post("", response_model=TemplateOut, status_code=status.HTTP_201_CREATED)
def create_template(body: TemplateCreateIn) -> TemplateOut:
    components = [ComponentDefinition.new(**c.model_dump()) for c in body.components]
    try:
        template = training_service.create_template(
            components,
            name=body.name,
            code=body.code,
            description=body.description,
        )
    except ProgressError as e:
        logger.warning("Template rejected code=%s: %s", body.code, e)
        raise_http(e)
    return _template_out(template)


@router.get("", response_model=list[TemplateOut])
def list_templates() -> list[TemplateOut]:
    return [_template_out(t) for t in training_service.list_templates()]


@router.get("/{template_id}", response_model=TemplateOut)
def get_template(template_id: UUID) -> TemplateOut:
    try:
        return _template_out(training_service.get_template(template_id))
    except ProgressError as e:
        raise_http(e)


@router.post(
    "/{template_id}/components",
    response_model=TemplateOut,
    status_code=status.HTTP_201_CREATED,
)
def append_component(template_id: UUID, body: AppendComponentIn) -> TemplateOut:
    try:
        template = training_service.append_component(
            template_id, body.type, **body.model_dump(exclude={"type"})
        )
    except ProgressError as e:
        raise_http(e)
    return _template_out(template)


@router.delete("/{template_id}/components/{component_id}", response_model=TemplateOut)
def remove_component(template_id: UUID, component_id: UUID) -> TemplateOut:
    try:
        return _template_out(
            training_service.remove_component(template_id, component_id)
        )
    except ProgressError as e:
        raise_http(e)


@router.post("/{template_id}/reorder", response_model=TemplateOut)
def reorder_component(template_id: UUID, body: ReorderIn) -> TemplateOut:
    """Swap the component with whichever one holds ``new_order``."""
    try:
        return _template_out(
            training_service.reorder_component(
                template_id, body.component_id, body.new_order
            )
        )
    except ProgressError as e:
        raise_http(e)


@router.post("/{template_id}/move", response_model=TemplateOut)
def move_component(template_id: UUID, body: MoveIn) -> TemplateOut:
    """Drag-and-drop move to ``position`` (1-based), renumbering the rest."""
    try:
        return _template_out(
            training_service.move_component(
                template_id, body.component_id, body.position
            )
        )
    except ProgressError as e:
        raise_http(e)
