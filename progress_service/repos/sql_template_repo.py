"""SQLAlchemy implementation of TemplateRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from progress_service.db.tables import SessionTemplateRow, TemplateComponentRow
from progress_service.models.component import (
    ComponentDefinition,
    ComponentType,
    Template,
)


class SqlTemplateRepo:
    """Satisfies the TemplateRepo Protocol using SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get(self, template_id: UUID) -> Template | None:
        with self._session_factory() as session:
            row = session.get(SessionTemplateRow, template_id)
            if row is None:
                return None
            return _row_to_template(row, _component_rows(session, template_id))

    def list_all(self) -> list[Template]:
        with self._session_factory() as session:
            rows = session.execute(select(SessionTemplateRow)).scalars().all()
            return [_row_to_template(r, _component_rows(session, r.id)) for r in rows]

    def save(self, template: Template) -> None:
        with self._session_factory.begin() as session:
            session.merge(
                SessionTemplateRow(
                    id=template.id,
                    name=template.name,
                    code=template.code,
                    description=template.description,
                    total_duration_minutes=template.total_duration_minutes,
                    estimated_break_minutes=template.estimated_break_minutes,
                )
            )
            # Components are rewritten wholesale; reorders touch many rows.
            session.execute(
                delete(TemplateComponentRow).where(
                    TemplateComponentRow.template_id == template.id
                )
            )
            session.add_all(
                TemplateComponentRow(
                    id=c.id,
                    template_id=template.id,
                    type=c.type.value,
                    sequence_order=c.sequence_order,
                    duration_minutes=c.duration_minutes,
                    is_mandatory=c.is_mandatory,
                    has_assessment=c.has_assessment,
                    max_attempts=c.max_attempts,
                    passing_score=c.passing_score,
                    name=c.name,
                )
                for c in template.components
            )


def _component_rows(session: Session, template_id: UUID) -> list[TemplateComponentRow]:
    stmt = (
        select(TemplateComponentRow)
        .where(TemplateComponentRow.template_id == template_id)
        .order_by(TemplateComponentRow.sequence_order)
    )
    return list(session.execute(stmt).scalars().all())


def _row_to_component(row: TemplateComponentRow) -> ComponentDefinition:
    return ComponentDefinition(
        id=row.id,
        type=ComponentType(row.type),
        sequence_order=row.sequence_order,
        duration_minutes=row.duration_minutes,
        is_mandatory=row.is_mandatory,
        has_assessment=row.has_assessment,
        max_attempts=row.max_attempts,
        passing_score=row.passing_score,
        name=row.name or "",
    )


def _row_to_template(
    row: SessionTemplateRow, components: list[TemplateComponentRow]
) -> Template:
    return Template(
        id=row.id,
        name=row.name or "",
        code=row.code or "",
        description=row.description,
        components=tuple(_row_to_component(c) for c in components),
        total_duration_minutes=row.total_duration_minutes,
        estimated_break_minutes=row.estimated_break_minutes,
    )
