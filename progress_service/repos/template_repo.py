from __future__ import annotations

from typing import Protocol
from uuid import UUID

from progress_service.models.component import Template


class TemplateRepo(Protocol):
    def get(self, template_id: UUID) -> Template | None: ...
    def list_all(self) -> list[Template]: ...
    def save(self, template: Template) -> None: ...


class InMemoryTemplateRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Template] = {}

    def get(self, template_id: UUID) -> Template | None:
        return self._by_id.get(template_id)

    def list_all(self) -> list[Template]:
        return list(self._by_id.values())

    def save(self, template: Template) -> None:
        # Upsert: templates are immutable values, a save replaces the whole row.
        self._by_id[template.id] = template
