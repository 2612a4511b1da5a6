"""Read-only source of a session's active roster.

The roster belongs to the surrounding enrollment system; the progress
core only reads it once, when a session is instantiated.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from progress_service.models.session import Enrollment


class EnrollmentProvider(Protocol):
    def list_active(self, session_id: UUID) -> list[Enrollment]: ...


class InMemoryEnrollmentProvider:
    def __init__(self) -> None:
        self._rosters: dict[UUID, list[Enrollment]] = {}

    def register(self, session_id: UUID, enrollments: list[Enrollment]) -> None:
        self._rosters[session_id] = list(enrollments)

    def list_active(self, session_id: UUID) -> list[Enrollment]:
        return list(self._rosters.get(session_id, []))

    def discard(self, session_id: UUID) -> None:
        self._rosters.pop(session_id, None)
