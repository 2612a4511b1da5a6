from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from progress_service.models.session import SessionEnrollment, SessionInstance


class SessionRepo(Protocol):
    def get(self, session_id: UUID) -> SessionInstance | None: ...
    def add(self, session: SessionInstance) -> None: ...
    def update_enrollment(
        self, session_id: UUID, enrollment: SessionEnrollment
    ) -> SessionInstance | None: ...


class InMemorySessionRepo:
    """Sessions are immutable values swapped in whole.

    ``update_enrollment`` rebuilds the session from the stored one, so it
    runs under that session's lock; other sessions are not blocked.
    """

    def __init__(self) -> None:
        self._by_id: dict[UUID, SessionInstance] = {}
        self._locks: dict[UUID, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def get(self, session_id: UUID) -> SessionInstance | None:
        return self._by_id.get(session_id)

    def add(self, session: SessionInstance) -> None:
        with self._locks_guard:
            if session.id in self._by_id:
                raise ValueError("session already exists")
            self._locks[session.id] = threading.Lock()
            self._by_id[session.id] = session

    def update_enrollment(
        self, session_id: UUID, enrollment: SessionEnrollment
    ) -> SessionInstance | None:
        lock = self._locks.get(session_id)
        if lock is None:
            return None
        with lock:
            existing = self._by_id.get(session_id)
            if existing is None:
                return None
            updated = replace(
                existing,
                enrollments=tuple(
                    enrollment if e.enrollment_id == enrollment.enrollment_id else e
                    for e in existing.enrollments
                ),
            )
            self._by_id[session_id] = updated
        return updated
