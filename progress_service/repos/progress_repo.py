from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from progress_service.core.errors import InvalidTransitionError
from progress_service.models.progress import ComponentProgress

_Key = tuple[UUID, UUID, UUID]


def _key(record: ComponentProgress) -> _Key:
    return (record.session_id, record.enrollment_id, record.component_id)


def stale_write(record: ComponentProgress) -> InvalidTransitionError:
    return InvalidTransitionError(
        f"progress for enrollment {record.enrollment_id} component "
        f"{record.component_id} changed concurrently; re-read and retry"
    )


class ProgressRepo(Protocol):
    def get(
        self, session_id: UUID, enrollment_id: UUID, component_id: UUID
    ) -> ComponentProgress | None: ...
    def add_many(self, records: Iterable[ComponentProgress]) -> None: ...
    def put(
        self, record: ComponentProgress, *, expected: ComponentProgress | None = None
    ) -> None: ...
    def list_by_session(self, session_id: UUID) -> list[ComponentProgress]: ...


class InMemoryProgressRepo:
    """Dict-backed repo keyed by (session, enrollment, component).

    ``put`` replaces one immutable record with a single dict assignment,
    so readers see either the old record or the new one, never a mix.
    Passing ``expected`` makes it a compare-and-set on status and attempts.
    """

    def __init__(self) -> None:
        self._store: dict[_Key, ComponentProgress] = {}

    def get(
        self, session_id: UUID, enrollment_id: UUID, component_id: UUID
    ) -> ComponentProgress | None:
        return self._store.get((session_id, enrollment_id, component_id))

    def add_many(self, records: Iterable[ComponentProgress]) -> None:
        batch = {_key(r): r for r in records}
        if any(k in self._store for k in batch):
            raise ValueError("progress record already exists")
        self._store.update(batch)

    def put(
        self, record: ComponentProgress, *, expected: ComponentProgress | None = None
    ) -> None:
        key = _key(record)
        stored = self._store.get(key)
        if stored is None:
            raise KeyError("progress record not found")
        if expected is not None and (
            stored.status is not expected.status
            or stored.attempts != expected.attempts
        ):
            raise stale_write(record)
        self._store[key] = record

    def list_by_session(self, session_id: UUID) -> list[ComponentProgress]:
        # Copy first so a concurrent put cannot resize the dict mid-iteration.
        return [r for r in list(self._store.values()) if r.session_id == session_id]
