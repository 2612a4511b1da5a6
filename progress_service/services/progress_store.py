"""Canonical per-student, per-component progress records for one session.

CONCURRENCY
-----------
Every (enrollment_id, component_id) pair has its own lock, created up
front when the store is built, so there is no session-wide lock. Inside
that lock the store reads the current record, runs the state machine,
and writes the replacement: the check and the mutation are one unit.

That lock only covers one process. When several API instances share a
database, the write is a compare-and-set against the status and attempts
that were read; if another instance got there first the repo raises
InvalidTransitionError, nothing is written and no event is emitted. The
caller re-reads and decides again, exactly as for any other rejected
transition.

Records are frozen dataclasses and the repo swaps them in with a single
assignment, so readers never see a half-applied patch. Aggregation reads
``snapshot()`` without taking any lock.
"""

from __future__ import annotations

import datetime
import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from uuid import UUID

from progress_service.core.errors import NotFoundError, ProgressError
from progress_service.core.metrics import (
    EVENT_SINK_FAILURES,
    PROGRESS_REJECTIONS,
    PROGRESS_TRANSITIONS,
)
from progress_service.models.component import ComponentDefinition
from progress_service.models.progress import (
    ComponentProgress,
    ProgressEvent,
    ProgressPatch,
)
from progress_service.models.session import SessionInstance
from progress_service.repos.progress_repo import ProgressRepo
from progress_service.services.event_sink import ProgressEventSink
from progress_service.services.state_machine import apply_patch

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def utc_now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


@dataclass(frozen=True, slots=True)
class BulkUpdate:
    enrollment_id: UUID
    component_id: UUID
    patch: ProgressPatch


@dataclass(frozen=True, slots=True)
class BulkUpdateResult:
    """Outcome of one bulk entry: exactly one of record/error is set."""

    enrollment_id: UUID
    component_id: UUID
    record: ComponentProgress | None = None
    error: ProgressError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ProgressStore:
    def __init__(
        self,
        session: SessionInstance,
        repo: ProgressRepo,
        sink: ProgressEventSink,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._session = session
        self._repo = repo
        self._sink = sink
        self._clock = clock
        self._components = {c.id: c for c in session.components}
        self._locks = {
            (e.enrollment_id, c.id): threading.Lock()
            for e in session.enrollments
            for c in session.components
        }

    @property
    def session_id(self) -> UUID:
        return self._session.id

    def _component(self, enrollment_id: UUID, component_id: UUID) -> ComponentDefinition:
        if (enrollment_id, component_id) not in self._locks:
            if component_id not in self._components:
                raise NotFoundError(f"component {component_id} not in session")
            raise NotFoundError(f"enrollment {enrollment_id} not in session")
        return self._components[component_id]

    def get(self, enrollment_id: UUID, component_id: UUID) -> ComponentProgress:
        self._component(enrollment_id, component_id)
        record = self._repo.get(self._session.id, enrollment_id, component_id)
        if record is None:
            raise NotFoundError(
                f"no progress for enrollment {enrollment_id} component {component_id}"
            )
        return record

    def update(
        self, enrollment_id: UUID, component_id: UUID, patch: ProgressPatch
    ) -> ComponentProgress:
        """Apply ``patch`` atomically; the stored record is unchanged on error."""
        log_ctx = {
            "session_id": str(self._session.id),
            "enrollment_id": str(enrollment_id),
            "component_id": str(component_id),
        }
        try:
            component = self._component(enrollment_id, component_id)
            with self._locks[(enrollment_id, component_id)]:
                current = self.get(enrollment_id, component_id)
                updated = apply_patch(component, current, patch, now=self._clock())
                if updated != current:
                    self._repo.put(updated, expected=current)
                if updated.status is not current.status:
                    self._record_transition(current, updated)
        except ProgressError as e:
            PROGRESS_REJECTIONS.labels(reason=e.kind).inc()
            logger.warning("Progress update rejected: %s", e, extra=log_ctx)
            raise

        return updated

    def bulk_update(self, updates: Iterable[BulkUpdate]) -> list[BulkUpdateResult]:
        """Apply each entry independently; failures do not roll back others."""
        results: list[BulkUpdateResult] = []
        for u in updates:
            try:
                record = self.update(u.enrollment_id, u.component_id, u.patch)
            except ProgressError as e:
                results.append(
                    BulkUpdateResult(u.enrollment_id, u.component_id, error=e)
                )
            else:
                results.append(
                    BulkUpdateResult(u.enrollment_id, u.component_id, record=record)
                )
        return results

    def snapshot(self) -> list[ComponentProgress]:
        return self._repo.list_by_session(self._session.id)

    def _record_transition(
        self, previous: ComponentProgress, updated: ComponentProgress
    ) -> None:
        # Called with the record's lock held so events leave in update order.
        PROGRESS_TRANSITIONS.labels(
            from_status=previous.status.value, to_status=updated.status.value
        ).inc()
        logger.info(
            "Progress %s -> %s",
            previous.status.value,
            updated.status.value,
            extra={
                "session_id": str(updated.session_id),
                "enrollment_id": str(updated.enrollment_id),
                "component_id": str(updated.component_id),
            },
        )
        event = ProgressEvent(
            session_id=updated.session_id,
            enrollment_id=updated.enrollment_id,
            component_id=updated.component_id,
            previous_status=previous.status,
            new_status=updated.status,
            timestamp=self._clock(),
        )
        try:
            self._sink.emit(event)
        except Exception:
            EVENT_SINK_FAILURES.inc()
            logger.exception("Progress event delivery failed")
