"""Progress event sink.

Every applied status change produces a ProgressEvent for downstream
notification and audit consumers. Delivery is best-effort: the progress
store logs and counts sink failures and never lets them fail an update.

Transport follows the rest of the service: Redis when REDIS_URL is set
(LPUSH onto a list, consumers BRPOP from the tail for FIFO order),
an in-memory list otherwise.
"""

from __future__ import annotations

import json
from typing import Protocol, runtime_checkable

from progress_service.core.config import SETTINGS
from progress_service.db.redis import redis_client
from progress_service.models.progress import ProgressEvent


@runtime_checkable
class ProgressEventSink(Protocol):
    def emit(self, event: ProgressEvent) -> None: ...


class InMemoryProgressEventSink:
    """Collects events in order; used when Redis is not configured and in tests."""

    def __init__(self) -> None:
        self._events: list[ProgressEvent] = []

    def emit(self, event: ProgressEvent) -> None:
        self._events.append(event)

    @property
    def events(self) -> list[ProgressEvent]:
        return list(self._events)


class RedisProgressEventSink:
    """Redis-backed sink shared by every API instance."""

    _PREFIX = "events:"

    def __init__(self, client, queue: str) -> None:
        self._redis = client
        self._key = f"{self._PREFIX}{queue}"

    def emit(self, event: ProgressEvent) -> None:
        self._redis.lpush(self._key, json.dumps(event.to_payload()))


def build_event_sink() -> ProgressEventSink:
    if redis_client is not None:
        return RedisProgressEventSink(redis_client, SETTINGS.progress_event_queue)
    return InMemoryProgressEventSink()
