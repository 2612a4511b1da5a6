"""Redis connection management.

Mirrors engine.py: when REDIS_URL is configured a client is created at
import time; when it is None every consumer falls back to an in-memory
implementation and no Redis server is needed.

Redis only carries progress events out to downstream consumers, so the
service keeps running if it is unreachable.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis

from progress_service.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_client: redis.Redis | None = redis.Redis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_client = None


@asynccontextmanager
async def lifespan_redis() -> AsyncGenerator[None, None]:
    """Startup/shutdown hook for Redis; mirrors lifespan_db()."""
    if redis_client is None:
        logger.info("No REDIS_URL configured; progress events stay in memory")
        yield
        return

    try:
        redis_client.ping()
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except redis.RedisError:
        # Event delivery is best-effort; start anyway and let the sink
        # count failures.
        logger.exception("Redis connection failed on startup")

    yield

    redis_client.close()
    logger.info("Redis connection pool closed")
