"""Health and readiness endpoints.

  /health (liveness):  is the process alive? Reports per-dependency status.
  /ready (readiness):  can this instance take traffic right now?

/health returns 200 even when degraded; the ``status`` field carries the
actual health. /ready returns 503 only when the configured database is
unreachable, since progress cannot be stored without it. Redis carries
events best-effort and never affects readiness.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from redis import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from progress_service.db import engine as db
from progress_service.db.redis import redis_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _check_database() -> str:
    if db.engine is None:
        return "not_configured"
    try:
        with db.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"
    return "ok"


def _check_redis() -> str:
    if redis_client is None:
        return "not_configured"
    try:
        redis_client.ping()
    except RedisError:
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"
    return "ok"


@router.get("/health")
def health() -> dict:
    checks = {"database": _check_database(), "redis": _check_redis()}
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
def ready() -> Response:
    if _check_database() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)
