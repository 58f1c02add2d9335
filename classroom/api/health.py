"""Health and readiness endpoints.

  /health (liveness):  "is this process alive?"  Always 200; the body
                       reports per-dependency status so a degraded
                       dependency is visible without triggering a restart.

  /ready (readiness):  "can this instance take traffic?"  503 when the
                       database is configured but unreachable.  Redis is
                       not critical: the progress cache recomputes on
                       failure.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status

from classroom.db.engine import engine, ping_database
from classroom.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _database_status() -> str:
    if engine is None:
        return "not_configured"
    try:
        await ping_database()
    except Exception:
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"
    return "ok"


async def _redis_status() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    checks = {
        "database": await _database_status(),
        "redis": await _redis_status(),
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await _database_status() == "degraded":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
