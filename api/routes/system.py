"""
System endpoints: health check and cache statistics.

- GET /health - Redis and PostgreSQL connectivity (200 or 503)
- GET /api/cache/stats - Redis key count and memory usage
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from api.dependencies import CacheDep, SessionFactoryDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])


@router.get("/health")
async def health_check(cache: CacheDep, session_factory: SessionFactoryDep) -> JSONResponse:
    """
    Health check endpoint for Docker health checks and monitoring.

    Checks:
    - Redis connectivity (PING command)
    - PostgreSQL connectivity (SELECT 1 query)

    Returns:
        200 OK if all systems healthy
        503 Service Unavailable if degraded
    """
    health_status = {
        "status": "healthy",
        "redis": "unknown",
        "postgres": "unknown",
    }
    status_code = 200

    # Check Redis connectivity
    if await cache.is_connected():
        health_status["redis"] = "connected"
    else:
        health_status["redis"] = "disconnected"
        health_status["status"] = "degraded"
        status_code = 503

    # Check PostgreSQL connectivity
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
            health_status["postgres"] = "connected"
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Health check: PostgreSQL unreachable: {e}")
        health_status["postgres"] = "disconnected"
        health_status["status"] = "degraded"
        status_code = 503

    return JSONResponse(status_code=status_code, content=health_status)


@router.get("/api/cache/stats")
async def cache_stats(cache: CacheDep) -> dict:
    """Redis connection state, key count and memory usage."""
    return await cache.stats()
