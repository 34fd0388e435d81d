"""Health check endpoints."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from linkauth.api.deps import SessionDep
from linkauth.tasks.queue import queue

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check - just confirms the service is running."""
    return {"status": "ok"}


@router.get("/db")
async def health_check_db(session: SessionDep):
    """Health check with database connectivity."""
    try:
        await session.execute(text("SELECT 1"))
        return {"status": "ok", "database": "connected"}
    except Exception as e:
        logger.error(f"Database health check failed: {e!r}")
        return JSONResponse(
            status_code=503,
            content={"status": "error", "database": "disconnected"},
        )


@router.get("/ready")
async def readiness_check(session: SessionDep):
    """Readiness check - confirms the database and the maintenance queue are reachable.

    The token sweep runs through Redis, so a missing Redis degrades
    maintenance but not request handling; only the database is fatal.
    """
    try:
        await session.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.error(f"Database readiness check failed: {e!r}")
        db_status = "disconnected"

    try:
        redis = queue.redis  # type: ignore[attr-defined]
        if redis is None:
            redis_status = "not_initialized"
        else:
            await redis.ping()
            redis_status = "connected"
    except Exception as e:
        logger.error(f"Redis readiness check failed: {e!r}")
        redis_status = "disconnected"

    response = {
        "status": "ok" if db_status == "connected" and redis_status == "connected" else "degraded",
        "database": db_status,
        "redis": redis_status,
    }

    if db_status != "connected":
        return JSONResponse(status_code=503, content=response)
    return response
