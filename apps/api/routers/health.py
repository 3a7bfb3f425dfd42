"""
Health check endpoints.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
import redis.asyncio as redis

from config import settings
from database import engine

router = APIRouter()


async def _database_up() -> bool:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns overall system health status.
    """
    health_status = {
        "status": "healthy",
        "api": "up",
        "database": "unknown",
        "redis": "unknown",
        "sku_queue": "enabled" if settings.SKU_QUEUE_ENABLED else "disabled",
        "step_extraction": "openai" if settings.OPENAI_API_KEY else "fallback",
    }

    try:
        await _database_up()
        health_status["database"] = "up"
    except Exception as e:
        health_status["database"] = f"down: {str(e)}"
        health_status["status"] = "degraded"

    # Redis only backs the queue and rate limits; both degrade gracefully.
    try:
        r = redis.from_url(settings.REDIS_URL)
        await r.ping()
        await r.aclose()
        health_status["redis"] = "up"
    except Exception as e:
        health_status["redis"] = f"down: {str(e)}"
        if settings.SKU_QUEUE_ENABLED:
            health_status["status"] = "degraded"

    return health_status


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes-style readiness probe."""
    try:
        await _database_up()
    except Exception as e:
        return JSONResponse(
            status_code=503,
            content={"ready": False, "missing": ["database"], "error": str(e)},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes-style liveness probe."""
    return {"alive": True}
