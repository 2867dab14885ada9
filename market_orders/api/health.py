"""
Market Orders — Health endpoint
"""
import asyncio

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from market_orders.core.config import get_settings
from market_orders.core.redis_client import get_redis
from market_orders.db.database import engine
from market_orders.schemas.auth import HealthResponse

settings = get_settings()
router = APIRouter(tags=["health"])


async def _ping_database() -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def _ping_redis() -> None:
    await get_redis().ping()


async def _status(check) -> str:
    try:
        await asyncio.wait_for(check(), timeout=settings.HEALTH_CHECK_TIMEOUT)
    except Exception as exc:
        return f"error: {str(exc)[:100] or type(exc).__name__}"
    return "ok"


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Database and Redis connectivity. 200 when both answer, 503 otherwise."""
    database, redis = await asyncio.gather(_status(_ping_database), _status(_ping_redis))
    dependencies = {"database": database, "redis": redis}
    healthy = all(value == "ok" for value in dependencies.values())

    body = HealthResponse(
        status="healthy" if healthy else "degraded",
        service=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        dependencies=dependencies,
    )
    return JSONResponse(content=body.model_dump(), status_code=200 if healthy else 503)
