"""
Market Orders — FastAPI application entrypoint
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from market_orders.core.config import get_settings
from market_orders.core.errors import OrderServiceError
from market_orders.core.redis_client import close_redis
from market_orders.db.database import engine, Base
from market_orders.middleware.auth import JWTAuthMiddleware
from market_orders.api import auth, health, notifications, orders
from market_orders.services.scheduler import InProcessNotificationScheduler, get_scheduler

import market_orders.models  # noqa: F401  (register tables on Base.metadata)

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create tables (migrations are out of band in production)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    # Shutdown
    scheduler = get_scheduler()
    if isinstance(scheduler, InProcessNotificationScheduler):
        await scheduler.drain()
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Market Orders",
    description="Order lifecycle with server-side pricing, guest order reconciliation and multi-channel notifications.",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
)

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Authentication ────────────────────────────────────────────────────────────
app.add_middleware(JWTAuthMiddleware)

# ── Prometheus Metrics ────────────────────────────────────────────────────────
if settings.METRICS_ENABLED:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")


@app.exception_handler(OrderServiceError)
async def order_service_error_handler(request: Request, exc: OrderServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(orders.router)
app.include_router(auth.router)
app.include_router(notifications.router)
app.include_router(health.router)


@app.get("/")
async def root():
    return {"service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION}
