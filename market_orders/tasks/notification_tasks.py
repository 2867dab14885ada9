"""
Market Orders — Celery tasks (notification fan-out)

Runs in a separate worker process. Each task gets a NullPool engine of its own
because every asyncio.run() starts a fresh event loop and pooled asyncpg
connections cannot cross loops.
"""
import asyncio
import logging

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from market_orders.core.celery_app import celery_app
from market_orders.core.config import get_settings
from market_orders.services.notifications.dispatcher import OrderEvent
from market_orders.services.notifications.runner import run_dispatch

settings = get_settings()
logger = logging.getLogger(__name__)


async def _dispatch(event: OrderEvent, order_id: str) -> dict | None:
    engine = create_async_engine(settings.database_url, poolclass=NullPool)
    try:
        session_factory = async_sessionmaker(engine, expire_on_commit=False)
        report = await run_dispatch(event, order_id, session_factory, settings)
        return report.as_dict() if report else None
    finally:
        await engine.dispose()


@celery_app.task(
    name="dispatch_order_notifications",
    bind=True,
    acks_late=True,
)
def dispatch_order_notifications(self, event: str, order_id: str):
    """
    Fan out notifications for one order event.
    No retries: channels are best-effort and a retry could resend the ones
    that already went out.
    """
    try:
        return asyncio.run(_dispatch(OrderEvent(event), order_id))
    except Exception:
        logger.exception("Notification dispatch for order %s (%s) failed", order_id, event)
        return None
