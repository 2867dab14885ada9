"""
Market Orders — Notification hand-off

The order path calls `schedule()` after persistence and returns immediately.
Whatever happens to the dispatch afterwards is invisible to the HTTP client;
even a failure to enqueue is only logged.
"""
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from market_orders.core.config import Settings, get_settings
from market_orders.services.notifications.dispatcher import OrderEvent
from market_orders.services.notifications.runner import run_dispatch

logger = logging.getLogger(__name__)


class NotificationScheduler:
    def schedule(self, event: OrderEvent, order_id: str) -> None:
        raise NotImplementedError


class CeleryNotificationScheduler(NotificationScheduler):
    """Enqueue the dispatch on the Celery broker for a notification worker."""

    def schedule(self, event: OrderEvent, order_id: str) -> None:
        from market_orders.tasks.notification_tasks import dispatch_order_notifications

        try:
            dispatch_order_notifications.delay(event.value, order_id)
        except Exception:
            logger.exception("Could not enqueue %s notifications for order %s", event.value, order_id)


class InProcessNotificationScheduler(NotificationScheduler):
    """Run the dispatch as an asyncio task on the server's event loop.

    Task references are kept until completion so they are not collected
    mid-flight.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], settings: Settings | None = None):
        self._session_factory = session_factory
        self._settings = settings
        self._tasks: set[asyncio.Task] = set()

    def schedule(self, event: OrderEvent, order_id: str) -> None:
        try:
            task = asyncio.get_running_loop().create_task(
                run_dispatch(event, order_id, self._session_factory, self._settings)
            )
        except RuntimeError:
            logger.exception("No running loop for %s notifications of order %s", event.value, order_id)
            return
        self._tasks.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Notification dispatch crashed", exc_info=task.exception())

    async def drain(self) -> None:
        """Wait for in-flight dispatches; used at shutdown and in tests."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


_scheduler: NotificationScheduler | None = None


def get_scheduler() -> NotificationScheduler:
    global _scheduler
    if _scheduler is None:
        settings = get_settings()
        if settings.NOTIFICATION_BACKEND == "inline":
            from market_orders.db.database import async_session

            _scheduler = InProcessNotificationScheduler(async_session, settings)
        else:
            _scheduler = CeleryNotificationScheduler()
    return _scheduler
