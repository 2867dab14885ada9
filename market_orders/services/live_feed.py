"""
Market Orders — Live order feed

Publishes new-order and status events on a Redis pub/sub channel so the admin
dashboard and mobile app can follow orders as they arrive.
"""
import json
import logging

from market_orders.core.config import get_settings
from market_orders.core.redis_client import get_redis
from market_orders.models.order import Order

settings = get_settings()
logger = logging.getLogger(__name__)


def feed_payload(event: str, order: Order) -> dict:
    return {
        "type": event,
        "order_id": order.id,
        "customer_name": order.customer_name,
        "status": order.status.value,
        "total_amount": f"{order.total_amount:.2f}",
        "delivery_type": order.delivery_type.value,
    }


async def publish_order_event(event: str, order: Order) -> bool:
    if not settings.LIVE_FEED_ENABLED:
        return False
    try:
        await get_redis().publish(settings.LIVE_FEED_CHANNEL, json.dumps(feed_payload(event, order)))
    except Exception as exc:
        # The feed is a convenience; the order is already persisted.
        logger.warning("Live feed publish failed for order %s: %s", order.id, exc)
        return False
    return True
