"""
Market Orders — Live order feed (SSE over Redis pub/sub)

The API publishes new-order and status events to one Redis channel; this
endpoint relays them to admin clients as server-sent events.
"""
import asyncio
import json
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from market_orders.api.deps import require_caller
from market_orders.core.config import get_settings
from market_orders.core.errors import Forbidden
from market_orders.core.redis_client import get_redis
from market_orders.services.access import CallerContext

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/notifications", tags=["notifications"])


async def _sse_generator(request: Request) -> AsyncGenerator[str, None]:
    """Subscribe to the live feed channel and yield SSE events."""
    pubsub = get_redis().pubsub()
    await pubsub.subscribe(settings.LIVE_FEED_CHANNEL)

    try:
        yield ": connected to order feed\n\n"
        yield f"retry: {settings.SSE_RETRY_MILLISECONDS}\n\n"

        while True:
            if await request.is_disconnected():
                break

            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            if message and message["type"] == "message":
                try:
                    payload = json.loads(message["data"])
                except ValueError:
                    payload = {"raw": message["data"]}
                event = payload.get("type", "order_update")
                yield f"event: {event}\ndata: {json.dumps(payload)}\n\n"
            else:
                yield ": keepalive\n\n"
                await asyncio.sleep(settings.SSE_KEEPALIVE_INTERVAL_SECONDS)

    finally:
        await pubsub.unsubscribe(settings.LIVE_FEED_CHANNEL)
        await pubsub.aclose()


@router.get("/stream")
async def stream_orders(request: Request, caller: CallerContext = Depends(require_caller)):
    """Admin dashboard feed of new orders and status changes."""
    if not caller.is_admin:
        raise Forbidden("Admin access required.")

    return StreamingResponse(
        _sse_generator(request),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "Connection": "keep-alive",
        },
    )
