"""
Market Orders — Notification runner

Runs one dispatch outside the request that triggered it: loads the order and
the admin push tokens in its own session, opens one HTTP client for the run,
dispatches, then clears push tokens the gateway reported as unregistered.
"""
import logging

import httpx
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from market_orders.core.config import Settings, get_settings
from market_orders.models.account import Account, AccountRole
from market_orders.models.order import Order
from market_orders.services.notifications.channels import (
    ExpoPushChannel,
    ResendEmailChannel,
    TextBeeSmsChannel,
)
from market_orders.services.notifications.dispatcher import (
    DispatchReport,
    NotificationDispatcher,
    OrderEvent,
    Recipients,
)

logger = logging.getLogger(__name__)


def build_dispatcher(client: httpx.AsyncClient, settings: Settings) -> NotificationDispatcher:
    return NotificationDispatcher(
        email=ResendEmailChannel(
            client, settings.RESEND_API_KEY, settings.RESEND_API_URL, settings.EMAIL_FROM
        ),
        sms=TextBeeSmsChannel(
            client, settings.TEXTBEE_API_KEY, settings.TEXTBEE_DEVICE_ID, settings.TEXTBEE_BASE_URL
        ),
        push=ExpoPushChannel(client, settings.EXPO_PUSH_URL, settings.EXPO_ACCESS_TOKEN),
        store_name=settings.STORE_NAME,
        store_phone=settings.STORE_PHONE,
    )


async def admin_push_tokens(session: AsyncSession) -> list[str]:
    result = await session.execute(
        select(Account.notification_token).where(
            Account.role == AccountRole.ADMIN,
            Account.notification_token.is_not(None),
            Account.notification_token != "",
        )
    )
    return list(result.scalars().all())


async def prune_stale_tokens(session: AsyncSession, tokens: list[str]) -> int:
    if not tokens:
        return 0
    result = await session.execute(
        update(Account)
        .where(Account.notification_token.in_(tokens))
        .values(notification_token=None)
    )
    await session.commit()
    logger.info("Removed %d unregistered push token(s)", result.rowcount)
    return result.rowcount


async def run_dispatch(
    event: OrderEvent,
    order_id: str,
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> DispatchReport | None:
    settings = settings or get_settings()

    async with session_factory() as session:
        order = await session.get(Order, order_id)
        if order is None:
            logger.warning("Notification for unknown order %s dropped", order_id)
            return None

        recipients = Recipients(
            store_emails=settings.store_email_list,
            admin_phones=settings.admin_phone_list,
            admin_push_tokens=await admin_push_tokens(session) if event == OrderEvent.CREATED else [],
        )

        async with httpx.AsyncClient(
            timeout=settings.HTTP_TIMEOUT_SECONDS, transport=transport
        ) as client:
            report = await build_dispatcher(client, settings).dispatch(event, order, recipients)

        logger.info("Dispatch finished: %s", report.as_dict())

        try:
            await prune_stale_tokens(session, report.stale_tokens)
        except Exception:
            logger.exception("Failed to prune stale push tokens for order %s", order_id)
            await session.rollback()

    return report
