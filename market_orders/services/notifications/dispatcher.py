"""
Market Orders — Notification dispatcher

Fans one order event out to every interested channel concurrently and joins
all attempts. A channel that raises, fails or hangs never affects its
siblings, and `dispatch` itself never raises: the outcome of each channel is
logged and returned in a DispatchReport.

  order_created   → customer email, store email, customer SMS, admin SMS, admin push
  status_changed  → customer SMS
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from market_orders.models.order import Order
from market_orders.services.notifications import messages
from market_orders.services.notifications.channels import (
    DeliveryResult,
    Message,
    NotificationChannel,
)

logger = logging.getLogger(__name__)


class OrderEvent(str, Enum):
    CREATED = "order_created"
    STATUS_CHANGED = "status_changed"


class Outcome(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ChannelReport:
    channel: str
    outcome: Outcome
    detail: str = ""
    delivered: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    stale: list[str] = field(default_factory=list)


@dataclass
class DispatchReport:
    event: OrderEvent
    order_id: str
    channels: list[ChannelReport] = field(default_factory=list)

    def get(self, channel: str) -> ChannelReport | None:
        return next((c for c in self.channels if c.channel == channel), None)

    @property
    def stale_tokens(self) -> list[str]:
        return [t for c in self.channels for t in c.stale]

    def as_dict(self) -> dict:
        return {
            "event": self.event.value,
            "order_id": self.order_id,
            "channels": {c.channel: c.outcome.value for c in self.channels},
        }


@dataclass(frozen=True)
class Recipients:
    store_emails: list[str] = field(default_factory=list)
    admin_phones: list[str] = field(default_factory=list)
    admin_push_tokens: list[str] = field(default_factory=list)


Job = Callable[[], Awaitable[ChannelReport]]


class NotificationDispatcher:
    def __init__(
        self,
        email: NotificationChannel | None = None,
        sms: NotificationChannel | None = None,
        push: NotificationChannel | None = None,
        store_name: str = "Sandy's Market",
        store_phone: str = "",
    ):
        self.email = email
        self.sms = sms
        self.push = push
        self.store_name = store_name
        self.store_phone = store_phone

    async def dispatch(
        self,
        event: OrderEvent,
        order: Order,
        recipients: Recipients | None = None,
    ) -> DispatchReport:
        recipients = recipients or Recipients()
        if event == OrderEvent.CREATED:
            jobs = self._order_created_jobs(order, recipients)
        else:
            jobs = self._status_changed_jobs(order)

        results = await asyncio.gather(*(job() for _, job in jobs), return_exceptions=True)

        report = DispatchReport(event=event, order_id=order.id)
        for (name, _), result in zip(jobs, results):
            if isinstance(result, BaseException):
                # _deliver already traps Exception; this is the last line for anything else
                result = ChannelReport(name, Outcome.FAILED, detail=repr(result))
            report.channels.append(result)
        return report

    # ── Job plans ──────────────────────────────────────────────────────────────

    def _order_created_jobs(self, order: Order, recipients: Recipients) -> list[tuple[str, Job]]:
        store = self.store_name
        return [
            ("customer_email", lambda: self._deliver(
                "customer_email", order, self.email, [order.email],
                lambda: messages.customer_confirmation_email(order, store))),
            ("store_email", lambda: self._deliver(
                "store_email", order, self.email, recipients.store_emails,
                lambda: messages.store_alert_email(order, store))),
            ("customer_sms", lambda: self._deliver(
                "customer_sms", order, self.sms, [order.phone] if order.phone else [],
                lambda: messages.customer_confirmation_sms(order, store, self.store_phone))),
            ("admin_sms", lambda: self._deliver(
                "admin_sms", order, self.sms, recipients.admin_phones,
                lambda: messages.admin_order_sms(order))),
            ("admin_push", lambda: self._deliver(
                "admin_push", order, self.push, recipients.admin_push_tokens,
                lambda: messages.admin_push(order))),
        ]

    def _status_changed_jobs(self, order: Order) -> list[tuple[str, Job]]:
        return [
            ("customer_sms", lambda: self._deliver(
                "customer_sms", order, self.sms, [order.phone] if order.phone else [],
                lambda: messages.status_update_sms(order, self.store_name))),
        ]

    # ── Execution ──────────────────────────────────────────────────────────────

    async def _deliver(
        self,
        name: str,
        order: Order,
        channel: NotificationChannel | None,
        targets: list[str],
        build: Callable[[], Message],
    ) -> ChannelReport:
        if channel is None or not channel.configured:
            logger.warning("Order %s: %s skipped (channel not configured)", order.id, name)
            return ChannelReport(name, Outcome.SKIPPED, detail="channel not configured")
        if not targets:
            logger.warning("Order %s: %s skipped (no recipients)", order.id, name)
            return ChannelReport(name, Outcome.SKIPPED, detail="no recipients")

        try:
            result: DeliveryResult = await channel.send(targets, build())
        except Exception as exc:
            logger.warning("Order %s: %s failed: %s", order.id, name, exc)
            return ChannelReport(name, Outcome.FAILED, detail=str(exc))

        for recipient, reason in result.failed.items():
            logger.warning("Order %s: %s not delivered to %s: %s", order.id, name, recipient, reason)

        if result.ok:
            logger.info(
                "Order %s: %s sent to %d of %d recipient(s)",
                order.id, name, len(result.delivered), len(targets),
            )
            outcome = Outcome.SENT
        else:
            outcome = Outcome.FAILED

        return ChannelReport(
            name,
            outcome,
            delivered=result.delivered,
            failed=result.failed,
            stale=result.stale,
        )
