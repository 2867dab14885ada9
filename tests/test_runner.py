"""
Notification runner and hand-off tests

Tests:
  1. A full dispatch against mocked gateways, with one gateway down
  2. Unregistered push tokens are cleared afterwards
  3. Schedulers never raise into the order path
"""
import json
from decimal import Decimal

import httpx
import pytest
from sqlalchemy import select

from market_orders.core.config import Settings
from market_orders.db.database import async_session
from market_orders.models.account import Account, AccountRole
from market_orders.schemas.order import OrderRequest
from market_orders.services import scheduler as scheduler_module
from market_orders.services.access import CallerContext
from market_orders.services.notifications.dispatcher import OrderEvent, Outcome
from market_orders.services.notifications.runner import run_dispatch
from market_orders.services.order_store import OrderStore
from market_orders.services.pricing import CouponPolicy
from market_orders.services.scheduler import (
    CeleryNotificationScheduler,
    InProcessNotificationScheduler,
)

from conftest import make_account, order_payload

SETTINGS = Settings(
    RESEND_API_KEY="re_key",
    RESEND_API_URL="https://api.resend.test/emails",
    STORE_EMAILS="store@market.test, not-an-email",
    TEXTBEE_API_KEY="tb_key",
    TEXTBEE_DEVICE_ID="device-9",
    TEXTBEE_BASE_URL="https://api.textbee.test/api/v1",
    ADMIN_PHONE_NUMBERS="+15550000001",
    EXPO_PUSH_URL="https://exp.test/push/send",
)


class Gateways:
    """Routes mocked gateway traffic by host; SMS is down."""

    def __init__(self):
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host == "api.resend.test":
            return httpx.Response(200, json={"id": "email-1"})
        if host == "api.textbee.test":
            return httpx.Response(500, json={"error": "device offline"})
        if host == "exp.test":
            tickets = []
            for m in json.loads(request.content):
                if m["to"].endswith("[gone]"):
                    tickets.append({"status": "error", "message": "gone",
                                    "details": {"error": "DeviceNotRegistered"}})
                else:
                    tickets.append({"status": "ok", "id": "t"})
            return httpx.Response(200, json={"data": tickets})
        return httpx.Response(404)

    def hosts(self) -> list[str]:
        return [r.url.host for r in self.requests]


async def place_order(session) -> str:
    store = OrderStore(session, None, CouponPolicy(code="PIZZA10", percentage=Decimal("10")))
    order = await store.create(OrderRequest(**order_payload()), CallerContext.anonymous())
    return order.id


# ─── Test 1 & 2: Full dispatch ─────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_sms_outage_leaves_email_and_push_intact(session):
    await make_account(session, "admin1@market.test", AccountRole.ADMIN, notification_token="ExponentPushToken[good]")
    await make_account(session, "admin2@market.test", AccountRole.ADMIN, notification_token="ExponentPushToken[gone]")
    await make_account(session, "customer@example.com", notification_token="ExponentPushToken[customer]")
    order_id = await place_order(session)

    gateways = Gateways()
    report = await run_dispatch(
        OrderEvent.CREATED, order_id, async_session, SETTINGS, httpx.MockTransport(gateways)
    )

    assert report.get("customer_email").outcome == Outcome.SENT
    assert report.get("store_email").outcome == Outcome.SENT
    assert report.get("store_email").delivered == ["store@market.test"]
    assert report.get("customer_sms").outcome == Outcome.FAILED
    assert report.get("admin_sms").outcome == Outcome.FAILED
    assert report.get("admin_push").outcome == Outcome.SENT
    assert report.stale_tokens == ["ExponentPushToken[gone]"]
    assert gateways.hosts().count("api.textbee.test") == 2

    result = await session.execute(
        select(Account.email, Account.notification_token).execution_options(populate_existing=True)
    )
    tokens = dict(result.all())
    assert tokens["admin1@market.test"] == "ExponentPushToken[good]"
    assert tokens["admin2@market.test"] is None
    assert tokens["customer@example.com"] == "ExponentPushToken[customer]"


@pytest.mark.asyncio
async def test_status_change_only_contacts_sms_gateway(session):
    await make_account(session, "admin1@market.test", AccountRole.ADMIN, notification_token="ExponentPushToken[good]")
    order_id = await place_order(session)

    gateways = Gateways()
    report = await run_dispatch(
        OrderEvent.STATUS_CHANGED, order_id, async_session, SETTINGS, httpx.MockTransport(gateways)
    )

    assert report.as_dict()["channels"] == {"customer_sms": "failed"}
    assert gateways.hosts() == ["api.textbee.test"]


@pytest.mark.asyncio
async def test_unknown_order_is_dropped(tables):
    report = await run_dispatch(
        OrderEvent.CREATED, "missing", async_session, SETTINGS, httpx.MockTransport(Gateways())
    )
    assert report is None


# ─── Test 3: Hand-off ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_in_process_scheduler_runs_dispatch_in_background(monkeypatch):
    calls = []

    async def fake_run_dispatch(event, order_id, session_factory, settings=None):
        calls.append((event, order_id))

    monkeypatch.setattr(scheduler_module, "run_dispatch", fake_run_dispatch)
    scheduler = InProcessNotificationScheduler(async_session, SETTINGS)

    scheduler.schedule(OrderEvent.CREATED, "order-1")
    assert calls == []
    await scheduler.drain()
    assert calls == [(OrderEvent.CREATED, "order-1")]


@pytest.mark.asyncio
async def test_in_process_scheduler_contains_crashes(monkeypatch):
    async def exploding(*args, **kwargs):
        raise RuntimeError("dispatch crashed")

    monkeypatch.setattr(scheduler_module, "run_dispatch", exploding)
    scheduler = InProcessNotificationScheduler(async_session, SETTINGS)

    scheduler.schedule(OrderEvent.STATUS_CHANGED, "order-1")
    await scheduler.drain()


def test_celery_scheduler_swallows_broker_errors(monkeypatch):
    from market_orders.tasks import notification_tasks

    def refuse(*args, **kwargs):
        raise ConnectionError("broker unreachable")

    monkeypatch.setattr(notification_tasks.dispatch_order_notifications, "delay", refuse)
    CeleryNotificationScheduler().schedule(OrderEvent.CREATED, "order-1")


def test_celery_scheduler_enqueues_event_value(monkeypatch):
    from market_orders.tasks import notification_tasks

    queued = []
    monkeypatch.setattr(
        notification_tasks.dispatch_order_notifications, "delay", lambda *args: queued.append(args)
    )
    CeleryNotificationScheduler().schedule(OrderEvent.STATUS_CHANGED, "order-1")
    assert queued == [("status_changed", "order-1")]
