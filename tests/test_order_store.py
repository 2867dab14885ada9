"""
Order store tests

Tests:
  1. Creation prices server-side, normalises email and hands off notifications
  2. Read access hides whether an order exists from non-admins
  3. Status writes move forward only
"""
import asyncio
from decimal import Decimal

import pytest

from market_orders.core.errors import (
    Forbidden,
    NotFound,
    StatusTransitionError,
    ValidationError,
)
from market_orders.models.account import AccountRole
from market_orders.models.order import OrderStatus
from market_orders.schemas.order import OrderRequest
from market_orders.services.access import CallerContext
from market_orders.services.notifications.dispatcher import OrderEvent
from market_orders.services.order_store import ACCESS_DENIED, OrderStore
from market_orders.services.pricing import CouponPolicy

from conftest import RecordingScheduler, make_account, order_payload

POLICY = CouponPolicy(code="PIZZA10", percentage=Decimal("10"))


def draft(**overrides) -> OrderRequest:
    return OrderRequest(**order_payload(**overrides))


@pytest.fixture
def recorder():
    return RecordingScheduler()


@pytest.fixture
def store(session, recorder):
    return OrderStore(session, recorder, POLICY)


@pytest.fixture
def admin_caller():
    return CallerContext(account_id="admin-1", role=AccountRole.ADMIN, email="admin@market.test")


# ─── Test 1: Create ────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_create_persists_pending_order(store, recorder):
    order = await store.create(draft(coupon_code="pizza10"), CallerContext.anonymous())

    assert order.id
    assert order.status == OrderStatus.PENDING
    assert order.email == "jamie@example.com"
    assert order.user_id is None
    # 12.00 pizza + 4 x 2.00 soda, 10% off the pizza only
    assert order.total_amount == Decimal("18.80")
    assert order.coupon_applied is True
    assert order.coupon_discount_amount == Decimal("1.20")
    assert [i.name for i in order.items] == ["Pepperoni Pizza", "Soda"]
    assert recorder.calls == [(OrderEvent.CREATED, order.id)]


@pytest.mark.asyncio
async def test_create_ignores_client_total_and_drops_non_pizza_toppings(store):
    payload = order_payload(
        items=[
            {"name": "Soda", "quantity": 1, "unit_price": "2.50", "toppings": ["Ice"]},
            {"name": "Cheese Pizza", "quantity": 1, "unit_price": "9.00", "toppings": ["Basil", "Basil "]},
        ],
        total_amount="0.01",
    )
    order = await store.create(OrderRequest(**payload), CallerContext.anonymous())

    assert order.total_amount == Decimal("11.50")
    assert order.items[0].toppings == []
    assert order.items[1].toppings == ["Basil"]


@pytest.mark.asyncio
async def test_create_links_existing_account_by_email(store, session):
    account = await make_account(session, "jamie@example.com")
    order = await store.create(draft(), CallerContext.anonymous())
    assert order.user_id == account.id


@pytest.mark.asyncio
async def test_create_survives_scheduler_failure(session):
    class BrokenScheduler(RecordingScheduler):
        def schedule(self, event, order_id):
            raise RuntimeError("broker down")

    store = OrderStore(session, BrokenScheduler(), POLICY)
    order = await store.create(draft(), CallerContext.anonymous())
    assert order.status == OrderStatus.PENDING


@pytest.mark.asyncio
async def test_create_rejects_empty_cart(store, recorder):
    empty = OrderRequest.model_construct(**{**order_payload(), "items": [], "user_id": None})
    with pytest.raises(ValidationError):
        await store.create(empty, CallerContext.anonymous())
    assert recorder.calls == []


# ─── Test 2: Reads ─────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_missing_and_foreign_orders_look_the_same(store, session):
    stranger = await make_account(session, "stranger@example.com")
    caller = CallerContext.for_account(stranger)
    order = await store.create(draft(), CallerContext.anonymous())

    with pytest.raises(Forbidden) as foreign:
        await store.get_by_id(order.id, caller)
    with pytest.raises(Forbidden) as missing:
        await store.get_by_id("00000000-0000-0000-0000-000000000000", caller)

    assert foreign.value.detail == missing.value.detail == ACCESS_DENIED
    assert foreign.value.status_code == missing.value.status_code == 403


@pytest.mark.asyncio
async def test_owner_by_email_can_read(store, session):
    order = await store.create(draft(), CallerContext.anonymous())
    reader = await make_account(session, "JAMIE@example.com")
    fetched = await store.get_by_id(order.id, CallerContext.for_account(reader))
    assert fetched.id == order.id


@pytest.mark.asyncio
async def test_admin_gets_not_found(store, admin_caller):
    with pytest.raises(NotFound):
        await store.get_by_id("00000000-0000-0000-0000-000000000000", admin_caller)


@pytest.mark.asyncio
async def test_list_for_owner_adopts_and_sorts_newest_first(store, session):
    first = await store.create(draft(), CallerContext.anonymous())
    await asyncio.sleep(0.01)
    second = await store.create(draft(), CallerContext.anonymous())
    await store.create(draft(email="other@example.com"), CallerContext.anonymous())
    account = await make_account(session, "jamie@example.com")

    orders = await store.list_for_owner(account)

    assert [o.id for o in orders] == [second.id, first.id]
    assert all(o.user_id == account.id for o in orders)


@pytest.mark.asyncio
async def test_list_all_is_admin_only(store, session, admin_caller):
    await store.create(draft(), CallerContext.anonymous())
    customer = await make_account(session, "jamie@example.com")

    with pytest.raises(Forbidden):
        await store.list_all(CallerContext.for_account(customer))
    assert len(await store.list_all(admin_caller)) == 1


# ─── Test 3: Status transitions ────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_forward_moves_and_skips_are_accepted(store, recorder, admin_caller):
    order = await store.create(draft(), CallerContext.anonymous())

    order = await store.update_status(order.id, "preparing", admin_caller)
    assert order.status == OrderStatus.PREPARING
    order = await store.update_status(order.id, OrderStatus.DELIVERED, admin_caller)
    assert order.status == OrderStatus.DELIVERED

    assert recorder.calls[1:] == [
        (OrderEvent.STATUS_CHANGED, order.id),
        (OrderEvent.STATUS_CHANGED, order.id),
    ]


@pytest.mark.asyncio
async def test_backward_move_is_rejected(store, admin_caller):
    order = await store.create(draft(), CallerContext.anonymous())
    await store.update_status(order.id, OrderStatus.DELIVERED, admin_caller)

    with pytest.raises(StatusTransitionError):
        await store.update_status(order.id, OrderStatus.PENDING, admin_caller)

    reloaded = await store.get_by_id(order.id, admin_caller)
    assert reloaded.status == OrderStatus.DELIVERED


@pytest.mark.asyncio
async def test_same_status_is_a_silent_no_op(store, recorder, admin_caller):
    order = await store.create(draft(), CallerContext.anonymous())
    await store.update_status(order.id, OrderStatus.PENDING, admin_caller)
    assert recorder.calls == [(OrderEvent.CREATED, order.id)]


@pytest.mark.asyncio
async def test_status_write_rules(store, session, admin_caller):
    order = await store.create(draft(), CallerContext.anonymous())
    customer = await make_account(session, "jamie@example.com")

    with pytest.raises(Forbidden):
        await store.update_status(order.id, OrderStatus.READY, CallerContext.for_account(customer))
    with pytest.raises(ValidationError):
        await store.update_status(order.id, "cancelled", admin_caller)
    with pytest.raises(NotFound):
        await store.update_status("00000000-0000-0000-0000-000000000000", OrderStatus.READY, admin_caller)
