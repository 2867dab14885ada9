"""
Market Orders — Orders API

Flow for POST /orders:
  1. Caller resolved from the optional JWT (anonymous allowed)
  2. Authoritative total computed server-side, coupon applied to pizza lines
  3. Owner reconciled (body user_id → caller → email lookup)
  4. Persisted as pending
  5. Notifications handed off; the response does not wait for them
"""
from fastapi import APIRouter, Depends, status

from market_orders.api.deps import get_caller, get_order_store, require_account, require_caller
from market_orders.models.account import Account
from market_orders.schemas.order import OrderRequest, OrderResponse, StatusUpdateRequest
from market_orders.services.access import CallerContext
from market_orders.services.live_feed import publish_order_event
from market_orders.services.order_store import OrderStore

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderRequest,
    caller: CallerContext = Depends(get_caller),
    store: OrderStore = Depends(get_order_store),
):
    """Place an order, as a guest or signed in."""
    order = await store.create(payload, caller)
    await publish_order_event("new_order", order)
    return order


@router.get("", response_model=list[OrderResponse])
async def list_all_orders(
    caller: CallerContext = Depends(require_caller),
    store: OrderStore = Depends(get_order_store),
):
    """All orders, newest first. Admin only."""
    return await store.list_all(caller)


@router.get("/my-orders", response_model=list[OrderResponse])
async def list_my_orders(
    account: Account = Depends(require_account),
    store: OrderStore = Depends(get_order_store),
):
    """The caller's orders, adopting guest orders placed with their email."""
    return await store.list_for_owner(account)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    caller: CallerContext = Depends(require_caller),
    store: OrderStore = Depends(get_order_store),
):
    return await store.get_by_id(order_id, caller)


@router.patch("/{order_id}", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    payload: StatusUpdateRequest,
    caller: CallerContext = Depends(require_caller),
    store: OrderStore = Depends(get_order_store),
):
    """Move an order forward through pending → preparing → ready → delivered. Admin only."""
    order = await store.update_status(order_id, payload.status, caller)
    await publish_order_event("status_changed", order)
    return order
