"""
Market Orders — Order store

Creation pipeline: price → resolve owner → persist as pending → hand off
notifications. Everything before the commit fails fast; everything after it
is best-effort and cannot fail the request.

Status writes follow STATUS_TRANSITIONS: forward moves (skips included) are
accepted, backward moves are rejected, rewriting the current status is a
no-op. Concurrent writes to the same order are last-writer-wins.
"""
import logging

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from market_orders.core.errors import (
    Forbidden,
    NotFound,
    StatusTransitionError,
    ValidationError,
)
from market_orders.models.account import Account
from market_orders.models.order import Order, OrderItem, OrderStatus
from market_orders.schemas.order import OrderRequest
from market_orders.services import reconciler
from market_orders.services.access import CallerContext, can_read, can_write_status
from market_orders.services.notifications.dispatcher import OrderEvent
from market_orders.services.pricing import CouponPolicy, compute_total, is_pizza
from market_orders.services.scheduler import NotificationScheduler

logger = logging.getLogger(__name__)

# Same message for "missing" and "not yours" so non-admins learn nothing.
ACCESS_DENIED = "Order not found or access denied."

STATUS_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.DELIVERED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.DELIVERED}),
    OrderStatus.READY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
}


class OrderStore:
    def __init__(
        self,
        session: AsyncSession,
        scheduler: NotificationScheduler | None = None,
        coupon_policy: CouponPolicy | None = None,
    ):
        self.session = session
        self.scheduler = scheduler
        self.coupon_policy = coupon_policy or CouponPolicy()

    # ── Create ────────────────────────────────────────────────────────────────

    async def create(self, draft: OrderRequest, caller: CallerContext) -> Order:
        if not draft.items:
            raise ValidationError("Order must contain at least one item")
        if not draft.email or not str(draft.email).strip():
            raise ValidationError("Order email is required")

        quote = compute_total(draft.items, draft.coupon_code, self.coupon_policy)
        email = str(draft.email).strip().lower()
        owner = await reconciler.resolve_owner(self.session, email, draft.user_id, caller)

        order = Order(
            customer_name=draft.customer_name,
            phone=draft.phone,
            email=email,
            address=draft.address,
            delivery_type=draft.delivery_type,
            total_amount=quote.total,
            coupon_applied=quote.applied,
            coupon_code=quote.code,
            coupon_discount_amount=quote.discount,
            coupon_discount_percentage=quote.percentage,
            status=OrderStatus.PENDING,
            user_id=owner.id if owner else None,
            cooking_instructions=draft.cooking_instructions,
            items=[
                OrderItem(
                    position=position,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    size=item.size,
                    toppings=list(item.toppings) if is_pizza(item.name) else [],
                )
                for position, item in enumerate(draft.items)
            ],
        )
        self.session.add(order)
        await self.session.commit()
        logger.info(
            "Order %s created: total=%s coupon_applied=%s owner=%s",
            order.id, order.total_amount, order.coupon_applied, order.user_id,
        )

        self._notify(OrderEvent.CREATED, order.id)
        return order

    # ── Reads ─────────────────────────────────────────────────────────────────

    async def _load(self, order_id: str) -> Order | None:
        result = await self.session.execute(
            select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, order_id: str, caller: CallerContext) -> Order:
        order = await self._load(order_id)
        if caller.is_admin:
            if order is None:
                raise NotFound("Order not found.")
            return order
        if order is None or not can_read(order, caller):
            raise Forbidden(ACCESS_DENIED)
        return order

    async def list_for_owner(self, account: Account) -> list[Order]:
        """Orders owned by the account plus orphans carrying its email.
        Orphans are adopted first; any that fail to link are still listed."""
        account_id, email = account.id, account.email.lower()
        await reconciler.adopt_orphans(self.session, account)

        result = await self.session.execute(
            select(Order)
            .where(
                or_(
                    Order.user_id == account_id,
                    and_(Order.user_id.is_(None), func.lower(Order.email) == email),
                )
            )
            .order_by(Order.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_all(self, caller: CallerContext) -> list[Order]:
        if not caller.is_admin:
            raise Forbidden("Admin access required.")
        result = await self.session.execute(select(Order).order_by(Order.created_at.desc()))
        return list(result.scalars().all())

    # ── Status ────────────────────────────────────────────────────────────────

    async def update_status(self, order_id: str, new_status, caller: CallerContext) -> Order:
        if not can_write_status(caller):
            raise Forbidden("Admin access required.")
        try:
            new_status = OrderStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown order status '{new_status}'.")

        order = await self._load(order_id)
        if order is None:
            raise NotFound("Order not found.")

        current = order.status
        if new_status == current:
            return order
        if new_status not in STATUS_TRANSITIONS[current]:
            raise StatusTransitionError(
                f"Cannot move order from '{current.value}' back to '{new_status.value}'."
            )

        order.status = new_status
        await self.session.commit()
        logger.info("Order %s status %s -> %s", order.id, current.value, new_status.value)

        self._notify(OrderEvent.STATUS_CHANGED, order.id)
        return order

    # ── Hand-off ──────────────────────────────────────────────────────────────

    def _notify(self, event: OrderEvent, order_id: str) -> None:
        if self.scheduler is None:
            return
        try:
            self.scheduler.schedule(event, order_id)
        except Exception:
            logger.exception("Notification hand-off failed for order %s", order_id)
