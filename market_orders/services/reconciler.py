"""
Market Orders — Identity reconciler

Orders are often placed by guests who register later. At creation time the
owner is resolved with three strategies, first match wins:
  1. user_id supplied in the request body
  2. the authenticated caller
  3. an account whose email equals the order email (case-insensitive)
At login, orphaned orders carrying the account's email are adopted.
"""
import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from market_orders.core.errors import ReconciliationFailure
from market_orders.models.account import Account
from market_orders.models.order import Order
from market_orders.services.access import CallerContext

logger = logging.getLogger(__name__)


async def _account_by_id(session: AsyncSession, account_id: str | None) -> Account | None:
    if not account_id:
        return None
    return await session.get(Account, account_id)


async def resolve_owner(
    session: AsyncSession,
    email: str,
    body_user_id: str | None,
    caller: CallerContext,
) -> Account | None:
    """Return the account an incoming order belongs to, or None for a guest order."""
    account = await _account_by_id(session, body_user_id)
    if account is not None:
        logger.debug("Order owner resolved from request body: %s", account.id)
        return account

    account = await _account_by_id(session, caller.account_id)
    if account is not None:
        logger.debug("Order owner resolved from caller identity: %s", account.id)
        return account

    if email:
        result = await session.execute(
            select(Account).where(func.lower(Account.email) == email.lower())
        )
        account = result.scalars().first()
        if account is not None:
            logger.debug("Order owner resolved by email lookup: %s", account.id)
            return account

    return None


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def find_orphans(session: AsyncSession, email: str) -> list[str]:
    """Ids of unowned orders for an email: exact match on the stored lowercase
    form, then a case-insensitive pattern match for rows written before
    normalisation."""
    result = await session.execute(
        select(Order.id).where(Order.user_id.is_(None), Order.email == email.lower())
    )
    order_ids = list(result.scalars().all())
    if order_ids:
        return order_ids

    result = await session.execute(
        select(Order.id).where(
            Order.user_id.is_(None),
            Order.email.ilike(_escape_like(email), escape="\\"),
        )
    )
    return list(result.scalars().all())


async def _link(session: AsyncSession, order_id: str, account_id: str) -> bool:
    try:
        result = await session.execute(
            update(Order)
            .where(Order.id == order_id, Order.user_id.is_(None))
            .values(user_id=account_id)
        )
        await session.commit()
    except Exception as exc:
        await session.rollback()
        raise ReconciliationFailure(order_id, str(exc)) from exc
    return result.rowcount > 0


async def adopt_orphans(session: AsyncSession, account: Account) -> int:
    """Link every orphaned order matching the account's email. Returns the number linked.

    Best-effort: a failed link is logged and skipped, and a failed lookup
    links nothing. This never raises into the login flow.
    """
    account_id, email = account.id, account.email
    try:
        orphan_ids = await find_orphans(session, email)
    except Exception:
        logger.exception("Orphan lookup failed for account %s", account_id)
        return 0

    linked = 0
    for order_id in orphan_ids:
        try:
            if await _link(session, order_id, account_id):
                linked += 1
                logger.info("Linked order %s to account %s", order_id, account_id)
        except ReconciliationFailure as exc:
            logger.warning("Could not link orphaned order: %s", exc)

    return linked
