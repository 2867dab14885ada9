"""
Market Orders — Shared route dependencies
"""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from market_orders.core.config import get_settings
from market_orders.core.errors import AuthenticationRequired
from market_orders.db.database import get_db
from market_orders.models.account import Account
from market_orders.services.access import CallerContext
from market_orders.services.order_store import OrderStore
from market_orders.services.pricing import CouponPolicy
from market_orders.services.scheduler import NotificationScheduler, get_scheduler


async def get_current_account(
    request: Request, db: AsyncSession = Depends(get_db)
) -> Account | None:
    """The account behind the verified token, or None for anonymous callers.
    A token for an account that no longer exists counts as anonymous."""
    claims = getattr(request.state, "user", None)
    if not claims or not claims.get("sub"):
        return None
    return await db.get(Account, claims["sub"])


async def get_caller(account: Account | None = Depends(get_current_account)) -> CallerContext:
    if account is None:
        return CallerContext.anonymous()
    return CallerContext.for_account(account)


async def require_account(account: Account | None = Depends(get_current_account)) -> Account:
    if account is None:
        raise AuthenticationRequired("Authentication required.")
    return account


async def require_caller(account: Account = Depends(require_account)) -> CallerContext:
    return CallerContext.for_account(account)


def get_order_store(
    db: AsyncSession = Depends(get_db),
    scheduler: NotificationScheduler = Depends(get_scheduler),
) -> OrderStore:
    return OrderStore(db, scheduler, CouponPolicy.from_settings(get_settings()))
