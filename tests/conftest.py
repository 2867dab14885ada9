"""
Shared fixtures: a throwaway SQLite database, a recording notification
scheduler, and an HTTP client bound to the ASGI app.
"""
import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="market-orders-tests-")

# Must be set before market_orders is imported: settings and engine are module-level.
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/orders.db"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["COUPON_CODE"] = "PIZZA10"
os.environ["COUPON_DISCOUNT_PERCENTAGE"] = "10"
os.environ["NOTIFICATION_BACKEND"] = "inline"
os.environ["LIVE_FEED_ENABLED"] = "false"
os.environ["METRICS_ENABLED"] = "false"

from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio

import market_orders.models  # noqa: F401
from market_orders.core.security import create_access_token, hash_password
from market_orders.db.database import Base, async_session, engine
from market_orders.main import app
from market_orders.models.account import Account, AccountRole
from market_orders.models.order import DeliveryType, Order, OrderItem, OrderStatus
from market_orders.services.scheduler import NotificationScheduler, get_scheduler


class RecordingScheduler(NotificationScheduler):
    def __init__(self):
        self.calls = []

    def schedule(self, event, order_id):
        self.calls.append((event, order_id))


@pytest_asyncio.fixture
async def tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(tables):
    async with async_session() as s:
        yield s


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest_asyncio.fixture
async def client(tables, scheduler):
    app.dependency_overrides[get_scheduler] = lambda: scheduler
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def make_account(
    session,
    email: str,
    role: AccountRole = AccountRole.CUSTOMER,
    password: str | None = None,
    notification_token: str | None = None,
) -> Account:
    account = Account(
        email=email.lower(),
        hashed_password=hash_password(password) if password else "!",
        name=email.split("@")[0].title(),
        phone="+15550000000",
        address="1 Main St",
        role=role,
        notification_token=notification_token,
    )
    session.add(account)
    await session.commit()
    return account


def auth_header(account: Account) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(account.id, account.role.value)}"}


def build_order(**overrides) -> Order:
    """A transient order for code that never touches the database."""
    items = overrides.pop("items", None) or [
        OrderItem(name="Pepperoni Pizza", quantity=1, unit_price=Decimal("10.00"),
                  size="Large", toppings=["Olives", "Onions"]),
        OrderItem(name="Soda", quantity=2, unit_price=Decimal("1.00"), size=None, toppings=[]),
    ]
    fields = dict(
        id="order-1",
        customer_name="Jamie Guest",
        phone="+15551234567",
        email="jamie@example.com",
        address="Pickup",
        delivery_type=DeliveryType.PICKUP,
        total_amount=Decimal("11.00"),
        coupon_applied=True,
        coupon_code="PIZZA10",
        coupon_discount_amount=Decimal("1.00"),
        coupon_discount_percentage=Decimal("10"),
        status=OrderStatus.PENDING,
        user_id=None,
        cooking_instructions=None,
        created_at=datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return Order(items=items, **fields)


def order_payload(**overrides) -> dict:
    payload = {
        "customer_name": "Jamie Guest",
        "phone": "+15551234567",
        "email": "Jamie@Example.com",
        "address": "Pickup",
        "delivery_type": "pickup",
        "items": [
            {"name": "Pepperoni Pizza", "quantity": 1, "unit_price": "12.00", "toppings": ["Olives"]},
            {"name": "Soda", "quantity": 4, "unit_price": "2.00"},
        ],
    }
    payload.update(overrides)
    return payload
