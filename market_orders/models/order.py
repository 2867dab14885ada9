"""
Market Orders — Order DB models

Core fields are written once at creation. Only `status` (admin action) and
`user_id` (reconciliation) change afterwards; orders are never deleted.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from market_orders.db.database import Base


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class OrderStatus(str, PyEnum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"


class DeliveryType(str, PyEnum):
    PICKUP = "pickup"
    DOOR_DELIVERY = "door-delivery"


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    address: Mapped[str] = mapped_column(String(500), nullable=False, default="Pickup")
    delivery_type: Mapped[DeliveryType] = mapped_column(
        Enum(DeliveryType, name="delivery_type", values_callable=_enum_values),
        default=DeliveryType.PICKUP,
        nullable=False,
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    coupon_applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    coupon_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    coupon_discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("0.00"), nullable=False
    )
    coupon_discount_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)

    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, name="order_status", values_callable=_enum_values),
        default=OrderStatus.PENDING,
        index=True,
        nullable=False,
    )
    user_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("accounts.id"), index=True, nullable=True
    )
    cooking_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
        nullable=False,
    )

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        lazy="selectin",
        order_by="OrderItem.position",
        cascade="all, delete-orphan",
    )

    @property
    def coupon(self) -> dict | None:
        if self.coupon_code is None:
            return None
        return {
            "is_applied": self.coupon_applied,
            "code": self.coupon_code,
            "discount_amount": self.coupon_discount_amount,
            "discount_percentage": self.coupon_discount_percentage,
        }

    @property
    def subtotal(self) -> Decimal:
        return sum((item.unit_price * item.quantity for item in self.items), Decimal("0.00"))

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status.value}>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("orders.id"), index=True, nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    size: Mapped[str | None] = mapped_column(String(64), nullable=True)
    toppings: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    order: Mapped[Order] = relationship(back_populates="items")
