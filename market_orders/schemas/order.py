"""
Market Orders — Order Pydantic Schemas
"""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, EmailStr, Field, field_validator

from market_orders.models.order import DeliveryType, OrderStatus


class OrderItemRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, examples=["Pepperoni Pizza"])
    quantity: int = Field(..., ge=1, le=100)
    unit_price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    size: str | None = Field(None, max_length=64)
    toppings: list[str] = Field(default_factory=list, max_length=30)

    @field_validator("toppings")
    @classmethod
    def _dedupe_toppings(cls, value: list[str]) -> list[str]:
        seen: list[str] = []
        for topping in value:
            topping = topping.strip()
            if topping and topping not in seen:
                seen.append(topping)
        return seen


class OrderRequest(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field("", max_length=32)
    email: EmailStr
    address: str = Field("Pickup", max_length=500)
    delivery_type: DeliveryType = DeliveryType.PICKUP
    items: list[OrderItemRequest] = Field(..., min_length=1, max_length=50)
    coupon_code: str | None = Field(None, max_length=64)
    cooking_instructions: str | None = Field(None, max_length=1000)
    user_id: str | None = Field(None, max_length=36)


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


class OrderItemResponse(BaseModel):
    name: str
    quantity: int
    unit_price: Decimal
    size: str | None = None
    toppings: list[str] = []

    model_config = {"from_attributes": True}


class CouponResponse(BaseModel):
    is_applied: bool
    code: str
    discount_amount: Decimal
    discount_percentage: Decimal | None = None


class OrderResponse(BaseModel):
    id: str
    customer_name: str
    phone: str
    email: str
    address: str
    delivery_type: DeliveryType
    items: list[OrderItemResponse]
    coupon: CouponResponse | None = None
    total_amount: Decimal
    status: OrderStatus
    user_id: str | None = None
    cooking_instructions: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
