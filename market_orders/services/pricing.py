"""
Market Orders — Pricing & coupon calculator

Pure functions: no I/O, no clock, no settings lookups. The coupon policy is
passed in so the same inputs always give the same quote.

Coupons discount only the pizza lines of a cart. Currency is rounded to cents
with ROUND_HALF_UP (1.005 -> 1.01).
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Protocol

from market_orders.core.errors import ValidationError

CENTS = Decimal("0.01")
PIZZA_KEYWORD = "pizza"


class PricedLine(Protocol):
    name: str
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class CouponPolicy:
    code: str = ""
    percentage: Decimal = Decimal("0")

    def __post_init__(self):
        if not Decimal("0") <= Decimal(str(self.percentage)) <= Decimal("100"):
            raise ValueError(f"Coupon percentage must be between 0 and 100, got {self.percentage}")

    @property
    def enabled(self) -> bool:
        return bool(self.code) and self.percentage > 0

    def matches(self, code: str | None) -> bool:
        return self.enabled and code is not None and code.strip().lower() == self.code.lower()

    @classmethod
    def from_settings(cls, settings) -> "CouponPolicy":
        return cls(
            code=settings.COUPON_CODE.strip(),
            percentage=Decimal(str(settings.COUPON_DISCOUNT_PERCENTAGE)),
        )


@dataclass(frozen=True)
class PriceQuote:
    subtotal: Decimal
    pizza_subtotal: Decimal
    discount: Decimal
    total: Decimal
    applied: bool
    percentage: Decimal | None
    code: str | None


def round2(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def is_pizza(name: str) -> bool:
    return PIZZA_KEYWORD in name.lower()


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so floats like 0.1 keep their printed value
    return Decimal(str(value))


def compute_total(
    items: Iterable[PricedLine],
    coupon_code: str | None = None,
    policy: CouponPolicy | None = None,
) -> PriceQuote:
    """Price a cart and apply the coupon to its pizza lines.

    A recognised code on a cart with no pizza is accepted but contributes no
    discount and is reported as not applied. An unrecognised code is ignored.
    Raises ValidationError for an empty cart, a quantity below 1 or a negative
    unit price.
    """
    lines = list(items)
    if not lines:
        raise ValidationError("Order must contain at least one item")

    subtotal = Decimal("0")
    pizza_subtotal = Decimal("0")
    for line in lines:
        if line.quantity < 1:
            raise ValidationError(f"Quantity for '{line.name}' must be at least 1")
        unit_price = _as_decimal(line.unit_price)
        if unit_price < 0:
            raise ValidationError(f"Unit price for '{line.name}' must not be negative")
        line_total = unit_price * line.quantity
        subtotal += line_total
        if is_pizza(line.name):
            pizza_subtotal += line_total

    policy = policy or CouponPolicy()
    code = coupon_code.strip() if coupon_code and coupon_code.strip() else None

    discount = Decimal("0")
    applied = False
    percentage = None
    if code is not None and policy.matches(code):
        discount = min(round2(pizza_subtotal * policy.percentage / 100), round2(pizza_subtotal))
        applied = pizza_subtotal > 0
        if applied:
            percentage = policy.percentage

    return PriceQuote(
        subtotal=round2(subtotal),
        pizza_subtotal=round2(pizza_subtotal),
        discount=round2(discount),
        total=round2(subtotal - discount),
        applied=applied,
        percentage=percentage,
        code=code,
    )
