"""Money arithmetic shared by the cart, coupon engine and order pipeline."""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.orm import Session

from core.config import settings
from models.governorate import Governorate, ShippingSettings

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_decimal(value: float | int | str | Decimal | None) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class FreeShippingPolicy:
    """Store-wide rule: orders whose subtotal reaches the threshold ship free."""

    enabled: bool = False
    min_order_amount: Decimal = ZERO

    def applies(self, subtotal: Decimal) -> bool:
        return self.enabled and self.min_order_amount > 0 and to_decimal(subtotal) >= self.min_order_amount


def load_free_shipping_policy(db: Session) -> FreeShippingPolicy:
    row = db.get(ShippingSettings, 1)
    if row is None:
        return FreeShippingPolicy()
    return FreeShippingPolicy(enabled=bool(row.free_shipping_enabled), min_order_amount=to_decimal(row.free_shipping_min_order))


def governorate_shipping_cost(governorate: Governorate) -> Decimal:
    if governorate.is_free_shipping:
        return ZERO
    return quantize(governorate.shipping_cost)


def quote_shipping(governorate: Governorate, subtotal: Decimal, policy: FreeShippingPolicy) -> Decimal:
    if policy.applies(subtotal):
        return ZERO
    return governorate_shipping_cost(governorate)


def compute_tax(subtotal: Decimal) -> Decimal:
    return quantize(to_decimal(subtotal) * settings.TAX_RATE / 100)


def compute_total(subtotal: Decimal, shipping_cost: Decimal, tax: Decimal, discount: Decimal) -> Decimal:
    return quantize(to_decimal(subtotal) + to_decimal(shipping_cost) + to_decimal(tax) - to_decimal(discount))


def within_tolerance(a: Decimal, b: Decimal) -> bool:
    return abs(to_decimal(a) - to_decimal(b)) <= settings.MONEY_TOLERANCE
