"""
Price aggregation and coupon rules shared by every service type.
"""
import datetime
import math
from dataclasses import dataclass, field
from typing import Optional

from .models import Coupon, DiscountType, utcnow


@dataclass
class PricedLine:
    unit_id: Optional[int]
    unit_name: str
    quantity: int
    unit_price: float
    taxes: float
    nights: int
    addons: list = field(default_factory=list)
    details: dict = field(default_factory=dict)

    @property
    def subtotal(self) -> float:
        return self.unit_price * self.quantity * self.nights

    @property
    def tax_total(self) -> float:
        return self.taxes * self.quantity * self.nights

    @property
    def total(self) -> float:
        return (self.unit_price + self.taxes) * self.quantity * self.nights


@dataclass
class PriceBreakdown:
    subtotal: float = 0.0
    taxes: float = 0.0
    fees: float = 0.0
    discount: float = 0.0
    coupon_code: Optional[str] = None

    @property
    def amount_before_discount(self) -> float:
        # Coupons are checked and computed against subtotal + taxes, fees excluded.
        return self.subtotal + self.taxes

    @property
    def total(self) -> float:
        return self.subtotal + self.taxes + self.fees - self.discount


def calculate_nights(start: datetime.date, end: datetime.date) -> int:
    """Number of nights (stays) or days (everything else), never below one."""
    seconds = (end - start).total_seconds()
    return max(1, math.ceil(seconds / 86400))


def aggregate(lines: list[PricedLine], fees: float = 0.0) -> PriceBreakdown:
    breakdown = PriceBreakdown(fees=fees)
    for line in lines:
        breakdown.subtotal += line.subtotal
        breakdown.taxes += line.tax_total
    return breakdown


def coupon_rejection_reason(coupon: Coupon, amount: float, now: datetime.datetime) -> Optional[str]:
    """
    Returns why a coupon cannot be used for `amount`, or None if it can.
    The checks run in the order the coupon validation endpoint reports them.
    """
    if not coupon.is_active:
        return "Invalid or inactive coupon code"
    if coupon.start_date and coupon.start_date > now:
        return "Coupon is not yet valid"
    if coupon.expiry_date < now:
        return "Coupon has expired"
    if coupon.usage_limit and coupon.usage_count >= coupon.usage_limit:
        return "Coupon usage limit reached"
    if amount < (coupon.min_purchase or 0):
        return f"Minimum purchase of {coupon.min_purchase:g} required for this coupon"
    return None


def compute_discount(coupon: Coupon, amount: float) -> float:
    """
    Percentage coupons are capped at max_discount; every discount is capped at
    `amount` so a coupon can never make the total negative.
    """
    if DiscountType(coupon.discount_type) == DiscountType.PERCENTAGE:
        discount = amount * coupon.discount_amount / 100
        if coupon.max_discount is not None and discount > coupon.max_discount:
            discount = coupon.max_discount
    else:
        discount = coupon.discount_amount
    return max(0.0, min(discount, amount))


def apply_coupon(
    breakdown: PriceBreakdown,
    coupon: Optional[Coupon],
    now: Optional[datetime.datetime] = None,
) -> PriceBreakdown:
    """
    Applies `coupon` to the breakdown in place. A coupon that fails any rule is
    ignored rather than rejecting the booking.
    """
    breakdown.discount = 0.0
    breakdown.coupon_code = None
    if coupon is None:
        return breakdown

    now = now or utcnow()
    amount = breakdown.amount_before_discount
    if coupon_rejection_reason(coupon, amount, now) is not None:
        return breakdown

    breakdown.discount = compute_discount(coupon, amount)
    breakdown.coupon_code = coupon.code
    return breakdown
