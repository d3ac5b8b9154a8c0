import datetime
from datetime import date

import pytest

from marketplace_bookings import models, pricing

NOW = datetime.datetime(2026, 5, 1, 12, 0)


def make_coupon(**overrides):
    values = dict(
        code="SAVE10",
        discount_type=models.DiscountType.PERCENTAGE,
        discount_amount=10,
        min_purchase=0,
        max_discount=None,
        start_date=NOW - datetime.timedelta(days=1),
        expiry_date=NOW + datetime.timedelta(days=30),
        usage_limit=None,
        usage_count=0,
        is_active=True,
    )
    values.update(overrides)
    return models.Coupon(**values)


def line(price=1000.0, taxes=100.0, quantity=1, nights=2):
    return pricing.PricedLine(unit_id=1, unit_name="Deluxe", quantity=quantity,
                              unit_price=price, taxes=taxes, nights=nights)


@pytest.mark.parametrize("start, end, expected", [
    (date(2026, 5, 1), date(2026, 5, 3), 2),
    (date(2026, 5, 1), date(2026, 5, 2), 1),
    (date(2026, 5, 1), date(2026, 5, 1), 1),
])
def test_calculate_nights(start, end, expected):
    assert pricing.calculate_nights(start, end) == expected


def test_aggregate_sums_lines():
    breakdown = pricing.aggregate([line(), line(price=2000, taxes=200, quantity=2)], fees=50)

    assert breakdown.subtotal == 2000 + 8000
    assert breakdown.taxes == 200 + 800
    assert breakdown.amount_before_discount == 11000
    assert breakdown.total == 11050


def test_percentage_coupon_is_capped_by_max_discount():
    breakdown = pricing.aggregate([line()])
    pricing.apply_coupon(breakdown, make_coupon(max_discount=150), NOW)

    assert breakdown.discount == 150
    assert breakdown.coupon_code == "SAVE10"
    assert breakdown.total == 2050


def test_percentage_coupon_without_cap():
    breakdown = pricing.aggregate([line()])
    pricing.apply_coupon(breakdown, make_coupon(), NOW)
    assert breakdown.discount == pytest.approx(220)


def test_zero_max_discount_caps_to_nothing():
    breakdown = pricing.aggregate([line()])
    pricing.apply_coupon(breakdown, make_coupon(max_discount=0), NOW)

    assert breakdown.discount == 0
    assert breakdown.total == 2200


def test_utcnow_is_naive_utc():
    before = datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
    now = models.utcnow()

    assert now.tzinfo is None
    assert before <= now <= before + datetime.timedelta(seconds=5)


def test_fixed_coupon_never_exceeds_amount():
    breakdown = pricing.aggregate([line(price=100, taxes=0, nights=1)], fees=20)
    pricing.apply_coupon(
        breakdown, make_coupon(discount_type=models.DiscountType.FIXED, discount_amount=500), NOW
    )

    assert breakdown.discount == 100
    assert breakdown.total == 20


@pytest.mark.parametrize("overrides, reason", [
    ({"is_active": False}, "Invalid or inactive coupon code"),
    ({"start_date": NOW + datetime.timedelta(days=1)}, "Coupon is not yet valid"),
    ({"expiry_date": NOW - datetime.timedelta(seconds=1)}, "Coupon has expired"),
    ({"usage_limit": 5, "usage_count": 5}, "Coupon usage limit reached"),
    ({"min_purchase": 5000}, "Minimum purchase of 5000 required for this coupon"),
])
def test_coupon_rejections_are_ignored(overrides, reason):
    coupon = make_coupon(**overrides)
    assert pricing.coupon_rejection_reason(coupon, 2200, NOW) == reason

    breakdown = pricing.apply_coupon(pricing.aggregate([line()]), coupon, NOW)
    assert breakdown.discount == 0
    assert breakdown.coupon_code is None
    assert breakdown.total == 2200


def test_min_purchase_counts_taxes_but_not_fees():
    coupon = make_coupon(min_purchase=2200)
    breakdown = pricing.aggregate([line()], fees=0)
    pricing.apply_coupon(breakdown, coupon, NOW)
    assert breakdown.discount > 0

    breakdown = pricing.aggregate([line(taxes=0)], fees=500)
    pricing.apply_coupon(breakdown, coupon, NOW)
    assert breakdown.discount == 0


def test_compute_discount_for_validation():
    assert pricing.compute_discount(make_coupon(max_discount=50), 1000) == 50
    assert pricing.compute_discount(make_coupon(), 0) == 0
