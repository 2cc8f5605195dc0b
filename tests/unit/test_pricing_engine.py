from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from huntkitchen.pricing import (
    DiscountCode,
    PriceLine,
    calculate_totals,
    check_discount_eligibility,
    compute_discount_amount,
    compute_subtotal,
    round2,
    to_cents,
)

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def _discount(**fields):
    row = {"id": "d1", "code": "SAVE10", "discount_type": "PERCENTAGE", "discount_value": "10", "is_active": True}
    row.update(fields)
    return DiscountCode.from_row(row)


def _lines(*specs):
    return [PriceLine(unit_price=Decimal(p), quantity=q, product_id=pid, category_id=cat) for p, q, pid, cat in specs]


def test_reference_scenario_percentage_with_flat_shipping():
    lines = _lines(("20.00", 3, "p1", None))
    totals = calculate_totals(lines, _discount(), Decimal("5.00"), now=NOW)
    assert totals.subtotal == Decimal("60.00")
    assert totals.discount_amount == Decimal("6.00")
    assert totals.shipping_amount == Decimal("5.00")
    assert totals.total == Decimal("59.00")


def test_minimum_order_rejects_and_zeroes_discount():
    lines = _lines(("20.00", 3, "p1", None))
    discount = _discount(minimum_order_amount="75")
    refusal = check_discount_eligibility(discount, lines, now=NOW)
    assert refusal.reason == "MINIMUM_ORDER"
    assert refusal.message == "Minimum order amount of $75.00 required"
    assert calculate_totals(lines, discount, now=NOW).discount_amount == Decimal("0.00")


def test_subtotal_is_order_independent():
    a = _lines(("19.99", 3, "p1", None), ("0.01", 7, "p2", None), ("5.55", 1, "p3", None))
    assert compute_subtotal(a) == compute_subtotal(list(reversed(a))) == Decimal("65.59")


def test_percentage_is_capped_by_maximum_then_subtotal():
    capped = _discount(discount_value="50", maximum_discount_amount="15")
    assert compute_discount_amount(capped, Decimal("100.00")) == Decimal("15.00")
    fixed = _discount(discount_type="FIXED_AMOUNT", discount_value="30")
    assert compute_discount_amount(fixed, Decimal("12.50")) == Decimal("12.50")


def test_total_never_negative():
    lines = _lines(("10.00", 1, "p1", None))
    fixed = _discount(discount_type="FIXED_AMOUNT", discount_value="25")
    totals = calculate_totals(lines, fixed, Decimal("0"), Decimal("-5"), now=NOW)
    assert totals.discount_amount == Decimal("10.00")
    assert totals.total == Decimal("0.00")


def test_empty_cart_totals_are_zero_even_with_discount():
    totals = calculate_totals([], _discount(), Decimal("5.00"), now=NOW)
    assert totals.to_dict() == {"subtotal": 0.0, "discountAmount": 0.0, "shippingAmount": 0.0, "taxAmount": 0.0, "total": 0.0}


def test_free_shipping_zeroes_shipping_only():
    lines = _lines(("40.00", 1, "p1", None))
    totals = calculate_totals(lines, _discount(discount_type="FREE_SHIPPING", discount_value="0"), Decimal("5.99"), now=NOW)
    assert totals.shipping_amount == Decimal("0.00")
    assert totals.discount_amount == Decimal("0.00")
    assert totals.total == Decimal("40.00")


@pytest.mark.parametrize(
    "fields, reason",
    [
        ({"is_active": False}, "INACTIVE"),
        ({"starts_at": (NOW + timedelta(days=1)).isoformat()}, "NOT_STARTED"),
        ({"expires_at": "2026-09-30T00:00:00Z"}, "EXPIRED"),
        ({"usage_limit": 5, "usage_count": 5}, "USAGE_LIMIT"),
        ({"applicable_to": "SPECIFIC_PRODUCTS", "applicable_product_ids": ["other"]}, "NOT_APPLICABLE"),
        ({"applicable_to": "SPECIFIC_CATEGORIES", "applicable_category_ids": ["knives"]}, "NOT_APPLICABLE"),
    ],
)
def test_eligibility_reasons(fields, reason):
    lines = _lines(("20.00", 1, "p1", "spices"))
    assert check_discount_eligibility(_discount(**fields), lines, now=NOW).reason == reason


def test_eligibility_checks_in_order():
    # Inactif ET expiré ET sous le minimum: la première raison l'emporte
    discount = _discount(is_active=False, expires_at="2020-01-01T00:00:00Z", minimum_order_amount="500")
    assert check_discount_eligibility(discount, _lines(("1.00", 1, "p1", None)), now=NOW).reason == "INACTIVE"
    assert check_discount_eligibility(discount, [], now=NOW).reason == "EMPTY_CART"


def test_customer_limit_only_when_usage_known():
    discount = _discount(usage_limit_per_customer=1)
    lines = _lines(("20.00", 1, "p1", None))
    assert check_discount_eligibility(discount, lines, now=NOW, customer_usage=None) is None
    assert check_discount_eligibility(discount, lines, now=NOW, customer_usage=1).reason == "CUSTOMER_LIMIT"


def test_scope_matches_category():
    discount = _discount(applicable_to="SPECIFIC_CATEGORIES", applicable_category_ids=["spices"])
    assert check_discount_eligibility(discount, _lines(("20.00", 1, "p1", "spices")), now=NOW) is None


def test_materialization_skips_eligibility_gate():
    lines = _lines(("20.00", 3, "p1", None))
    expired = _discount(expires_at="2020-01-01T00:00:00Z")
    assert calculate_totals(lines, expired, now=NOW).discount_amount == Decimal("0.00")
    assert calculate_totals(lines, expired, now=NOW, enforce_eligibility=False).discount_amount == Decimal("6.00")


def test_rounding_half_up_and_cents():
    assert round2("2.675") == Decimal("2.68")
    assert round2("0.005") == Decimal("0.01")
    assert to_cents(Decimal("19.99")) == 1999
    assert to_cents("5.999") == 600


def test_percentage_rounds_half_up():
    # 33.35 * 15% = 5.0025 -> 5.00 ; 10.10 * 15% = 1.515 -> 1.52
    assert compute_discount_amount(_discount(discount_value="15"), Decimal("33.35")) == Decimal("5.00")
    assert compute_discount_amount(_discount(discount_value="15"), Decimal("10.10")) == Decimal("1.52")
