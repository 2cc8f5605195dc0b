from decimal import Decimal

import pytest

from huntkitchen.catalog.models import ResolvedLine
from huntkitchen.checkout import metadata as meta
from huntkitchen.checkout import shipping
from huntkitchen.errors import ValidationError


def test_metadata_roundtrip_keeps_context():
    metadata = meta.make_session_metadata(
        cart_id="cart-1",
        user_id=None,
        session_id="guest",
        discount_code_id=None,
        shipping_rate={"id": "express", "name": "Express Shipping", "price": Decimal("14.99")},
        shipping_address={"city": "Bozeman"},
        billing_address={"city": "Helena"},
    )
    assert all(isinstance(v, str) for v in metadata.values())
    context = meta.extract_session_metadata({"metadata": metadata})
    assert context["cart_id"] == "cart-1"
    assert context["user_id"] is None
    assert context["discount_code_id"] is None
    assert context["shipping_method"] == "Express Shipping"
    assert context["shipping_amount"] == "14.99"
    assert context["billing_address"] == {"city": "Helena"}


def test_metadata_rejects_oversized_address():
    with pytest.raises(ValidationError):
        meta.make_session_metadata(
            cart_id="c", user_id=None, session_id=None, discount_code_id=None,
            shipping_rate={"id": "standard", "name": "Standard", "price": 5},
            shipping_address={"line": "x" * 600}, billing_address={},
        )


def test_extract_tolerates_garbage():
    context = meta.extract_session_metadata({"metadata": {"shipping_address": "{not json"}})
    assert context["shipping_address"] == {}
    assert context["shipping_amount"] == "0"


def test_payment_intent_id_expanded_or_plain():
    assert meta.payment_intent_id({"payment_intent": "pi_1"}) == "pi_1"
    assert meta.payment_intent_id({"payment_intent": {"id": "pi_2"}}) == "pi_2"
    assert meta.payment_intent_id({}) is None


def test_weight_surcharge_steps():
    assert shipping.weight_surcharge(Decimal("16")) == Decimal("0")
    assert shipping.weight_surcharge(Decimal("17")) == Decimal("2.00")
    assert shipping.weight_surcharge(Decimal("48")) == Decimal("2.00")
    assert shipping.weight_surcharge(Decimal("49")) == Decimal("4.00")


def test_free_rate_prepended_at_threshold():
    rates = shipping.compute_rates(Decimal("10"), Decimal("75.00"))
    assert rates[0]["id"] == "free"
    assert rates[0]["price"] == Decimal("0.00")
    assert [r["id"] for r in shipping.compute_rates(Decimal("10"), Decimal("74.99"))] == ["standard", "express", "overnight"]


def test_resolve_rate_recomputes_price():
    assert shipping.resolve_rate("overnight", Decimal("40"), Decimal("10"))["price"] == Decimal("31.99")
    with pytest.raises(ValidationError):
        shipping.resolve_rate("free", Decimal("1"), Decimal("10"))


def test_cart_weight_prefers_variant_weight():
    lines = [
        ResolvedLine("i1", {"id": "p1", "weight_oz": "10"}, {"id": "v1", "weight_oz": "6"}, 2),
        ResolvedLine("i2", {"id": "p2", "weight_oz": "3"}, None, 1),
        ResolvedLine("i3", {"id": "p3"}, None, 5),
    ]
    assert shipping.cart_weight(lines) == Decimal("15")
