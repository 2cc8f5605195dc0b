import json
from decimal import Decimal

import pytest

from huntkitchen.cart.store import (
    STORAGE_KEY,
    CartStore,
    JSONFileStorage,
    MemoryStorage,
    merge_lines,
    reduce,
    initial_state,
)
from huntkitchen.errors import ValidationError

ITEM = {"product_id": "p1", "variant_id": "v1", "name": "Smoked Salt", "price": "20.00", "quantity": 1}


def _store(storage=None):
    return CartStore(storage or MemoryStorage(), clock=lambda: "2026-10-01T00:00:00+00:00")


def test_add_same_line_twice_increments():
    store = _store()
    store.add_item({**ITEM, "quantity": 2})
    store.add_item({**ITEM, "quantity": 3})
    assert len(store.items) == 1
    assert store.items[0]["quantity"] == 5
    assert store.item_count() == 5


def test_add_rejects_non_positive_quantity():
    with pytest.raises(ValidationError):
        _store().add_item({**ITEM, "quantity": 0})


def test_variant_distinguishes_lines():
    store = _store()
    store.add_item(ITEM)
    store.add_item({**ITEM, "variant_id": None})
    assert len(store.items) == 2
    assert store.get_item("p1") is not None
    assert store.get_item("p1", "v1")["quantity"] == 1


def test_update_to_zero_removes_line():
    store = _store()
    store.add_item(ITEM)
    store.update_quantity("p1", 4, "v1")
    assert store.get_item("p1", "v1")["quantity"] == 4
    store.update_quantity("p1", 0, "v1")
    assert store.items == []


def test_reduce_does_not_mutate_state():
    state = initial_state()
    new_state = reduce(state, {"type": "ADD_ITEM", "item": ITEM})
    assert state == {"items": [], "discount": None}
    assert len(new_state["items"]) == 1


def test_merge_is_commutative_on_quantities_and_lossless():
    a = [{"product_id": "p1", "variant_id": None, "quantity": 2}, {"product_id": "p2", "variant_id": "v2", "quantity": 1}]
    b = [{"product_id": "p1", "variant_id": None, "quantity": 3}, {"product_id": "p3", "variant_id": None, "quantity": 4}]

    def quantities(lines):
        return {(l["product_id"], l["variant_id"]): l["quantity"] for l in lines}

    assert quantities(merge_lines(a, b)) == quantities(merge_lines(b, a)) == {
        ("p1", None): 5,
        ("p2", "v2"): 1,
        ("p3", None): 4,
    }


def test_apply_discount_replaces_and_respects_minimum():
    store = _store()
    store.add_item({**ITEM, "quantity": 3})
    with pytest.raises(ValidationError) as exc:
        store.apply_discount({"id": "d1", "code": "BIG", "discount_type": "PERCENTAGE", "discount_value": "10", "minimum_order_amount": "75"})
    assert "Minimum order amount of $75.00 required" in exc.value.message
    assert store.discount is None

    store.apply_discount({"id": "d2", "code": "SAVE10", "discount_type": "PERCENTAGE", "discount_value": "10"})
    store.apply_discount({"id": "d2", "code": "SAVE10", "discount_type": "PERCENTAGE", "discount_value": "10"})
    assert store.discount["code"] == "SAVE10"
    assert store.discount["applied_at"] == "2026-10-01T00:00:00+00:00"
    # Appliquer deux fois ne cumule pas
    assert store.discount_amount() == Decimal("6.00")
    assert store.total() == Decimal("54.00")


def test_clear_cart_resets_everything():
    store = _store()
    store.add_item(ITEM)
    store.apply_discount({"id": "d2", "code": "SAVE10", "discount_type": "PERCENTAGE", "discount_value": "10"})
    store.clear_cart()
    assert store.items == [] and store.discount is None


def test_only_items_and_discount_are_persisted():
    storage = MemoryStorage()
    store = _store(storage)
    store.add_item(ITEM)
    persisted = json.loads(storage.get_item(STORAGE_KEY))
    assert set(persisted) == {"items", "discount"}
    assert "subtotal" not in persisted


def test_rehydration_normalises_ids(tmp_path):
    storage = JSONFileStorage(tmp_path / "cart.json")
    storage.set_item(STORAGE_KEY, json.dumps({"items": [{"product_id": 42, "variant_id": 7, "price": 3, "quantity": "2"}], "discount": None}))
    store = _store(storage)
    assert store.items[0]["product_id"] == "42"
    assert store.items[0]["variant_id"] == "7"
    assert store.subtotal() == Decimal("6.00")

    store.remove_item("42", "7")
    assert _store(storage).items == []


def test_merge_cart_action_adds_server_lines():
    store = _store()
    store.add_item({**ITEM, "quantity": 1})
    store.merge_cart([{"product_id": "p1", "variant_id": "v1", "quantity": 2, "price": "20.00"}])
    assert store.get_item("p1", "v1")["quantity"] == 3


def test_store_accepts_discount_from_cart_api(shop):
    from huntkitchen.cart import service as cart_service
    from huntkitchen.cart.session import CartOwner

    shop.add_product("p1", price="20.00")
    shop.add_discount("d1", "TEN", minimum_order_amount="50")
    owner = CartOwner(session_id="guest-session")
    cart_service.add_item(owner, "p1", None, 3)
    applied = cart_service.apply_discount(owner, "TEN")["discountCode"]

    store = _store()
    store.add_item({"product_id": "p1", "price": "20.00", "quantity": 1})
    with pytest.raises(ValidationError) as exc:
        store.apply_discount(applied)
    assert exc.value.message == "Minimum order amount of $50.00 required"

    store.update_quantity("p1", 3)
    store.apply_discount(applied)
    assert store.discount["discount_type"] == "PERCENTAGE"
    assert store.discount_amount() == Decimal(str(applied["discountAmount"])) == Decimal("6.00")
    assert store.total() == Decimal("54.00")

    # Relu depuis le stockage: même forme normalisée
    assert CartStore(store.storage, clock=lambda: "x").discount_amount() == Decimal("6.00")
