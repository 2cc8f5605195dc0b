import pytest

from huntkitchen.webhooks import service as webhooks_service


@pytest.fixture
def paid_order(shop):
    shop.add_product("p1", track_inventory=True)
    shop.add_variant("v1", "p1", inventory_qty=4)
    shop.add_product("p2", track_inventory=False)
    order = shop.insert_order({
        "order_number": "THK-TEST-0001",
        "user_id": "user-1",
        "status": "CONFIRMED",
        "payment_status": "PAID",
        "stripe_payment_intent_id": "pi_1",
        "stripe_checkout_session_id": "cs_1",
    })
    shop.insert_order_items(order["id"], [
        {"product_id": "p1", "variant_id": "v1", "quantity": 3},
        {"product_id": "p2", "variant_id": None, "quantity": 1},
    ])
    return order


def _event(event_type, obj):
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}


def _refund(amount_refunded, amount=5000):
    return _event("charge.refunded", {"id": "ch_1", "payment_intent": "pi_1", "amount": amount, "amount_refunded": amount_refunded})


def test_full_refund_restores_tracked_inventory_once(shop, paid_order):
    assert webhooks_service.handle_event(_refund(5000)) is True
    webhooks_service.handle_event(_refund(5000))

    order = shop.orders[paid_order["id"]]
    assert order["payment_status"] == "REFUNDED"
    assert order["status"] == "REFUNDED"
    assert shop.inventory_calls == [("v1", 3)]
    assert shop.variants["v1"]["inventory_qty"] == 7


def test_partial_refund_leaves_inventory(shop, paid_order):
    webhooks_service.handle_event(_refund(1000))
    assert shop.orders[paid_order["id"]]["payment_status"] == "PARTIALLY_REFUNDED"
    assert shop.inventory_calls == []


def test_partial_then_full_refund(shop, paid_order):
    webhooks_service.handle_event(_refund(1000))
    webhooks_service.handle_event(_refund(5000))
    assert shop.orders[paid_order["id"]]["payment_status"] == "REFUNDED"
    assert shop.inventory_calls == [("v1", 3)]


def test_late_partial_refund_does_not_downgrade_full_refund(shop, paid_order):
    webhooks_service.handle_event(_refund(5000))
    webhooks_service.handle_event(_refund(1000))
    assert shop.orders[paid_order["id"]]["payment_status"] == "REFUNDED"


def test_payment_succeeded_advances_pending_only(shop, paid_order):
    shop.orders[paid_order["id"]].update({"status": "PENDING", "payment_status": "PENDING"})
    webhooks_service.handle_event(_event("payment_intent.succeeded", {"id": "pi_1"}))
    assert shop.orders[paid_order["id"]]["status"] == "CONFIRMED"
    assert shop.orders[paid_order["id"]]["payment_status"] == "PAID"

    shop.orders[paid_order["id"]]["status"] = "SHIPPED"
    webhooks_service.handle_event(_event("payment_intent.succeeded", {"id": "pi_1"}))
    assert shop.orders[paid_order["id"]]["status"] == "SHIPPED"


def test_payment_succeeded_after_refund_is_noop(shop, paid_order):
    webhooks_service.handle_event(_refund(5000))
    webhooks_service.handle_event(_event("payment_intent.succeeded", {"id": "pi_1"}))
    assert shop.orders[paid_order["id"]]["payment_status"] == "REFUNDED"


def test_payment_failed_never_regresses_paid(shop, paid_order):
    webhooks_service.handle_event(_event("payment_intent.payment_failed", {"id": "pi_1"}))
    assert shop.orders[paid_order["id"]]["payment_status"] == "PAID"

    shop.orders[paid_order["id"]]["payment_status"] = "PENDING"
    webhooks_service.handle_event(_event("payment_intent.payment_failed", {"id": "pi_1"}))
    assert shop.orders[paid_order["id"]]["payment_status"] == "FAILED"


def test_unknown_order_is_ignored(shop):
    webhooks_service.handle_event(_event("payment_intent.succeeded", {"id": "pi_unknown"}))
    webhooks_service.handle_event(_refund(5000))
    assert shop.orders == {}


def test_dispute_is_logged_without_state_change(shop, paid_order, caplog):
    webhooks_service.handle_event(_event("charge.dispute.created", {"id": "dp_1", "charge": "ch_1", "amount": 5000, "reason": "fraudulent"}))
    assert shop.orders[paid_order["id"]]["payment_status"] == "PAID"
    assert any(r.levelname == "WARNING" and "dp_1" in r.getMessage() for r in caplog.records)


def test_unhandled_event_type():
    assert webhooks_service.handle_event(_event("customer.created", {"id": "cus_1"})) is False


def test_checkout_completed_materializes_paid_sessions(monkeypatch):
    created = []
    monkeypatch.setattr("huntkitchen.checkout.service.materialize_order", lambda s: created.append(s["id"]) or {"id": "order-1"})
    webhooks_service.handle_event(_event("checkout.session.completed", {"id": "cs_unpaid", "payment_status": "unpaid"}))
    webhooks_service.handle_event(_event("checkout.session.completed", {"id": "cs_paid", "payment_status": "paid"}))
    assert created == ["cs_paid"]
