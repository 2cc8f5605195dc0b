import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def catalog(shop):
    shop.add_product("p1", price="20.00", track_inventory=True)
    shop.add_variant("v1", "p1", inventory_qty=5)
    shop.add_discount("d1", "SAVE10")
    shop.add_discount("d2", "BIG75", minimum_order_amount="75")
    return shop


def _add(client, quantity=1, product_id="p1", variant_id="v1"):
    return client.post("/api/v1/cart/items", json={"productId": product_id, "variantId": variant_id, "quantity": quantity})


def test_guest_cart_gets_session_cookie(client, catalog):
    res = client.get("/api/v1/cart")
    assert res.status_code == 200
    assert "cart_session_id" in res.cookies
    body = res.json()
    assert body["success"] is True
    assert body["data"]["cart"]["items"] == []
    assert body["data"]["totals"]["total"] == 0.0
    assert res.headers["Cache-Control"].startswith("no-store")


def test_add_same_item_twice_single_line(client, catalog):
    assert _add(client, 2).status_code == 201
    res = _add(client, 1)
    assert res.status_code == 200
    assert res.json()["data"]["item"]["quantity"] == 3

    cart = client.get("/api/v1/cart").json()["data"]["cart"]
    assert len(cart["items"]) == 1
    assert cart["itemCount"] == 3


def test_add_beyond_stock_is_inventory_error(client, catalog):
    _add(client, 4)
    res = _add(client, 2)
    assert res.status_code == 409
    body = res.json()
    assert body == {
        "success": False,
        "error": "Only 5 items in stock",
        "code": "INVENTORY_ERROR",
        "details": [{"reason": "INSUFFICIENT_STOCK", "message": "Only 5 in stock", "available": 5}],
    }


def test_invalid_quantity_is_validation_error(client, catalog):
    res = _add(client, 0)
    assert res.status_code == 400
    assert res.json()["code"] == "VALIDATION_ERROR"
    assert res.json()["details"]


def test_update_and_delete_item(client, catalog):
    item_id = _add(client, 1).json()["data"]["item"]["id"]
    assert client.patch(f"/api/v1/cart/items/{item_id}", json={"quantity": 4}).status_code == 200
    assert client.get("/api/v1/cart").json()["data"]["cart"]["itemCount"] == 4
    assert client.delete(f"/api/v1/cart/items/{item_id}").status_code == 200
    assert client.get("/api/v1/cart").json()["data"]["cart"]["items"] == []
    assert client.delete(f"/api/v1/cart/items/{item_id}").status_code == 404


def test_other_guest_cannot_touch_item(app, client, catalog):
    item_id = _add(client, 1).json()["data"]["item"]["id"]
    with TestClient(app) as other:
        other.get("/api/v1/cart")
        res = other.patch(f"/api/v1/cart/items/{item_id}", json={"quantity": 2})
    assert res.status_code == 403
    assert res.json()["code"] == "FORBIDDEN"


def test_apply_discount_and_cart_totals(client, catalog):
    _add(client, 3)
    res = client.post("/api/v1/cart/discount", json={"code": "save10"})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["discountCode"]["discountAmount"] == 6.0
    assert data["totals"] == {"subtotal": 60.0, "discountAmount": 6.0, "shippingAmount": 0.0, "taxAmount": 0.0, "total": 54.0}

    totals = client.get("/api/v1/cart", params={"discountCodeId": "d1"}).json()["data"]["totals"]
    assert totals["total"] == 54.0


def test_discount_below_minimum_is_rejected(client, catalog):
    _add(client, 3)
    res = client.post("/api/v1/cart/discount", json={"code": "BIG75"})
    assert res.status_code == 400
    assert res.json()["error"] == "Minimum order amount of $75.00 required"
    totals = client.get("/api/v1/cart", params={"discountCodeId": "d2"}).json()["data"]["totals"]
    assert totals["discountAmount"] == 0.0


def test_unknown_discount_and_remove(client, catalog):
    _add(client, 1)
    assert client.post("/api/v1/cart/discount", json={"code": "NOPE"}).status_code == 404
    assert client.delete("/api/v1/cart/discount").json()["success"] is True


def test_merge_requires_authentication(client, catalog):
    res = client.post("/api/v1/cart/merge", json={})
    assert res.status_code == 401


def test_merge_guest_cart_into_user_cart(client, catalog, current_user):
    _add(client, 2)
    guest_session = client.cookies.get("cart_session_id")
    current_user("user-1")

    res = client.post("/api/v1/cart/merge", json={"sessionId": guest_session})
    assert res.status_code == 200
    assert res.json()["data"] == {"mergedItems": 1, "updatedItems": 0, "totalItems": 1}
    assert "cart_session_id=" in res.headers.get("set-cookie", "")

    cart = client.get("/api/v1/cart").json()["data"]["cart"]
    assert cart["itemCount"] == 2
    assert catalog.find_cart(session_id=guest_session) is None
