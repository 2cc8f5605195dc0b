import pytest


@pytest.fixture
def orders(shop):
    shop.add_product("p1", name="Elk Chili")
    for n, user_id in ((1, "user-1"), (2, "user-1"), (3, "user-2")):
        order = shop.insert_order({
            "order_number": f"THK-O-000{n}",
            "user_id": user_id,
            "email": f"{user_id}@example.com",
            "status": "CONFIRMED",
            "payment_status": "PAID",
            "subtotal": "20.00",
            "total": "20.00",
            "stripe_checkout_session_id": f"cs_{n}",
        })
        shop.insert_order_items(order["id"], [{
            "product_id": "p1", "variant_id": None, "product_name": "Elk Chili",
            "quantity": n, "unit_price": "20.00", "total_price": str(20 * n),
        }])
    return shop


def test_orders_require_authentication(client, orders):
    res = client.get("/api/v1/orders")
    assert res.status_code == 401
    assert res.json()["code"] == "UNAUTHORIZED"


def test_list_own_orders_newest_first(client, orders, current_user):
    current_user("user-1")
    res = client.get("/api/v1/orders", params={"limit": 1})
    assert res.status_code == 200
    data = res.json()["data"]
    assert [o["orderNumber"] for o in data["orders"]] == ["THK-O-0002"]
    assert data["pagination"] == {"page": 1, "limit": 1, "totalCount": 2, "totalPages": 2, "hasMore": True}


def test_pagination_is_validated(client, orders, current_user):
    current_user("user-1")
    assert client.get("/api/v1/orders", params={"limit": 500}).status_code == 400


def test_order_detail(client, orders, current_user):
    current_user("user-1")
    order_id = next(o["id"] for o in orders.orders.values() if o["order_number"] == "THK-O-0001")
    res = client.get(f"/api/v1/orders/{order_id}")
    assert res.status_code == 200
    order = res.json()["data"]["order"]
    assert order["items"][0]["productName"] == "Elk Chili"
    assert order["itemCount"] == 1


def test_foreign_order_is_forbidden(client, orders, current_user):
    current_user("user-1")
    order_id = next(o["id"] for o in orders.orders.values() if o["user_id"] == "user-2")
    res = client.get(f"/api/v1/orders/{order_id}")
    assert res.status_code == 403
    assert client.get("/api/v1/orders/missing").status_code == 404
