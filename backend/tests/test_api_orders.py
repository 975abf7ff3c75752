from decimal import Decimal

import pytest

from conftest import auth_headers
from models.order import Order
from models.users import UserRole


@pytest.fixture
def shop(business, make_store, make_product):
    store = make_store(business, "Corner Shop")
    lamp = make_product(store, "Lamp", price="10.00", stock=5)
    mug = make_product(store, "Mug", price="4.50", stock=2)
    return store, lamp, mug


def _checkout(client, user, items, **extra):
    return client.post("/orders", json={"items": items, **extra}, headers=auth_headers(user))


def _line(product, quantity, **extra):
    return {"product_id": product.id, "store_id": product.store_id, "quantity": quantity, **extra}


def test_checkout_returns_created_orders(client, customer, shop):
    _, lamp, mug = shop

    resp = _checkout(client, customer, [_line(lamp, 2), _line(mug, 1, unit_price="4.50")],
                     shipping_address="Main St 1")

    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert len(body["order_ids"]) == 1
    assert body["order_numbers"][0].startswith("ORD-")

    detail = client.get(f"/orders/{body['order_ids'][0]}", headers=auth_headers(customer)).json()
    assert detail["status"] == "PENDING"
    assert detail["total_amount"] == 24.5
    assert detail["shipping_address"] == "Main St 1"
    assert {i["product_name"] for i in detail["items"]} == {"Lamp", "Mug"}


def test_checkout_insufficient_stock_is_409(client, db, customer, shop):
    _, lamp, mug = shop

    resp = _checkout(client, customer, [_line(lamp, 1), _line(mug, 3)])

    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "INSUFFICIENT_STOCK"
    assert body["details"][0]["product_id"] == mug.id
    assert db.query(Order).count() == 0


def test_checkout_invalid_cart_is_400(client, customer, shop):
    _, lamp, _ = shop

    resp = _checkout(client, customer, [_line(lamp, 1, unit_price="7.00")])

    assert resp.status_code == 400
    assert resp.json()["code"] == "CHECKOUT_INVALID"
    assert resp.json()["details"][0]["code"] == "PRICE_CHANGED"


def test_empty_cart_is_rejected(client, customer):
    resp = _checkout(client, customer, [])

    assert resp.status_code == 400
    assert resp.json()["details"][0]["code"] == "EMPTY_CART"


def test_zero_quantity_fails_request_validation(client, customer, shop):
    _, lamp, _ = shop

    resp = _checkout(client, customer, [_line(lamp, 0)])

    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_ERROR"


def test_only_customers_check_out(client, business, shop):
    _, lamp, _ = shop

    resp = _checkout(client, business, [_line(lamp, 1)])

    assert resp.status_code == 403


def test_checkout_requires_login(client, shop):
    _, lamp, _ = shop

    resp = client.post("/orders", json={"items": [_line(lamp, 1)]})

    assert resp.status_code in (401, 403)


def test_summary_does_not_create_orders(client, db, customer, shop):
    _, lamp, mug = shop

    resp = client.post("/orders/summary", json={"items": [_line(lamp, 2), _line(mug, 2)]},
                       headers=auth_headers(customer))

    assert resp.status_code == 200
    body = resp.json()
    assert body["total_items"] == 4
    assert body["total_amount"] == 29.0
    assert body["stores"][0]["store_name"] == "Corner Shop"
    assert db.query(Order).count() == 0


def test_orders_are_scoped_to_their_owners(client, make_user, make_store, make_product, customer, business, shop):
    _, lamp, _ = shop
    other_customer = make_user(email="someone@shop.com")
    other_business = make_user(UserRole.BUSINESS, email="rival@shop.com")
    rival_store = make_store(other_business, "Rival")
    rival_product = make_product(rival_store, "Rival Lamp")

    mine = _checkout(client, customer, [_line(lamp, 1)]).json()["order_ids"][0]
    theirs = _checkout(client, other_customer, [_line(rival_product, 1)]).json()["order_ids"][0]

    customer_list = client.get("/orders", headers=auth_headers(customer)).json()
    assert [o["id"] for o in customer_list["items"]] == [mine]
    assert customer_list["total"] == 1

    business_list = client.get("/orders", headers=auth_headers(business)).json()
    assert [o["id"] for o in business_list["items"]] == [mine]

    assert client.get(f"/orders/{theirs}", headers=auth_headers(customer)).status_code == 404
    assert client.get(f"/orders/{theirs}", headers=auth_headers(business)).status_code == 404
    assert client.get("/orders/99999", headers=auth_headers(customer)).status_code == 404


def test_order_list_filters_and_pagination(client, customer, business, shop):
    _, lamp, _ = shop
    ids = [_checkout(client, customer, [_line(lamp, 1)]).json()["order_ids"][0] for _ in range(3)]
    client.patch(f"/orders/{ids[0]}", json={"action": "process"}, headers=auth_headers(business))

    processing = client.get("/orders", params={"status": "PROCESSING"}, headers=auth_headers(business)).json()
    assert [o["id"] for o in processing["items"]] == [ids[0]]

    page = client.get("/orders", params={"page": 2, "page_size": 2}, headers=auth_headers(customer)).json()
    assert page["total"] == 3
    assert len(page["items"]) == 1


def test_business_moves_order_through_lifecycle(client, customer, business, shop):
    _, lamp, _ = shop
    order_id = _checkout(client, customer, [_line(lamp, 1)]).json()["order_ids"][0]

    resp = client.patch(f"/orders/{order_id}", json={"action": "process"}, headers=auth_headers(business))
    assert resp.status_code == 200
    assert resp.json()["status"] == "PROCESSING"

    resp = client.patch(f"/orders/{order_id}", json={"status": "COMPLETED"}, headers=auth_headers(business))
    assert resp.json()["status"] == "COMPLETED"

    resp = client.patch(f"/orders/{order_id}", json={"action": "cancel"}, headers=auth_headers(business))
    assert resp.status_code == 409
    assert resp.json()["code"] == "INVALID_TRANSITION"


def test_customer_may_only_cancel(client, db, customer, shop):
    _, lamp, _ = shop
    order_id = _checkout(client, customer, [_line(lamp, 2)]).json()["order_ids"][0]

    resp = client.patch(f"/orders/{order_id}", json={"action": "process"}, headers=auth_headers(customer))
    assert resp.status_code == 403

    resp = client.patch(f"/orders/{order_id}", json={"action": "cancel"}, headers=auth_headers(customer))
    assert resp.status_code == 200
    assert resp.json()["status"] == "CANCELLED"

    db.refresh(lamp)
    assert lamp.stock == 5


def test_other_customer_cannot_cancel(client, make_user, customer, shop):
    _, lamp, _ = shop
    order_id = _checkout(client, customer, [_line(lamp, 1)]).json()["order_ids"][0]
    stranger = make_user(email="stranger@shop.com")

    resp = client.patch(f"/orders/{order_id}", json={"action": "cancel"}, headers=auth_headers(stranger))

    assert resp.status_code == 404


@pytest.mark.parametrize("payload", [
    {"status": "PENDING"},
    {"action": "process", "status": "PROCESSING"},
    {},
    {"action": "ship"},
])
def test_invalid_update_payloads(client, customer, business, shop, payload):
    _, lamp, _ = shop
    order_id = _checkout(client, customer, [_line(lamp, 1)]).json()["order_ids"][0]

    resp = client.patch(f"/orders/{order_id}", json=payload, headers=auth_headers(business))

    assert resp.status_code == 400


def test_order_items_keep_their_price(client, db, customer, business, shop):
    _, lamp, _ = shop
    order_id = _checkout(client, customer, [_line(lamp, 1)]).json()["order_ids"][0]

    resp = client.put(f"/products/{lamp.id}", json={"price": "99.00"}, headers=auth_headers(business))
    assert resp.status_code == 200

    detail = client.get(f"/orders/{order_id}", headers=auth_headers(customer)).json()
    assert detail["items"][0]["unit_price"] == 10.0
    assert db.get(Order, order_id).total_amount == Decimal("10.00")


def test_customer_order_stats(client, customer, shop):
    _, lamp, mug = shop
    first = _checkout(client, customer, [_line(lamp, 1)]).json()["order_ids"][0]
    _checkout(client, customer, [_line(lamp, 2), _line(mug, 1)])
    client.patch(f"/orders/{first}", json={"action": "cancel"}, headers=auth_headers(customer))

    stats = client.get("/orders/stats", headers=auth_headers(customer)).json()

    assert stats["total_orders"] == 2
    assert stats["total_spent"] == 24.5
    assert stats["by_status"]["CANCELLED"] == {"count": 1, "total_amount": 10.0}
    assert stats["by_status"]["PENDING"] == {"count": 1, "total_amount": 24.5}


def test_customer_order_stats_are_private(client, make_user, customer, business, shop):
    _, lamp, _ = shop
    _checkout(client, customer, [_line(lamp, 1)])

    other = client.get("/orders/stats", headers=auth_headers(make_user(email="new@shop.com"))).json()

    assert other == {"total_orders": 0, "total_spent": 0.0, "by_status": {}}
    assert client.get("/orders/stats", headers=auth_headers(business)).status_code == 403
