"""HTTP tests through FastAPI's TestClient.

Covers:
- cart batch and cart read, including cursor paging
- error rendering (status + errorCode)
- payment-completed event, duplicates
- stock endpoint and admin-only routes
"""

import pytest

from app.services.pagination import PaginationCodec

ADMIN = {"X-User-Groups": "ADMINS,STAFF"}


def _cart_items(*entries, owner_id="u1"):
    return {
        "items": [
            {"ownerId": owner_id, "productId": p, "quantity": q, "action": action}
            for action, p, q in entries
        ]
    }


def _event(event_id="evt-1", owner_id="u1"):
    return {
        "eventId": event_id,
        "ownerId": owner_id,
        "amountTotal": 500,
        "shippingDetails": {
            "name": "Ada Lovelace",
            "address": {"line1": "1 Main St", "city": "London", "postalCode": "N1", "country": "GB"},
        },
    }


def _create_product(client, **overrides):
    body = {"name": "Widget", "category": "tools", "unitPrice": 250, "stockQuantity": 5}
    body.update(overrides)
    resp = client.post("/products", json=body, headers=ADMIN)
    assert resp.status_code == 201, resp.text
    return resp.json()["productId"]


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


class TestCarts:
    def test_add_then_read(self, client):
        product_id = _create_product(client)

        resp = client.post("/carts", json=_cart_items(("add", product_id, 2), ("add", product_id, 3)))
        assert resp.status_code == 200
        assert resp.json()["messages"] == [
            "Cart updated successfully with 2 items and action add",
            "Cart updated successfully with 3 items and action add",
        ]

        cart = client.get("/carts/u1").json()
        assert cart["ownerId"] == "u1"
        assert cart["items"][0]["quantity"] == 5
        assert cart["items"][0]["unitPrice"] == 250
        assert cart["totalPrice"] == 1250
        assert cart["totalCount"] == 1
        assert cart["nextToken"] is None

    def test_remove_everything_deletes_cart(self, client):
        client.post("/carts", json=_cart_items(("add", "W1", 2)))

        resp = client.post("/carts", json=_cart_items(("remove", "W1", 5)))

        assert resp.json()["messages"] == ["Cart deleted successfully"]
        assert client.get("/carts/u1").status_code == 404

    def test_clear_cart_twice(self, client):
        client.post("/carts", json=_cart_items(("add", "W1", 2)))
        body = {"items": [{"ownerId": "u1", "action": "clearCart"}]}

        for _ in range(2):
            resp = client.post("/carts", json=body)
            assert resp.status_code == 200
            assert resp.json()["messages"] == ["Cart deleted successfully"]

    def test_invalid_action(self, client):
        resp = client.post("/carts", json=_cart_items(("add", "W1", 1), ("teleport", "W1", 1)))

        assert resp.status_code == 400
        assert resp.json() == {"message": "Invalid action", "errorCode": "BAD_REQUEST"}
        assert client.get("/carts/u1").status_code == 404

    def test_missing_cart(self, client):
        resp = client.get("/carts/nobody")

        assert resp.status_code == 404
        assert resp.json()["errorCode"] == "NOT_FOUND"

    def test_paging_through_25_lines(self, client):
        client.post("/carts", json=_cart_items(*[("add", f"P{i:02d}", 1) for i in range(25)]))

        sizes, token = [], None
        for _ in range(3):
            params = {"pageSize": 10}
            if token:
                params["nextToken"] = token
            page = client.get("/carts/u1", params=params).json()
            sizes.append(len(page["items"]))
            token = page["nextToken"]

        assert sizes == [10, 10, 5]
        assert token is None

    @pytest.mark.parametrize("params", [{"pageSize": "0"}, {"pageSize": "abc"}, {"nextToken": "%%%"}])
    def test_bad_paging_parameters(self, client, params):
        client.post("/carts", json=_cart_items(("add", "W1", 1)))

        resp = client.get("/carts/u1", params=params)

        assert resp.status_code == 400

    @pytest.mark.parametrize("key", [{"productId": 5}, {"productId": None}])
    def test_cursor_with_wrong_key_type(self, client, key):
        client.post("/carts", json=_cart_items(("add", "W1", 1)))

        resp = client.get("/carts/u1", params={"nextToken": PaginationCodec.encode(key)})

        assert resp.status_code == 400
        assert resp.json() == {"message": "Invalid nextToken parameter", "errorCode": "BAD_REQUEST"}


class TestOrders:
    def test_cursor_with_wrong_key_type(self, client):
        cursor = PaginationCodec.encode({"orderId": [1]})

        resp = client.get("/orders", params={"ownerId": "u1", "nextToken": cursor})

        assert resp.status_code == 400
        assert resp.json()["errorCode"] == "BAD_REQUEST"

    def test_payment_completed_creates_order(self, client):
        product_id = _create_product(client, stockQuantity=5)
        client.post("/carts", json=_cart_items(("add", product_id, 2)))

        resp = client.post("/orders/events/payment-completed", json=_event())

        assert resp.status_code == 201
        placement = resp.json()
        assert placement["orderStatus"] == "PENDING"
        assert placement["duplicate"] is False
        assert client.get("/carts/u1").status_code == 404
        assert client.get(f"/products/{product_id}").json()["stockQuantity"] == 3

        order = client.get(f"/orders/{placement['orderId']}").json()
        assert order["ownerId"] == "u1"
        assert order["lines"][0]["productId"] == product_id

    def test_duplicate_event(self, client):
        client.post("/carts", json=_cart_items(("add", "W1", 1)))
        first = client.post("/orders/events/payment-completed", json=_event()).json()

        resp = client.post("/orders/events/payment-completed", json=_event())

        assert resp.status_code == 200
        assert resp.json()["duplicate"] is True
        assert resp.json()["orderId"] == first["orderId"]

    def test_empty_cart(self, client):
        resp = client.post("/orders/events/payment-completed", json=_event())

        assert resp.status_code == 400
        assert resp.json()["errorCode"] == "EMPTY_CART"

    def test_listing_all_orders_needs_admin(self, client):
        client.post("/carts", json=_cart_items(("add", "W1", 1)))
        client.post("/orders/events/payment-completed", json=_event())

        assert client.get("/orders").status_code == 403
        assert client.get("/orders", headers=ADMIN).json()["totalCount"] == 1
        assert client.get("/orders", params={"ownerId": "u1"}).json()["totalCount"] == 1
        assert client.get("/orders", params={"ownerId": "u2"}).json()["totalCount"] == 0

    def test_status_update(self, client):
        client.post("/carts", json=_cart_items(("add", "W1", 1)))
        order_id = client.post("/orders/events/payment-completed", json=_event()).json()["orderId"]
        url = f"/orders/{order_id}/status"

        assert client.patch(url, json={"status": "FULFILLED"}).status_code == 403

        resp = client.patch(url, json={"status": "FULFILLED"}, headers=ADMIN)
        assert resp.status_code == 200
        assert resp.json()["status"] == "FULFILLED"

        resp = client.patch(url, json={"status": "FAILED"}, headers=ADMIN)
        assert resp.status_code == 409
        assert resp.json()["errorCode"] == "INVALID_TRANSITION"


class TestProducts:
    def test_cursor_with_wrong_key_type(self, client):
        cursor = PaginationCodec.encode({"name": ["x"], "productId": "W1"})

        resp = client.get("/products", params={"nextToken": cursor})

        assert resp.status_code == 400

    def test_writes_need_admin(self, client):
        resp = client.post("/products", json={"name": "Widget", "category": "tools", "unitPrice": 1})

        assert resp.status_code == 403
        assert resp.json()["errorCode"] == "FORBIDDEN"

    def test_update_and_delete(self, client):
        product_id = _create_product(client)

        resp = client.patch(f"/products/{product_id}", json={"stockQuantity": 0}, headers=ADMIN)
        assert resp.json()["inStock"] is False

        resp = client.patch(f"/products/{product_id}", json={}, headers=ADMIN)
        assert resp.status_code == 400

        assert client.delete(f"/products/{product_id}", headers=ADMIN).status_code == 200
        assert client.get(f"/products/{product_id}").status_code == 404

    def test_list_by_category(self, client):
        _create_product(client, name="Hammer", category="tools")
        _create_product(client, name="Apple", category="food")

        page = client.get("/products/category/food").json()

        assert [p["name"] for p in page["items"]] == ["Apple"]
        assert len(client.get("/products").json()["items"]) == 2


class TestStock:
    def test_decrement_to_zero_then_insufficient(self, client):
        product_id = _create_product(client, stockQuantity=5)
        body = {"items": [{"productId": product_id, "quantity": 5}]}

        resp = client.post("/products/stock", json=body)
        assert resp.status_code == 200
        assert resp.json()["results"] == [{"productId": product_id, "remainingStock": 0, "inStock": False}]

        resp = client.post("/products/stock", json={"items": [{"productId": product_id, "quantity": 1}]})
        assert resp.status_code == 409
        assert resp.json()["errorCode"] == "INSUFFICIENT_STOCK"
        assert client.get(f"/products/{product_id}").json()["stockQuantity"] == 0

    def test_first_failure_stops_the_rest(self, client):
        a = _create_product(client, name="Alpha", stockQuantity=5)
        b = _create_product(client, name="Bravo", stockQuantity=5)
        body = {"items": [
            {"productId": a, "quantity": 1},
            {"productId": "missing", "quantity": 1},
            {"productId": b, "quantity": 1},
        ]}

        resp = client.post("/products/stock", json=body)

        assert resp.status_code == 404
        assert client.get(f"/products/{a}").json()["stockQuantity"] == 4
        assert client.get(f"/products/{b}").json()["stockQuantity"] == 5
