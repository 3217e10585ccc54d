def _fill_cart(client, store, stock=5, quantity=2):
    store.add_variant("A", price="10.00", stock=stock)
    client.post("/api/v1/cart/items", json={"variant_id": "A", "quantity": quantity})

def test_checkout_creates_pending_order(client, store, shipping_address):
    _fill_cart(client, store)
    res = client.post("/api/v1/checkout", json={"shipping_address": shipping_address})
    assert res.status_code == 200
    body = res.json()
    assert body["order"]["status"] == "pending"
    assert body["order"]["payment_status"] == "pending"
    assert body["order"]["subtotal"] == 2000
    assert body["total"] == body["order"]["total"]
    assert body["currency"] == "KES"
    assert body["order_number"].startswith("GAM-")
    # le panier reste jusqu'à la confirmation du paiement
    assert client.get("/api/v1/cart").json()["item_count"] == 2

def test_checkout_empty_cart(client, store, shipping_address):
    res = client.post("/api/v1/checkout", json={"shipping_address": shipping_address})
    assert res.status_code == 400
    assert res.json()["code"] == "empty_cart"
    assert store.orders == {}

def test_checkout_insufficient_stock(client, store, shipping_address):
    _fill_cart(client, store, stock=5, quantity=4)
    store.set_stock("A", 1)
    res = client.post("/api/v1/checkout", json={"shipping_address": shipping_address})
    assert res.status_code == 409
    body = res.json()
    assert body["code"] == "insufficient_stock"
    assert body["variant_id"] == "A"
    assert body["available"] == 1
    assert store.orders == {}

def test_checkout_validates_address(client, store, shipping_address):
    _fill_cart(client, store)
    shipping_address["email"] = "not-an-email"
    assert client.post("/api/v1/checkout", json={"shipping_address": shipping_address}).status_code == 422

def test_orders_history_and_detail(client, store, shipping_address):
    _fill_cart(client, store)
    order_id = client.post("/api/v1/checkout", json={"shipping_address": shipping_address}).json()["order_id"]

    orders = client.get("/api/v1/orders").json()["orders"]
    assert [o["id"] for o in orders] == [order_id]
    assert client.get(f"/api/v1/orders/{order_id}").json()["id"] == order_id
    assert client.get("/api/v1/orders/unknown").status_code == 404

def test_cancel_pending_order(client, store, shipping_address):
    _fill_cart(client, store)
    order_id = client.post("/api/v1/checkout", json={"shipping_address": shipping_address}).json()["order_id"]
    res = client.post(f"/api/v1/orders/{order_id}/cancel")
    assert res.status_code == 200
    assert res.json()["status"] == "cancelled"
    assert client.post(f"/api/v1/orders/{order_id}/cancel").status_code == 409
