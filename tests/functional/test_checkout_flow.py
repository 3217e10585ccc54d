"""Parcours complet: panier → checkout → paiement → confirmation (rejouée) → préparation admin."""
import pytest

from storefront.orders.pricing import no_charges


@pytest.fixture(autouse=True)
def _flat_pricing(monkeypatch):
    monkeypatch.setattr("storefront.orders.builder.default_pricing", no_charges)

def test_full_checkout_to_delivery(admin_client, store, gateway, shipping_address):
    client = admin_client
    store.add_variant("A", price="10.00", stock=5)

    # Panier: 3 puis 4 → plafonné à 5 avec notice, puis ramené à 2
    client.post("/api/v1/cart/items", json={"variant_id": "A", "quantity": 3})
    limited = client.post("/api/v1/cart/items", json={"variant_id": "A", "quantity": 4}).json()
    assert limited["items"][0]["quantity"] == 5
    assert limited["notice"] == "Seulement 5 disponible(s)"
    client.patch("/api/v1/cart/items/A", json={"quantity": 2})

    # Checkout: commande {pending, pending} au total 2000, stock inchangé
    checkout = client.post("/api/v1/checkout", json={"shipping_address": shipping_address}).json()
    order_id = checkout["order_id"]
    assert checkout["total"] == 2000
    assert store.stock("A") == 5

    # Retour passerelle: vérifié → {confirmed, paid}, stock 3
    gateway.pay("PSK-123", 2000)
    confirmed = client.post(f"/api/v1/orders/{order_id}/confirm", json={"reference": "PSK-123"}).json()
    assert confirmed["outcome"] == "confirmed"
    assert store.stock("A") == 3

    # Rechargement de la page de retour: aucun double effet
    again = client.post(f"/api/v1/orders/{order_id}/confirm", json={"reference": "PSK-123"}).json()
    assert again["outcome"] == "already_reconciled"
    assert again["order"]["status"] == "confirmed"
    assert store.stock("A") == 3
    assert client.get("/api/v1/cart").json()["items"] == []

    # Préparation et livraison
    for status in ("processing", "shipped", "delivered"):
        assert client.patch(f"/api/v1/admin/orders/{order_id}/status", json={"status": status}).status_code == 200
    assert client.get(f"/api/v1/orders/{order_id}").json()["status"] == "delivered"

def test_declined_payment_then_new_order(client, store, gateway, shipping_address):
    store.add_variant("A", price="10.00", stock=5)
    client.post("/api/v1/cart/items", json={"variant_id": "A", "quantity": 2})

    first = client.post("/api/v1/checkout", json={"shipping_address": shipping_address}).json()
    gateway.decline("PSK-1")
    res = client.post(f"/api/v1/orders/{first['order_id']}/confirm", json={"reference": "PSK-1"})
    assert res.status_code == 402
    assert store.stock("A") == 5

    # Le panier est intact: nouvelle commande, nouveau paiement
    second = client.post("/api/v1/checkout", json={"shipping_address": shipping_address}).json()
    assert second["order_id"] != first["order_id"]
    gateway.pay("PSK-2", second["total"])
    ok = client.post(f"/api/v1/orders/{second['order_id']}/confirm", json={"reference": "PSK-2"})
    assert ok.json()["order"]["payment_status"] == "paid"
    assert store.stock("A") == 3
    assert store.orders[first["order_id"]]["status"] == "pending"
