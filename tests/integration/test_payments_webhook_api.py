import json

import pytest

from storefront.payments.webhook import SIGNATURE_HEADER, sign

SECRET = "sk_test_webhook"


@pytest.fixture(autouse=True)
def _webhook_secret(monkeypatch):
    monkeypatch.setattr("storefront.payments.webhook.PAYSTACK_SECRET_KEY", SECRET)

def _post(client, event, secret=SECRET):
    body = json.dumps(event).encode("utf-8")
    return client.post(
        "/api/v1/payments/webhook",
        content=body,
        headers={SIGNATURE_HEADER: sign(body, secret), "Content-Type": "application/json"},
    )

@pytest.fixture
def order(store):
    store.add_variant("A", stock=5)
    return store.insert_order({
        "user_id": "u1",
        "order_number": "GAM-20261001-ABCDEF",
        "line_items": [{"variant_id": "A", "product_id": "prod-1", "quantity": 2, "unit_price_at_order": 1000}],
        "subtotal": 2000,
        "total": 2000,
        "currency": "KES",
        "status": "pending",
        "payment_status": "pending",
        "payment_reference": None,
    })

def test_webhook_confirms_once(client, store, gateway, order):
    gateway.pay("ref-1", 2000)
    event = {"event": "charge.success", "data": {"reference": "ref-1", "metadata": {"order_id": order["id"]}}}

    first = _post(client, event)
    second = _post(client, event)
    assert first.status_code == 200
    assert first.json()["outcome"] == "confirmed"
    assert second.json()["outcome"] == "already_reconciled"
    assert store.stock("A") == 3

def test_webhook_bad_signature(client, store, gateway, order):
    event = {"event": "charge.success", "data": {"reference": "ref-1", "metadata": {"order_id": order["id"]}}}
    res = _post(client, event, secret="wrong")
    assert res.status_code == 400
    assert res.json()["code"] == "invalid_signature"
    assert gateway.calls == []

def test_webhook_ignores_other_events(client, store, gateway):
    assert _post(client, {"event": "refund.processed", "data": {}}).json() == {"status": "ignored"}

def test_webhook_transport_failure_asks_for_redelivery(client, store, gateway, order):
    gateway.timeout("ref-1")
    event = {"event": "charge.success", "data": {"reference": "ref-1", "metadata": {"order_id": order["id"]}}}
    assert _post(client, event).status_code == 503

def test_webhook_handler_runs_off_the_event_loop(client, monkeypatch):
    import asyncio
    seen = {}

    def _handle(event):
        try:
            asyncio.get_running_loop()
            seen["in_loop"] = True
        except RuntimeError:
            seen["in_loop"] = False
        return {"status": "ignored"}

    monkeypatch.setattr("storefront.payments.service.handle_gateway_event", _handle)
    assert _post(client, {"event": "charge.success", "data": {}}).status_code == 200
    assert seen == {"in_loop": False}
