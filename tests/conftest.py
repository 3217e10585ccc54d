import os

# Avant l'import de l'app: pas de Redis en tests
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_webhook")
os.environ.setdefault("SUPABASE_URL", "https://supabase.test")

import copy
import json
from typing import Any, Dict, Generator, List, Optional, Tuple
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from storefront.app import app as fastapi_app
from storefront.errors import InsufficientStock
from storefront.utils.security import require_admin, require_user

TEST_USER: Dict[str, Any] = {
    "id": "test-user",
    "email": "test@example.com",
    "role": "customer",
    "metadata": {"full_name": "Test User"},
    "token": "fake-token",
}
ADMIN_USER: Dict[str, Any] = {"id": "admin-user-id", "email": "admin@example.com", "role": "admin"}

SHIPPING_ADDRESS: Dict[str, Any] = {
    "full_name": "Wanjiku Kamau",
    "email": "wanjiku@example.com",
    "phone": "+254700000000",
    "address_line1": "12 Moi Avenue",
    "city": "Nairobi",
    "country": "Kenya",
}

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/tests/unit/" in nodeid or nodeid.startswith("tests/unit/"):
            item.add_marker(pytest.mark.unit)
        elif "/tests/integration/" in nodeid or nodeid.startswith("tests/integration/"):
            item.add_marker(pytest.mark.integration)
        elif "/tests/functional/" in nodeid or nodeid.startswith("tests/functional/"):
            item.add_marker(pytest.mark.functional)


class FakeStore:
    """
    Base en mémoire qui reproduit les contrats des repositories:
    - update_order_if: compare-and-set sur les colonnes attendues
    - attach_payment_reference: uniquement si payment_reference est NULL
    - decrement_if_not_already: ledger (order_id, variant_id), jamais de stock négatif
    """

    def __init__(self):
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.variants: Dict[str, Dict[str, Any]] = {}
        self.ledger: Dict[Tuple[str, str], int] = {}
        self.decrement_calls: List[Tuple[str, str, int]] = []
        self._seq = 0

    def add_variant(self, variant_id: str, price: str = "10.00", stock: int = 5, product_id: str = "prod-1",
                    price_adjustment: str = "0", is_active: bool = True) -> Dict[str, Any]:
        row = {
            "id": variant_id,
            "product_id": product_id,
            "stock": stock,
            "price_adjustment": price_adjustment,
            "is_active": is_active,
            "products": {"id": product_id, "name": f"Produit {product_id}", "price": price, "is_active": True},
        }
        self.variants[variant_id] = row
        return row

    def stock(self, variant_id: str) -> int:
        return self.variants[variant_id]["stock"]

    def set_stock(self, variant_id: str, stock: int) -> None:
        self.variants[variant_id]["stock"] = stock

    # orders.repository
    def insert_order(self, row: Dict[str, Any]) -> Dict[str, Any]:
        self._seq += 1
        order_id = f"order-{self._seq}"
        created = {
            "payment_error": None,
            "paid_at": None,
            **copy.deepcopy(row),
            "id": order_id,
            "created_at": f"2026-10-01T10:00:{self._seq:02d}+00:00",
            "updated_at": None,
        }
        self.orders[order_id] = created
        return copy.deepcopy(created)

    def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self.orders.get(str(order_id)))

    def get_order_by_reference(self, reference: str) -> Optional[Dict[str, Any]]:
        for row in self.orders.values():
            if reference and row.get("payment_reference") == reference:
                return copy.deepcopy(row)
        return None

    def list_user_orders(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        rows = [r for r in self.orders.values() if r.get("user_id") == user_id]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return copy.deepcopy(rows[:limit])

    def list_orders(self, limit: int = 100, status: Optional[str] = None) -> List[Dict[str, Any]]:
        rows = [r for r in self.orders.values() if not status or r.get("status") == status]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return copy.deepcopy(rows[:limit])

    def attach_payment_reference(self, order_id: str, reference: str) -> Optional[Dict[str, Any]]:
        row = self.orders.get(str(order_id))
        if not row or row.get("payment_reference") is not None:
            return None
        row["payment_reference"] = reference
        return copy.deepcopy(row)

    def update_order_if(self, order_id: str, values: Dict[str, Any], expected: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        row = self.orders.get(str(order_id))
        if not row or any(row.get(k) != v for k, v in expected.items()):
            return None
        row.update(copy.deepcopy(values))
        row["updated_at"] = "2026-10-01T11:00:00+00:00"
        return copy.deepcopy(row)

    # inventory.repository
    def fetch_variant(self, variant_id: str) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self.variants.get(str(variant_id)))

    def read_available(self, variant_id: str) -> Optional[int]:
        row = self.variants.get(str(variant_id))
        return None if row is None else row["stock"]

    def decrement_if_not_already(self, order_id: str, variant_id: str, quantity: int, payment_reference: str = "") -> bool:
        self.decrement_calls.append((order_id, variant_id, quantity))
        key = (str(order_id), str(variant_id))
        if key in self.ledger:
            return False
        row = self.variants.get(str(variant_id))
        available = row["stock"] if row else 0
        if available < quantity:
            raise InsufficientStock(str(variant_id), available)
        self.ledger[key] = quantity
        row["stock"] -= quantity
        return True

    def release_order_stock(self, order_id: str) -> int:
        order = self.orders.get(str(order_id))
        if not order or order.get("payment_status") == "paid":
            return 0
        keys = [k for k in self.ledger if k[0] == str(order_id)]
        for key in keys:
            self.variants[key[1]]["stock"] += self.ledger.pop(key)
        return len(keys)


class FakeGateway:
    """Fonction de vérification simulée (httpx.MockTransport), réponses par référence."""

    def __init__(self):
        self.responses: Dict[str, Any] = {}
        self.calls: List[str] = []

    def pay(self, reference: str, amount: int, currency: str = "KES") -> None:
        self.responses[reference] = (200, {
            "success": True,
            "data": {
                "amount": amount / 100,
                "currency": currency,
                "reference": reference,
                "paidAt": "2026-10-01T10:05:00Z",
            },
        })

    def decline(self, reference: str, error: str = "Payment not successful") -> None:
        self.responses[reference] = (400, {"success": False, "error": error})

    def fail(self, reference: str, status_code: int = 502) -> None:
        self.responses[reference] = (status_code, {"message": "upstream error"})

    def timeout(self, reference: str) -> None:
        self.responses[reference] = "timeout"

    def handler(self, request: httpx.Request) -> httpx.Response:
        reference = json.loads(request.content.decode("utf-8")).get("reference")
        self.calls.append(reference)
        reply = self.responses.get(reference, (400, {"success": False, "error": "Transaction not found"}))
        if reply == "timeout":
            raise httpx.ReadTimeout("timed out", request=request)
        status_code, payload = reply
        return httpx.Response(status_code, json=payload)


@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app):
    app.dependency_overrides[require_user] = lambda: dict(TEST_USER)
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)

@pytest.fixture
def admin_client(app, client):
    app.dependency_overrides[require_admin] = lambda: dict(ADMIN_USER)
    yield client
    app.dependency_overrides.pop(require_admin, None)

# Aucun accès Supabase réel
@pytest.fixture(scope="function", autouse=True)
def mock_db_dependency(monkeypatch):
    monkeypatch.setattr("storefront.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: MagicMock())

@pytest.fixture
def store(monkeypatch) -> FakeStore:
    fake = FakeStore()
    for name in ("insert_order", "get_order", "get_order_by_reference", "list_user_orders",
                 "list_orders", "attach_payment_reference", "update_order_if"):
        monkeypatch.setattr(f"storefront.orders.repository.{name}", getattr(fake, name))
    for name in ("fetch_variant", "read_available", "decrement_if_not_already", "release_order_stock"):
        monkeypatch.setattr(f"storefront.inventory.repository.{name}", getattr(fake, name))
    return fake

@pytest.fixture
def gateway(monkeypatch) -> FakeGateway:
    fake = FakeGateway()
    monkeypatch.setattr(
        "storefront.payments.verifier.make_http_client",
        lambda: httpx.Client(transport=httpx.MockTransport(fake.handler)),
    )
    return fake

@pytest.fixture
def shipping_address() -> Dict[str, Any]:
    return dict(SHIPPING_ADDRESS)
