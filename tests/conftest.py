import os

# Avant l'import de l'app: pas de Redis pendant les tests
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")
os.environ.pop("LOCAL_RATE_LIMIT_FALLBACK", None)

import copy
from typing import Any, Dict, Generator, List, Optional
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from storefront.app_setup.factory import create_app
from storefront.auth.models import Role, Session
from storefront.payments.stripe_client import GatewayOrder
from storefront.utils.security import COOKIE_NAME, read_access_token

CATALOG: Dict[str, Dict[str, Any]] = {
    "kit-robot": {
        "id": "kit-robot", "title": "Line follower robot kit", "price": 500,
        "kit_contents": ["chassis", "sensors"], "assembly_steps": "1. Mount the chassis", "_table": "products",
    },
    "kit-sale": {
        "id": "kit-sale", "title": "Weather station kit", "price": 1000,
        "on_offer": True, "discount_type": "percentage", "discount_value": 10,
        "kit_contents": ["sensor"], "_table": "products",
    },
    "comp-led": {"id": "comp-led", "name": "LED pack", "price": 120, "stock_status": True, "_table": "components"},
    "comp-out": {"id": "comp-out", "name": "Servo motor", "price": 250, "stock_status": False, "_table": "components"},
}

CUSTOMER_INFO = {
    "name": "Asha Rao",
    "email": "asha@example.com",
    "phone": "9876543210",
    "address": "12 MG Road, Indiranagar",
    "pincode": "560038",
    "city": "Bengaluru",
    "state": "Karnataka",
}

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)
        elif "tests/functional/" in nodeid:
            item.add_marker(pytest.mark.functional)


def make_session(role: Role = Role.CUSTOMER, user_id: str = "cust-1", email: Optional[str] = None) -> Session:
    return Session(
        user_id=user_id,
        email=email or f"{user_id}@example.com",
        role=role,
        access_token=f"token-{user_id}",
        name="Test User",
    )


class FakeOrderStore:
    """Table 'orders' en mémoire, avec la même sémantique que le repository (copies, écriture conditionnelle)."""

    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.deleted: List[str] = []
        self.cas_calls: List[tuple] = []

    def insert_order(self, row):
        self.rows[row["id"]] = copy.deepcopy(row)
        return copy.deepcopy(row)

    def set_gateway_reference(self, order_id, gateway_order_reference):
        row = self.rows.get(order_id)
        if not row or row.get("gateway_order_reference"):
            return None
        row["gateway_order_reference"] = gateway_order_reference
        return copy.deepcopy(row)

    def delete_order(self, order_id):
        self.deleted.append(order_id)
        self.rows.pop(order_id, None)
        return True

    def get_order(self, order_id):
        row = self.rows.get(order_id)
        return copy.deepcopy(row) if row else None

    def get_order_for_customer(self, order_id, customer_id, user_token):
        row = self.rows.get(order_id)
        if not row or row["customer_id"] != customer_id:
            return None
        return copy.deepcopy(row)

    def get_order_by_gateway_reference(self, gateway_order_reference):
        for row in self.rows.values():
            if row.get("gateway_order_reference") == gateway_order_reference:
                return copy.deepcopy(row)
        return None

    def compare_and_set_status(self, order_id, expected_status, changes):
        self.cas_calls.append((order_id, expected_status, dict(changes)))
        row = self.rows.get(order_id)
        if not row or row["status"] != expected_status:
            return None
        row.update(changes)
        return copy.deepcopy(row)

    def list_orders(self, limit=100):
        return [copy.deepcopy(r) for r in list(self.rows.values())[:limit]]

    def list_customer_orders(self, customer_id, user_token, limit=50):
        return [copy.deepcopy(r) for r in self.rows.values() if r["customer_id"] == customer_id][:limit]

    def add(self, order_id="XLV_1700000000000_0a1b2c3d", status="payment_pending", customer_id="cust-1",
            gateway_order_reference="cs_test_1", payment_reference=None, total="1000.00"):
        row = {
            "id": order_id,
            "customer_id": customer_id,
            "customer_name": "Asha Rao",
            "customer_email": "asha@example.com",
            "customer_phone": "9876543210",
            "shipping_address": {"address": "12 MG Road", "pincode": "560038"},
            "line_items": [{"product_ref": "kit-robot", "title": "Robot kit", "unit_price": "500.00", "quantity": 2}],
            "total_amount": total,
            "currency": "inr",
            "status": status,
            "payment_status": {"confirmed": "completed", "payment_failed": "failed"}.get(status, "pending"),
            "gateway_order_reference": gateway_order_reference,
            "payment_reference": payment_reference,
            "created_at": "2024-01-01T10:00:00+00:00",
            "updated_at": None,
        }
        self.rows[order_id] = row
        return row


class FakeGateway:
    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.error: Optional[Exception] = None

    def initiate(self, order_ref, amount, currency, customer_email=""):
        self.calls.append({"order_ref": order_ref, "amount": amount, "currency": currency})
        if self.error:
            raise self.error
        ref = f"cs_test_{len(self.calls)}"
        return GatewayOrder(reference=ref, checkout_url=f"https://checkout.stripe.test/{ref}")


@pytest.fixture(scope="session")
def app():
    return create_app()

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()

# Aucun accès réseau: Supabase, GoTrue et catalogue neutralisés pour tous les tests
@pytest.fixture(autouse=True)
def mock_supabase(monkeypatch):
    monkeypatch.setattr("storefront.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: MagicMock())
    monkeypatch.setattr("storefront.infra.supabase_client.get_user_supabase", lambda token: MagicMock())
    monkeypatch.setattr("storefront.auth.repository.get_staff_role", lambda email: None)

@pytest.fixture(autouse=True)
def catalog(monkeypatch):
    def _fetch(refs):
        return [copy.deepcopy(CATALOG[r]) for r in refs if r in CATALOG]
    monkeypatch.setattr("storefront.catalog.repository.fetch_products_by_refs", _fetch)
    return CATALOG

@pytest.fixture(autouse=True)
def gateway(monkeypatch):
    fake = FakeGateway()
    monkeypatch.setattr("storefront.payments.stripe_client.initiate", fake.initiate)
    return fake

@pytest.fixture()
def order_store(monkeypatch):
    store = FakeOrderStore()
    for name in (
        "insert_order", "set_gateway_reference", "delete_order", "get_order", "get_order_for_customer",
        "get_order_by_gateway_reference", "compare_and_set_status", "list_orders", "list_customer_orders",
    ):
        monkeypatch.setattr(f"storefront.orders.repository.{name}", getattr(store, name))
    return store

# Sessions: jeton -> Session; absent => anonyme
@pytest.fixture(autouse=True)
def sessions(monkeypatch) -> Dict[str, Session]:
    known: Dict[str, Session] = {}
    def _current(request):
        token = read_access_token(request)
        return known.get(token) if token else None
    monkeypatch.setattr("storefront.utils.security.get_current_session", _current)
    return known

@pytest.fixture()
def login(client, sessions):
    def _login(role: Role = Role.CUSTOMER, user_id: str = "cust-1") -> Session:
        session = make_session(role, user_id)
        sessions[session.access_token] = session
        client.cookies.set(COOKIE_NAME, session.access_token)
        return session
    return _login

@pytest.fixture()
def customer_info() -> Dict[str, Any]:
    return dict(CUSTOMER_INFO)

@pytest.fixture()
def session_factory():
    return make_session
