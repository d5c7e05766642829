from storefront.auth.models import Role
from storefront.cart.store import MAX_CART_LINES

CART = "/api/v1/cart"
ORDERS = "/api/v1/orders"
ORDER_ID = "XLV_1700000000000_0a1b2c3d"


def test_cart_add_update_remove(client):
    r = client.post(f"{CART}/items", json={"product_ref": "kit-sale", "quantity": 2})
    assert r.status_code == 201
    body = r.json()
    # Prix remisé du catalogue, jamais celui du client
    assert body["items"][0]["unit_price"] == "900.00"
    assert body["items"][0]["is_kit"] is True
    assert body["total"] == "1800.00"

    client.post(f"{CART}/items", json={"product_ref": "kit-sale", "quantity": 1})
    assert client.get(CART).json()["item_count"] == 3

    r = client.patch(f"{CART}/items/kit-sale", json={"quantity": 0})
    assert r.json() == {"items": [], "item_count": 0, "total": "0.00"}


def test_cart_rejects_unknown_and_out_of_stock(client):
    r = client.post(f"{CART}/items", json={"product_ref": "nope"})
    assert r.status_code == 404
    r = client.post(f"{CART}/items", json={"product_ref": "comp-out"})
    assert r.status_code == 422
    assert r.json()["field"] == "product_ref"
    assert client.get(CART).json()["items"] == []


def test_cart_quantity_bounds(client):
    assert client.post(f"{CART}/items", json={"product_ref": "comp-led", "quantity": 0}).status_code == 422
    assert client.patch(f"{CART}/items/missing", json={"quantity": 2}).status_code == 422


def test_checkout_requires_login(client, order_store):
    client.post(f"{CART}/items", json={"product_ref": "kit-robot"})
    r = client.post(ORDERS, json={"customer": {}})
    assert r.status_code == 401
    assert r.json()["login_url"] == "/auth/login"
    assert order_store.rows == {}


def test_checkout_creates_pending_order_and_clears_cart(client, login, order_store, gateway, customer_info):
    login()
    client.post(f"{CART}/items", json={"product_ref": "kit-robot", "quantity": 2})

    r = client.post(ORDERS, json={"customer": customer_info})
    assert r.status_code == 201
    body = r.json()
    assert body["order"]["status"] == "payment_pending"
    assert body["order"]["total_amount"] == "1000.00"
    assert body["order"]["customer_id"] == "cust-1"
    assert body["checkout_url"] == "https://checkout.stripe.test/cs_test_1"
    assert client.get(CART).json()["items"] == []
    assert len(order_store.rows) == 1


def test_checkout_empty_cart(client, login, order_store, customer_info):
    login()
    r = client.post(ORDERS, json={"customer": customer_info})
    assert r.status_code == 422
    assert r.json() == {"detail": "Your cart is empty", "code": "validation_error", "field": "cart"}


def test_checkout_gateway_down_keeps_cart(client, login, order_store, gateway, customer_info):
    from storefront.errors import GatewayError

    login()
    gateway.error = GatewayError("Payment gateway is unavailable")
    client.post(f"{CART}/items", json={"product_ref": "kit-robot"})
    r = client.post(ORDERS, json={"customer": customer_info})
    assert r.status_code == 502
    assert order_store.rows == {}
    assert client.get(CART).json()["item_count"] == 1


def test_checkout_invalid_customer(client, login, order_store, customer_info):
    login()
    client.post(f"{CART}/items", json={"product_ref": "kit-robot"})
    customer_info["email"] = "not-an-email"
    r = client.post(ORDERS, json={"customer": customer_info})
    assert r.status_code == 422
    assert r.json()["field"] == "email"


def test_order_read_ownership(client, login, order_store):
    order_store.add(customer_id="cust-2")
    login(Role.CUSTOMER, "cust-1")
    r = client.get(f"{ORDERS}/{ORDER_ID}")
    assert r.status_code == 404
    assert r.json()["detail"] == "Order not found"

    login(Role.CUSTOMER, "cust-2")
    assert client.get(f"{ORDERS}/{ORDER_ID}").json()["id"] == ORDER_ID

    login(Role.PARTNER, "partner-1")
    assert client.get(f"{ORDERS}/{ORDER_ID}").status_code == 200


def test_list_orders_only_own(client, login, order_store):
    order_store.add()
    order_store.add(order_id="XLV_1700000000001_0a1b2c3e", customer_id="cust-2")
    login()
    orders = client.get(ORDERS).json()["orders"]
    assert [o["id"] for o in orders] == [ORDER_ID]


def test_confirmation_api_uses_hint_until_webhook(client, login, order_store):
    order_store.add()
    login()
    r = client.get(f"{ORDERS}/{ORDER_ID}/confirmation", params={"payment_id": "cs_test_1"})
    body = r.json()
    assert body["display_state"] == "processing"
    assert body["payment_reference"] == "cs_test_1"
    assert body["payment_verified"] is False
    assert order_store.rows[ORDER_ID]["status"] == "payment_pending"


def test_confirmation_api_wait_stalls(client, login, order_store, monkeypatch):
    from storefront import config

    monkeypatch.setattr(config, "ORDER_POLL_ATTEMPTS", 2)
    monkeypatch.setattr(config, "ORDER_POLL_INTERVAL_SECONDS", 0)
    order_store.add()
    login()
    body = client.get(f"{ORDERS}/{ORDER_ID}/confirmation", params={"wait": "true"}).json()
    assert body["display_state"] == "stalled"
    assert "contact support" in body["message"]


def _generated_components(monkeypatch, title_size=0):
    def _fetch(refs):
        return [
            {"id": r, "name": "X" * title_size or f"Part {r}", "price": 120, "stock_status": True, "_table": "components"}
            for r in refs
        ]
    monkeypatch.setattr("storefront.catalog.repository.fetch_products_by_refs", _fetch)


def test_cart_full_of_components_stays_in_cookie(client, monkeypatch):
    _generated_components(monkeypatch)
    for i in range(MAX_CART_LINES):
        r = client.post(f"{CART}/items", json={"product_ref": f"comp-part-{i:02d}"})
        assert r.status_code == 201
        assert len(r.headers["set-cookie"]) < 4096

    r = client.post(f"{CART}/items", json={"product_ref": "comp-part-extra"})
    assert r.status_code == 422
    assert r.json()["field"] == "cart"

    items = client.get(CART).json()["items"]
    assert len(items) == MAX_CART_LINES
    assert items[-1]["product_ref"] == f"comp-part-{MAX_CART_LINES - 1:02d}"


def test_cart_refuses_line_that_would_overflow_cookie(client, monkeypatch):
    _generated_components(monkeypatch, title_size=900)
    codes = [client.post(f"{CART}/items", json={"product_ref": f"comp-long-{i}"}).status_code for i in range(4)]
    assert codes[0] == 201
    assert codes[-1] == 422
    kept = client.get(CART).json()["items"]
    assert len(kept) == codes.count(201)
