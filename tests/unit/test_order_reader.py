import pytest

from storefront import config
from storefront.auth.models import Role
from storefront.errors import AuthError, NotFoundError
from storefront.orders import reader
from storefront.orders.models import Order

ORDER_ID = "XLV_1700000000000_0a1b2c3d"


def test_customer_reads_own_order(order_store, session_factory):
    order_store.add()
    order = reader.get_order(ORDER_ID, session_factory())
    assert isinstance(order, Order)
    assert order.customer_id == "cust-1"


def test_other_customer_gets_not_found(order_store, session_factory):
    order_store.add(customer_id="cust-2")
    with pytest.raises(NotFoundError) as exc:
        reader.get_order(ORDER_ID, session_factory(user_id="cust-1"))
    # Même message que pour une commande inexistante
    assert exc.value.message == NotFoundError().message


def test_rls_leak_is_still_filtered(monkeypatch, order_store, session_factory):
    row = order_store.add(customer_id="cust-2")
    monkeypatch.setattr("storefront.orders.repository.get_order_for_customer", lambda *a: dict(row))
    with pytest.raises(NotFoundError):
        reader.get_order(ORDER_ID, session_factory())


def test_staff_reads_any_order(order_store, session_factory):
    order_store.add(customer_id="cust-2")
    assert reader.get_order(ORDER_ID, session_factory(Role.PARTNER, "partner-1")).customer_id == "cust-2"


def test_anonymous_and_malformed_id(order_store, session_factory):
    with pytest.raises(AuthError):
        reader.get_order(ORDER_ID, None)
    with pytest.raises(NotFoundError):
        reader.get_order("1 OR 1=1", session_factory())


def test_pending_is_processing_with_hint(order_store, session_factory):
    order_store.add()
    view = reader.describe(reader.get_order(ORDER_ID, session_factory()), payment_hint="cs_hint")
    assert view["display_state"] == "processing"
    assert view["payment_reference"] == "cs_hint"
    assert view["payment_verified"] is False
    assert view["is_final"] is False

    plain = reader.describe(reader.get_order(ORDER_ID, session_factory()))
    assert plain["payment_reference"] == reader.PROCESSING_LABEL == "Processing..."


def test_confirmed_shows_recorded_reference_over_hint(order_store, session_factory):
    order_store.add(status="confirmed", payment_reference="PAY123")
    view = reader.confirmation_state(ORDER_ID, session_factory(), payment_hint="forged")
    assert view["display_state"] == "confirmed"
    assert view["payment_reference"] == "PAY123"
    assert view["payment_verified"] is True
    assert view["is_final"] is True


def test_failed_order_ignores_hint(order_store, session_factory):
    order_store.add(status="payment_failed")
    view = reader.confirmation_state(ORDER_ID, session_factory(), payment_hint="cs_hint")
    assert view["display_state"] == "failed"
    assert view["payment_reference"] == reader.PROCESSING_LABEL


def test_confirmation_state_stalls_after_attempts(monkeypatch, order_store, session_factory):
    monkeypatch.setattr(config, "ORDER_POLL_ATTEMPTS", 3)
    order_store.add()
    assert reader.confirmation_state(ORDER_ID, session_factory(), attempt=2)["display_state"] == "processing"
    view = reader.confirmation_state(ORDER_ID, session_factory(), attempt=3)
    assert view["display_state"] == "stalled"
    assert view["message"] == reader.MESSAGES["stalled"]
    assert view["attempt"] == 3


async def test_poll_order_stalls_without_webhook(order_store, session_factory):
    order_store.add()
    view = await reader.poll_order(ORDER_ID, session_factory(), attempts=3, interval=0)
    assert view["display_state"] == "stalled"
    assert view["is_final"] is True
    assert order_store.rows[ORDER_ID]["status"] == "payment_pending"


async def test_poll_order_returns_once_confirmed(monkeypatch, order_store, session_factory):
    order_store.add()
    reads = []
    real_get = order_store.get_order_for_customer

    def confirming_read(order_id, customer_id, token):
        reads.append(order_id)
        if len(reads) == 2:
            order_store.rows[order_id].update(status="confirmed", payment_status="completed", payment_reference="PAY123")
        return real_get(order_id, customer_id, token)

    monkeypatch.setattr("storefront.orders.repository.get_order_for_customer", confirming_read)
    view = await reader.poll_order(ORDER_ID, session_factory(), attempts=5, interval=0)
    assert view["display_state"] == "confirmed"
    assert len(reads) == 2


def test_list_orders_scoped_by_role(order_store, session_factory):
    order_store.add()
    order_store.add(order_id="XLV_1700000000001_0a1b2c3e", customer_id="cust-2")
    assert [o.id for o in reader.list_orders(session_factory())] == [ORDER_ID]
    assert len(reader.list_orders(session_factory(Role.ADMIN, "admin-1"))) == 2
    with pytest.raises(AuthError):
        reader.list_orders(None)
