from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from postgrest.exceptions import APIError

from storefront.auth import repository as auth_repo
from storefront.errors import DataStoreError
from storefront.orders import repository

ORDER_ID = "XLV_1700000000000_0a1b2c3d"


@pytest.fixture()
def service_client(monkeypatch):
    client = MagicMock()
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    return client


def test_compare_and_set_filters_on_expected_status(service_client):
    query = service_client.table.return_value.update.return_value.eq.return_value.eq.return_value
    query.execute.return_value = SimpleNamespace(data=[{"id": ORDER_ID, "status": "confirmed"}])

    row = repository.compare_and_set_status(ORDER_ID, "payment_pending", {"status": "confirmed"})
    assert row["status"] == "confirmed"
    service_client.table.assert_called_with("orders")
    service_client.table.return_value.update.assert_called_once_with({"status": "confirmed"})
    first_eq = service_client.table.return_value.update.return_value.eq
    first_eq.assert_called_once_with("id", ORDER_ID)
    first_eq.return_value.eq.assert_called_once_with("status", "payment_pending")


def test_compare_and_set_lost_race_returns_none(service_client):
    query = service_client.table.return_value.update.return_value.eq.return_value.eq.return_value
    query.execute.return_value = SimpleNamespace(data=[])
    assert repository.compare_and_set_status(ORDER_ID, "payment_pending", {"status": "confirmed"}) is None


def test_writes_raise_data_store_error(service_client):
    service_client.table.side_effect = RuntimeError("connection reset")
    with pytest.raises(DataStoreError):
        repository.insert_order({"id": ORDER_ID})
    with pytest.raises(DataStoreError):
        repository.compare_and_set_status(ORDER_ID, "payment_pending", {"status": "confirmed"})
    with pytest.raises(DataStoreError):
        repository.get_order(ORDER_ID)
    # La suppression compensatoire ne masque pas l'erreur d'origine
    assert repository.delete_order(ORDER_ID) is False


def test_gateway_reference_written_once(service_client):
    chain = service_client.table.return_value.update.return_value.eq.return_value
    chain.is_.return_value.execute.return_value = SimpleNamespace(data=[])
    assert repository.set_gateway_reference(ORDER_ID, "cs_test_2") is None
    chain.is_.assert_called_once_with("gateway_order_reference", "null")


def test_customer_read_uses_user_client(monkeypatch):
    user_client = MagicMock()
    tokens = []

    def get_user_supabase(token):
        tokens.append(token)
        return user_client

    monkeypatch.setattr("storefront.infra.supabase_client.get_user_supabase", get_user_supabase)
    chain = user_client.table.return_value.select.return_value.eq.return_value.eq.return_value.limit.return_value
    chain.execute.return_value = SimpleNamespace(data=[{"id": ORDER_ID, "customer_id": "cust-1"}])

    row = repository.get_order_for_customer(ORDER_ID, "cust-1", "token-cust-1")
    assert row["customer_id"] == "cust-1"
    assert tokens == ["token-cust-1"]


def test_recovery_use_duplicate_is_reported(service_client):
    insert = service_client.table.return_value.insert.return_value
    insert.execute.side_effect = APIError({"message": "duplicate key", "code": "23505"})
    assert auth_repo.record_recovery_token_use("abc", "user-1") is False

    insert.execute.side_effect = APIError({"message": "permission denied", "code": "42501"})
    with pytest.raises(DataStoreError):
        auth_repo.record_recovery_token_use("abc", "user-1")

    insert.execute.side_effect = None
    insert.execute.return_value = SimpleNamespace(data=[{"token_hash": "abc"}])
    assert auth_repo.record_recovery_token_use("abc", "user-1") is True
