from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from storefront import config
from storefront.auth import repository
from storefront.auth import service as auth_service
from storefront.auth.models import Role, build_session
from storefront.auth.roles import resolve_role
from storefront.errors import AuthError

# Référence capturée avant le patch autouse de conftest
REAL_GET_STAFF_ROLE = repository.get_staff_role


@pytest.fixture(autouse=True)
def allowlists(monkeypatch):
    monkeypatch.setattr(config, "ADMIN_EMAILS", ["boss@example.com"])
    monkeypatch.setattr(config, "PARTNER_EMAILS", ["maker@example.com"])


def _auth_response(email, user_id="user-1", metadata=None, token="at-1"):
    user = SimpleNamespace(id=user_id, email=email, user_metadata=metadata or {})
    return SimpleNamespace(user=user, session=SimpleNamespace(access_token=token, refresh_token="rt-1"))


def test_resolve_role_order(monkeypatch):
    assert resolve_role(None) is Role.ANONYMOUS
    assert resolve_role(" Boss@Example.com ") is Role.ADMIN
    assert resolve_role("maker@example.com") is Role.PARTNER
    assert resolve_role("someone@example.com") is Role.CUSTOMER

    monkeypatch.setattr("storefront.auth.repository.get_staff_role", lambda email: "partner")
    assert resolve_role("someone@example.com") is Role.PARTNER
    monkeypatch.setattr("storefront.auth.repository.get_staff_role", lambda email: "superuser")
    assert resolve_role("someone@example.com") is Role.CUSTOMER


def test_metadata_role_is_ignored(monkeypatch):
    monkeypatch.setattr(
        "storefront.auth.repository.auth_sign_in_password",
        lambda e, p: _auth_response(e, metadata={"role": "admin", "full_name": "Mallory"}),
    )
    session = auth_service.sign_in("mallory@example.com", "Secret123!")
    assert session.role is Role.CUSTOMER
    assert session.name == "Mallory"
    assert session.access_token == "at-1"


def test_sign_in_failures(monkeypatch):
    with pytest.raises(AuthError):
        auth_service.sign_in("", "x")

    def boom(e, p):
        raise Exception("Invalid login credentials")

    monkeypatch.setattr("storefront.auth.repository.auth_sign_in_password", boom)
    with pytest.raises(AuthError, match="Invalid email or password"):
        auth_service.sign_in("a@example.com", "bad")

    monkeypatch.setattr("storefront.auth.repository.auth_sign_in_password",
                        lambda e, p: SimpleNamespace(user=None, session=None))
    with pytest.raises(AuthError):
        auth_service.sign_in("a@example.com", "bad")


def test_sign_in_for_area_rejects_and_revokes(monkeypatch):
    revoked = []
    monkeypatch.setattr("storefront.auth.repository.auth_sign_in_password", lambda e, p: _auth_response(e))
    monkeypatch.setattr("storefront.auth.repository.auth_sign_out", revoked.append)

    with pytest.raises(AuthError, match="does not have access"):
        auth_service.sign_in_for_area("someone@example.com", "pw", {Role.ADMIN})
    assert revoked == ["at-1"]

    session = auth_service.sign_in_for_area("boss@example.com", "pw", {Role.ADMIN})
    assert session.role is Role.ADMIN


def test_current_session_recomputes_role(monkeypatch):
    monkeypatch.setattr("storefront.auth.repository.get_user_from_access_token",
                        lambda token: {"id": "user-9", "email": "maker@example.com"})
    assert auth_service.current_session("tok").role is Role.PARTNER

    # Retiré de la liste: effet à la requête suivante
    monkeypatch.setattr(config, "PARTNER_EMAILS", [])
    assert auth_service.current_session("tok").role is Role.CUSTOMER


def test_current_session_invalid_token(monkeypatch):
    assert auth_service.current_session(None) is None

    def rejected(token):
        raise Exception("JWT expired")

    monkeypatch.setattr("storefront.auth.repository.get_user_from_access_token", rejected)
    assert auth_service.current_session("expired") is None


def test_sign_out_is_best_effort(monkeypatch):
    def down(token):
        raise Exception("network")

    monkeypatch.setattr("storefront.auth.repository.auth_sign_out", down)
    auth_service.sign_out("at-1")
    auth_service.sign_out(None)


def test_request_reset_never_reveals_account(monkeypatch):
    calls = []

    def send(email, redirect_to):
        calls.append((email, redirect_to))
        raise Exception("User not found")

    monkeypatch.setattr("storefront.auth.repository.auth_send_reset_password", send)
    assert auth_service.request_reset("Ghost@Example.com") is None
    assert calls == [("ghost@example.com", config.RESET_REDIRECT_URL)]


def test_sign_up_never_takes_role_from_request(monkeypatch):
    captured = {}

    def sign_up(**kwargs):
        captured.update(kwargs)
        return _auth_response(kwargs["email"])

    monkeypatch.setattr("storefront.auth.repository.auth_sign_up_account", sign_up)
    session = auth_service.sign_up("New@Example.com", "Str0ng!Pass", "New User")
    assert session.role is Role.CUSTOMER
    assert captured["full_name"] == "New User"
    assert "role" not in captured


def test_build_session_from_dict():
    session = build_session({"id": 7, "email": "A@B.com", "user_metadata": {"full_name": "A"}}, Role.CUSTOMER)
    assert (session.user_id, session.email, session.name) == ("7", "a@b.com", "A")
    assert session.customer_id == "7"
    assert not session.is_staff


def test_staff_role_lookup_failure_grants_nothing(monkeypatch):
    client = MagicMock()
    client.table.side_effect = RuntimeError("db down")
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    assert REAL_GET_STAFF_ROLE("someone@example.com") is None
    assert REAL_GET_STAFF_ROLE("") is None
