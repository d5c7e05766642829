"""
Garde d'accès.

- La session est relue à chaque requête (cookie sb_access ou Bearer) et le rôle recalculé côté serveur.
- require_role(*roles, area=...) : dépendance FastAPI.
    pas de session           -> LoginRequired (redirection vers l'entrée de connexion de la zone)
    rôle hors de l'ensemble  -> AccessDenied (redirection ou 403, la vue n'est jamais exécutée)
- Les gestionnaires de ces deux exceptions sont dans storefront.app_setup.exceptions.
"""
from typing import Optional

from fastapi import Request
from fastapi.responses import Response

from storefront.auth import service as auth_service
from storefront.auth.models import Role, Session
from storefront.config import COOKIE_SECURE

COOKIE_NAME = "sb_access"

LOGIN_ENTRY_POINTS = {
    "customer": "/auth/login",
    "partners": "/partners/login",
    "admin": "/admin/login",
}


class LoginRequired(Exception):
    def __init__(self, area: str = "customer", next_path: Optional[str] = None):
        super().__init__(f"Login required for area {area}")
        self.area = area
        self.next_path = next_path

    @property
    def login_url(self) -> str:
        return LOGIN_ENTRY_POINTS.get(self.area, LOGIN_ENTRY_POINTS["customer"])


class AccessDenied(Exception):
    def __init__(self, area: str, role: Role):
        super().__init__(f"Role {role.value} cannot access area {area}")
        self.area = area
        self.role = role

    @property
    def login_url(self) -> str:
        return LOGIN_ENTRY_POINTS.get(self.area, LOGIN_ENTRY_POINTS["customer"])


def set_session_cookie(response: Response, access_token: str):
    response.set_cookie(
        key=COOKIE_NAME,
        value=access_token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="Lax",
        max_age=60 * 60,
        path="/",
    )

def clear_session_cookie(response: Response):
    response.delete_cookie(COOKIE_NAME, path="/")

def read_access_token(request: Request) -> Optional[str]:
    # Hybride: priorité au Bearer, fallback cookie
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(COOKIE_NAME) or None

def get_current_session(request: Request) -> Optional[Session]:
    """Session de la requête courante (mémorisée uniquement pour la durée de la requête)."""
    if hasattr(request.state, "storefront_session"):
        return request.state.storefront_session
    session = auth_service.current_session(read_access_token(request))
    request.state.storefront_session = session
    return session

def require_session(request: Request) -> Session:
    session = get_current_session(request)
    if session is None:
        raise LoginRequired("customer", request.url.path)
    return session

def require_role(*roles: Role, area: str = "customer"):
    allowed = frozenset(Role(r) for r in roles)

    def _dep(request: Request) -> Session:
        session = get_current_session(request)
        if session is None:
            raise LoginRequired(area, request.url.path)
        if session.role not in allowed:
            raise AccessDenied(area, session.role)
        return session

    return _dep

require_customer = require_role(Role.CUSTOMER, Role.PARTNER, Role.ADMIN, area="customer")
require_staff = require_role(Role.PARTNER, Role.ADMIN, area="partners")
require_admin = require_role(Role.ADMIN, area="admin")
