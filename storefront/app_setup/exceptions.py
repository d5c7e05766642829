"""
Gestionnaires d'exceptions (utilisés par la factory).
- StorefrontError (et sous-classes): JSON {detail, code[, field, action]} avec le code HTTP de l'erreur.
- LoginRequired / AccessDenied: redirection 303 vers l'entrée de connexion de la zone pour le web,
  401 / 403 JSON pour les clients API (/api/*).
- HTTPException 401/403: même logique de redirection que la version historique.
"""
import logging
import urllib.parse

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.status import HTTP_303_SEE_OTHER

from storefront.errors import StorefrontError
from storefront.utils.security import AccessDenied, LoginRequired, LOGIN_ENTRY_POINTS

logger = logging.getLogger(__name__)


def wants_json(request: Request) -> bool:
    if request.url.path.startswith("/api/"):
        return True
    accept = (request.headers.get("accept") or "").lower()
    return "application/json" in accept and "text/html" not in accept


def _redirect(url: str, **params: str) -> RedirectResponse:
    query = urllib.parse.urlencode({k: v for k, v in params.items() if v})
    return RedirectResponse(url=f"{url}?{query}" if query else url, status_code=HTTP_303_SEE_OTHER)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StorefrontError)
    async def storefront_error(request: Request, exc: StorefrontError):
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(LoginRequired)
    async def login_required(request: Request, exc: LoginRequired):
        if wants_json(request):
            return JSONResponse(
                status_code=401,
                content={"detail": "Not authenticated", "code": "login_required", "login_url": exc.login_url},
            )
        return _redirect(exc.login_url, next=exc.next_path or "")

    @app.exception_handler(AccessDenied)
    async def access_denied(request: Request, exc: AccessDenied):
        logger.info("access denied area=%s role=%s path=%s", exc.area, exc.role.value, request.url.path)
        if wants_json(request):
            return JSONResponse(status_code=403, content={"detail": "Forbidden", "code": "access_denied"})
        return _redirect(exc.login_url, error="This account does not have access to this area")

    @app.exception_handler(HTTPException)
    async def html_redirect_on_auth_errors(request: Request, exc: HTTPException):
        if exc.status_code in (401, 403) and not wants_json(request):
            detail = str(getattr(exc, "detail", "")) or (
                "Please sign in" if exc.status_code == 401 else "Forbidden"
            )
            return _redirect(LOGIN_ENTRY_POINTS["customer"], error=detail)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))
