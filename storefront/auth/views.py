from typing import Iterable, Optional
import logging

from fastapi import APIRouter, Depends, Form, Request, Response
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import BaseModel, EmailStr, Field
from starlette.status import HTTP_303_SEE_OTHER

from storefront.auth.models import Role, Session
from storefront.errors import AuthError, ExpiredTokenError, InvalidTokenError, ValidationError
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import (
    LOGIN_ENTRY_POINTS,
    clear_session_cookie,
    read_access_token,
    require_session,
    set_session_cookie,
)
from storefront.utils.templates import templates

from . import service as auth_service

logger = logging.getLogger(__name__)

AREA_TITLES = {
    "customer": "Sign in",
    "partners": "Partner sign in",
    "admin": "Admin sign in",
}
AREA_HOME = {
    "customer": "/orders",
    "partners": "/partners",
    "admin": "/admin",
}
REQUEST_NEW_RESET = "request_new_reset"

NO_STORE = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}

# --- API Router (/api/v1/auth) ---

api_router = APIRouter(prefix="/api/v1/auth", tags=["Auth API"])

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: Optional[str] = Field(default=None, max_length=100)

class ResetEmailRequest(BaseModel):
    email: EmailStr

class CompleteResetRequest(BaseModel):
    token: Optional[str] = None
    new_password: str

def _session_payload(session: Session) -> dict:
    return {"access_token": session.access_token, "token_type": "bearer", "user": session.as_public_dict()}

@api_router.post("/login", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def api_login(req: LoginRequest, response: Response):
    """Connexion (API JSON): pose le cookie sb_access et retourne {access_token, token_type, user}."""
    session = auth_service.sign_in(req.email, req.password)
    set_session_cookie(response, session.access_token)
    return _session_payload(session)

@api_router.post("/signup", dependencies=[Depends(optional_rate_limit(times=3, seconds=60))])
def api_signup(req: SignupRequest, response: Response):
    """Inscription client; le rôle n'est jamais pris dans la requête."""
    session = auth_service.sign_up(req.email, req.password, req.full_name)
    if session is None:
        return {"message": "Sign up successful, please confirm your email"}
    set_session_cookie(response, session.access_token)
    return _session_payload(session)

@api_router.get("/me")
def api_me(session: Session = Depends(require_session)):
    return session.as_public_dict()

@api_router.post("/request-password-reset", dependencies=[Depends(optional_rate_limit(times=3, seconds=60))])
def api_request_reset(req: ResetEmailRequest):
    auth_service.request_reset(req.email)
    return {"message": "If an account exists for this email, a reset link has been sent"}

@api_router.post("/complete-reset", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def api_complete_reset(body: CompleteResetRequest):
    """ExpiredTokenError / InvalidTokenError -> 400 avec action "request_new_reset"."""
    auth_service.complete_reset(body.token, body.new_password)
    return {"message": "Password updated"}

@api_router.post("/logout")
def api_logout(request: Request, response: Response):
    auth_service.sign_out(read_access_token(request))
    clear_session_cookie(response)
    return {"message": "Signed out"}

# --- Connexion par zone (réutilisé par partners et admin) ---

def render_login(request: Request, area: str, error: Optional[str] = None, message: Optional[str] = None,
                 next_path: Optional[str] = None, status_code: int = 200):
    return templates.TemplateResponse(
        request,
        "login.html",
        {
            "area": area,
            "title": AREA_TITLES.get(area, "Sign in"),
            "action": LOGIN_ENTRY_POINTS[area],
            "error": error,
            "message": message,
            "next": next_path or "",
        },
        status_code=status_code,
    )

def _safe_next(next_path: Optional[str], default: str) -> str:
    # Uniquement des chemins locaux
    if next_path and next_path.startswith("/") and not next_path.startswith("//"):
        return next_path
    return default

def area_login(request: Request, area: str, email: str, password: str, next_path: Optional[str],
               allowed_roles: Optional[Iterable[Role]] = None):
    try:
        if allowed_roles is None:
            session = auth_service.sign_in(email, password)
        else:
            session = auth_service.sign_in_for_area(email, password, allowed_roles)
    except AuthError as e:
        return render_login(request, area, error=e.message, next_path=next_path, status_code=401)

    r = RedirectResponse(url=_safe_next(next_path, AREA_HOME[area]), status_code=HTTP_303_SEE_OTHER)
    set_session_cookie(r, session.access_token)
    return r

# --- Web Router (/auth) ---

web_router = APIRouter(prefix="/auth", tags=["Auth Web"])

@web_router.get("/login", response_class=HTMLResponse)
def login_page(request: Request, error: Optional[str] = None, message: Optional[str] = None, next: Optional[str] = None):
    return render_login(request, "customer", error=error, message=message, next_path=next)

@web_router.post("/login", response_class=HTMLResponse, dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def login_submit(request: Request, email: str = Form(...), password: str = Form(...), next: Optional[str] = Form(default=None)):
    return area_login(request, "customer", email, password, next)

def render_reset(request: Request, state: str = "form", token: str = "", error: Optional[str] = None,
                 message: Optional[str] = None, status_code: int = 200):
    r = templates.TemplateResponse(
        request,
        "reset_password.html",
        {"state": state, "token": token, "error": error, "message": message},
        status_code=status_code,
    )
    r.headers.update(NO_STORE)
    return r

@web_router.get("/reset", response_class=HTMLResponse)
def password_reset_page(request: Request, token: Optional[str] = None):
    """Le lien Supabase porte le jeton dans le fragment (#access_token=...); le template le recopie dans le formulaire."""
    return render_reset(request, token=token or "")

@web_router.post("/reset", response_class=HTMLResponse, dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def password_reset_submit(request: Request, token: str = Form(default=""), new_password: str = Form(...)):
    try:
        auth_service.complete_reset(token, new_password)
    except (ExpiredTokenError, InvalidTokenError) as e:
        # État distinct: pas de nouvel essai possible, il faut un nouveau lien
        return render_reset(request, state=REQUEST_NEW_RESET, error=e.message, status_code=400)
    except ValidationError as e:
        return render_reset(request, token=token, error=e.message, status_code=422)
    except AuthError as e:
        return render_reset(request, token=token, error=e.message, status_code=400)
    return RedirectResponse(url=f"{LOGIN_ENTRY_POINTS['customer']}?message=Password+updated", status_code=HTTP_303_SEE_OTHER)

@web_router.post("/forgot", response_class=HTMLResponse, dependencies=[Depends(optional_rate_limit(times=3, seconds=60))])
def forgot_password_submit(request: Request, email: str = Form(...)):
    auth_service.request_reset(email)
    return render_reset(request, state="sent", message="If an account exists for this email, a reset link has been sent")

@web_router.post("/logout", include_in_schema=False)
def auth_logout_post(request: Request):
    auth_service.sign_out(read_access_token(request))
    r = RedirectResponse(url=f"{LOGIN_ENTRY_POINTS['customer']}?message=Signed+out", status_code=HTTP_303_SEE_OTHER)
    clear_session_cookie(r)
    r.headers.update(NO_STORE)
    return r
