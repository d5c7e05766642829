"""Espace partenaires: consultation des commandes en lecture seule (partenaires et admins)."""
from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse

from storefront.auth.models import Role, Session
from storefront.auth.views import area_login, render_login
from storefront.orders import reader
from storefront.utils.security import require_staff
from storefront.utils.templates import templates

router = APIRouter(prefix="/partners", tags=["Partners"])

STAFF_ROLES = (Role.PARTNER, Role.ADMIN)


@router.get("/login", response_class=HTMLResponse)
def partners_login_page(request: Request, error: Optional[str] = None, next: Optional[str] = None):
    return render_login(request, "partners", error=error, next_path=next)


@router.post("/login", response_class=HTMLResponse)
def partners_login_submit(request: Request, email: str = Form(...), password: str = Form(...), next: Optional[str] = Form(default=None)):
    return area_login(request, "partners", email, password, next, allowed_roles=STAFF_ROLES)


@router.get("", response_class=HTMLResponse)
def partners_dashboard(request: Request, limit: int = Query(default=100, ge=1, le=500), session: Session = Depends(require_staff)):
    orders = reader.list_orders(session, limit=limit)
    return templates.TemplateResponse(
        request,
        "staff_orders.html",
        {"session": session, "orders": orders, "can_advance": False, "title": "Partner dashboard"},
    )
