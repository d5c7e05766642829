from typing import Optional
import logging
import urllib.parse

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from starlette.status import HTTP_303_SEE_OTHER

from storefront.auth.models import Role, Session
from storefront.auth.views import area_login, render_login
from storefront.errors import InvalidTransitionError, NotFoundError
from storefront.orders import reader
from storefront.orders import service as order_service
from storefront.utils.security import require_admin
from storefront.utils.templates import templates

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])
api_router = APIRouter(prefix="/api/v1/admin", tags=["Admin API"])

ADVANCE_ACTIONS = {
    "review": order_service.advance_to_review,
    "deliver": order_service.advance_to_delivered,
}


# module storefront.admin.views
@router.get("/login", response_class=HTMLResponse)
def admin_login_page(request: Request, error: Optional[str] = None, next: Optional[str] = None):
    return render_login(request, "admin", error=error, next_path=next)


@router.post("/login", response_class=HTMLResponse)
def admin_login_submit(request: Request, email: str = Form(...), password: str = Form(...), next: Optional[str] = Form(default=None)):
    return area_login(request, "admin", email, password, next, allowed_roles=(Role.ADMIN,))


@router.get("", response_class=HTMLResponse)
def admin_page(
    request: Request,
    message: Optional[str] = None,
    error: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=500),
    session: Session = Depends(require_admin),
):
    orders = reader.list_orders(session, limit=limit)
    return templates.TemplateResponse(
        request,
        "staff_orders.html",
        {"session": session, "orders": orders, "can_advance": True, "title": "Orders", "message": message, "error": error},
    )


@router.post("/orders/{order_id}/{action}", include_in_schema=False)
def admin_advance_order(order_id: str, action: str, session: Session = Depends(require_admin)):
    """Transition staff depuis le tableau de bord (formulaire), puis retour à la liste avec un message."""
    advance = ADVANCE_ACTIONS.get(action)
    if advance is None:
        raise NotFoundError("Unknown action")
    try:
        order = advance(order_id, session)
        query = {"message": f"Order {order.id} is now {order.status.value}"}
    except (InvalidTransitionError, NotFoundError) as e:
        query = {"error": e.message}
    return RedirectResponse(url=f"/admin?{urllib.parse.urlencode(query)}", status_code=HTTP_303_SEE_OTHER)


@api_router.post("/orders/{order_id}/review")
def api_advance_to_review(order_id: str, session: Session = Depends(require_admin)):
    return order_service.advance_to_review(order_id, session).as_public_dict()


@api_router.post("/orders/{order_id}/deliver")
def api_advance_to_delivered(order_id: str, session: Session = Depends(require_admin)):
    return order_service.advance_to_delivered(order_id, session).as_public_dict()
