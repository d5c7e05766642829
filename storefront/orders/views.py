from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from storefront import config
from storefront.auth.models import Session
from storefront.cart.views import get_cart, save_cart
from storefront.errors import NotFoundError
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import require_customer
from storefront.utils.templates import templates

from . import reader
from . import service as order_service

logger = logging.getLogger(__name__)

api_router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])
web_router = APIRouter(tags=["Orders Web"])


class CheckoutRequest(BaseModel):
    # Validé par le service (ValidationError -> 422 avec le champ fautif)
    customer: Dict[str, Any]


# module storefront.orders.views
@api_router.post("", status_code=201, dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def checkout(body: CheckoutRequest, request: Request, session: Session = Depends(require_customer)):
    """
    Passe commande avec le panier de la session.
    - Crée la commande (payment_pending) et la session Stripe Checkout
    - Vide le panier uniquement si la commande a été créée
    - Retour: {order, checkout_url}; le navigateur est ensuite redirigé vers checkout_url
    """
    cart = get_cart(request)
    created = order_service.create_order(cart.snapshot(), body.customer, session)
    cart.clear()
    save_cart(request, cart)
    return {"order": created.order.as_public_dict(), "checkout_url": created.checkout_url}


@api_router.get("")
def list_my_orders(limit: int = Query(default=50, ge=1, le=200), session: Session = Depends(require_customer)):
    return {"orders": [o.as_public_dict() for o in reader.list_orders(session, limit=limit)]}


@api_router.get("/{order_id}")
def get_order(order_id: str, session: Session = Depends(require_customer)):
    return reader.get_order(order_id, session).as_public_dict()


@api_router.get("/{order_id}/confirmation")
async def get_confirmation(
    order_id: str,
    payment_id: Optional[str] = None,
    wait: bool = False,
    session: Session = Depends(require_customer),
):
    """
    État d'affichage de la commande après le retour de paiement.
    - wait=false: une lecture
    - wait=true: relectures bornées (ORDER_POLL_ATTEMPTS), puis "stalled"
    payment_id (retour navigateur) n'est qu'un indice d'affichage.
    """
    if wait:
        return await reader.poll_order(order_id, session, payment_hint=payment_id)
    order = await run_in_threadpool(reader.get_order, order_id, session)
    return reader.describe(order, payment_id)


@web_router.get("/orders", response_class=HTMLResponse)
def my_orders_page(request: Request, session: Session = Depends(require_customer)):
    orders = reader.list_orders(session)
    return templates.TemplateResponse(
        request,
        "staff_orders.html",
        {"session": session, "orders": orders, "can_advance": False, "title": "My orders"},
    )


@web_router.get("/orders/{order_id}/confirmation", response_class=HTMLResponse)
def confirmation_page(
    request: Request,
    order_id: str,
    payment_id: Optional[str] = None,
    attempt: int = Query(default=0, ge=0),
    cancelled: bool = False,
    session: Session = Depends(require_customer),
):
    """Page de confirmation: se recharge tant que la commande est en cours de paiement, dans la limite des tentatives."""
    try:
        view = reader.confirmation_state(order_id, session, payment_hint=payment_id, attempt=attempt)
    except NotFoundError:
        return templates.TemplateResponse(
            request, "order_confirmation.html", {"not_found": True, "order_id": order_id}, status_code=404
        )

    refresh_url = None
    if view["display_state"] == "processing":
        refresh_url = request.url.include_query_params(attempt=attempt + 1)
    return templates.TemplateResponse(
        request,
        "order_confirmation.html",
        {
            "view": view,
            "order_id": order_id,
            "cancelled": cancelled,
            "refresh_url": str(refresh_url) if refresh_url else None,
            "refresh_seconds": max(1, int(config.ORDER_POLL_INTERVAL_SECONDS)),
        },
    )
