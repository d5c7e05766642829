import logging
from typing import Optional
from urllib.parse import urlencode

import stripe
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool
from starlette.status import HTTP_303_SEE_OTHER

from storefront import config
from storefront.errors import DataStoreError, GatewayError, NotFoundError
from storefront.orders import service as order_service
from storefront.utils.logging import log_payment_event
from storefront.utils.validators import is_valid_order_id

from . import events
from . import stripe_client

logger = logging.getLogger(__name__)

api_router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])
web_router = APIRouter(tags=["Payments Web"])


# module storefront.payments.views
@api_router.post("/webhook", include_in_schema=False)
async def webhook_stripe(request: Request):
    """
    Webhook Stripe: seule source faisant foi pour l'issue d'un paiement.
    - Signature: stripe_client.parse_event (Stripe-Signature + STRIPE_WEBHOOK_SECRET), 400 si invalide
    - Événement non pertinent: {"status": "ignored"} (200)
    - Référence inconnue: acquittée (200), journalisée, pas de relivraison
    - Base ou passerelle indisponible: 500 pour que Stripe relivre (réconciliation idempotente)
    """
    try:
        event = await stripe_client.parse_event(request)
    except (ValueError, stripe.SignatureVerificationError):
        logger.warning("payments.webhook: signature ou payload invalide")
        raise HTTPException(status_code=400, detail="Invalid Stripe webhook payload")

    gateway_event = events.to_gateway_event(event)
    if gateway_event is None:
        return JSONResponse({"status": "ignored"})

    try:
        order = await run_in_threadpool(order_service.reconcile_payment, gateway_event)
    except NotFoundError:
        return JSONResponse({"status": "unknown_order"})
    except (DataStoreError, GatewayError) as e:
        log_payment_event("webhook.retry", level=logging.ERROR, event_id=gateway_event.event_id, reason=e.message)
        return JSONResponse(status_code=500, content={"status": "retry"})

    return JSONResponse({"status": "ok", "order_id": order.id, "order_status": order.status.value})


@web_router.get(config.CHECKOUT_RETURN_PATH, include_in_schema=False)
def checkout_return(order_id: str, payment_id: Optional[str] = None):
    """
    Retour navigateur après Stripe Checkout.
    Ne modifie jamais la commande: redirige vers la page de confirmation avec payment_id comme indice.
    """
    if not is_valid_order_id(order_id):
        raise NotFoundError()
    log_payment_event("checkout.returned", order_id=order_id, payment_hint=payment_id)
    url = f"/orders/{order_id}/confirmation"
    if payment_id:
        url += "?" + urlencode({"payment_id": payment_id})
    return RedirectResponse(url=url, status_code=HTTP_303_SEE_OTHER)


@web_router.get(config.CHECKOUT_CANCEL_PATH, include_in_schema=False)
def checkout_cancel(order_id: str):
    """Abandon sur la page Stripe: la commande passera en payment_failed à l'expiration de la session."""
    if not is_valid_order_id(order_id):
        raise NotFoundError()
    log_payment_event("checkout.cancelled", order_id=order_id)
    return RedirectResponse(url=f"/orders/{order_id}/confirmation?cancelled=true", status_code=HTTP_303_SEE_OTHER)
