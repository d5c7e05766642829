"""
Lecture des commandes pour l'affichage (page de confirmation, espace client, espace staff).

- Un client ne lit que ses propres commandes: client Supabase authentifié (RLS) + filtre customer_id.
  Une commande d'un autre client donne NotFoundError, comme une commande inexistante.
- Partenaires et admins lisent toutes les commandes via le client service-role.
- payment_pending n'est jamais une erreur: c'est l'état "processing" tant que le webhook n'est pas arrivé.
"""
from typing import Any, Dict, List, Optional
import asyncio
import logging

from starlette.concurrency import run_in_threadpool

from storefront import config
from storefront.auth.models import Session
from storefront.errors import AuthError, NotFoundError
from storefront.utils.validators import is_valid_order_id

from . import repository
from .models import Order, OrderStatus

logger = logging.getLogger(__name__)

PROCESSING_LABEL = "Processing..."

DISPLAY_STATES = {
    OrderStatus.PAYMENT_PENDING: "processing",
    OrderStatus.CONFIRMED: "confirmed",
    OrderStatus.PAYMENT_FAILED: "failed",
    OrderStatus.PENDING_REVIEW: "in_review",
    OrderStatus.DELIVERED: "delivered",
}

MESSAGES = {
    "processing": "We are confirming your payment. This page refreshes automatically.",
    "confirmed": "Payment received. Your order is confirmed.",
    "failed": "Payment failed. You can place a new order from your cart.",
    "in_review": "Your order is being prepared.",
    "delivered": "Your order has been delivered.",
    "stalled": "Your payment is still processing. Please contact support with your order ID.",
}


# module storefront.orders.reader
def get_order(order_id: str, session: Optional[Session]) -> Order:
    if session is None:
        raise AuthError("Sign in to view your orders")
    if not is_valid_order_id(order_id):
        raise NotFoundError()

    if session.is_staff:
        row = repository.get_order(order_id)
    elif session.access_token:
        row = repository.get_order_for_customer(order_id, session.customer_id, session.access_token)
    else:
        row = None

    # Double contrôle: même si la RLS est mal configurée, un client ne voit pas la commande d'un autre
    if not row or (not session.is_staff and row.get("customer_id") != session.customer_id):
        raise NotFoundError()
    return Order.from_row(row)


def describe(order: Order, payment_hint: Optional[str] = None, *, stalled: bool = False) -> Dict[str, Any]:
    """
    Modèle de vue de la page de confirmation.
    Référence de paiement affichée: valeur enregistrée, sinon l'indice du retour navigateur
    (non vérifié), sinon "Processing...". L'indice ne modifie jamais la commande.
    """
    state = DISPLAY_STATES[order.status]
    if stalled and order.status is OrderStatus.PAYMENT_PENDING:
        state = "stalled"

    if order.payment_reference:
        payment_display, verified = order.payment_reference, True
    elif payment_hint and order.status is OrderStatus.PAYMENT_PENDING:
        payment_display, verified = payment_hint, False
    else:
        payment_display, verified = PROCESSING_LABEL, False

    return {
        "order": order.as_public_dict(),
        "display_state": state,
        "message": MESSAGES[state],
        "payment_reference": payment_display,
        "payment_verified": verified,
        "is_final": state != "processing",
    }


def confirmation_state(order_id: str, session: Optional[Session], payment_hint: Optional[str] = None, attempt: int = 0) -> Dict[str, Any]:
    """Variante synchrone pour la page HTML: le navigateur relance la lecture (meta refresh)."""
    order = get_order(order_id, session)
    stalled = attempt >= config.ORDER_POLL_ATTEMPTS
    view = describe(order, payment_hint, stalled=stalled)
    view["attempt"] = attempt
    return view


async def poll_order(
    order_id: str,
    session: Optional[Session],
    payment_hint: Optional[str] = None,
    attempts: Optional[int] = None,
    interval: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Relit la commande jusqu'à sortir de payment_pending, au plus `attempts` fois.
    Au-delà: état "stalled" (contacter le support) plutôt qu'une attente sans fin.
    """
    attempts = max(1, attempts if attempts is not None else config.ORDER_POLL_ATTEMPTS)
    interval = config.ORDER_POLL_INTERVAL_SECONDS if interval is None else interval

    order = None
    for attempt in range(attempts):
        order = await run_in_threadpool(get_order, order_id, session)
        if order.status is not OrderStatus.PAYMENT_PENDING:
            return describe(order, payment_hint)
        if attempt < attempts - 1:
            await asyncio.sleep(interval)

    logger.warning("orders.reader.poll_order: toujours en attente après %s lectures order=%s", attempts, order_id)
    return describe(order, payment_hint, stalled=True)


def list_orders(session: Optional[Session], limit: int = 50) -> List[Order]:
    if session is None:
        raise AuthError("Sign in to view your orders")
    if session.is_staff:
        rows = repository.list_orders(limit=limit)
    elif session.access_token:
        rows = repository.list_customer_orders(session.customer_id, session.access_token, limit=limit)
    else:
        rows = []
    return [Order.from_row(r) for r in rows if session.is_staff or r.get("customer_id") == session.customer_id]
