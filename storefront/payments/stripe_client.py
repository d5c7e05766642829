"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict
import logging
import time

import stripe
from fastapi import Request

from storefront import config
from storefront.errors import GatewayError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayOrder:
    reference: str
    checkout_url: str


def _field(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


# module storefront.payments.stripe_client
def require_stripe() -> stripe:
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY si disponible.
    - En absence de clé, les appels Stripe échouent côté SDK (AuthenticationError -> GatewayError).
    """
    if config.STRIPE_SECRET_KEY:
        stripe.api_key = config.STRIPE_SECRET_KEY
    return stripe


def to_minor_units(amount: Decimal) -> int:
    """1000.00 INR -> 100000 paise."""
    return int((Decimal(amount) * 100).to_integral_value())


def from_minor_units(amount: int) -> Decimal:
    """100000 paise -> 1000.00 INR."""
    return (Decimal(int(amount)) / 100).quantize(Decimal("0.01"))


def return_url(order_ref: str) -> str:
    # {CHECKOUT_SESSION_ID} est substitué par Stripe; la valeur n'est qu'un indice d'affichage
    return f"{config.BASE_URL}{config.CHECKOUT_RETURN_PATH}?order_id={order_ref}&payment_id={{CHECKOUT_SESSION_ID}}"


def cancel_url(order_ref: str) -> str:
    return f"{config.BASE_URL}{config.CHECKOUT_CANCEL_PATH}?order_id={order_ref}"


def initiate(order_ref: str, amount: Decimal, currency: str, *, customer_email: str = "") -> GatewayOrder:
    """
    Crée une session Stripe Checkout pour le montant exact de la commande.
    - Une seule ligne price_data: le détail reste dans la commande, Stripe ne voit que le total.
    - client_reference_id + metadata.order_id relient la session à la commande.
    - expires_at: une session abandonnée expire (et la commande échoue) après CHECKOUT_SESSION_TTL_SECONDS.
    Retour: GatewayOrder(reference="cs_...", checkout_url="https://checkout.stripe.com/...").
    """
    require_stripe()
    params: Dict[str, Any] = dict(
        mode="payment",
        line_items=[{
            "price_data": {
                "currency": currency,
                "product_data": {"name": f"Order {order_ref}"},
                "unit_amount": to_minor_units(amount),
            },
            "quantity": 1,
        }],
        client_reference_id=order_ref,
        metadata={"order_id": order_ref},
        success_url=return_url(order_ref),
        cancel_url=cancel_url(order_ref),
        # Session abandonnée: checkout.session.expired arrive après ce délai
        expires_at=int(time.time()) + config.CHECKOUT_SESSION_TTL_SECONDS,
    )
    if customer_email:
        params["customer_email"] = customer_email
    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as e:
        logger.exception("payments.stripe_client.initiate failed order=%s", order_ref)
        raise GatewayError("Payment gateway is unavailable") from e

    reference = _field(session, "id")
    url = _field(session, "url")
    if not reference or not url:
        raise GatewayError("Payment gateway returned an incomplete session")
    return GatewayOrder(reference=reference, checkout_url=url)


async def parse_event(request: Request):
    """
    Parse et valide un événement Stripe signé (webhook).
    - Lit le body brut + en-tête Stripe-Signature
    - Valide la signature via Webhook.construct_event (STRIPE_WEBHOOK_SECRET)
    Lève ValueError (payload) ou stripe.SignatureVerificationError (signature).
    """
    require_stripe()
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature") or ""
    return stripe.Webhook.construct_event(payload, sig_header, config.STRIPE_WEBHOOK_SECRET or "")
