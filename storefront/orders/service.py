"""
Cas d'usage 'orders': orchestre panier, catalogue, repository et passerelle Stripe.

- create_order: panier figé -> commande payment_pending -> session Checkout.
  Si l'insertion, la passerelle ou l'écriture échoue, la commande est supprimée
  (aucune commande partielle n'est visible).
- reconcile_payment: applique un événement passerelle (seule source faisant foi).
  Idempotent, écriture conditionnelle sur le statut courant.
- advance_to_review / advance_to_delivered: transitions staff, même écriture conditionnelle.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Union
import logging
import secrets
import time

from pydantic import ValidationError as PydanticValidationError

from storefront import config
from storefront.auth.models import Session
from storefront.cart.store import CartLine, cart_total, to_money
from storefront.catalog import pricing
from storefront.catalog import repository as catalog_repo
from storefront.errors import (
    AuthError,
    DataStoreError,
    GatewayError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from storefront.payments import stripe_client
from storefront.utils.logging import log_payment_event

from . import repository
from . import transitions
from .models import CustomerInfo, GatewayEvent, GatewayOutcome, LineItem, Order, OrderStatus

logger = logging.getLogger(__name__)

DELIVERY_REF = "delivery"
# Nombre de relectures après une écriture conditionnelle perdue
MAX_CAS_ATTEMPTS = 3


class CreatedOrder(NamedTuple):
    order: Order
    checkout_url: str


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# module storefront.orders.service
def generate_order_id() -> str:
    """XLV_<epoch-ms>_<8 hex>: opaque, non devinable, triable par date."""
    return f"{config.ORDER_ID_PREFIX}_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def parse_customer_info(data: Union[CustomerInfo, dict, None]) -> CustomerInfo:
    if isinstance(data, CustomerInfo):
        return data
    if not data:
        raise ValidationError("Customer details are required", field="customer")
    try:
        return CustomerInfo(**data)
    except PydanticValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ())) or None
        message = str(first.get("msg") or "Invalid customer details")
        raise ValidationError(message.removeprefix("Value error, "), field=field) from e


def _check_against_catalog(lines: Iterable[CartLine]) -> None:
    """Chaque produit doit encore exister et être en stock; le prix figé du panier est conservé."""
    lines = list(lines)
    products = catalog_repo.get_products_map(line.product_ref for line in lines)
    for line in lines:
        product = products.get(line.product_ref)
        if not product:
            raise ValidationError(f"{line.title or line.product_ref} is no longer available", field="cart")
        if not pricing.is_available(product):
            raise ValidationError(f"{pricing.display_title(product)} is out of stock", field="cart")


def build_line_items(lines: Iterable[CartLine]) -> List[LineItem]:
    lines = list(lines)
    items = [
        LineItem(product_ref=l.product_ref, title=l.title or l.product_ref, unit_price=l.unit_price, quantity=l.quantity)
        for l in lines
    ]
    delivery = to_money(config.DELIVERY_CHARGE)
    # Les kits sont livrés gratuitement
    if delivery > 0 and not any(l.is_kit for l in lines):
        items.append(LineItem(product_ref=DELIVERY_REF, title="Delivery", unit_price=delivery, quantity=1))
    return items


def create_order(cart_snapshot: Iterable[CartLine], customer_info: Union[CustomerInfo, dict], session: Optional[Session]) -> CreatedOrder:
    """
    Crée la commande à partir d'un panier figé.
    Étapes:
      1) Valider panier non vide + infos client
      2) Revérifier le catalogue, appliquer minimum de commande et livraison
      3) Insérer la commande (payment_pending)
      4) Créer la session Checkout pour le montant exact et enregistrer sa référence
    Erreurs: ValidationError, AuthError, GatewayError, DataStoreError.
    """
    lines = tuple(cart_snapshot or ())
    if not lines:
        raise ValidationError("Your cart is empty", field="cart")
    info = parse_customer_info(customer_info)
    if session is None or not session.user_id:
        raise AuthError("Sign in to place an order")

    _check_against_catalog(lines)

    subtotal = cart_total(lines)
    minimum = to_money(config.MIN_ORDER_SUBTOTAL)
    if subtotal < minimum:
        raise ValidationError(f"Minimum order amount is {minimum}", field="cart")

    items = build_line_items(lines)
    total = sum((li.line_total for li in items), Decimal("0.00"))
    if total <= 0:
        raise ValidationError("Order total must be greater than zero", field="cart")

    order = Order(
        id=generate_order_id(),
        customer_id=session.user_id,
        customer_name=info.name,
        customer_email=str(info.email),
        customer_phone=info.phone,
        shipping_address=info.shipping_details(),
        line_items=items,
        total_amount=total,
        currency=config.STORE_CURRENCY,
    )
    try:
        repository.insert_order(order.to_row())
    except DataStoreError as e:
        # L'écriture a pu aboutir malgré l'erreur (timeout après commit)
        repository.delete_order(order.id)
        log_payment_event("order.rolled_back", level=logging.ERROR, order_id=order.id, reason=e.message)
        raise
    log_payment_event("order.created", order_id=order.id, amount=str(total), currency=order.currency)

    try:
        gateway = stripe_client.initiate(order.id, total, order.currency, customer_email=order.customer_email)
        if not repository.set_gateway_reference(order.id, gateway.reference):
            raise DataStoreError("Could not save the payment reference")
    except (GatewayError, DataStoreError) as e:
        repository.delete_order(order.id)
        log_payment_event("order.rolled_back", level=logging.ERROR, order_id=order.id, reason=e.message)
        raise

    log_payment_event("checkout.initiated", order_id=order.id, gateway_order_reference=gateway.reference)
    return CreatedOrder(order.model_copy(update={"gateway_order_reference": gateway.reference}), gateway.checkout_url)


def _check_charged_amount(order: Order, event: GatewayEvent) -> None:
    """Montant ou devise encaissés différents du total de la commande: erreur pour revue manuelle."""
    amount_differs = event.amount_total is not None and event.amount_total != order.total_amount
    currency_differs = bool(event.currency) and event.currency.lower() != order.currency.lower()
    if amount_differs or currency_differs:
        log_payment_event(
            "reconcile.amount_mismatch", level=logging.ERROR, order_id=order.id,
            expected=f"{order.total_amount} {order.currency}",
            charged=f"{event.amount_total} {event.currency}",
            payment_reference=event.payment_reference,
        )


def reconcile_payment(event: GatewayEvent) -> Order:
    """
    Applique l'issue rapportée par la passerelle.
    - payment_pending + success -> confirmed (payment_reference et colonnes payment_* renseignées)
    - payment_pending + failure -> payment_failed
    - tout autre état -> sans effet (relivraison)
    Une écriture conditionnelle perdue relit la commande et réévalue la transition.
    """
    row = repository.get_order_by_gateway_reference(event.gateway_order_reference)
    if not row:
        log_payment_event("reconcile.unknown_reference", level=logging.WARNING,
                          gateway_order_reference=event.gateway_order_reference, event_id=event.event_id)
        raise NotFoundError()

    for _ in range(MAX_CAS_ATTEMPTS):
        order = Order.from_row(row)
        target = transitions.gateway_target(order.status, event.outcome)
        if target is None:
            if order.status is OrderStatus.PAYMENT_FAILED and event.outcome is GatewayOutcome.SUCCESS:
                logger.error(
                    "orders.reconcile: paiement réussi sur une commande en échec, revue manuelle order=%s payment=%s",
                    order.id, event.payment_reference,
                )
            log_payment_event("reconcile.noop", order_id=order.id, status=order.status.value, outcome=event.outcome.value)
            return order

        status, payment_status = target
        changes: Dict[str, Any] = {
            "status": status.value,
            "payment_status": payment_status.value,
            "updated_at": _now(),
        }
        if event.outcome is GatewayOutcome.SUCCESS:
            if event.payment_reference:
                changes["payment_reference"] = event.payment_reference
            changes.update(event.payment_details())

        updated = repository.compare_and_set_status(order.id, order.status.value, changes)
        if updated:
            if event.outcome is GatewayOutcome.SUCCESS:
                _check_charged_amount(order, event)
            log_payment_event("reconcile.applied", order_id=order.id, status=status.value,
                              payment_reference=event.payment_reference)
            return Order.from_row(updated)

        # Course perdue: un autre écrivain est passé avant
        row = repository.get_order(order.id)
        if not row:
            raise NotFoundError()

    logger.error("orders.reconcile: écriture conditionnelle toujours en conflit order=%s", row.get("id"))
    raise DataStoreError("Order is being updated concurrently")


def _staff_transition(order_id: str, target: OrderStatus, actor: Optional[Session] = None) -> Order:
    if actor is not None and not actor.is_staff:
        raise AuthError("Staff access required")

    required = transitions.staff_precondition(target)
    row = repository.get_order(order_id)
    if not row:
        raise NotFoundError()
    order = Order.from_row(row)
    if order.status is not required:
        logger.warning("orders.staff_transition refusée order=%s status=%s target=%s", order_id, order.status.value, target.value)
        raise InvalidTransitionError(order_id, order.status.value, target.value)

    updated = repository.compare_and_set_status(order_id, required.value, {"status": target.value, "updated_at": _now()})
    if not updated:
        current = repository.get_order(order_id) or {}
        logger.warning("orders.staff_transition conflit order=%s status=%s target=%s", order_id, current.get("status"), target.value)
        raise InvalidTransitionError(order_id, str(current.get("status") or "unknown"), target.value)

    logger.info("orders.staff_transition order=%s %s -> %s by=%s", order_id, required.value, target.value,
                actor.email if actor else "system")
    return Order.from_row(updated)


def advance_to_review(order_id: str, actor: Optional[Session] = None) -> Order:
    """confirmed -> pending_review."""
    return _staff_transition(order_id, OrderStatus.PENDING_REVIEW, actor)


def advance_to_delivered(order_id: str, actor: Optional[Session] = None) -> Order:
    """pending_review -> delivered."""
    return _staff_transition(order_id, OrderStatus.DELIVERED, actor)
