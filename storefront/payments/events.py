"""
Traduction des événements Stripe en GatewayEvent.

    checkout.session.completed (payment_status=paid)  -> success
    checkout.session.async_payment_succeeded          -> success
    checkout.session.async_payment_failed             -> failure
    checkout.session.expired                          -> failure
    tout le reste                                      -> None (ignoré, acquitté)

Un succès emporte aussi ce qui a été réellement encaissé (amount_total, currency,
payment_method_types) et l'heure de l'événement, pour la piste d'audit.
"""
from datetime import datetime, timezone
from typing import Any, Optional

from storefront.orders.models import GatewayEvent, GatewayOutcome
from storefront.payments.stripe_client import from_minor_units

SUCCESS_EVENTS = {"checkout.session.async_payment_succeeded"}
FAILURE_EVENTS = {"checkout.session.async_payment_failed", "checkout.session.expired"}


def _get(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    try:
        return obj[key]
    except (KeyError, TypeError):
        return getattr(obj, key, None)


def _outcome(event_type: str, session: Any) -> Optional[GatewayOutcome]:
    if event_type == "checkout.session.completed":
        # Les moyens de paiement différés arrivent "unpaid" puis async_payment_*
        if _get(session, "payment_status") == "paid":
            return GatewayOutcome.SUCCESS
        return None
    if event_type in SUCCESS_EVENTS:
        return GatewayOutcome.SUCCESS
    if event_type in FAILURE_EVENTS:
        return GatewayOutcome.FAILURE
    return None


def _payment_method(session: Any) -> Optional[str]:
    types = _get(session, "payment_method_types") or []
    return ", ".join(str(t) for t in types) or None


def _timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def to_gateway_event(event: Any) -> Optional[GatewayEvent]:
    event_type = _get(event, "type") or ""
    session = _get(_get(event, "data"), "object")
    outcome = _outcome(event_type, session)
    reference = _get(session, "id")
    if outcome is None or not reference:
        return None
    if outcome is GatewayOutcome.FAILURE:
        return GatewayEvent(
            gateway_order_reference=reference,
            outcome=outcome,
            event_id=_get(event, "id"),
            event_type=event_type,
        )

    payment_reference = _get(session, "payment_intent")
    if isinstance(payment_reference, dict) or (payment_reference is not None and not isinstance(payment_reference, str)):
        payment_reference = _get(payment_reference, "id")

    amount_total = _get(session, "amount_total")
    currency = _get(session, "currency")
    return GatewayEvent(
        gateway_order_reference=reference,
        outcome=outcome,
        payment_reference=payment_reference,
        event_id=_get(event, "id"),
        event_type=event_type,
        amount_total=from_minor_units(amount_total) if isinstance(amount_total, int) else None,
        currency=str(currency).lower() if currency else None,
        payment_method=_payment_method(session),
        paid_at=_timestamp(_get(event, "created")),
    )
