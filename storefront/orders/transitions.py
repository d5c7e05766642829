"""
Machine à états des commandes.

    payment_pending --success--> confirmed --staff--> pending_review --staff--> delivered
    payment_pending --failure--> payment_failed

Le treillis est monotone: aucune transition ne fait reculer une commande, et les
états terminaux (delivered, payment_failed) n'ont aucune sortie. Un événement
passerelle rejoué sur une commande déjà traitée est donc sans effet.
"""
from typing import Dict, Optional, Tuple

from .models import GatewayOutcome, OrderStatus, PaymentStatus

TERMINAL_STATES = frozenset({OrderStatus.DELIVERED, OrderStatus.PAYMENT_FAILED})

RANK: Dict[OrderStatus, int] = {
    OrderStatus.PAYMENT_PENDING: 0,
    OrderStatus.CONFIRMED: 1,
    OrderStatus.PAYMENT_FAILED: 1,
    OrderStatus.PENDING_REVIEW: 2,
    OrderStatus.DELIVERED: 3,
}

GATEWAY_TRANSITIONS: Dict[Tuple[OrderStatus, GatewayOutcome], Tuple[OrderStatus, PaymentStatus]] = {
    (OrderStatus.PAYMENT_PENDING, GatewayOutcome.SUCCESS): (OrderStatus.CONFIRMED, PaymentStatus.COMPLETED),
    (OrderStatus.PAYMENT_PENDING, GatewayOutcome.FAILURE): (OrderStatus.PAYMENT_FAILED, PaymentStatus.FAILED),
}

# Transitions staff: état cible -> état requis
STAFF_PRECONDITIONS: Dict[OrderStatus, OrderStatus] = {
    OrderStatus.PENDING_REVIEW: OrderStatus.CONFIRMED,
    OrderStatus.DELIVERED: OrderStatus.PENDING_REVIEW,
}


def gateway_target(current: OrderStatus, outcome: GatewayOutcome) -> Optional[Tuple[OrderStatus, PaymentStatus]]:
    """(status, payment_status) à écrire, ou None si l'événement est sans effet."""
    return GATEWAY_TRANSITIONS.get((OrderStatus(current), GatewayOutcome(outcome)))


def staff_precondition(target: OrderStatus) -> OrderStatus:
    return STAFF_PRECONDITIONS[OrderStatus(target)]


def is_terminal(status: OrderStatus) -> bool:
    return OrderStatus(status) in TERMINAL_STATES


def is_forward(current: OrderStatus, target: OrderStatus) -> bool:
    current, target = OrderStatus(current), OrderStatus(target)
    if current in TERMINAL_STATES:
        return False
    return RANK[target] > RANK[current]
