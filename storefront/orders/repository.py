"""
Accès aux données pour la feature 'orders' (table 'orders').

Contrairement aux lectures catalogue, les écritures ne sont jamais « avalées »:
une erreur Supabase devient DataStoreError, pour que le service puisse compenser
(création) ou que la passerelle puisse relivrer l'événement (réconciliation).
"""
from typing import Any, Dict, List, Optional
import logging

import storefront.infra.supabase_client as supabase_client
from storefront.errors import DataStoreError

logger = logging.getLogger(__name__)

TABLE = "orders"

def _first(res) -> Optional[dict]:
    data = getattr(res, "data", None)
    if isinstance(data, list):
        return data[0] if data else None
    if isinstance(data, dict):
        return data
    return None

# module storefront.orders.repository
def insert_order(row: Dict[str, Any]) -> dict:
    """Insère la commande via le client service-role et retourne la ligne créée."""
    try:
        res = supabase_client.get_service_supabase().table(TABLE).insert(row).execute()
        return _first(res) or row
    except Exception as e:
        logger.exception("orders.repository.insert_order failed id=%s", row.get("id"))
        raise DataStoreError("Could not save the order") from e

def set_gateway_reference(order_id: str, gateway_order_reference: str) -> Optional[dict]:
    """Attache la référence passerelle (une seule fois: uniquement si elle est encore nulle)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .update({"gateway_order_reference": gateway_order_reference})
            .eq("id", order_id)
            .is_("gateway_order_reference", "null")
            .execute()
        )
        return _first(res)
    except Exception as e:
        logger.exception("orders.repository.set_gateway_reference failed id=%s", order_id)
        raise DataStoreError("Could not save the payment reference") from e

def delete_order(order_id: str) -> bool:
    """Suppression compensatoire (création interrompue). Ne lève jamais: on journalise."""
    try:
        supabase_client.get_service_supabase().table(TABLE).delete().eq("id", order_id).execute()
        return True
    except Exception:
        logger.exception("orders.repository.delete_order failed id=%s", order_id)
        return False

def get_order(order_id: str) -> Optional[dict]:
    """Lecture sans filtre de propriété (staff, réconciliation)."""
    if not order_id:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .select("*")
            .eq("id", order_id)
            .limit(1)
            .execute()
        )
        return _first(res)
    except Exception as e:
        logger.exception("orders.repository.get_order failed id=%s", order_id)
        raise DataStoreError("Could not read the order") from e

def get_order_for_customer(order_id: str, customer_id: str, user_token: str) -> Optional[dict]:
    """
    Lecture côté client: client Supabase authentifié (RLS) + filtre explicite sur customer_id.
    Une commande d'un autre client est indiscernable d'une commande inexistante (None).
    """
    if not order_id or not customer_id:
        return None
    try:
        res = (
            supabase_client.get_user_supabase(user_token)
            .table(TABLE)
            .select("*")
            .eq("id", order_id)
            .eq("customer_id", customer_id)
            .limit(1)
            .execute()
        )
        return _first(res)
    except Exception as e:
        logger.exception("orders.repository.get_order_for_customer failed id=%s", order_id)
        raise DataStoreError("Could not read the order") from e

def get_order_by_gateway_reference(gateway_order_reference: str) -> Optional[dict]:
    if not gateway_order_reference:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .select("*")
            .eq("gateway_order_reference", gateway_order_reference)
            .limit(1)
            .execute()
        )
        return _first(res)
    except Exception as e:
        logger.exception("orders.repository.get_order_by_gateway_reference failed ref=%s", gateway_order_reference)
        raise DataStoreError("Could not read the order") from e

def compare_and_set_status(order_id: str, expected_status: str, changes: Dict[str, Any]) -> Optional[dict]:
    """
    UPDATE orders SET ... WHERE id = :id AND status = :expected.
    Retourne la ligne mise à jour, ou None si le statut a changé entre-temps.
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .update(changes)
            .eq("id", order_id)
            .eq("status", expected_status)
            .execute()
        )
        return _first(res)
    except Exception as e:
        logger.exception("orders.repository.compare_and_set_status failed id=%s expected=%s", order_id, expected_status)
        raise DataStoreError("Could not update the order") from e

def list_orders(limit: int = 100) -> List[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .select("*")
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
    except Exception as e:
        logger.exception("orders.repository.list_orders failed")
        raise DataStoreError("Could not list orders") from e

def list_customer_orders(customer_id: str, user_token: str, limit: int = 50) -> List[dict]:
    if not customer_id:
        return []
    try:
        res = (
            supabase_client.get_user_supabase(user_token)
            .table(TABLE)
            .select("*")
            .eq("customer_id", customer_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
    except Exception as e:
        logger.exception("orders.repository.list_customer_orders failed customer_id=%s", customer_id)
        raise DataStoreError("Could not list orders") from e
