"""
Accès aux données du catalogue (tables 'products' et 'components').
Lecture seule: la boutique ne modifie jamais le catalogue depuis le panier ou la commande.
"""
from typing import Any, Dict, Iterable, List, Optional
import logging

import storefront.infra.supabase_client as supabase_client
from storefront.errors import DataStoreError

logger = logging.getLogger(__name__)

PRODUCT_TABLES = ("products", "components")

# module storefront.catalog.repository
def fetch_products_by_refs(refs: List[str]) -> List[dict]:
    """
    Récupère kits ('products') et composants ('components') par leurs IDs.
    - Retourne [] si refs vide.
    - Lève DataStoreError si la base est injoignable (la commande ne doit pas partir à l'aveugle).
    """
    if not refs:
        return []
    rows: List[dict] = []
    try:
        for table in PRODUCT_TABLES:
            res = (
                supabase_client.get_supabase()
                .table(table)
                .select("*")
                .in_("id", [str(r) for r in refs])
                .execute()
            )
            for row in res.data or []:
                rows.append({**row, "_table": table})
        return rows
    except Exception as e:
        logger.exception("catalog.repository.fetch_products_by_refs failed refs=%s", refs)
        raise DataStoreError("Catalog is unavailable") from e

def get_products_map(refs: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Retourne un dict {id: produit}."""
    return {str(p.get("id")): p for p in fetch_products_by_refs(list(refs))}

def get_product(ref: str) -> Optional[dict]:
    if not ref:
        return None
    return get_products_map([ref]).get(str(ref))
