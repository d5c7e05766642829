"""
Règles de prix du catalogue.
- effective_price: prix après remise (plate ou pourcentage) si l'offre n'a pas expiré.
- is_kit: un kit a un contenu ou des étapes de montage; les kits sont livrés gratuitement.
- is_available: les composants portent un stock_status; les kits sont toujours disponibles.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from storefront.cart.store import CENTS, to_money


def _parse_date(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def effective_price(product: Dict[str, Any], now: Optional[datetime] = None) -> Decimal:
    price = to_money(product.get("price") or 0)
    if not product.get("on_offer"):
        return price

    now = now or datetime.now(timezone.utc)
    expiry = _parse_date(product.get("discount_expiry_date"))
    if expiry and expiry < now:
        return price

    value = to_money(product.get("discount_value") or 0)
    if product.get("discount_type") == "percentage":
        discounted = price - (price * value / Decimal(100))
    else:
        discounted = price - value
    return max(discounted, Decimal("0")).quantize(CENTS)


def is_kit(product: Dict[str, Any]) -> bool:
    contents = product.get("kit_contents") or []
    steps = (product.get("assembly_steps") or "").strip()
    return bool(contents) or bool(steps)


def is_available(product: Dict[str, Any]) -> bool:
    # Seuls les composants ont un stock_status explicite
    if "stock_status" in product:
        return bool(product.get("stock_status"))
    return True


def display_title(product: Dict[str, Any]) -> str:
    return product.get("title") or product.get("name") or "Item"
