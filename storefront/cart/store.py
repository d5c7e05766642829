"""
Logique panier pure (pas de Stripe, pas de DB).

Le panier vit dans la session du navigateur (cookie signé de SessionMiddleware):
- Cart.from_session / Cart.to_session assurent la (dé)sérialisation.
- Une ligne par produit (product_ref unique); add() incrémente la quantité existante.
- Le prix unitaire est figé au moment de l'ajout; il n'est pas revalidé avant la commande.
- Au plus MAX_CART_LINES produits distincts, et une taille sérialisée bornée par
  SESSION_MAX_BYTES: au-delà, le cookie dépasse 4 Ko et le navigateur le rejette.
"""
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterator, List, Optional, Tuple
import json
import logging

from storefront.errors import ValidationError

logger = logging.getLogger(__name__)

SESSION_KEY = "cart"
CENTS = Decimal("0.01")
MAX_CART_LINES = 20
# JSON du panier dans la session, avant base64 et signature (cookie final < 4096 octets)
SESSION_MAX_BYTES = 2800

# module storefront.cart.store
def to_money(value: Any) -> Decimal:
    """Convertit str|int|float|Decimal en Decimal arrondi au centime."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}", field="unit_price")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}", field="unit_price")
    return amount.quantize(CENTS)


@dataclass(frozen=True)
class CartLine:
    product_ref: str
    unit_price: Decimal
    quantity: int
    title: str = ""
    is_kit: bool = False

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price * self.quantity).quantize(CENTS)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "product_ref": self.product_ref,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
            "title": self.title,
            "is_kit": self.is_kit,
        }


class Cart:
    """Sélection en cours de la session active."""

    def __init__(self, lines: Optional[List[CartLine]] = None):
        self._lines: List[CartLine] = []
        for line in lines or []:
            self.add(line.product_ref, line.unit_price, line.quantity, title=line.title, is_kit=line.is_kit)

    def __iter__(self) -> Iterator[CartLine]:
        return iter(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def lines(self) -> Tuple[CartLine, ...]:
        return tuple(self._lines)

    def is_empty(self) -> bool:
        return not self._lines

    def _index(self, product_ref: str) -> Optional[int]:
        for i, line in enumerate(self._lines):
            if line.product_ref == product_ref:
                return i
        return None

    def get(self, product_ref: str) -> Optional[CartLine]:
        idx = self._index(product_ref)
        return self._lines[idx] if idx is not None else None

    def add(self, product_ref: str, unit_price: Any, qty: int = 1, *, title: str = "", is_kit: bool = False) -> CartLine:
        product_ref = str(product_ref or "").strip()
        if not product_ref:
            raise ValidationError("Product reference is required", field="product_ref")
        if int(qty) <= 0:
            raise ValidationError("Quantity must be at least 1", field="quantity")
        price = to_money(unit_price)
        if price < 0:
            raise ValidationError("Unit price cannot be negative", field="unit_price")

        idx = self._index(product_ref)
        if idx is None:
            if len(self._lines) >= MAX_CART_LINES:
                raise ValidationError(f"Your cart can hold at most {MAX_CART_LINES} different products", field="cart")
            line = CartLine(product_ref, price, int(qty), title=title, is_kit=is_kit)
            self._lines.append(line)
            return line
        # Même produit: on garde le prix figé au premier ajout
        line = replace(self._lines[idx], quantity=self._lines[idx].quantity + int(qty))
        self._lines[idx] = line
        return line

    def set_quantity(self, product_ref: str, qty: int) -> Optional[CartLine]:
        if int(qty) <= 0:
            self.remove(product_ref)
            return None
        idx = self._index(product_ref)
        if idx is None:
            raise ValidationError(f"Product {product_ref} is not in the cart", field="product_ref")
        line = replace(self._lines[idx], quantity=int(qty))
        self._lines[idx] = line
        return line

    def remove(self, product_ref: str) -> None:
        idx = self._index(product_ref)
        if idx is not None:
            del self._lines[idx]

    def clear(self) -> None:
        self._lines = []

    def total(self) -> Decimal:
        return sum((line.line_total for line in self._lines), Decimal("0.00")).quantize(CENTS)

    subtotal = total

    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines)

    def has_kit(self) -> bool:
        return any(line.is_kit for line in self._lines)

    def snapshot(self) -> Tuple[CartLine, ...]:
        """Copie immuable du panier, utilisée pour créer la commande."""
        return tuple(self._lines)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "items": [line.as_dict() for line in self._lines],
            "item_count": self.item_count(),
            "total": str(self.total()),
        }

    # --- Session ---

    def to_session(self) -> List[Dict[str, Any]]:
        return [line.as_dict() for line in self._lines]

    def session_size(self) -> int:
        """Taille du panier tel que SessionMiddleware le sérialise (json.dumps par défaut)."""
        return len(json.dumps({SESSION_KEY: self.to_session()}))

    def fits_in_session(self) -> bool:
        return self.session_size() <= SESSION_MAX_BYTES

    @classmethod
    def from_session(cls, payload: Any) -> "Cart":
        """Reconstruit le panier depuis la session; un contenu corrompu donne un panier vide."""
        cart = cls()
        if not payload:
            return cart
        try:
            for raw in payload:
                cart.add(
                    raw["product_ref"],
                    raw["unit_price"],
                    int(raw["quantity"]),
                    title=raw.get("title") or "",
                    is_kit=bool(raw.get("is_kit")),
                )
        except (KeyError, TypeError, ValueError, ValidationError):
            logger.warning("cart.store.from_session: payload de session invalide, panier réinitialisé")
            return cls()
        return cart


def cart_total(lines) -> Decimal:
    return sum((line.line_total for line in lines), Decimal("0.00")).quantize(CENTS)
