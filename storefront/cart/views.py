"""
API panier (/api/v1/cart).

Le panier est lu et réécrit dans request.session à chaque appel; il n'existe aucun état global.
Le prix et le titre viennent toujours du catalogue côté serveur, jamais du client.
"""
from typing import Any, Dict
import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from storefront.catalog import pricing
from storefront.catalog import repository as catalog_repo
from storefront.errors import NotFoundError, ValidationError

from .store import Cart, SESSION_KEY

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/cart", tags=["Cart API"])


class AddItemRequest(BaseModel):
    product_ref: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1, le=99)


class SetQuantityRequest(BaseModel):
    quantity: int = Field(le=99)


def get_cart(request: Request) -> Cart:
    return Cart.from_session(request.session.get(SESSION_KEY))


def save_cart(request: Request, cart: Cart) -> None:
    """Réécrit le panier en session; refuse (422) plutôt que de produire un cookie que le navigateur ignorerait."""
    if not cart.fits_in_session():
        logger.warning("cart.views.save_cart: panier trop volumineux lines=%s bytes=%s", len(cart), cart.session_size())
        raise ValidationError("Your cart is full. Remove an item before adding another one", field="cart")
    request.session[SESSION_KEY] = cart.to_session()


# module storefront.cart.views
@router.get("")
def view_cart(request: Request) -> Dict[str, Any]:
    return get_cart(request).as_dict()


@router.post("/items", status_code=201)
def add_item(body: AddItemRequest, request: Request) -> Dict[str, Any]:
    """
    Ajoute un produit (kit ou composant) au panier.
    - Prix effectif (remise en cours comprise) figé au moment de l'ajout
    - 404 si le produit n'existe pas, 422 s'il est en rupture
    """
    product = catalog_repo.get_product(body.product_ref)
    if not product:
        raise NotFoundError("Product not found")
    if not pricing.is_available(product):
        raise ValidationError(f"{pricing.display_title(product)} is out of stock", field="product_ref")

    cart = get_cart(request)
    cart.add(
        body.product_ref,
        pricing.effective_price(product),
        body.quantity,
        title=pricing.display_title(product),
        is_kit=pricing.is_kit(product),
    )
    save_cart(request, cart)
    return cart.as_dict()


@router.patch("/items/{product_ref}")
def update_item(product_ref: str, body: SetQuantityRequest, request: Request) -> Dict[str, Any]:
    cart = get_cart(request)
    cart.set_quantity(product_ref, body.quantity)
    save_cart(request, cart)
    return cart.as_dict()


@router.delete("/items/{product_ref}")
def remove_item(product_ref: str, request: Request) -> Dict[str, Any]:
    cart = get_cart(request)
    cart.remove(product_ref)
    save_cart(request, cart)
    return cart.as_dict()


@router.delete("")
def clear_cart(request: Request) -> Dict[str, Any]:
    cart = get_cart(request)
    cart.clear()
    save_cart(request, cart)
    return cart.as_dict()
