"""Endpoints panier (addToCart et gestion des lignes).
- Le panier vit dans la session signée; chaque requête le recharge puis le sauvegarde.
- Le prix unitaire et le stock viennent du catalogue au moment de l'ajout (jamais du client).
- Un ajout plafonné par le stock n'est pas une erreur: la réponse porte stock_limited + notice.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from storefront.errors import NotFound
from storefront.inventory import repository as inventory_repository
from storefront.inventory.models import VariantSnapshot
from .models import Cart, CartChange
from . import storage

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/cart", tags=["Cart API"])


class AddItemBody(BaseModel):
    variant_id: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)


class UpdateQuantityBody(BaseModel):
    quantity: int


def cart_payload(cart: Cart, change: Optional[CartChange] = None) -> Dict[str, Any]:
    totals = cart.totals()
    payload: Dict[str, Any] = {
        "items": cart.to_list(),
        "subtotal": totals.subtotal,
        "item_count": totals.item_count,
    }
    if change is not None:
        payload["stock_limited"] = change.stock_limited
        payload["notice"] = change.notice
    return payload

def _snapshot(variant_id: str) -> VariantSnapshot:
    snap = VariantSnapshot.from_row(inventory_repository.fetch_variant(variant_id) or {})
    if snap is None or not snap.is_active:
        raise NotFound(f"Variante {variant_id} introuvable", variant_id=variant_id)
    return snap

# module storefront.cart.views
@router.get("")
def get_cart(request: Request):
    return cart_payload(storage.load_cart(request))

@router.post("/items")
def add_to_cart(request: Request, body: AddItemBody):
    """addToCart: fusionne la variante dans le panier, plafonnée au stock live."""
    snap = _snapshot(body.variant_id)
    cart = storage.load_cart(request)
    change = cart.add_item(
        snap.variant_id,
        body.quantity,
        unit_price=snap.unit_price,
        available_stock=snap.stock,
        product_id=snap.product_id,
    )
    storage.save_cart(request, cart)
    if change.stock_limited:
        logger.info("cart.add stock limited variant_id=%s requested=%s final=%s", snap.variant_id, body.quantity, change.quantity)
    return cart_payload(cart, change)

@router.patch("/items/{variant_id}")
def update_cart_item(request: Request, variant_id: str, body: UpdateQuantityBody):
    cart = storage.load_cart(request)
    live_stock = None
    if body.quantity > 0 and cart.get(variant_id) is not None:
        snap = VariantSnapshot.from_row(inventory_repository.fetch_variant(variant_id) or {})
        live_stock = snap.stock if snap else 0
    change = cart.update_quantity(variant_id, body.quantity, available_stock=live_stock)
    storage.save_cart(request, cart)
    return cart_payload(cart, change)

@router.delete("/items/{variant_id}")
def remove_cart_item(request: Request, variant_id: str):
    cart = storage.load_cart(request)
    cart.remove_item(variant_id)
    storage.save_cart(request, cart)
    return cart_payload(cart)

@router.delete("")
def clear_cart(request: Request):
    storage.discard_cart(request)
    return cart_payload(Cart())
