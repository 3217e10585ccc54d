"""Endpoints checkout et commandes.
- /api/v1/checkout: construit une commande 'pending' depuis le panier de session (authentifié, rate-limité).
- /api/v1/orders: historique, détail, recherche par référence de paiement, annulation.
La confirmation du paiement est dans storefront.payments.views.
Le panier n'est jamais vidé ici: il ne l'est qu'une fois le paiement confirmé.
"""
from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from storefront.cart import storage as cart_storage
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import require_user
from . import builder
from . import service as orders_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["Orders API"])


class ShippingAddress(BaseModel):
    full_name: str = Field(min_length=1)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: str = Field(min_length=3)
    address_line1: str = Field(min_length=1)
    address_line2: Optional[str] = None
    city: str = Field(min_length=1)
    state: str = ""
    postal_code: str = ""
    country: str = Field(default="Kenya", min_length=1)


class CheckoutBody(BaseModel):
    shipping_address: ShippingAddress


# module storefront.orders.views
@router.post("/checkout", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def checkout(request: Request, body: CheckoutBody, user: Dict[str, Any] = Depends(require_user)):
    """checkout: panier de session → commande {pending, pending} au prix figé.
    Erreurs: 400 EmptyCart, 409 InsufficientStock (le panier reste intact).
    Retour: {order_id, order_number, total, currency, order} pour lancer le paiement.
    """
    cart = cart_storage.load_cart(request)
    order = builder.build_order(cart, str(user.get("id")), body.shipping_address.model_dump())
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "total": order.total,
        "currency": order.currency,
        "order": order.to_dict(),
    }

@router.get("/orders")
def list_my_orders(limit: int = 50, user: Dict[str, Any] = Depends(require_user)):
    orders = orders_service.list_user_orders(str(user.get("id")), limit=min(max(limit, 1), 200))
    return {"orders": [o.to_dict() for o in orders]}

@router.get("/orders/by-reference/{reference}")
def get_my_order_by_reference(reference: str, user: Dict[str, Any] = Depends(require_user)):
    return orders_service.get_user_order_by_reference(reference, str(user.get("id"))).to_dict()

@router.get("/orders/{order_id}")
def get_my_order(order_id: str, user: Dict[str, Any] = Depends(require_user)):
    return orders_service.get_user_order(order_id, str(user.get("id"))).to_dict()

@router.post("/orders/{order_id}/cancel")
def cancel_my_order(order_id: str, user: Dict[str, Any] = Depends(require_user)):
    """Annulation explicite par le client (commande encore 'pending')."""
    order = orders_service.cancel_order(order_id, user_id=str(user.get("id")))
    logger.info("orders.cancel order_id=%s user_id=%s", order_id, user.get("id"))
    return order.to_dict()
