"""
Persistance du panier dans la session signée (SessionMiddleware).
Le panier est une valeur explicite: chargé au début de la requête, sauvegardé à la fin.
"""
from fastapi import Request

from storefront.config import CART_SESSION_KEY
from .models import Cart

# module storefront.cart.storage
def load_cart(request: Request) -> Cart:
    return Cart.from_list(request.session.get(CART_SESSION_KEY))

def save_cart(request: Request, cart: Cart) -> None:
    if cart.is_empty():
        request.session.pop(CART_SESSION_KEY, None)
        return
    request.session[CART_SESSION_KEY] = cart.to_list()

def discard_cart(request: Request) -> None:
    """Abandonne le panier (paiement confirmé)."""
    request.session.pop(CART_SESSION_KEY, None)
