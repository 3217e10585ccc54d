"""
Politique de prix appliquée au sous-total d'une commande (unités mineures).
Remplaçable: build_order accepte n'importe quel callable (subtotal) -> Pricing.
"""
from dataclasses import dataclass
from typing import Callable

from storefront.config import FREE_SHIPPING_THRESHOLD, SHIPPING_FLAT_FEE, TAX_RATE


@dataclass(frozen=True)
class Pricing:
    subtotal: int
    shipping: int
    tax: int

    @property
    def total(self) -> int:
        return self.subtotal + self.shipping + self.tax


PricingPolicy = Callable[[int], Pricing]

def default_pricing(subtotal: int) -> Pricing:
    """Livraison offerte au-delà du seuil, forfait sinon; TVA arrondie à l'unité mineure."""
    if subtotal <= 0:
        return Pricing(subtotal=0, shipping=0, tax=0)
    shipping = 0 if subtotal >= FREE_SHIPPING_THRESHOLD else SHIPPING_FLAT_FEE
    tax = int(round(subtotal * TAX_RATE))
    return Pricing(subtotal=subtotal, shipping=shipping, tax=tax)

def no_charges(subtotal: int) -> Pricing:
    return Pricing(subtotal=subtotal, shipping=0, tax=0)
