"""
Construction d'une commande 'pending' à partir d'un panier validé.

Étapes:
1) Refuse un panier vide (EmptyCart).
2) Dernière vérification du stock réel de chaque ligne: une seule ligne insuffisante
   fait échouer tout le checkout (InsufficientStock), aucune commande n'est écrite.
3) Fige le prix unitaire du panier dans la commande (unit_price_at_order).
4) Applique la politique de prix et insère la commande {pending, pending}.
Le panier n'est jamais modifié ici: en cas d'échec il reste intact.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging
import secrets

from storefront.cart.models import Cart
from storefront.config import STORE_CURRENCY
from storefront.errors import EmptyCart, InsufficientStock
from storefront.inventory import repository as inventory_repository
from . import repository
from .models import Order, OrderLine, OrderStatus, PaymentStatus
from .pricing import PricingPolicy, default_pricing

logger = logging.getLogger(__name__)

ORDER_NUMBER_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

def generate_order_number(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    suffix = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(6))
    return f"GAM-{now:%Y%m%d}-{suffix}"

def check_live_stock(cart: Cart) -> None:
    for item in cart.items:
        live = inventory_repository.read_available(item.variant_id)
        available = live if live is not None else 0
        if available < item.quantity:
            logger.info(
                "orders.builder stock check failed variant_id=%s wanted=%s available=%s",
                item.variant_id, item.quantity, available,
            )
            raise InsufficientStock(item.variant_id, available)

def build_order(
    cart: Cart,
    user_id: str,
    shipping_address: Dict[str, Any],
    pricing: Optional[PricingPolicy] = None,
    currency: str = STORE_CURRENCY,
) -> Order:
    if cart is None or cart.is_empty():
        raise EmptyCart()

    check_live_stock(cart)

    lines = [
        OrderLine(
            variant_id=item.variant_id,
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price_at_order=item.unit_price,
        )
        for item in cart.items
    ]
    subtotal = sum(line.line_total for line in lines)
    prices = (pricing or default_pricing)(subtotal)

    row = repository.insert_order({
        "user_id": user_id,
        "order_number": generate_order_number(),
        "line_items": [line.to_dict() for line in lines],
        "subtotal": prices.subtotal,
        "shipping": prices.shipping,
        "tax": prices.tax,
        "total": prices.total,
        "currency": currency,
        "status": OrderStatus.PENDING.value,
        "payment_status": PaymentStatus.PENDING.value,
        "payment_reference": None,
        "shipping_address": dict(shipping_address or {}),
    })
    order = Order.from_row(row)
    logger.info("orders.builder created order_id=%s user_id=%s total=%s", order.id, user_id, order.total)
    return order
