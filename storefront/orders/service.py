"""Couche service des commandes (hors création et réconciliation).
Rôles:
- Lecture: historique et détail pour l'utilisateur propriétaire, recherche par référence de paiement.
- Annulation explicite (utilisateur: commande 'pending' uniquement; admin: jusqu'à 'processing').
- Transitions admin de préparation/expédition et remboursement.
'confirmed' ne s'atteint que par la réconciliation d'un paiement vérifié.
"""
from typing import Dict, List, Optional
import logging

from storefront.errors import InvalidTransition, NotFound
from storefront.inventory import repository as inventory_repository
from . import repository
from .models import Order, OrderStatus, PaymentStatus

logger = logging.getLogger(__name__)

FULFILMENT_FLOW: Dict[OrderStatus, OrderStatus] = {
    OrderStatus.CONFIRMED: OrderStatus.PROCESSING,
    OrderStatus.PROCESSING: OrderStatus.SHIPPED,
    OrderStatus.SHIPPED: OrderStatus.DELIVERED,
}
ADMIN_CANCELLABLE = {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING}
REFUNDABLE = {OrderStatus.CANCELLED, OrderStatus.DELIVERED}

def get_order(order_id: str) -> Order:
    row = repository.get_order(order_id)
    if not row:
        raise NotFound(f"Commande {order_id} introuvable", order_id=order_id)
    return Order.from_row(row)

def get_user_order(order_id: str, user_id: str) -> Order:
    order = get_order(order_id)
    if order.user_id != str(user_id):
        raise NotFound(f"Commande {order_id} introuvable", order_id=order_id)
    return order

def get_user_order_by_reference(reference: str, user_id: str) -> Order:
    row = repository.get_order_by_reference(reference)
    if not row or str(row.get("user_id") or "") != str(user_id):
        raise NotFound("Aucune commande pour cette référence", reference=reference)
    return Order.from_row(row)

def list_user_orders(user_id: str, limit: int = 50) -> List[Order]:
    return [Order.from_row(r) for r in repository.list_user_orders(user_id, limit=limit)]

def list_orders(limit: int = 100, status: Optional[str] = None) -> List[Order]:
    return [Order.from_row(r) for r in repository.list_orders(limit=limit, status=status)]

def _set_status(order: Order, target: OrderStatus) -> Order:
    row = repository.update_order_if(order.id, {"status": target.value}, {"status": order.status.value})
    if not row:
        raise InvalidTransition("La commande a changé entre-temps, rechargez-la", order_id=order.id)
    logger.info("orders.service status order_id=%s %s -> %s", order.id, order.status.value, target.value)
    return Order.from_row(row)

def cancel_order(order_id: str, user_id: Optional[str] = None) -> Order:
    """Annule une commande. Avec user_id: annulation par le client, commande 'pending' uniquement."""
    order = get_user_order(order_id, user_id) if user_id is not None else get_order(order_id)
    allowed = {OrderStatus.PENDING} if user_id is not None else ADMIN_CANCELLABLE
    if order.status not in allowed:
        raise InvalidTransition(
            f"Impossible d'annuler une commande au statut {order.status.value}",
            order_id=order.id,
        )
    cancelled = _set_status(order, OrderStatus.CANCELLED)
    if cancelled.payment_status != PaymentStatus.PAID:
        released = inventory_repository.release_order_stock(cancelled.id)
        if released:
            logger.info("orders.service released stock order_id=%s lines=%s", cancelled.id, released)
    return cancelled

def advance_status(order_id: str, target: OrderStatus) -> Order:
    order = get_order(order_id)
    if target == OrderStatus.CANCELLED:
        return cancel_order(order_id)
    if FULFILMENT_FLOW.get(order.status) != target:
        raise InvalidTransition(
            f"Transition {order.status.value} -> {target.value} non autorisée",
            order_id=order.id,
        )
    return _set_status(order, target)

def refund_payment(order_id: str) -> Order:
    order = get_order(order_id)
    if order.payment_status != PaymentStatus.PAID or order.status not in REFUNDABLE:
        raise InvalidTransition(
            "Remboursement possible uniquement pour une commande payée annulée ou livrée",
            order_id=order.id,
        )
    row = repository.update_order_if(
        order.id,
        {"payment_status": PaymentStatus.REFUNDED.value},
        {"payment_status": PaymentStatus.PAID.value, "status": order.status.value},
    )
    if not row:
        raise InvalidTransition("La commande a changé entre-temps, rechargez-la", order_id=order.id)
    logger.info("orders.service refunded order_id=%s", order.id)
    return Order.from_row(row)
