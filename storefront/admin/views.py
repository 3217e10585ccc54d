"""Endpoints admin du parcours commande/paiement.
- Listing et détail des commandes (filtre optionnel par statut).
- Transitions de préparation: confirmed → processing → shipped → delivered, ou annulation.
- Remboursement d'une commande payée annulée ou livrée.
Sécurité: require_admin sur toutes les routes.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from storefront.orders import service as orders_service
from storefront.orders.models import OrderStatus
from storefront.utils.security import require_admin

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


class StatusBody(BaseModel):
    status: OrderStatus


@router.get("/orders")
def admin_list_orders(limit: int = 100, status: Optional[OrderStatus] = None):
    orders = orders_service.list_orders(limit=min(max(limit, 1), 500), status=status.value if status else None)
    return {"orders": [o.to_dict() for o in orders]}

@router.get("/orders/{order_id}")
def admin_get_order(order_id: str):
    return orders_service.get_order(order_id).to_dict()

@router.patch("/orders/{order_id}/status")
def admin_update_status(order_id: str, body: StatusBody, admin: Dict[str, Any] = Depends(require_admin)):
    order = orders_service.advance_status(order_id, body.status)
    logger.info("admin.orders status order_id=%s status=%s admin=%s", order_id, order.status.value, admin.get("id"))
    return order.to_dict()

@router.post("/orders/{order_id}/refund")
def admin_refund(order_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    order = orders_service.refund_payment(order_id)
    logger.info("admin.orders refund order_id=%s admin=%s", order_id, admin.get("id"))
    return order.to_dict()
