import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from storefront.cart import storage as cart_storage
from storefront.orders.models import PaymentStatus
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import require_user
from . import service as payments_service
from . import webhook

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["Payments API"])


class ConfirmBody(BaseModel):
    reference: str = Field(min_length=1, pattern=r"^\s*\S[\s\S]*$")


# module storefront.payments.views
@router.post("/orders/{order_id}/confirm", dependencies=[Depends(optional_rate_limit(times=20, seconds=60))])
def confirm_order(order_id: str, body: ConfirmBody, request: Request, user: Dict[str, Any] = Depends(require_user)):
    """
    confirmOrder(reference): retour de la passerelle avec une référence de paiement.
    - Vérifie la référence auprès de la passerelle puis réconcilie la commande.
    - Idempotent: rappels multiples (rechargement de page, double callback) sans double effet.
    - Paiement confirmé: le panier de session est abandonné.
    - Erreurs: 402 gateway_rejected (recommencer avec une nouvelle commande),
      503 transport_failure (réessayer la vérification), 404, 409.
    """
    res = payments_service.confirm_order(order_id, body.reference, str(user.get("id")))
    if res.order.payment_status == PaymentStatus.PAID:
        cart_storage.discard_cart(request)
    return {"outcome": res.outcome.value, "order": res.order.to_dict()}

@router.post("/payments/webhook", include_in_schema=False)
async def gateway_webhook(request: Request):
    """
    Webhook Paystack (charge.success): re-vérifie la référence puis réconcilie.
    - Signature: HMAC-SHA512 (x-paystack-signature); 400 si invalide
    - Réponses: {"status": "ok", "outcome": ...} ou {"status": "ignored"}
    - 503 si la vérification est indisponible (la passerelle re-livrera l'événement)
    """
    event = await webhook.parse_event(request)
    result = await run_in_threadpool(payments_service.handle_gateway_event, event)
    logger.info("payments.webhook event=%s result=%s", event.get("event"), result.get("status"))
    return result
