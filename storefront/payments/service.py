"""
Cas d'usage 'payments': confirmation d'une commande après retour de la passerelle.
Orchestre verifier (requête pure vers la passerelle) et reconciliation (transitions).
"""
from typing import Any, Dict, Optional
import logging

from storefront.errors import GatewayRejected, InvalidReference, NotFound, PaymentTransportError
from storefront.orders import repository as orders_repository
from storefront.orders.models import Order, PaymentStatus
from . import reconciliation
from . import verifier
from .reconciliation import ReconcileOutcome, ReconciliationResult

logger = logging.getLogger(__name__)

def _raise_for_outcome(res: ReconciliationResult) -> ReconciliationResult:
    if res.outcome == ReconcileOutcome.RETRY_LATER:
        raise PaymentTransportError(
            f"Vérification indisponible, réessayez plus tard ({res.reason})",
            order_id=res.order.id,
        )
    if res.outcome == ReconcileOutcome.REJECTED or res.order.payment_status == PaymentStatus.FAILED:
        raise GatewayRejected(res.reason or res.order.payment_error or "paiement refusé", order_id=res.order.id)
    return res

def _owned_order(order_id: str, user_id: str) -> Order:
    row = orders_repository.get_order(order_id)
    if not row or str(row.get("user_id") or "") != str(user_id):
        raise NotFound(f"Commande {order_id} introuvable", order_id=order_id)
    return Order.from_row(row)

def confirm_order(order_id: str, reference: str, user_id: str) -> ReconciliationResult:
    """
    confirmOrder(reference) pour l'utilisateur propriétaire de la commande.
    - Commande déjà réglée avec cette référence: aucun appel passerelle, no-op.
    - Sinon: vérifie auprès de la passerelle puis réconcilie.
    Erreurs: NotFound, ReferenceMismatch, PaymentTransportError (réessayable),
    GatewayRejected (définitif), InsufficientStock (paiement vérifié mais stock épuisé).
    """
    reference = (reference or "").strip()
    if not reference:
        raise InvalidReference()
    order = _owned_order(order_id, user_id)
    if order.is_payment_settled and order.payment_reference == reference:
        return _raise_for_outcome(
            ReconciliationResult(ReconcileOutcome.ALREADY_RECONCILED, order, reason=order.payment_error)
        )

    result = verifier.verify_payment(reference)
    res = reconciliation.reconcile(order.id, reference, result)
    logger.info("payments.confirm order_id=%s user_id=%s outcome=%s", order.id, user_id, res.outcome.value)
    return _raise_for_outcome(res)

def handle_gateway_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Traite un événement webhook de la passerelle.
    - Seul charge.success est consommé; la commande est retrouvée via metadata.order_id
      (ou, à défaut, via la référence déjà liée).
    - Le contenu de l'événement n'est pas cru sur parole: la référence est re-vérifiée.
    - TransportFailure: PaymentTransportError, le webhook répond 503 et sera re-livré.
    """
    if (event or {}).get("event") != "charge.success":
        return {"status": "ignored"}
    data = event.get("data") or {}
    reference = str(data.get("reference") or "").strip()
    metadata = data.get("metadata") or {}
    order_id: Optional[str] = str(metadata.get("order_id") or "") if isinstance(metadata, dict) else ""
    if not reference:
        return {"status": "ignored"}
    if not order_id:
        row = orders_repository.get_order_by_reference(reference)
        order_id = str(row.get("id")) if row else ""
    if not order_id:
        logger.warning("payments.webhook unknown order reference=%s", reference)
        return {"status": "ignored"}

    result = verifier.verify_payment(reference)
    res = reconciliation.reconcile(order_id, reference, result)
    if res.outcome == ReconcileOutcome.RETRY_LATER:
        raise PaymentTransportError(f"Vérification indisponible ({res.reason})", order_id=order_id)
    logger.info("payments.webhook order_id=%s reference=%s outcome=%s", order_id, reference, res.outcome.value)
    return {"status": "ok", "outcome": res.outcome.value, "order_id": order_id}
