"""
Réconciliation commande/paiement à partir d'un résultat de vérification.

Machine à états indexée par (order_id, payment_reference):
- Verified   → décrémente le stock de chaque ligne (idempotent via le ledger), puis passe
               atomiquement la commande à {confirmed, paid} (update conditionnel sur pending).
- NotVerified→ payment_status = failed, status reste pending (l'annulation est une action explicite).
- TransportFailure → aucune transition, l'appelant réessaiera.
- Commande déjà réglée (paid/failed/refunded) → no-op, ALREADY_RECONCILED.

Ordre des effets: le stock d'abord, le statut ensuite. Un appel rejoué après un échec refait
les décrémentations (déjà appliquées = no-op) puis termine la transition.
Une ligne en rupture rend au stock tout ce que la commande avait déjà pris (release_order_stock).
Chaque écriture de statut re-vérifie l'état courant: une réponse tardive ne fait jamais
régresser un paiement « paid ».
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
import logging

from storefront.errors import InsufficientStock, InvalidReference, InvalidTransition, NotFound, ReferenceMismatch
from storefront.inventory import repository as inventory_repository
from storefront.orders import repository as orders_repository
from storefront.orders.models import Order, OrderStatus, PaymentStatus
from .verifier import NotVerified, TransportFailure, VerificationResult, Verified

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, Enum):
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    ALREADY_RECONCILED = "already_reconciled"
    RETRY_LATER = "retry_later"


@dataclass
class ReconciliationResult:
    outcome: ReconcileOutcome
    order: Order
    reason: Optional[str] = None
    decremented: List[str] = field(default_factory=list)


def _load(order_id: str) -> Order:
    row = orders_repository.get_order(order_id)
    if not row:
        raise NotFound(f"Commande {order_id} introuvable", order_id=order_id)
    return Order.from_row(row)

def _check_reference(order: Order, reference: str) -> None:
    if order.payment_reference and order.payment_reference != reference:
        logger.warning(
            "payments.reconciliation reference mismatch order_id=%s stored=%s received=%s",
            order.id, order.payment_reference, reference,
        )
        raise ReferenceMismatch(
            "Cette commande est liée à une autre référence de paiement",
            order_id=order.id,
        )

def _bind_reference(order: Order, reference: str) -> Order:
    """Enregistre la référence à la première vérification concluante (update conditionnel sur NULL)."""
    if order.payment_reference:
        return order
    row = orders_repository.attach_payment_reference(order.id, reference)
    if row:
        return Order.from_row(row)
    # Un autre appel a lié une référence entre-temps
    current = _load(order.id)
    _check_reference(current, reference)
    return current

def _already(order_id: str, note: str) -> ReconciliationResult:
    current = _load(order_id)
    logger.info("payments.reconciliation %s order_id=%s payment_status=%s", note, order_id, current.payment_status.value)
    return ReconciliationResult(ReconcileOutcome.ALREADY_RECONCILED, current, reason=current.payment_error)

def _reject(order: Order, reference: str, reason: str) -> ReconciliationResult:
    row = orders_repository.update_order_if(
        order.id,
        {"payment_status": PaymentStatus.FAILED.value, "payment_error": reason},
        {"payment_status": PaymentStatus.PENDING.value, "payment_reference": reference},
    )
    if not row:
        return _already(order.id, "stale rejection ignored")
    logger.info("payments.reconciliation rejected order_id=%s reference=%s reason=%s", order.id, reference, reason)
    return ReconciliationResult(ReconcileOutcome.REJECTED, Order.from_row(row), reason=reason)

def _mismatch_reason(order: Order, result: Verified) -> Optional[str]:
    if result.currency != order.currency.upper():
        return f"amount_mismatch: devise {result.currency} au lieu de {order.currency}"
    if result.amount != order.total:
        return f"amount_mismatch: payé {result.amount} au lieu de {order.total}"
    return None

def _apply_decrements(order: Order, reference: str) -> List[str]:
    applied: List[str] = []
    for line in order.line_items:
        try:
            done = inventory_repository.decrement_if_not_already(order.id, line.variant_id, line.quantity, reference)
        except InsufficientStock:
            released = inventory_repository.release_order_stock(order.id)
            logger.error(
                "payments.reconciliation paid but stock short order_id=%s variant_id=%s reference=%s released=%s",
                order.id, line.variant_id, reference, released,
            )
            raise
        if done:
            applied.append(line.variant_id)
    return applied

def _confirm(order: Order, reference: str, result: Verified) -> ReconciliationResult:
    applied = _apply_decrements(order, reference)
    row = orders_repository.update_order_if(
        order.id,
        {
            "status": OrderStatus.CONFIRMED.value,
            "payment_status": PaymentStatus.PAID.value,
            "paid_at": result.paid_at,
            "payment_error": None,
        },
        {
            "status": OrderStatus.PENDING.value,
            "payment_status": PaymentStatus.PENDING.value,
            "payment_reference": reference,
        },
    )
    if not row:
        current = _load(order.id)
        if current.payment_status != PaymentStatus.PAID and applied:
            logger.error(
                "payments.reconciliation stock decremented for unpaid order order_id=%s variants=%s payment_status=%s",
                order.id, applied, current.payment_status.value,
            )
        return ReconciliationResult(ReconcileOutcome.ALREADY_RECONCILED, current, reason=current.payment_error, decremented=applied)
    logger.info("payments.reconciliation confirmed order_id=%s reference=%s decremented=%s", order.id, reference, applied)
    return ReconciliationResult(ReconcileOutcome.CONFIRMED, Order.from_row(row), decremented=applied)

def reconcile(order_id: str, reference: str, result: VerificationResult) -> ReconciliationResult:
    reference = (reference or "").strip()
    if not reference:
        raise InvalidReference()
    order = _load(order_id)
    _check_reference(order, reference)

    if order.is_payment_settled:
        return ReconciliationResult(ReconcileOutcome.ALREADY_RECONCILED, order, reason=order.payment_error)

    if isinstance(result, TransportFailure):
        logger.info("payments.reconciliation retry later order_id=%s detail=%s", order_id, result.detail)
        return ReconciliationResult(ReconcileOutcome.RETRY_LATER, order, reason=result.detail)

    if isinstance(result, Verified) and order.status == OrderStatus.CANCELLED:
        logger.error("payments.reconciliation payment received for cancelled order order_id=%s reference=%s", order_id, reference)
        raise InvalidTransition("Commande annulée: paiement à rembourser manuellement", order_id=order_id)

    order = _bind_reference(order, reference)
    if order.is_payment_settled:
        return ReconciliationResult(ReconcileOutcome.ALREADY_RECONCILED, order, reason=order.payment_error)

    if isinstance(result, NotVerified):
        return _reject(order, reference, result.reason)

    reason = _mismatch_reason(order, result)
    if reason:
        logger.warning("payments.reconciliation %s order_id=%s reference=%s", reason, order_id, reference)
        return _reject(order, reference, reason)
    return _confirm(order, reference, result)
