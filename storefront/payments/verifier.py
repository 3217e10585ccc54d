"""
Adaptateur de vérification de paiement: appelle la fonction hébergée verify-paystack-payment.

La réponse (JSON peu typé) est validée à la frontière et normalisée en trois résultats:
- Verified(reference, amount, currency, paid_at): montant en unités mineures.
- NotVerified(reason): jugement définitif de la passerelle, jamais réessayé automatiquement.
- TransportFailure(detail): réseau, timeout, 5xx ou réponse illisible; réessayable.
Aucun effet de bord sur les commandes ou le stock: l'appel peut être répété sans risque.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union
import logging

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from storefront.config import (
    SUPABASE_URL,
    SUPABASE_ANON,
    VERIFY_PAYMENT_FUNCTION,
    PAYMENT_VERIFY_TIMEOUT_SECONDS,
)
from storefront.errors import InvalidReference
from storefront.inventory.models import to_minor_units

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Verified:
    reference: str
    amount: int
    currency: str
    paid_at: str


@dataclass(frozen=True)
class NotVerified:
    reason: str


@dataclass(frozen=True)
class TransportFailure:
    detail: str


VerificationResult = Union[Verified, NotVerified, TransportFailure]


class _VerificationData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: Decimal
    currency: str = Field(min_length=1)
    reference: str = Field(min_length=1)
    paid_at: datetime = Field(alias="paidAt")


class _VerificationResponse(BaseModel):
    success: bool
    data: Optional[_VerificationData] = None
    error: Optional[str] = None


# module storefront.payments.verifier
def function_url() -> str:
    return f"{SUPABASE_URL}/functions/v1/{VERIFY_PAYMENT_FUNCTION}"

def make_http_client() -> httpx.Client:
    """Client HTTP de la vérification; le timeout borne l'attente (dépassement = TransportFailure)."""
    return httpx.Client(
        timeout=PAYMENT_VERIFY_TIMEOUT_SECONDS,
        headers={
            "Authorization": f"Bearer {SUPABASE_ANON}",
            "apikey": SUPABASE_ANON,
            "Content-Type": "application/json",
        },
    )

def parse_response(status_code: int, payload: object, reference: str) -> VerificationResult:
    """
    Normalise une réponse de la fonction hébergée.
    - 200/400 portent le jugement de la passerelle ({success, data|error}).
    - Tout autre statut, ou un corps non conforme, reste « on ne sait pas » (TransportFailure).
    """
    if status_code >= 500 or status_code not in (200, 400):
        return TransportFailure(f"Réponse inattendue de la passerelle (HTTP {status_code})")
    try:
        body = _VerificationResponse.model_validate(payload)
    except ValidationError as e:
        return TransportFailure(f"Réponse de vérification invalide: {e.error_count()} erreur(s)")

    if not body.success:
        return NotVerified(body.error or "Vérification refusée")
    if body.data is None:
        return TransportFailure("Réponse de vérification sans données")
    if body.data.reference != reference:
        return TransportFailure(f"Référence inattendue dans la réponse ({body.data.reference})")
    return Verified(
        reference=body.data.reference,
        # la fonction renvoie des unités majeures (montant Paystack / 100)
        amount=to_minor_units(body.data.amount),
        currency=body.data.currency.upper(),
        paid_at=body.data.paid_at.isoformat(),
    )

def verify_payment(reference: str) -> VerificationResult:
    reference = (reference or "").strip()
    if not reference:
        raise InvalidReference()
    try:
        with make_http_client() as client:
            resp = client.post(function_url(), json={"reference": reference})
    except httpx.TimeoutException:
        logger.warning("payments.verifier timeout reference=%s", reference)
        return TransportFailure("Délai de vérification dépassé")
    except httpx.HTTPError as e:
        logger.warning("payments.verifier transport error reference=%s error=%s", reference, e)
        return TransportFailure(f"Erreur réseau: {e}")

    try:
        payload = resp.json()
    except ValueError:
        payload = None
    result = parse_response(resp.status_code, payload, reference)
    logger.info("payments.verifier reference=%s status=%s result=%s", reference, resp.status_code, type(result).__name__)
    return result
