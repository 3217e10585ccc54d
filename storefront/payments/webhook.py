"""
Webhook Paystack: lecture du body brut et validation de la signature x-paystack-signature
(HMAC-SHA512 du body avec PAYSTACK_SECRET_KEY).
"""
import hashlib
import hmac
import json
from typing import Any, Dict

from fastapi import Request

from storefront.config import PAYSTACK_SECRET_KEY
from storefront.errors import InvalidSignature

SIGNATURE_HEADER = "x-paystack-signature"

# module storefront.payments.webhook
def sign(payload: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha512).hexdigest()

def verify_signature(payload: bytes, signature: str, secret: str = "") -> None:
    secret = secret or PAYSTACK_SECRET_KEY
    if not secret:
        raise InvalidSignature("PAYSTACK_SECRET_KEY manquant: webhook refusé")
    if not signature or not hmac.compare_digest(sign(payload, secret), signature.strip()):
        raise InvalidSignature("Signature webhook invalide")

async def parse_event(request: Request) -> Dict[str, Any]:
    """
    Parse et valide un événement Paystack signé.
    - Lit le body brut + en-tête x-paystack-signature
    - Retour: l'événement (dict) si la signature est valide
    """
    payload = await request.body()
    verify_signature(payload, request.headers.get(SIGNATURE_HEADER) or "")
    try:
        event = json.loads(payload.decode("utf-8"))
    except ValueError:
        raise InvalidSignature("Payload webhook illisible")
    if not isinstance(event, dict):
        raise InvalidSignature("Payload webhook illisible")
    return event
