"""
Erreurs métier du pipeline panier → commande → paiement.

Chaque erreur porte son code HTTP, un code stable pour le front et un drapeau
`retryable`. Le handler global (app_setup.exceptions) les sérialise en JSON.
"""
from typing import Any, Dict, Optional


class StorefrontError(Exception):
    status_code = 400
    code = "storefront_error"
    retryable = False

    def __init__(self, detail: str, **extra: Any):
        super().__init__(detail)
        self.detail = detail
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.detail, "code": self.code, "retryable": self.retryable, **self.extra}


class EmptyCart(StorefrontError):
    code = "empty_cart"

    def __init__(self, detail: str = "Panier vide"):
        super().__init__(detail)


class InvalidQuantity(StorefrontError):
    code = "invalid_quantity"


class NotFound(StorefrontError):
    status_code = 404
    code = "not_found"


class InsufficientStock(StorefrontError):
    status_code = 409
    code = "insufficient_stock"

    def __init__(self, variant_id: str, available: int):
        super().__init__(
            f"Stock insuffisant pour la variante {variant_id} (disponible: {available})",
            variant_id=variant_id,
            available=available,
        )
        self.variant_id = variant_id
        self.available = available


class PaymentTransportError(StorefrontError):
    """La passerelle n'a pas répondu (réseau, timeout, 5xx): on ne sait pas encore, réessayer."""
    status_code = 503
    code = "transport_failure"
    retryable = True


class GatewayRejected(StorefrontError):
    """Jugement définitif de la passerelle: paiement non abouti. Recommencer avec une nouvelle commande."""
    status_code = 402
    code = "gateway_rejected"

    def __init__(self, reason: str, order_id: Optional[str] = None):
        super().__init__(f"Paiement échoué: {reason}", reason=reason, order_id=order_id)
        self.reason = reason


class ReferenceMismatch(StorefrontError):
    status_code = 409
    code = "reference_mismatch"


class InvalidTransition(StorefrontError):
    status_code = 409
    code = "invalid_transition"


class InvalidSignature(StorefrontError):
    code = "invalid_signature"


class InvalidReference(StorefrontError):
    """Référence de paiement vide: aucune vérification n'est tentée, la commande reste intacte."""
    code = "invalid_reference"

    def __init__(self, detail: str = "Référence de paiement requise"):
        super().__init__(detail)
