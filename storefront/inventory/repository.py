"""
Accès aux données pour la feature 'inventory' (stock des variantes).

Contrat de cohérence:
- read_available: lecture ponctuelle, sans verrou (dernière vérification du checkout).
- decrement_if_not_already: au plus une décrémentation effective par (order_id, variant_id),
  même sous appels concurrents ou répétés. Délégué à la fonction SQL
  decrement_variant_stock_once (insert du ledger ON CONFLICT DO NOTHING + update
  conditionnel stock >= quantity, dans la même transaction). Échoue fermé: jamais de stock négatif.
"""
from typing import Any, Dict, Optional
import logging

from postgrest.exceptions import APIError

import storefront.infra.supabase_client as supabase_client
from storefront.errors import InsufficientStock

logger = logging.getLogger(__name__)

VARIANT_COLUMNS = "id, product_id, stock, price_adjustment, is_active, products(id, name, price, is_active)"
INSUFFICIENT_STOCK_MARKER = "insufficient_stock"

# module storefront.inventory.repository
def fetch_variant(variant_id: str) -> Optional[Dict[str, Any]]:
    """
    Récupère une variante avec le prix de son produit (table 'product_variants').
    - Retourne None si introuvable ou en cas d'erreur.
    """
    if not variant_id:
        return None
    try:
        res = (
            supabase_client.get_supabase()
            .table("product_variants")
            .select(VARIANT_COLUMNS)
            .eq("id", str(variant_id))
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("inventory.repository.fetch_variant failed variant_id=%s", variant_id)
        return None

def read_available(variant_id: str) -> Optional[int]:
    """
    Stock courant d'une variante (None si la variante n'existe pas).
    Les erreurs de lecture remontent: le checkout ne doit pas valider sur une lecture ratée.
    """
    try:
        res = (
            supabase_client.get_supabase()
            .table("product_variants")
            .select("stock")
            .eq("id", str(variant_id))
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("inventory.repository.read_available failed variant_id=%s", variant_id)
        raise
    rows = res.data or []
    if not rows:
        return None
    return max(int(rows[0].get("stock") or 0), 0)

def decrement_if_not_already(order_id: str, variant_id: str, quantity: int, payment_reference: str = "") -> bool:
    """
    Décrémente le stock une seule fois pour (order_id, variant_id).
    Retour: True si la décrémentation a été appliquée, False si déjà appliquée (ledger).
    Lève InsufficientStock si le stock réel ne couvre pas la quantité (rien n'est écrit).
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .rpc(
                "decrement_variant_stock_once",
                {
                    "p_order_id": str(order_id),
                    "p_variant_id": str(variant_id),
                    "p_reference": payment_reference or "",
                    "p_quantity": int(quantity),
                },
            )
            .execute()
        )
    except APIError as e:
        if INSUFFICIENT_STOCK_MARKER in str(getattr(e, "message", "") or e):
            available = read_available(variant_id) or 0
            logger.warning(
                "inventory.repository.decrement_if_not_already insufficient order_id=%s variant_id=%s wanted=%s available=%s",
                order_id, variant_id, quantity, available,
            )
            raise InsufficientStock(str(variant_id), available)
        logger.exception("inventory.repository.decrement_if_not_already failed order_id=%s variant_id=%s", order_id, variant_id)
        raise
    data = res.data
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict):
        data = data.get("applied", data.get("decrement_variant_stock_once"))
    return bool(data)

def release_order_stock(order_id: str) -> int:
    """
    Rend au stock les décrémentations du ledger d'une commande non payée, puis efface ces lignes.
    Fonction SQL release_order_stock: no-op (0) si la commande est déjà payée.
    Retour: nombre de lignes du ledger libérées.
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .rpc("release_order_stock", {"p_order_id": str(order_id)})
            .execute()
        )
    except Exception:
        logger.exception("inventory.repository.release_order_stock failed order_id=%s", order_id)
        raise
    data = res.data
    if isinstance(data, list):
        data = data[0] if data else 0
    if isinstance(data, dict):
        data = data.get("released", data.get("release_order_stock", 0))
    return int(data or 0)
