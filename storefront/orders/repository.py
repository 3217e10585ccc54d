"""
Accès aux données pour la feature 'orders' (table 'orders').

- Les lignes de commande sont stockées en JSONB dans la commande: la création est un insert
  d'une seule ligne, donc tout-ou-rien.
- Toute mutation après création passe par update_order_if: update conditionnel
  (compare-and-set sur les colonnes attendues). None = condition non remplie (état déjà changé).
- Écritures via le client service-role (réconciliation/webhook/admin hors RLS).
"""
from typing import Any, Dict, List, Optional
import logging

import storefront.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

# module storefront.orders.repository
def _first(res) -> Optional[Dict[str, Any]]:
    rows = getattr(res, "data", None) or []
    if isinstance(rows, dict):
        return rows
    return rows[0] if rows else None

def insert_order(row: Dict[str, Any]) -> Dict[str, Any]:
    """Insère une commande et retourne la ligne créée. Les erreurs remontent (aucune commande partielle)."""
    try:
        res = supabase_client.get_service_supabase().table("orders").insert(row).execute()
    except Exception:
        logger.exception("orders.repository.insert_order failed user_id=%s", row.get("user_id"))
        raise
    created = _first(res)
    if not created:
        raise RuntimeError("Insertion de la commande sans retour")
    return created

def get_order(order_id: str) -> Optional[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select("*")
            .eq("id", str(order_id))
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.get_order failed order_id=%s", order_id)
        raise
    return _first(res)

def get_order_by_reference(reference: str) -> Optional[Dict[str, Any]]:
    if not reference:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select("*")
            .eq("payment_reference", reference)
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.get_order_by_reference failed reference=%s", reference)
        raise
    return _first(res)

def list_user_orders(user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
    """Commandes d'un utilisateur, plus récentes d'abord. Retourne [] en cas d'erreur."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("orders.repository.list_user_orders failed user_id=%s", user_id)
        return []

def list_orders(limit: int = 100, status: Optional[str] = None) -> List[Dict[str, Any]]:
    """Commandes pour l'admin (filtre optionnel sur le statut). Retourne [] en cas d'erreur."""
    try:
        query = supabase_client.get_service_supabase().table("orders").select("*")
        if status:
            query = query.eq("status", status)
        res = query.order("created_at", desc=True).limit(limit).execute()
        return res.data or []
    except Exception:
        logger.exception("orders.repository.list_orders failed status=%s", status)
        return []

def attach_payment_reference(order_id: str, reference: str) -> Optional[Dict[str, Any]]:
    """Lie une référence de paiement à la commande, uniquement si aucune n'est encore enregistrée."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .update({"payment_reference": reference})
            .eq("id", str(order_id))
            .is_("payment_reference", "null")
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.attach_payment_reference failed order_id=%s reference=%s", order_id, reference)
        raise
    return _first(res)

def update_order_if(order_id: str, values: Dict[str, Any], expected: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    UPDATE orders SET values WHERE id = order_id AND <expected colonnes = valeurs>.
    - Une seule ligne: les colonnes liées (status + payment_status) changent ensemble.
    - Retourne la ligne mise à jour, ou None si l'état courant ne correspond plus.
    """
    try:
        query = supabase_client.get_service_supabase().table("orders").update(values).eq("id", str(order_id))
        for column, value in expected.items():
            query = query.eq(column, value)
        res = query.execute()
    except Exception:
        logger.exception("orders.repository.update_order_if failed order_id=%s expected=%s", order_id, expected)
        raise
    return _first(res)
