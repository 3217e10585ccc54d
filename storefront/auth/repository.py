from typing import Any, Dict, Optional
import logging

import storefront.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

# module storefront.auth.repository
def get_user_from_access_token(access_token: str) -> Dict[str, Any]:
    """Wrapper Supabase Auth: résout le JWT en utilisateur (GoTrue get_user)."""
    res = supabase_client.get_supabase().auth.get_user(access_token)
    user = getattr(res, "user", None)
    if user is None:
        return {}
    return {
        "id": getattr(user, "id", None),
        "email": getattr(user, "email", None),
        "user_metadata": getattr(user, "user_metadata", None) or {},
        "app_metadata": getattr(user, "app_metadata", None) or {},
    }

def get_profile_role(user_id: str) -> Optional[str]:
    """Rôle applicatif (table 'profiles'). None si absent ou en cas d'erreur."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("profiles")
            .select("role")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return (rows[0] or {}).get("role") if rows else None
    except Exception:
        logger.exception("auth.repository.get_profile_role failed user_id=%s", user_id)
        return None
