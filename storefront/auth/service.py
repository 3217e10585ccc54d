from typing import Optional, Dict, Any
from . import repository

def determine_role(metadata: Dict[str, Any] | None, profile_role: Optional[str] = None) -> str:
    role_lower = str(profile_role or (metadata or {}).get("role", "")).lower()
    if role_lower == "admin":
        return "admin"
    return "customer"

# --- Intégration sécurité ---

def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """Normalise l'utilisateur issu de supabase.auth.get_user(access_token):
    - Retourne {id, email, metadata, role, token}
    - Rôle: table profiles en priorité, sinon app_metadata/user_metadata
    """
    raw = repository.get_user_from_access_token(access_token)
    uid = raw.get("id")
    if not uid:
        return {}
    metadata = {**(raw.get("user_metadata") or {}), **(raw.get("app_metadata") or {})}
    role = determine_role(metadata, repository.get_profile_role(uid))
    return {"id": uid, "email": raw.get("email"), "metadata": metadata, "role": role, "token": access_token}
