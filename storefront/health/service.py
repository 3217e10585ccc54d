"""Diagnostic Supabase: résolution DNS de l'hôte puis lecture d'une ligne par table du pipeline commande."""
from urllib.parse import urlparse
import socket
from typing import Any, Dict

from storefront.config import SUPABASE_URL
from storefront.infra import supabase_client

CHECKED_TABLES = ("products", "product_variants", "orders", "inventory_ledger")


def _probe_table(client, name: str) -> Dict[str, Any]:
    try:
        res = client.table(name).select("id").limit(1).execute()
        return {"ok": True, "rows": len(res.data or [])}
    except Exception as e:
        return {"ok": False, "error": str(e)}

def _resolve(hostname: str) -> Dict[str, Any]:
    try:
        socket.getaddrinfo(hostname, 443)
        return {"dns_ok": True, "dns_error": None}
    except OSError as e:
        return {"dns_ok": False, "dns_error": str(e)}

def health_supabase_info() -> Dict[str, Any]:
    parsed = urlparse(SUPABASE_URL) if SUPABASE_URL else None
    hostname = parsed.hostname if parsed else None
    info: Dict[str, Any] = {
        "supabase_url": SUPABASE_URL,
        "hostname": hostname,
        "dns_ok": None,
        "dns_error": None,
        "connect_ok": False,
        "error": None,
        "tables": {},
    }
    if hostname:
        info.update(_resolve(hostname))
    try:
        client = supabase_client.get_service_supabase()
        for name in CHECKED_TABLES:
            info["tables"][name] = _probe_table(client, name)
        info["connect_ok"] = all(t["ok"] for t in info["tables"].values())
    except Exception as e:
        info["error"] = str(e)
    return info
