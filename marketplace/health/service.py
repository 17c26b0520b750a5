from urllib.parse import urlparse
import socket
from typing import Dict, Any

from marketplace.config import SUPABASE_URL
from marketplace.infra.supabase_client import get_service_supabase

PROBED_TABLES = ("listings", "listing_variants", "orders", "payments")


def _check_table(client, name: str) -> Dict[str, Any]:
    try:
        res = client.table(name).select("id").limit(1).execute()
        return {"ok": True, "rows": len(res.data or [])}
    except Exception as e:
        return {"ok": False, "error": str(e)}


def _resolve_host(hostname: str | None) -> Dict[str, Any]:
    if not hostname:
        return {"dns_ok": None, "dns_error": None}
    try:
        socket.getaddrinfo(hostname, 443)
        return {"dns_ok": True, "dns_error": None}
    except OSError as e:
        return {"dns_ok": False, "dns_error": str(e)}


def health_supabase_info() -> Dict[str, Any]:
    """Diagnostic du store: DNS de l'URL Supabase puis sonde des tables du checkout."""
    parsed = urlparse(SUPABASE_URL) if SUPABASE_URL else None
    hostname = parsed.hostname if parsed else None
    info: Dict[str, Any] = {
        "supabase_url": SUPABASE_URL,
        "hostname": hostname,
        **_resolve_host(hostname),
        "connect_ok": False,
        "error": None,
        "tables": {},
    }
    try:
        client = get_service_supabase()
        for t in PROBED_TABLES:
            info["tables"][t] = _check_table(client, t)
        info["connect_ok"] = True
    except Exception as e:
        info["error"] = str(e)
    return info
