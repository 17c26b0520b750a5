from fastapi import Request, Depends
from typing import Dict, Any

from marketplace.errors import Unauthenticated

COOKIE_NAME = "sb_access"

def bearer_token(request: Request) -> str:
    # Hybride: priorité au Bearer, fallback cookie (client web)
    token = ""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    if not token:
        token = request.cookies.get(COOKIE_NAME) or ""
    return token

def get_current_user(request: Request) -> Dict[str, Any]:
    token = bearer_token(request)
    if not token:
        raise Unauthenticated()

    try:
        # Délégué au service Auth (Supabase GoTrue)
        from marketplace.auth.service import get_user_from_token as _svc_get_user_from_token
        user = _svc_get_user_from_token(token)
    except Exception as e:
        raise Unauthenticated("Session expirée, veuillez vous connecter") from e
    if not user.get("id"):
        raise Unauthenticated("Session expirée, veuillez vous connecter")
    return user

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user
