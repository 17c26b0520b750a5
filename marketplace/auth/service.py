from typing import Dict, Any
from .repository import get_user_from_access_token as _repo_get_user_from_token

# --- Intégration sécurité ---

def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """Normalise user issu de supabase.auth.get_user(access_token):
    - Retourne {id, email, metadata, token}
    - L'identité est reprise telle quelle par le checkout (acheteur = id)
    """
    raw = _repo_get_user_from_token(access_token)
    return {
        "id": raw.get("id"),
        "email": raw.get("email"),
        "metadata": raw.get("user_metadata") or {},
        "token": access_token,
    }
