from fastapi import Request, Depends
from typing import Optional, Dict, Any
import logging

import huntkitchen.infra.supabase_client as supabase_client
from huntkitchen.config import SESSION_COOKIE_NAME
from huntkitchen.errors import UnauthorizedError

COOKIE_NAME = SESSION_COOKIE_NAME

logger = logging.getLogger(__name__)

def extract_token(request: Request) -> Optional[str]:
    # Hybride: priorité au Bearer, fallback cookie
    token = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    if not token:
        token = request.cookies.get(COOKIE_NAME)
    return token or None

def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """Résout le jeton via Supabase Auth et retourne {id, email, token}."""
    res = supabase_client.get_supabase().auth.get_user(access_token)
    user = getattr(res, "user", None)
    if user is None:
        return {}
    return {"id": getattr(user, "id", None), "email": getattr(user, "email", None), "token": access_token}

def get_optional_user(request: Request) -> Optional[Dict[str, Any]]:
    """
    Utilisateur courant ou None (invité).
    Un jeton invalide/expiré est traité comme une navigation invité.
    """
    token = extract_token(request)
    if not token:
        return None
    try:
        user = get_user_from_token(token)
    except Exception:
        logger.warning("utils.security.get_optional_user token rejected", exc_info=True)
        return None
    return user if user.get("id") else None

def require_user(user: Optional[Dict[str, Any]] = Depends(get_optional_user)) -> Dict[str, Any]:
    if not user:
        raise UnauthorizedError("Authentication required")
    return user
