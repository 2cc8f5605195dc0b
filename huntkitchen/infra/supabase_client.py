from typing import Optional
from supabase import create_client, Client
from postgrest.exceptions import APIError
from huntkitchen.config import SUPABASE_URL, SUPABASE_ANON, SUPABASE_SERVICE_KEY

# Code Postgres "unique_violation": arbitre des courses find-then-create
UNIQUE_VIOLATION = "23505"

_supabase: Optional[Client] = None
_service_supabase: Optional[Client] = None

def get_supabase() -> Client:
    global _supabase
    if _supabase is None:
        _supabase = create_client(SUPABASE_URL, SUPABASE_ANON)
    return _supabase

def get_service_supabase() -> Client:
    """
    Client service-role (bypass RLS): toutes les écritures panier/commande sont initiées
    par le backend (requête HTTP ou webhook Stripe).
    """
    global _service_supabase
    if not SUPABASE_SERVICE_KEY:
        raise RuntimeError("SUPABASE_SERVICE_KEY manquant pour get_service_supabase()")
    if _service_supabase is None:
        _service_supabase = create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
    return _service_supabase

def is_unique_violation(exc: Exception) -> bool:
    return isinstance(exc, APIError) and str(getattr(exc, "code", "") or "") == UNIQUE_VIOLATION

def first_row(res) -> Optional[dict]:
    rows = getattr(res, "data", None) or []
    if isinstance(rows, dict):
        return rows
    return rows[0] if rows else None
