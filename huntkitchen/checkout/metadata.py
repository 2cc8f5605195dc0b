"""
Sérialisation/désérialisation des métadonnées de session Stripe.
Stripe limite chaque valeur à 500 caractères: les adresses sont stockées en JSON compact.
"""
import json
from typing import Any, Dict, Optional

from huntkitchen.errors import ValidationError

MAX_VALUE_LENGTH = 500

# module huntkitchen.checkout.metadata
def _compact(value: Dict[str, Any], field: str) -> str:
    raw = json.dumps(value, separators=(",", ":"))
    if len(raw) > MAX_VALUE_LENGTH:
        raise ValidationError(f"{field} is too long", details={"field": field})
    return raw


def make_session_metadata(
    *,
    cart_id: str,
    user_id: Optional[str],
    session_id: Optional[str],
    discount_code_id: Optional[str],
    shipping_rate: Dict[str, Any],
    shipping_address: Dict[str, Any],
    billing_address: Dict[str, Any],
) -> Dict[str, str]:
    """
    Contexte nécessaire pour reconstruire la commande sans faire confiance au client.
    Toutes les valeurs sont des chaînes (contrainte Stripe).
    """
    return {
        "cart_id": str(cart_id),
        "user_id": user_id or "",
        "session_id": session_id or "",
        "discount_code_id": discount_code_id or "",
        "shipping_rate_id": str(shipping_rate.get("id") or ""),
        "shipping_rate_name": str(shipping_rate.get("name") or ""),
        "shipping_rate_price": f"{shipping_rate.get('price', 0):.2f}",
        "shipping_address": _compact(shipping_address, "shippingAddress"),
        "billing_address": _compact(billing_address, "billingAddress"),
    }


def _load_json(raw: Optional[str]) -> Dict[str, Any]:
    try:
        data = json.loads(raw) if raw else {}
    except ValueError:
        data = {}
    return data if isinstance(data, dict) else {}


def extract_session_metadata(session: Dict[str, Any]) -> Dict[str, Any]:
    """
    Relit les métadonnées d'une session Checkout.
    - Tolérant: JSON illisible -> {}, identifiants vides -> None
    """
    meta = (session or {}).get("metadata") or {}
    return {
        "cart_id": meta.get("cart_id") or None,
        "user_id": meta.get("user_id") or None,
        "session_id": meta.get("session_id") or None,
        "discount_code_id": meta.get("discount_code_id") or None,
        "shipping_rate_id": meta.get("shipping_rate_id") or None,
        "shipping_method": meta.get("shipping_rate_name") or "Standard Shipping",
        "shipping_amount": meta.get("shipping_rate_price") or "0",
        "shipping_address": _load_json(meta.get("shipping_address")),
        "billing_address": _load_json(meta.get("billing_address")),
    }


def payment_intent_id(obj: Dict[str, Any]) -> Optional[str]:
    """payment_intent peut être un identifiant ou un objet expandé."""
    pi = (obj or {}).get("payment_intent")
    if isinstance(pi, dict):
        return pi.get("id")
    return pi or None
