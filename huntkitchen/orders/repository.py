"""
Accès aux données pour la feature 'orders' (tables orders / order_items).
- stripe_checkout_session_id est unique: c'est la clé d'idempotence de la matérialisation
- Les commandes ne sont jamais supprimées, sauf compensation immédiate d'une création incomplète
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
import logging

import huntkitchen.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

ORDER_DETAIL_SELECT = (
    "*, items:order_items(*, product:products(id, name, slug, image_url, track_inventory), "
    "variant:product_variants(id, name)), "
    "discount_code:discount_codes(code, description, discount_type, discount_value)"
)

# module huntkitchen.orders.repository
def _find_one(column: str, value: str) -> Optional[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select("*")
            .eq(column, str(value))
            .limit(1)
            .execute()
        )
        return supabase_client.first_row(res)
    except Exception:
        logger.exception("orders.repository._find_one failed %s=%s", column, value)
        raise


def find_by_checkout_session(checkout_session_id: str) -> Optional[Dict[str, Any]]:
    return _find_one("stripe_checkout_session_id", checkout_session_id)


def find_by_payment_intent(payment_intent_id: str) -> Optional[Dict[str, Any]]:
    return _find_one("stripe_payment_intent_id", payment_intent_id)


def order_number_exists(order_number: str) -> bool:
    return _find_one("order_number", order_number) is not None


def get_order(order_id: str) -> Optional[Dict[str, Any]]:
    """Commande avec lignes (produit/variante joints) et code promo."""
    res = (
        supabase_client.get_service_supabase()
        .table("orders")
        .select(ORDER_DETAIL_SELECT)
        .eq("id", str(order_id))
        .limit(1)
        .execute()
    )
    return supabase_client.first_row(res)


def list_user_orders(user_id: str, page: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
    """Page de commandes (plus récentes d'abord) et nombre total."""
    start = (page - 1) * limit
    res = (
        supabase_client.get_service_supabase()
        .table("orders")
        .select(ORDER_DETAIL_SELECT, count="exact")
        .eq("user_id", str(user_id))
        .order("created_at", desc=True)
        .range(start, start + limit - 1)
        .execute()
    )
    rows = res.data or []
    total = res.count if res.count is not None else len(rows)
    return rows, int(total)


def insert_order(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Insère une commande; lève APIError(23505) sur doublon (numéro ou session Stripe)."""
    res = supabase_client.get_service_supabase().table("orders").insert(payload).execute()
    row = supabase_client.first_row(res)
    if row is None:
        raise RuntimeError("order insert returned no row")
    return row


def insert_order_items(order_id: str, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    rows = [{**item, "order_id": str(order_id)} for item in items]
    res = supabase_client.get_service_supabase().table("order_items").insert(rows).execute()
    return res.data or []


def list_order_items(order_id: str) -> List[Dict[str, Any]]:
    res = (
        supabase_client.get_service_supabase()
        .table("order_items")
        .select("*, product:products(id, track_inventory)")
        .eq("order_id", str(order_id))
        .execute()
    )
    return res.data or []


def delete_order(order_id: str) -> None:
    supabase_client.get_service_supabase().table("orders").delete().eq("id", str(order_id)).execute()


def update_order(order_id: str, fields: Dict[str, Any], *, unless: Optional[Tuple[str, str]] = None) -> List[Dict[str, Any]]:
    """
    Met à jour une commande et retourne les lignes effectivement modifiées.
    unless=(colonne, valeur): mise à jour conditionnelle (WHERE colonne <> valeur), sert de garde
    d'idempotence quand deux livraisons d'un même événement se croisent.
    """
    try:
        query = (
            supabase_client.get_service_supabase()
            .table("orders")
            .update(fields)
            .eq("id", str(order_id))
        )
        if unless:
            query = query.neq(unless[0], unless[1])
        res = query.execute()
        return res.data or []
    except Exception:
        logger.exception("orders.repository.update_order failed order_id=%s", order_id)
        raise


def claim_order_step(order_id: str, marker: str) -> bool:
    """
    Pose l'horodatage `marker` s'il est encore NULL (WHERE marker IS NULL).
    True si cet appel a obtenu l'étape: deux reprises concurrentes ne l'exécutent pas deux fois.
    """
    res = (
        supabase_client.get_service_supabase()
        .table("orders")
        .update({marker: datetime.now(timezone.utc).isoformat()})
        .eq("id", str(order_id))
        .is_(marker, "null")
        .execute()
    )
    return bool(res.data)


def release_order_step(order_id: str, marker: str) -> None:
    # L'étape a échoué: la prochaine reprise pourra la retenter
    supabase_client.get_service_supabase().table("orders").update({marker: None}).eq("id", str(order_id)).execute()
