"""
Accès aux données pour la feature 'cart' (tables carts / cart_items).
- Un panier appartient à un utilisateur XOR à une session invitée (contraintes uniques)
- L'incrément de quantité passe par la fonction SQL add_cart_item_quantity (insert-or-increment atomique)
"""
from typing import Any, Dict, List, Optional
import logging

import huntkitchen.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

ITEM_SELECT = "*, product:products(*), variant:product_variants(*)"

# module huntkitchen.cart.repository
def find_cart(*, user_id: Optional[str] = None, session_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    if not user_id and not session_id:
        return None
    try:
        query = supabase_client.get_service_supabase().table("carts").select("*")
        if user_id:
            query = query.eq("user_id", str(user_id))
        else:
            query = query.eq("session_id", str(session_id)).is_("user_id", "null")
        return supabase_client.first_row(query.limit(1).execute())
    except Exception:
        logger.exception("cart.repository.find_cart failed user_id=%s", user_id)
        raise


def create_cart(*, user_id: Optional[str] = None, session_id: Optional[str] = None) -> Dict[str, Any]:
    """Crée un panier; lève APIError(23505) si un panier existe déjà pour cette identité."""
    payload = {"user_id": user_id, "session_id": None if user_id else session_id}
    res = supabase_client.get_service_supabase().table("carts").insert(payload).execute()
    row = supabase_client.first_row(res)
    if row is None:
        raise RuntimeError("cart insert returned no row")
    return row


def get_or_create_cart(*, user_id: Optional[str] = None, session_id: Optional[str] = None) -> Dict[str, Any]:
    """
    find-then-create: la contrainte unique sur la colonne d'identité arbitre les créations concurrentes,
    le perdant relit le panier créé par le gagnant.
    """
    cart = find_cart(user_id=user_id, session_id=session_id)
    if cart:
        return cart
    try:
        return create_cart(user_id=user_id, session_id=session_id)
    except Exception as exc:
        if not supabase_client.is_unique_violation(exc):
            logger.exception("cart.repository.get_or_create_cart failed user_id=%s", user_id)
            raise
    cart = find_cart(user_id=user_id, session_id=session_id)
    if cart is None:
        raise RuntimeError("cart vanished after unique violation")
    return cart


def list_items(cart_id: str) -> List[Dict[str, Any]]:
    """Lignes du panier avec produit et variante joints."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("cart_items")
            .select(ITEM_SELECT)
            .eq("cart_id", str(cart_id))
            .order("created_at")
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("cart.repository.list_items failed cart_id=%s", cart_id)
        raise


def get_item(item_id: str) -> Optional[Dict[str, Any]]:
    res = (
        supabase_client.get_service_supabase()
        .table("cart_items")
        .select(ITEM_SELECT)
        .eq("id", str(item_id))
        .limit(1)
        .execute()
    )
    return supabase_client.first_row(res)


def find_item(cart_id: str, product_id: str, variant_id: Optional[str]) -> Optional[Dict[str, Any]]:
    query = (
        supabase_client.get_service_supabase()
        .table("cart_items")
        .select("*")
        .eq("cart_id", str(cart_id))
        .eq("product_id", str(product_id))
    )
    query = query.eq("variant_id", str(variant_id)) if variant_id else query.is_("variant_id", "null")
    return supabase_client.first_row(query.limit(1).execute())


def add_item_quantity(cart_id: str, product_id: str, variant_id: Optional[str], quantity: int) -> Dict[str, Any]:
    """Insert-or-increment atomique; retourne la ligne résultante."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .rpc(
                "add_cart_item_quantity",
                {
                    "p_cart_id": str(cart_id),
                    "p_product_id": str(product_id),
                    "p_variant_id": str(variant_id) if variant_id else None,
                    "p_quantity": int(quantity),
                },
            )
            .execute()
        )
        return supabase_client.first_row(res) or {}
    except Exception:
        logger.exception(
            "cart.repository.add_item_quantity failed cart_id=%s product_id=%s variant_id=%s",
            cart_id, product_id, variant_id,
        )
        raise


def set_item_quantity(item_id: str, quantity: int) -> Optional[Dict[str, Any]]:
    res = (
        supabase_client.get_service_supabase()
        .table("cart_items")
        .update({"quantity": int(quantity)})
        .eq("id", str(item_id))
        .execute()
    )
    return supabase_client.first_row(res)


def delete_item(item_id: str) -> None:
    supabase_client.get_service_supabase().table("cart_items").delete().eq("id", str(item_id)).execute()


def clear_items(cart_id: str) -> None:
    try:
        supabase_client.get_service_supabase().table("cart_items").delete().eq("cart_id", str(cart_id)).execute()
    except Exception:
        logger.exception("cart.repository.clear_items failed cart_id=%s", cart_id)
        raise


def delete_cart(cart_id: str) -> None:
    """Supprime le panier (les lignes suivent par ON DELETE CASCADE)."""
    supabase_client.get_service_supabase().table("carts").delete().eq("id", str(cart_id)).execute()
