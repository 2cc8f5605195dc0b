"""
Accès aux données catalogue: produits, variantes, codes promo et compteurs atomiques.
Les compteurs (stock, usage des codes) passent par des fonctions SQL (rpc) pour éviter
les lectures-modifications-écritures concurrentes.
"""
from typing import Any, Dict, Optional
import logging

import huntkitchen.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

# module huntkitchen.catalog.repository
def get_product(product_id: str) -> Optional[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("products")
            .select("*")
            .eq("id", str(product_id))
            .limit(1)
            .execute()
        )
        return supabase_client.first_row(res)
    except Exception:
        logger.exception("catalog.repository.get_product failed product_id=%s", product_id)
        raise


def get_variant(variant_id: str) -> Optional[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("product_variants")
            .select("*")
            .eq("id", str(variant_id))
            .limit(1)
            .execute()
        )
        return supabase_client.first_row(res)
    except Exception:
        logger.exception("catalog.repository.get_variant failed variant_id=%s", variant_id)
        raise


def get_discount_code(discount_id: str) -> Optional[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("discount_codes")
            .select("*")
            .eq("id", str(discount_id))
            .limit(1)
            .execute()
        )
        return supabase_client.first_row(res)
    except Exception:
        logger.exception("catalog.repository.get_discount_code failed discount_id=%s", discount_id)
        raise


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def find_discount_by_code(code: str) -> Optional[Dict[str, Any]]:
    """Recherche insensible à la casse (ilike sans joker)."""
    code = (code or "").strip()
    if not code:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("discount_codes")
            .select("*")
            .ilike("code", _escape_like(code))
            .limit(1)
            .execute()
        )
        return supabase_client.first_row(res)
    except Exception:
        logger.exception("catalog.repository.find_discount_by_code failed code=%s", code)
        raise


def count_customer_discount_usage(user_id: str, discount_id: str) -> int:
    """Nombre de commandes du client passées avec ce code promo."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select("id", count="exact")
            .eq("user_id", str(user_id))
            .eq("discount_code_id", str(discount_id))
            .execute()
        )
        if res.count is not None:
            return int(res.count)
        return len(res.data or [])
    except Exception:
        logger.exception(
            "catalog.repository.count_customer_discount_usage failed user_id=%s discount_id=%s",
            user_id, discount_id,
        )
        raise


def adjust_variant_inventory(variant_id: str, delta: int) -> None:
    """Incrément/décrément atomique de product_variants.inventory_qty."""
    try:
        (
            supabase_client.get_service_supabase()
            .rpc("adjust_variant_inventory", {"p_variant_id": str(variant_id), "p_delta": int(delta)})
            .execute()
        )
    except Exception:
        logger.exception("catalog.repository.adjust_variant_inventory failed variant_id=%s delta=%s", variant_id, delta)
        raise


def increment_discount_usage(discount_id: str) -> None:
    try:
        (
            supabase_client.get_service_supabase()
            .rpc("increment_discount_usage", {"p_discount_id": str(discount_id)})
            .execute()
        )
    except Exception:
        logger.exception("catalog.repository.increment_discount_usage failed discount_id=%s", discount_id)
        raise
