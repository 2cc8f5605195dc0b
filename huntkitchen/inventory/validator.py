"""
Validation d'inventaire en lecture seule.
- PRODUCT_INACTIVE / VARIANT_INACTIVE: produit ou variante désactivé
- INSUFFICIENT_STOCK: seulement si le produit suit son inventaire, contrôlé par variante
Les appelants revalident juste avant toute opération qui touche au stock.
"""
from typing import Any, Dict, Iterable, List, Optional

from huntkitchen.catalog.models import ResolvedLine

PRODUCT_INACTIVE = "PRODUCT_INACTIVE"
VARIANT_INACTIVE = "VARIANT_INACTIVE"
INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"

# module huntkitchen.inventory.validator
def check_line(
    product: Dict[str, Any],
    variant: Optional[Dict[str, Any]],
    quantity: int,
) -> Optional[Dict[str, Any]]:
    """
    Contrôle une ligne (produit, variante, quantité demandée).
    Retourne None si disponible, sinon {reason, message, available?}.
    """
    if not product.get("is_active", False):
        return {"reason": PRODUCT_INACTIVE, "message": "This product is no longer available"}
    if variant is not None and not variant.get("is_active", False):
        return {"reason": VARIANT_INACTIVE, "message": "This variant is no longer available"}
    if product.get("track_inventory") and variant is not None:
        available = int(variant.get("inventory_qty") or 0)
        if available < int(quantity):
            return {
                "reason": INSUFFICIENT_STOCK,
                "message": f"Only {available} in stock",
                "available": available,
            }
    return None


def validate_lines(lines: Iterable[ResolvedLine]) -> List[Dict[str, Any]]:
    """Retourne la liste des violations, une par ligne fautive (jamais d'effet de bord)."""
    violations: List[Dict[str, Any]] = []
    for line in lines:
        problem = check_line(line.product, line.variant, line.quantity)
        if problem is None:
            continue
        violation = {
            "itemId": line.item_id,
            "productId": line.product_id,
            "variantId": line.variant_id,
            "productName": line.display_name,
            **problem,
        }
        violation["error"] = violation.pop("message")
        violations.append(violation)
    return violations
