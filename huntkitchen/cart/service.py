"""
Cas d'usage 'cart': orchestre repository panier, catalogue, inventaire et moteur de prix.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from huntkitchen.catalog import repository as catalog_repository
from huntkitchen.catalog.models import ResolvedLine
from huntkitchen.errors import ForbiddenError, InventoryError, NotFoundError, ValidationError
from huntkitchen.inventory.validator import INSUFFICIENT_STOCK, check_line
from huntkitchen.pricing.engine import calculate_totals, check_discount_eligibility, round2
from huntkitchen.pricing.models import DiscountCode

from . import repository
from .session import CartOwner
from .store import line_key

logger = logging.getLogger(__name__)

# module huntkitchen.cart.service
def resolve_cart(owner: CartOwner) -> Dict[str, Any]:
    return repository.get_or_create_cart(user_id=owner.user_id, session_id=owner.session_id)


def load_lines(cart_id: str) -> List[ResolvedLine]:
    return [ResolvedLine.from_item_row(row) for row in repository.list_items(cart_id)]


def load_discount(discount_code_id: Optional[str]) -> Optional[DiscountCode]:
    if not discount_code_id:
        return None
    row = catalog_repository.get_discount_code(discount_code_id)
    return DiscountCode.from_row(row) if row else None


def customer_usage_for(discount: DiscountCode, user_id: Optional[str]) -> Optional[int]:
    """Usage du code par ce client; None quand la limite ne s'applique pas ou que le client est inconnu."""
    if not user_id or discount.usage_limit_per_customer is None:
        return None
    return catalog_repository.count_customer_discount_usage(user_id, discount.id)


def _line_view(line: ResolvedLine) -> Dict[str, Any]:
    variant = None
    if line.variant:
        variant = {"id": line.variant_id, "name": line.variant_name, "sku": line.variant.get("sku")}
    return {
        "id": line.item_id,
        "productId": line.product_id,
        "variantId": line.variant_id,
        "quantity": line.quantity,
        "unitPrice": float(line.unit_price),
        "lineTotal": float(round2(line.unit_price * line.quantity)),
        "product": {
            "id": line.product_id,
            "name": line.product_name,
            "slug": line.product.get("slug"),
            "imageUrl": line.product.get("image_url"),
        },
        "variant": variant,
    }


def get_cart_view(owner: CartOwner, discount_code_id: Optional[str] = None) -> Dict[str, Any]:
    """Panier courant + totaux du moteur de prix (remise optionnelle, passée par le portail)."""
    cart = resolve_cart(owner)
    lines = load_lines(cart["id"])
    discount = load_discount(discount_code_id)
    price_lines = [l.to_price_line() for l in lines]
    usage = customer_usage_for(discount, owner.user_id) if discount else None
    totals = calculate_totals(price_lines, discount, customer_usage=usage)
    return {
        "cart": {
            "id": cart["id"],
            "items": [_line_view(l) for l in lines],
            "itemCount": sum(l.quantity for l in lines),
        },
        "totals": totals.to_dict(),
    }


def _require_available(product: Dict[str, Any], variant: Optional[Dict[str, Any]], quantity: int) -> None:
    problem = check_line(product, variant, quantity)
    if problem is None:
        return
    if problem["reason"] == INSUFFICIENT_STOCK:
        raise InventoryError(f"Only {problem['available']} items in stock", details=[problem])
    raise ValidationError(problem["message"], details=[problem])


def add_item(owner: CartOwner, product_id: str, variant_id: Optional[str], quantity: int) -> Dict[str, Any]:
    """
    Ajoute une ligne ou incrémente la ligne existante (produit, variante).
    L'inventaire est contrôlé sur la NOUVELLE quantité totale, pas seulement sur le delta.
    """
    if int(quantity) <= 0:
        raise ValidationError("Quantity must be at least 1")
    product = catalog_repository.get_product(product_id)
    if not product:
        raise NotFoundError("Product not found")
    if not product.get("is_active"):
        raise ValidationError("Product is not available")

    variant = None
    if variant_id:
        variant = catalog_repository.get_variant(variant_id)
        if not variant or str(variant.get("product_id")) != str(product_id):
            raise NotFoundError("Variant not found")
        if not variant.get("is_active"):
            raise ValidationError("Variant is not available")

    cart = resolve_cart(owner)
    existing = repository.find_item(cart["id"], product_id, variant_id)
    current = int((existing or {}).get("quantity") or 0)
    _require_available(product, variant, current + int(quantity))

    row = repository.add_item_quantity(cart["id"], product_id, variant_id, int(quantity))
    return {
        "created": existing is None,
        "item": {
            "id": row.get("id"),
            "productId": str(product_id),
            "variantId": variant_id,
            "quantity": row.get("quantity", current + int(quantity)),
        },
    }


def _owned_item(owner: CartOwner, item_id: str) -> Dict[str, Any]:
    item = repository.get_item(item_id)
    if not item:
        raise NotFoundError("Cart item not found")
    cart = repository.find_cart(user_id=owner.user_id, session_id=owner.session_id)
    if not cart or str(cart.get("id")) != str(item.get("cart_id")):
        raise ForbiddenError("Unauthorized")
    return item


def update_item(owner: CartOwner, item_id: str, quantity: int) -> Dict[str, Any]:
    if int(quantity) <= 0:
        raise ValidationError("Quantity must be at least 1")
    item = _owned_item(owner, item_id)
    _require_available(item.get("product") or {}, item.get("variant") or None, int(quantity))
    repository.set_item_quantity(item_id, int(quantity))
    return {"item": {"id": item_id, "quantity": int(quantity)}}


def remove_item(owner: CartOwner, item_id: str) -> None:
    _owned_item(owner, item_id)
    repository.delete_item(item_id)


def merge_guest_cart(user_id: str, session_id: Optional[str]) -> Dict[str, int]:
    """
    Verse le panier invité dans le panier utilisateur (quantités additionnées en cas de collision),
    puis supprime le panier invité. Sans panier invité: succès sans effet.
    """
    guest = repository.find_cart(session_id=session_id) if session_id else None
    if not guest:
        return {"mergedItems": 0, "updatedItems": 0, "totalItems": 0}

    guest_lines = repository.list_items(guest["id"])
    if not guest_lines:
        repository.delete_cart(guest["id"])
        return {"mergedItems": 0, "updatedItems": 0, "totalItems": 0}

    user_cart = repository.get_or_create_cart(user_id=user_id)
    user_keys = {line_key(l) for l in repository.list_items(user_cart["id"])}

    merged_count = 0
    updated_count = 0
    for guest_line in guest_lines:
        key = line_key(guest_line)
        # Incrément atomique côté base: les quantités s'additionnent en cas de collision
        repository.add_item_quantity(user_cart["id"], key[0], key[1], int(guest_line.get("quantity") or 0))
        if key in user_keys:
            updated_count += 1
        else:
            merged_count += 1

    repository.delete_cart(guest["id"])
    logger.info("cart.merge user_id=%s merged=%s updated=%s", user_id, merged_count, updated_count)
    return {"mergedItems": merged_count, "updatedItems": updated_count, "totalItems": merged_count + updated_count}


def apply_discount(owner: CartOwner, code: str, *, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Vérifie un code promo contre le panier courant et retourne le montant calculé.
    Le code appliqué vit côté client: un nouvel appel remplace l'ancien, jamais de cumul.
    """
    cart = resolve_cart(owner)
    lines = load_lines(cart["id"])
    if not lines:
        raise ValidationError("Cannot apply discount to empty cart", code="EMPTY_CART")

    row = catalog_repository.find_discount_by_code(code)
    if not row:
        raise NotFoundError("Invalid discount code")
    discount = DiscountCode.from_row(row)

    price_lines = [l.to_price_line() for l in lines]
    refusal = check_discount_eligibility(
        discount, price_lines, now=now, customer_usage=customer_usage_for(discount, owner.user_id)
    )
    if refusal is not None:
        raise ValidationError(refusal.message, details={"reason": refusal.reason})

    totals = calculate_totals(price_lines, discount, now=now, enforce_eligibility=False)
    return {
        "discountCode": {
            "id": discount.id,
            "code": discount.code,
            "description": discount.description,
            "discountType": discount.discount_type.value,
            "discountValue": float(discount.value),
            "discountAmount": float(totals.discount_amount),
            "minimumOrderAmount": float(discount.minimum_order_amount) if discount.minimum_order_amount is not None else None,
            "maximumDiscountAmount": float(discount.maximum_discount_amount) if discount.maximum_discount_amount is not None else None,
        },
        "totals": totals.to_dict(),
    }
