"""
Ligne de panier résolue contre les enregistrements produit/variante courants.
Le prix et le poids sont toujours lus au moment de l'usage (aucun prix en cache dans cart_items).
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from huntkitchen.pricing.models import PriceLine, to_decimal


@dataclass
class ResolvedLine:
    item_id: str
    product: Dict[str, Any]
    variant: Optional[Dict[str, Any]]
    quantity: int

    @classmethod
    def from_item_row(cls, row: Dict[str, Any]) -> "ResolvedLine":
        """Attend une ligne 'cart_items' avec les jointures product:products(*) et variant:product_variants(*)."""
        return cls(
            item_id=str(row.get("id") or ""),
            product=row.get("product") or {},
            variant=row.get("variant") or None,
            quantity=int(row.get("quantity") or 0),
        )

    @property
    def product_id(self) -> str:
        return str(self.product.get("id") or "")

    @property
    def variant_id(self) -> Optional[str]:
        return str(self.variant["id"]) if self.variant and self.variant.get("id") else None

    @property
    def category_id(self) -> Optional[str]:
        cid = self.product.get("category_id")
        return str(cid) if cid else None

    @property
    def unit_price(self) -> Decimal:
        # Une variante sans prix (ou à 0) retombe sur le prix de base du produit
        variant_price = to_decimal((self.variant or {}).get("price"), None)
        if variant_price:
            return variant_price
        return to_decimal(self.product.get("base_price"))

    @property
    def weight_oz(self) -> Decimal:
        variant_weight = to_decimal((self.variant or {}).get("weight_oz"), None)
        if variant_weight:
            return variant_weight
        return to_decimal(self.product.get("weight_oz"))

    @property
    def product_name(self) -> str:
        return str(self.product.get("name") or "")

    @property
    def variant_name(self) -> Optional[str]:
        return (self.variant or {}).get("name")

    @property
    def display_name(self) -> str:
        if self.variant_name:
            return f"{self.product_name} - {self.variant_name}"
        return self.product_name

    @property
    def sku(self) -> Optional[str]:
        return (self.variant or {}).get("sku") or self.product.get("sku")

    def to_price_line(self) -> PriceLine:
        return PriceLine(
            unit_price=self.unit_price,
            quantity=self.quantity,
            product_id=self.product_id,
            category_id=self.category_id,
        )
