"""
Modèles purs du moteur de prix (aucun accès BD, aucun Stripe).
- DiscountType / DiscountScope: variante taggée vérifiée de manière exhaustive
- DiscountCode.from_row: construit un code promo depuis une ligne 'discount_codes'
- PriceLine / CartTotals: entrées et sortie du calcul
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Union


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"
    FREE_SHIPPING = "FREE_SHIPPING"


@dataclass(frozen=True)
class AllProducts:
    kind: str = "ALL"


@dataclass(frozen=True)
class SpecificProducts:
    ids: FrozenSet[str] = frozenset()
    kind: str = "SPECIFIC_PRODUCTS"


@dataclass(frozen=True)
class SpecificCategories:
    ids: FrozenSet[str] = frozenset()
    kind: str = "SPECIFIC_CATEGORIES"


DiscountScope = Union[AllProducts, SpecificProducts, SpecificCategories]


def to_decimal(value: Any, default: Optional[Decimal] = Decimal("0")) -> Optional[Decimal]:
    """
    Convertit str|int|float|Decimal en Decimal.
    - Passe par str() pour éviter de figer l'imprécision d'un float
    - Retourne `default` si la valeur est vide ou illisible
    """
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def _parse_dt(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    # PostgREST renvoie de l'ISO 8601, parfois suffixé par Z
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _ids(value: Any) -> FrozenSet[str]:
    return frozenset(str(v) for v in (value or []) if v)


def scope_from_row(row: Dict[str, Any]) -> DiscountScope:
    applicable_to = str(row.get("applicable_to") or "ALL").upper()
    if applicable_to == "SPECIFIC_PRODUCTS":
        return SpecificProducts(ids=_ids(row.get("applicable_product_ids")))
    if applicable_to == "SPECIFIC_CATEGORIES":
        return SpecificCategories(ids=_ids(row.get("applicable_category_ids")))
    return AllProducts()


@dataclass(frozen=True)
class DiscountCode:
    id: str
    code: str
    discount_type: DiscountType
    value: Decimal
    is_active: bool = True
    description: Optional[str] = None
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    usage_limit: Optional[int] = None
    usage_count: int = 0
    usage_limit_per_customer: Optional[int] = None
    minimum_order_amount: Optional[Decimal] = None
    maximum_discount_amount: Optional[Decimal] = None
    scope: DiscountScope = field(default_factory=AllProducts)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DiscountCode":
        return cls(
            id=str(row.get("id") or ""),
            code=str(row.get("code") or ""),
            discount_type=DiscountType(str(row.get("discount_type") or "PERCENTAGE").upper()),
            value=to_decimal(row.get("discount_value")),
            is_active=bool(row.get("is_active", True)),
            description=row.get("description"),
            starts_at=_parse_dt(row.get("starts_at")),
            expires_at=_parse_dt(row.get("expires_at")),
            usage_limit=row.get("usage_limit"),
            usage_count=int(row.get("usage_count") or 0),
            usage_limit_per_customer=row.get("usage_limit_per_customer"),
            minimum_order_amount=to_decimal(row.get("minimum_order_amount"), None),
            maximum_discount_amount=to_decimal(row.get("maximum_discount_amount"), None),
            scope=scope_from_row(row),
        )


@dataclass(frozen=True)
class PriceLine:
    unit_price: Decimal
    quantity: int
    product_id: Optional[str] = None
    category_id: Optional[str] = None


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal = Decimal("0.00")
    discount_amount: Decimal = Decimal("0.00")
    shipping_amount: Decimal = Decimal("0.00")
    tax_amount: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")

    def to_dict(self) -> Dict[str, float]:
        return {
            "subtotal": float(self.subtotal),
            "discountAmount": float(self.discount_amount),
            "shippingAmount": float(self.shipping_amount),
            "taxAmount": float(self.tax_amount),
            "total": float(self.total),
        }
