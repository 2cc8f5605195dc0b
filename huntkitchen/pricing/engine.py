"""
Moteur de prix: fonctions pures sur des Decimal.
- Chaque composante est arrondie à 2 décimales (ROUND_HALF_UP) avant la somme
- La remise ne dépasse jamais ni le plafond du code ni le sous-total
- Le total est planché à 0
"""
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, NamedTuple, Optional

from .models import (
    AllProducts,
    CartTotals,
    DiscountCode,
    DiscountType,
    PriceLine,
    SpecificCategories,
    SpecificProducts,
    to_decimal,
)

ZERO = Decimal("0.00")
CENT = Decimal("0.01")

# module huntkitchen.pricing.engine
class Ineligibility(NamedTuple):
    reason: str
    message: str


def round2(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value) -> int:
    """Montant -> entier en centimes (unités mineures Stripe)."""
    return int((round2(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def compute_subtotal(lines: Iterable[PriceLine]) -> Decimal:
    total = Decimal("0")
    for line in lines:
        total += to_decimal(line.unit_price) * int(line.quantity)
    return round2(total)


def scope_matches(discount: DiscountCode, lines: List[PriceLine]) -> bool:
    scope = discount.scope
    if isinstance(scope, AllProducts):
        return True
    if isinstance(scope, SpecificProducts):
        return any(line.product_id in scope.ids for line in lines)
    if isinstance(scope, SpecificCategories):
        return any(line.category_id in scope.ids for line in lines)
    raise TypeError(f"Unknown discount scope: {scope!r}")


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def check_discount_eligibility(
    discount: DiscountCode,
    lines: List[PriceLine],
    *,
    subtotal: Optional[Decimal] = None,
    now: Optional[datetime] = None,
    customer_usage: Optional[int] = None,
) -> Optional[Ineligibility]:
    """
    Portail d'éligibilité d'un code promo.
    Retourne None si le code s'applique, sinon la première raison d'échec:
      EMPTY_CART, INACTIVE, NOT_STARTED, EXPIRED, USAGE_LIMIT, CUSTOMER_LIMIT,
      MINIMUM_ORDER, NOT_APPLICABLE.
    customer_usage: nombre de commandes du client avec ce code (None = client inconnu).
    """
    if not lines:
        return Ineligibility("EMPTY_CART", "Cannot apply discount to empty cart")
    if subtotal is None:
        subtotal = compute_subtotal(lines)
    now = _aware(now or datetime.now(timezone.utc))

    if not discount.is_active:
        return Ineligibility("INACTIVE", "This discount code is no longer active")
    if discount.starts_at and _aware(discount.starts_at) > now:
        return Ineligibility("NOT_STARTED", "This discount code is not yet valid")
    if discount.expires_at and _aware(discount.expires_at) < now:
        return Ineligibility("EXPIRED", "This discount code has expired")
    if discount.usage_limit is not None and discount.usage_count >= int(discount.usage_limit):
        return Ineligibility("USAGE_LIMIT", "This discount code has reached its usage limit")
    if (
        discount.usage_limit_per_customer is not None
        and customer_usage is not None
        and customer_usage >= int(discount.usage_limit_per_customer)
    ):
        return Ineligibility(
            "CUSTOMER_LIMIT",
            "You have already used this discount code the maximum number of times",
        )
    if discount.minimum_order_amount is not None and subtotal < discount.minimum_order_amount:
        return Ineligibility(
            "MINIMUM_ORDER",
            f"Minimum order amount of ${round2(discount.minimum_order_amount)} required",
        )
    if not scope_matches(discount, lines):
        return Ineligibility("NOT_APPLICABLE", "This discount code does not apply to items in your cart")
    return None


def compute_discount_amount(discount: DiscountCode, subtotal: Decimal) -> Decimal:
    """
    Valeur de la remise (sans portail d'éligibilité):
    pourcentage ou montant fixe, puis plafond, puis sous-total. FREE_SHIPPING vaut 0 ici.
    """
    subtotal = to_decimal(subtotal)
    if discount.discount_type == DiscountType.PERCENTAGE:
        amount = subtotal * discount.value / Decimal("100")
    elif discount.discount_type == DiscountType.FIXED_AMOUNT:
        amount = discount.value
    else:
        amount = Decimal("0")
    if discount.maximum_discount_amount is not None and amount > discount.maximum_discount_amount:
        amount = discount.maximum_discount_amount
    if amount > subtotal:
        amount = subtotal
    if amount < 0:
        amount = Decimal("0")
    return round2(amount)


def calculate_totals(
    lines: List[PriceLine],
    discount: Optional[DiscountCode] = None,
    shipping_amount=ZERO,
    tax_amount=ZERO,
    *,
    now: Optional[datetime] = None,
    customer_usage: Optional[int] = None,
    enforce_eligibility: bool = True,
) -> CartTotals:
    """
    Calcule {subtotal, discount, shipping, tax, total}.
    - Panier vide: tout à zéro, aucune remise
    - enforce_eligibility=False: applique la valeur de la remise sans le portail
      (matérialisation d'une commande déjà payée)
    """
    if not lines:
        return CartTotals()

    subtotal = compute_subtotal(lines)
    shipping = round2(shipping_amount)
    tax = round2(tax_amount)
    discount_amount = ZERO

    if discount is not None:
        eligible = True
        if enforce_eligibility:
            eligible = check_discount_eligibility(
                discount, lines, subtotal=subtotal, now=now, customer_usage=customer_usage
            ) is None
        if eligible:
            if discount.discount_type == DiscountType.FREE_SHIPPING:
                shipping = ZERO
            else:
                discount_amount = compute_discount_amount(discount, subtotal)

    total = subtotal - discount_amount + shipping + tax
    if total < 0:
        total = ZERO
    return CartTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        shipping_amount=shipping,
        tax_amount=tax,
        total=round2(total),
    )
