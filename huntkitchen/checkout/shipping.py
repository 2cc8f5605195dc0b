"""
Tarifs de livraison calculés côté serveur (poids du panier + seuil de gratuité).
"""
import math
from decimal import Decimal
from typing import Any, Dict, Iterable, List

from huntkitchen.catalog.models import ResolvedLine
from huntkitchen.config import FREE_SHIPPING_THRESHOLD
from huntkitchen.errors import ValidationError
from huntkitchen.pricing.engine import round2
from huntkitchen.pricing.models import to_decimal

BASE_RATES = [
    {"id": "standard", "name": "Standard Shipping", "description": "5-7 business days", "price": Decimal("5.99"), "estimatedDays": "5-7"},
    {"id": "express", "name": "Express Shipping", "description": "2-3 business days", "price": Decimal("14.99"), "estimatedDays": "2-3"},
    {"id": "overnight", "name": "Overnight Shipping", "description": "1 business day", "price": Decimal("29.99"), "estimatedDays": "1"},
]
FREE_RATE = {"id": "free", "name": "Free Standard Shipping", "description": "5-7 business days", "price": Decimal("0.00"), "estimatedDays": "5-7"}

# +2.00 par tranche de 32 oz entamée au-delà des 16 premières
INCLUDED_WEIGHT_OZ = Decimal("16")
WEIGHT_STEP_OZ = Decimal("32")
WEIGHT_STEP_SURCHARGE = Decimal("2.00")


def free_shipping_threshold() -> Decimal:
    return to_decimal(FREE_SHIPPING_THRESHOLD, Decimal("75.00"))


def cart_weight(lines: Iterable[ResolvedLine]) -> Decimal:
    total = Decimal("0")
    for line in lines:
        total += line.weight_oz * line.quantity
    return total


def weight_surcharge(weight_oz: Decimal) -> Decimal:
    if weight_oz <= INCLUDED_WEIGHT_OZ:
        return Decimal("0")
    steps = math.ceil((weight_oz - INCLUDED_WEIGHT_OZ) / WEIGHT_STEP_OZ)
    return WEIGHT_STEP_SURCHARGE * steps


def compute_rates(weight_oz: Decimal, subtotal: Decimal) -> List[Dict[str, Any]]:
    """Tarifs applicables; le tarif gratuit est placé en tête si le seuil est atteint."""
    surcharge = weight_surcharge(weight_oz)
    rates = [{**rate, "price": round2(rate["price"] + surcharge), "weight": weight_oz} for rate in BASE_RATES]
    if subtotal >= free_shipping_threshold():
        rates.insert(0, {**FREE_RATE, "weight": weight_oz})
    return rates


def resolve_rate(rate_id: str, weight_oz: Decimal, subtotal: Decimal) -> Dict[str, Any]:
    """Ne fait jamais confiance au prix fourni par le client: le tarif est recalculé à partir de son id."""
    for rate in compute_rates(weight_oz, subtotal):
        if rate["id"] == rate_id:
            return rate
    raise ValidationError("Unknown shipping rate", details={"shippingRateId": rate_id})


def rate_to_json(rate: Dict[str, Any]) -> Dict[str, Any]:
    return {**rate, "price": float(rate["price"]), "weight": float(rate["weight"])}


def shipping_quote(lines: List[ResolvedLine], subtotal: Decimal) -> Dict[str, Any]:
    weight = cart_weight(lines)
    threshold = free_shipping_threshold()
    qualifies = subtotal >= threshold
    return {
        "rates": [rate_to_json(r) for r in compute_rates(weight, subtotal)],
        "cartWeight": float(weight),
        "freeShippingThreshold": float(threshold),
        "qualifiesForFreeShipping": qualifies,
        "remainingForFreeShipping": 0.0 if qualifies else float(round2(threshold - subtotal)),
    }
