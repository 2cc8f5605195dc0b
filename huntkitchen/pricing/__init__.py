"""
Module 'pricing' (feature-first): moteur de prix pur.
"""

from .models import (
    DiscountType,
    AllProducts,
    SpecificProducts,
    SpecificCategories,
    DiscountScope,
    DiscountCode,
    PriceLine,
    CartTotals,
    to_decimal,
)
from .engine import (
    Ineligibility,
    round2,
    to_cents,
    compute_subtotal,
    scope_matches,
    check_discount_eligibility,
    compute_discount_amount,
    calculate_totals,
)

__all__ = [
    # models
    "DiscountType",
    "AllProducts",
    "SpecificProducts",
    "SpecificCategories",
    "DiscountScope",
    "DiscountCode",
    "PriceLine",
    "CartTotals",
    "to_decimal",
    # engine
    "Ineligibility",
    "round2",
    "to_cents",
    "compute_subtotal",
    "scope_matches",
    "check_discount_eligibility",
    "compute_discount_amount",
    "calculate_totals",
]
