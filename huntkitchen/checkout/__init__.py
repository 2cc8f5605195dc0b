"""
Module 'checkout' (feature-first): session de paiement et matérialisation de la commande.
"""

from .service import (
    prepare_checkout,
    validate_checkout,
    shipping_rates,
    create_checkout_session,
    materialize_order,
    confirm_checkout_session,
)

__all__ = [
    "prepare_checkout",
    "validate_checkout",
    "shipping_rates",
    "create_checkout_session",
    "materialize_order",
    "confirm_checkout_session",
]
