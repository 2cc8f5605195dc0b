"""
Module 'webhooks': réconciliation des événements Stripe.
"""

from .service import handle_event, HANDLERS

__all__ = ["handle_event", "HANDLERS"]
