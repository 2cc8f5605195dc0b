"""
Module 'cart' (feature-first): point d'entrée public.
Réunit le miroir client (store), l'identité du panier (session), le repository BD et les services.
"""

from .store import CartStore, MemoryStorage, JSONFileStorage, merge_lines, reduce, STORAGE_KEY
from .session import CartOwner, get_cart_owner, generate_session_id, set_cart_cookie, clear_cart_cookie
from .service import (
    resolve_cart,
    load_lines,
    get_cart_view,
    add_item,
    update_item,
    remove_item,
    merge_guest_cart,
    apply_discount,
)

__all__ = [
    # store
    "CartStore",
    "MemoryStorage",
    "JSONFileStorage",
    "merge_lines",
    "reduce",
    "STORAGE_KEY",
    # session
    "CartOwner",
    "get_cart_owner",
    "generate_session_id",
    "set_cart_cookie",
    "clear_cart_cookie",
    # services
    "resolve_cart",
    "load_lines",
    "get_cart_view",
    "add_item",
    "update_item",
    "remove_item",
    "merge_guest_cart",
    "apply_discount",
]
