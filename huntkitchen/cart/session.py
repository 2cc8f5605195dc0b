"""
Identité du panier: utilisateur authentifié XOR jeton de session invité (cookie HTTP-only).
"""
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Depends, Request, Response

from huntkitchen.config import CART_COOKIE_NAME, CART_COOKIE_MAX_AGE, COOKIE_SECURE
from huntkitchen.utils.security import get_optional_user


@dataclass(frozen=True)
class CartOwner:
    user_id: Optional[str] = None
    session_id: Optional[str] = None

    @property
    def is_guest(self) -> bool:
        return not self.user_id


def generate_session_id() -> str:
    return secrets.token_hex(32)


def set_cart_cookie(response: Response, session_id: str) -> None:
    response.set_cookie(
        key=CART_COOKIE_NAME,
        value=session_id,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="Lax",
        max_age=CART_COOKIE_MAX_AGE,
        path="/",
    )


def clear_cart_cookie(response: Response) -> None:
    response.delete_cookie(CART_COOKIE_NAME, path="/")


def get_cart_owner(
    request: Request,
    response: Response,
    user: Optional[Dict[str, Any]] = Depends(get_optional_user),
) -> CartOwner:
    """
    Dépendance FastAPI: résout le propriétaire du panier.
    Un invité sans cookie reçoit un nouveau jeton (cookie posé sur la réponse).
    """
    if user and user.get("id"):
        return CartOwner(user_id=str(user["id"]))
    session_id = request.cookies.get(CART_COOKIE_NAME)
    if not session_id:
        session_id = generate_session_id()
        set_cart_cookie(response, session_id)
    return CartOwner(session_id=session_id)
