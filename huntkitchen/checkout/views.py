import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from huntkitchen.utils.rate_limit import optional_rate_limit
from huntkitchen.cart.session import CartOwner, get_cart_owner
from huntkitchen.checkout import service as checkout_service
from huntkitchen.checkout.schemas import CreateSessionRequest, ShippingDestination

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/checkout", tags=["Checkout API"])

# module huntkitchen.checkout.views
@router.post("/validate")
def validate_cart(owner: CartOwner = Depends(get_cart_owner)) -> Dict[str, Any]:
    """Pré-contrôle du panier avant paiement (EMPTY_CART / INVENTORY_ERROR)."""
    return {"success": True, "data": checkout_service.validate_checkout(owner)}


@router.post("/shipping-rates")
def shipping_rates(address: ShippingDestination, owner: CartOwner = Depends(get_cart_owner)) -> Dict[str, Any]:
    destination = address.model_dump(by_alias=True, exclude_none=True)
    return {"success": True, "data": checkout_service.shipping_rates(owner, destination)}


@router.post("/create-session", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def create_session(payload: CreateSessionRequest, owner: CartOwner = Depends(get_cart_owner)) -> Dict[str, Any]:
    """
    Crée la session de paiement Stripe.
    - Montants recalculés côté serveur (prix, remise, livraison)
    - Retour: {sessionId, url} pour la redirection
    """
    return {"success": True, "data": checkout_service.create_checkout_session(owner, payload)}


@router.get("/success")
def checkout_success(session_id: str = Query(default="", alias="session_id")) -> Dict[str, Any]:
    """
    Retour de Stripe: confirme le paiement puis crée la commande (idempotent avec le webhook).
    """
    order = checkout_service.confirm_checkout_session(session_id)
    return {"success": True, "message": "Order created successfully", "data": {"order": order}}
