import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel, ConfigDict, Field

from huntkitchen.config import CART_COOKIE_NAME
from huntkitchen.utils.rate_limit import optional_rate_limit
from huntkitchen.utils.security import require_user
from huntkitchen.cart import service as cart_service
from huntkitchen.cart.session import CartOwner, clear_cart_cookie, get_cart_owner

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/cart", tags=["Cart API"])


class AddItemRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId", min_length=1)
    variant_id: Optional[str] = Field(default=None, alias="variantId")
    quantity: int = Field(ge=1)


class UpdateItemRequest(BaseModel):
    quantity: int = Field(ge=1)


class ApplyDiscountRequest(BaseModel):
    code: str = Field(min_length=1)


class MergeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")


# module huntkitchen.cart.views
@router.get("")
def get_cart(
    discount_code_id: Optional[str] = Query(default=None, alias="discountCodeId"),
    owner: CartOwner = Depends(get_cart_owner),
) -> Dict[str, Any]:
    """
    Panier courant (créé à la volée) avec totaux.
    - Query optionnelle: discountCodeId
    """
    return {"success": True, "data": cart_service.get_cart_view(owner, discount_code_id)}


@router.post("/items")
def add_cart_item(
    payload: AddItemRequest,
    response: Response,
    owner: CartOwner = Depends(get_cart_owner),
) -> Dict[str, Any]:
    """
    Ajoute un article ou incrémente la ligne existante.
    - 201 à la création, 200 à l'incrément
    - 409 INVENTORY_ERROR si la nouvelle quantité totale dépasse le stock
    """
    result = cart_service.add_item(owner, payload.product_id, payload.variant_id, payload.quantity)
    response.status_code = 201 if result["created"] else 200
    message = "Item added to cart" if result["created"] else "Cart item updated"
    return {"success": True, "message": message, "data": {"item": result["item"]}}


@router.patch("/items/{item_id}")
def update_cart_item(item_id: str, payload: UpdateItemRequest, owner: CartOwner = Depends(get_cart_owner)) -> Dict[str, Any]:
    data = cart_service.update_item(owner, item_id, payload.quantity)
    return {"success": True, "message": "Cart item updated", "data": data}


@router.delete("/items/{item_id}")
def delete_cart_item(item_id: str, owner: CartOwner = Depends(get_cart_owner)) -> Dict[str, Any]:
    cart_service.remove_item(owner, item_id)
    return {"success": True, "message": "Item removed from cart"}


@router.post("/discount", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def apply_discount(payload: ApplyDiscountRequest, owner: CartOwner = Depends(get_cart_owner)) -> Dict[str, Any]:
    """
    Vérifie un code promo (insensible à la casse) et renvoie le montant calculé.
    - 404 si code inconnu, 400 avec message explicite si le code ne s'applique pas
    """
    data = cart_service.apply_discount(owner, payload.code)
    return {"success": True, "message": "Discount code applied successfully", "data": data}


@router.delete("/discount")
def remove_discount() -> Dict[str, Any]:
    # Le code appliqué est porté par le client: rien à effacer côté serveur
    return {"success": True, "message": "Discount code removed"}


@router.post("/merge")
def merge_cart(
    request: Request,
    response: Response,
    payload: Optional[MergeRequest] = None,
    user: Dict[str, Any] = Depends(require_user),
) -> Dict[str, Any]:
    """
    Fusionne le panier invité (cookie cart_session_id ou body {sessionId}) dans le panier utilisateur.
    Idempotent: sans panier invité, succès sans effet. Le cookie invité est toujours effacé.
    """
    session_id = (payload.session_id if payload else None) or request.cookies.get(CART_COOKIE_NAME)
    data = cart_service.merge_guest_cart(str(user["id"]), session_id)
    clear_cart_cookie(response)
    message = "Cart merged successfully" if data["totalItems"] else "No guest cart to merge"
    return {"success": True, "message": message, "data": data}
