from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from huntkitchen.utils.security import require_user
from huntkitchen.orders import service as orders_service

router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])

# module huntkitchen.orders.views
@router.get("")
def list_my_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    user: Dict[str, Any] = Depends(require_user),
) -> Dict[str, Any]:
    """Historique paginé de l'utilisateur authentifié (plus récentes d'abord)."""
    return {"success": True, "data": orders_service.list_orders(str(user["id"]), page, limit)}


@router.get("/{order_id}")
def get_my_order(order_id: str, user: Dict[str, Any] = Depends(require_user)) -> Dict[str, Any]:
    """Détail d'une commande; 403 si elle appartient à un autre utilisateur."""
    return {"success": True, "data": {"order": orders_service.get_order_for_user(order_id, str(user["id"]))}}
