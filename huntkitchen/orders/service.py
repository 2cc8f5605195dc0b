"""
Cas d'usage 'orders': numéro de commande, historique et détail (avec contrôle de propriété).
"""
import secrets
import string
import time
from typing import Any, Callable, Dict, Optional

from huntkitchen.config import ORDER_NUMBER_PREFIX
from huntkitchen.errors import ForbiddenError, InternalError, NotFoundError, ValidationError

from . import repository

_BASE36 = string.digits + string.ascii_uppercase
MAX_ORDER_NUMBER_ATTEMPTS = 5


# module huntkitchen.orders.service
def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 of a negative number")
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(_BASE36[rem])
    return "".join(reversed(out))


def _random_suffix(length: int = 4) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def generate_order_number(
    *,
    exists: Optional[Callable[[str], bool]] = None,
    max_attempts: int = MAX_ORDER_NUMBER_ATTEMPTS,
) -> str:
    """
    Format <PREFIX>-<timestamp ms en base36>-<4 caractères aléatoires base36>.
    Vérifié contre la base et régénéré en cas de collision, nombre d'essais borné.
    """
    exists = exists or repository.order_number_exists
    for _ in range(max_attempts):
        number = f"{ORDER_NUMBER_PREFIX}-{to_base36(int(time.time() * 1000))}-{_random_suffix()}"
        if not exists(number):
            return number
    raise InternalError("Could not generate a unique order number")


def _money(value) -> float:
    return float(value or 0)


def _format_item(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": item.get("id"),
        "product": item.get("product"),
        "variant": item.get("variant"),
        "productName": item.get("product_name"),
        "variantName": item.get("variant_name"),
        "sku": item.get("sku"),
        "quantity": int(item.get("quantity") or 0),
        "unitPrice": _money(item.get("unit_price")),
        "totalPrice": _money(item.get("total_price")),
    }


def format_order_summary(order: Dict[str, Any]) -> Dict[str, Any]:
    items = order.get("items") or []
    return {
        "id": order.get("id"),
        "orderNumber": order.get("order_number"),
        "email": order.get("email"),
        "status": order.get("status"),
        "paymentStatus": order.get("payment_status"),
        "fulfillmentStatus": order.get("fulfillment_status"),
        "subtotal": _money(order.get("subtotal")),
        "discountAmount": _money(order.get("discount_amount")),
        "shippingAmount": _money(order.get("shipping_amount")),
        "taxAmount": _money(order.get("tax_amount")),
        "total": _money(order.get("total")),
        "currency": order.get("currency"),
        "itemCount": sum(int(i.get("quantity") or 0) for i in items),
        "createdAt": order.get("created_at"),
        "updatedAt": order.get("updated_at"),
    }


def format_order_detail(order: Dict[str, Any]) -> Dict[str, Any]:
    discount = order.get("discount_code")
    detail = format_order_summary(order)
    detail.update({
        "items": [_format_item(i) for i in order.get("items") or []],
        "shippingAddress": order.get("shipping_address"),
        "billingAddress": order.get("billing_address"),
        "shippingMethod": order.get("shipping_method"),
        "trackingNumber": order.get("tracking_number"),
        "trackingUrl": order.get("tracking_url"),
        "discountCode": {
            "code": discount.get("code"),
            "description": discount.get("description"),
            "discountType": discount.get("discount_type"),
            "discountValue": _money(discount.get("discount_value")),
        } if discount else None,
    })
    return detail


def list_orders(user_id: str, page: int = 1, limit: int = 10) -> Dict[str, Any]:
    if page < 1 or limit < 1 or limit > 100:
        raise ValidationError("Invalid pagination", details={"page": page, "limit": limit})
    rows, total = repository.list_user_orders(user_id, page, limit)
    total_pages = (total + limit - 1) // limit
    return {
        "orders": [format_order_detail(o) for o in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "totalCount": total,
            "totalPages": total_pages,
            "hasMore": page < total_pages,
        },
    }


def get_order_for_user(order_id: str, user_id: str) -> Dict[str, Any]:
    order = repository.get_order(order_id)
    if not order:
        raise NotFoundError("Order not found")
    if str(order.get("user_id") or "") != str(user_id):
        raise ForbiddenError("You do not have permission to view this order")
    return format_order_detail(order)
