"""
Cas d'usage 'checkout': pré-contrôle, session Stripe, puis matérialisation idempotente de la commande.

La matérialisation est une saga dont la clé d'idempotence est l'id de session Stripe:
  1) créer la commande (contrainte unique sur stripe_checkout_session_id)
  2) créer les lignes figées (compensation: suppression de la commande en cas d'échec)
  3) incrémenter l'usage du code promo
  4) décrémenter le stock des variantes suivies
  5) vider le panier source
Chaque étape 3 à 5 est marquée sur la commande: une confirmation ultérieure (page de succès,
webhook rejoué) relit la commande existante et termine les étapes restantes, sans en rejouer aucune.
"""
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from huntkitchen.cart import repository as cart_repository
from huntkitchen.cart import service as cart_service
from huntkitchen.cart.session import CartOwner
from huntkitchen.catalog import repository as catalog_repository
from huntkitchen.catalog.models import ResolvedLine
from huntkitchen.config import BASE_URL, CHECKOUT_CANCEL_PATH, CHECKOUT_SUCCESS_PATH, STRIPE_CURRENCY
from huntkitchen.errors import InternalError, InventoryError, NotFoundError, ValidationError
from huntkitchen.infra import supabase_client
from huntkitchen.inventory.validator import validate_lines
from huntkitchen.orders import repository as orders_repository
from huntkitchen.orders import service as orders_service
from huntkitchen.orders.models import FulfillmentStatus, OrderStatus, PaymentStatus
from huntkitchen.pricing.engine import calculate_totals, check_discount_eligibility, round2, to_cents
from huntkitchen.pricing.models import to_decimal

from . import metadata as meta
from . import shipping
from . import stripe_client

logger = logging.getLogger(__name__)

MAX_ORDER_INSERT_ATTEMPTS = 3

# module huntkitchen.checkout.service
def prepare_checkout(owner: CartOwner) -> Tuple[Dict[str, Any], List[ResolvedLine]]:
    """
    Pré-contrôle commun: panier non vide et inventaire valide.
    Lève EMPTY_CART (400) ou INVENTORY_ERROR (409, violations détaillées).
    """
    cart = cart_service.resolve_cart(owner)
    lines = cart_service.load_lines(cart["id"])
    if not lines:
        raise ValidationError("Cart is empty", code="EMPTY_CART")
    violations = validate_lines(lines)
    if violations:
        raise InventoryError("Some items in your cart are unavailable", details=violations)
    return cart, lines


def validate_checkout(owner: CartOwner) -> Dict[str, Any]:
    _, lines = prepare_checkout(owner)
    subtotal = calculate_totals([l.to_price_line() for l in lines]).subtotal
    return {
        "valid": True,
        "items": [
            {
                "id": l.item_id,
                "productName": l.product_name,
                "variantName": l.variant_name,
                "quantity": l.quantity,
                "unitPrice": float(l.unit_price),
                "lineTotal": float(round2(l.unit_price * l.quantity)),
            }
            for l in lines
        ],
        "subtotal": float(subtotal),
        "itemCount": sum(l.quantity for l in lines),
    }


def shipping_rates(owner: CartOwner, address: Dict[str, Any]) -> Dict[str, Any]:
    cart = cart_service.resolve_cart(owner)
    lines = cart_service.load_lines(cart["id"])
    if not lines:
        raise ValidationError("Cart is empty", code="EMPTY_CART")
    subtotal = calculate_totals([l.to_price_line() for l in lines]).subtotal
    quote = shipping.shipping_quote(lines, subtotal)
    quote["address"] = address
    return quote


def _line_item(line: ResolvedLine) -> Dict[str, Any]:
    return {
        "quantity": line.quantity,
        "price_data": {
            "currency": STRIPE_CURRENCY,
            "unit_amount": to_cents(line.unit_price),
            "product_data": {
                "name": line.display_name,
                "metadata": {"product_id": line.product_id, "variant_id": line.variant_id or ""},
            },
        },
    }


def build_line_items(lines: List[ResolvedLine], shipping_rate: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Lignes Stripe en centimes + une ligne séparée pour la livraison si non nulle."""
    items = [_line_item(l) for l in lines]
    if to_decimal(shipping_rate["price"]) > 0:
        items.append({
            "quantity": 1,
            "price_data": {
                "currency": STRIPE_CURRENCY,
                "unit_amount": to_cents(shipping_rate["price"]),
                "product_data": {"name": shipping_rate["name"], "description": "Shipping"},
            },
        })
    return items


def create_checkout_session(owner: CartOwner, request) -> Dict[str, Any]:
    """
    Crée la session Stripe à partir du panier courant, jamais des prix envoyés par le client.
    - Totaux et éligibilité du code promo recalculés ici, juste avant le paiement
    - Remise transmise comme coupon éphémère en montant fixe (centimes) égal à la remise calculée
    """
    cart, lines = prepare_checkout(owner)
    price_lines = [l.to_price_line() for l in lines]
    subtotal = calculate_totals(price_lines).subtotal
    rate = shipping.resolve_rate(request.shipping_rate.id, shipping.cart_weight(lines), subtotal)

    discount = cart_service.load_discount(request.discount_code_id)
    if request.discount_code_id and discount is None:
        raise NotFoundError("Invalid discount code")
    usage = None
    if discount is not None:
        usage = cart_service.customer_usage_for(discount, owner.user_id)
        # Le code a pu expirer ou atteindre sa limite depuis son application au panier
        refusal = check_discount_eligibility(discount, price_lines, customer_usage=usage)
        if refusal is not None:
            raise ValidationError(refusal.message, details={"reason": refusal.reason})
    totals = calculate_totals(price_lines, discount, rate["price"], customer_usage=usage)

    charged_rate = {**rate, "price": totals.shipping_amount}
    coupon_id = None
    if totals.discount_amount > 0:
        coupon = stripe_client.create_coupon(amount_off_cents=to_cents(totals.discount_amount), name=discount.code)
        coupon_id = coupon.get("id")

    shipping_address = request.shipping_address.model_dump(by_alias=True, exclude_none=True)
    billing_source = request.shipping_address if request.same_as_shipping else (request.billing_address or request.shipping_address)
    billing_address = billing_source.model_dump(by_alias=True, exclude_none=True)

    metadata = meta.make_session_metadata(
        cart_id=cart["id"],
        user_id=owner.user_id,
        session_id=owner.session_id,
        discount_code_id=discount.id if discount else None,
        shipping_rate=charged_rate,
        shipping_address=shipping_address,
        billing_address=billing_address,
    )
    session = stripe_client.create_session(
        line_items=build_line_items(lines, charged_rate),
        success_url=f"{BASE_URL}{CHECKOUT_SUCCESS_PATH}?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{BASE_URL}{CHECKOUT_CANCEL_PATH}",
        metadata=metadata,
        customer_email=str(request.email),
        coupon_id=coupon_id,
    )
    logger.info("checkout.create_session cart_id=%s session_id=%s total=%s", cart["id"], session.get("id"), totals.total)
    return {"sessionId": session.get("id"), "url": session.get("url"), "totals": totals.to_dict()}


def _order_items(lines: List[ResolvedLine]) -> List[Dict[str, Any]]:
    return [
        {
            "product_id": l.product_id,
            "variant_id": l.variant_id,
            "product_name": l.product_name,
            "variant_name": l.variant_name,
            "sku": l.sku,
            "quantity": l.quantity,
            "unit_price": str(round2(l.unit_price)),
            "total_price": str(round2(l.unit_price * l.quantity)),
        }
        for l in lines
    ]


# Étapes 3 à 5: chacune est réservée par un horodatage sur la commande avant d'être exécutée
DISCOUNT_STEP = "discount_usage_recorded_at"
INVENTORY_STEP = "inventory_committed_at"
CART_STEP = "cart_cleared_at"


def _insert_order_once(payload: Dict[str, Any], checkout_session_id: str) -> Tuple[Dict[str, Any], bool]:
    """
    Insère la commande; retourne (commande, créée?).
    Violation d'unicité: si la session a déjà sa commande, le perdant de la course la relit;
    sinon c'est le numéro de commande qui a collisionné et on en régénère un.
    """
    for _ in range(MAX_ORDER_INSERT_ATTEMPTS):
        payload["order_number"] = orders_service.generate_order_number()
        try:
            return orders_repository.insert_order(payload), True
        except Exception as exc:
            if not supabase_client.is_unique_violation(exc):
                raise
            existing = orders_repository.find_by_checkout_session(checkout_session_id)
            if existing:
                logger.info("checkout.materialize lost race session_id=%s order_id=%s", checkout_session_id, existing.get("id"))
                return existing, False
    raise InternalError("Could not allocate an order number")


def _run_step(order_id: str, marker: str, action: Callable[[], Any]) -> None:
    if not orders_repository.claim_order_step(order_id, marker):
        return
    try:
        action()
    except Exception:
        logger.exception("checkout.materialize step %s failed order_id=%s, will resume on next confirmation", marker, order_id)
        orders_repository.release_order_step(order_id, marker)
        raise


def _decrement_inventory(items: List[Dict[str, Any]]) -> None:
    for item in items:
        product = item.get("product") or {}
        if product.get("track_inventory") and item.get("variant_id"):
            catalog_repository.adjust_variant_inventory(item["variant_id"], -int(item.get("quantity") or 0))


def _complete_order(order: Dict[str, Any], cart_id: Optional[str]) -> Dict[str, Any]:
    """
    Étapes 3 à 5 de la saga, reprises à chaque confirmation tant qu'elles ne sont pas marquées faites.
    Le stock est décrémenté d'après les lignes figées, jamais d'après le panier (déjà vidé lors d'une reprise).
    Retourne la commande relue avec ses lignes: même résultat à chaque confirmation.
    """
    order_id = order["id"]
    items = orders_repository.list_order_items(order_id)
    if items:
        discount_id = order.get("discount_code_id")
        if discount_id:
            _run_step(order_id, DISCOUNT_STEP, lambda: catalog_repository.increment_discount_usage(discount_id))
        _run_step(order_id, INVENTORY_STEP, lambda: _decrement_inventory(items))
        if cart_id:
            _run_step(order_id, CART_STEP, lambda: cart_repository.clear_items(cart_id))
    # Sans lignes: l'appel concurrent qui a créé la commande ne les a pas encore écrites, il terminera la saga
    return orders_repository.get_order(order_id) or order


def materialize_order(session: Dict[str, Any]) -> Dict[str, Any]:
    """
    Crée exactement une commande par session Stripe payée.
    Une commande existante est relue et ses étapes restantes sont terminées.
    Lève CART_NOT_FOUND si le panier a disparu ou a été vidé entre la session et la confirmation.
    """
    checkout_session_id = str(session.get("id") or "")
    context = meta.extract_session_metadata(session)
    cart_id = context["cart_id"]

    existing = orders_repository.find_by_checkout_session(checkout_session_id)
    if existing:
        return _complete_order(existing, cart_id)

    if not cart_id:
        raise ValidationError("Cart ID not found in session metadata")

    lines = cart_service.load_lines(cart_id)
    if not lines:
        # Le panier a pu être vidé par l'appel concurrent qui vient de créer la commande
        existing = orders_repository.find_by_checkout_session(checkout_session_id)
        if existing:
            logger.info("checkout.materialize lost race after cart cleared session_id=%s order_id=%s", checkout_session_id, existing.get("id"))
            return _complete_order(existing, cart_id)
        # Paiement encaissé sans commande réalisable: alerte opérationnelle
        logger.error(
            "checkout.materialize CART_NOT_FOUND paid session without fulfillable cart session_id=%s cart_id=%s payment_intent=%s",
            checkout_session_id, cart_id, meta.payment_intent_id(session),
        )
        raise NotFoundError("Cart not found or empty", code="CART_NOT_FOUND")

    discount = cart_service.load_discount(context["discount_code_id"])
    shipping_amount = to_decimal(context["shipping_amount"], Decimal("0"))
    totals = calculate_totals(
        [l.to_price_line() for l in lines], discount, shipping_amount, Decimal("0"), enforce_eligibility=False
    )

    customer = session.get("customer_details") or {}
    payload = {
        "user_id": context["user_id"],
        "email": customer.get("email") or session.get("customer_email") or "",
        "status": OrderStatus.CONFIRMED.value,
        "payment_status": PaymentStatus.PAID.value,
        "fulfillment_status": FulfillmentStatus.UNFULFILLED.value,
        "subtotal": str(totals.subtotal),
        "discount_amount": str(totals.discount_amount),
        "shipping_amount": str(totals.shipping_amount),
        "tax_amount": str(totals.tax_amount),
        "total": str(totals.total),
        "currency": STRIPE_CURRENCY.upper(),
        "shipping_address": context["shipping_address"],
        "billing_address": context["billing_address"],
        "shipping_method": context["shipping_method"],
        "stripe_payment_intent_id": meta.payment_intent_id(session),
        "stripe_checkout_session_id": checkout_session_id,
        "discount_code_id": discount.id if discount else None,
    }

    # 1) la commande: clé d'idempotence de toutes les étapes suivantes
    order, created = _insert_order_once(payload, checkout_session_id)
    if created:
        # 2) lignes figées, avec compensation
        try:
            orders_repository.insert_order_items(order["id"], _order_items(lines))
        except Exception:
            logger.exception("checkout.materialize order items failed, rolling back order_id=%s", order["id"])
            orders_repository.delete_order(order["id"])
            raise
        logger.info(
            "checkout.materialize created order_id=%s order_number=%s session_id=%s total=%s",
            order["id"], order.get("order_number"), checkout_session_id, totals.total,
        )

    # 3) usage du code promo, 4) stock, 5) panier source vidé
    return _complete_order(order, cart_id)


def confirm_checkout_session(checkout_session_id: str) -> Dict[str, Any]:
    """
    Page de succès: vérifie le paiement auprès de Stripe puis matérialise la commande.
    Appelé deux fois avec la même session: même commande, une seule ligne 'orders'.
    """
    if not checkout_session_id:
        raise ValidationError("Session ID is required")
    session = stripe_client.get_session(checkout_session_id)
    payment_status = session.get("payment_status") or ""
    if payment_status != "paid":
        raise ValidationError(
            "Payment not completed", code="PAYMENT_NOT_COMPLETED", details={"paymentStatus": payment_status}
        )
    order = materialize_order(session)
    return orders_service.format_order_summary(order)
