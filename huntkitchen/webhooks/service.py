"""
Réconciliation des événements Stripe vers l'état des commandes.

Chaque handler retrouve la commande par son payment intent puis n'agit que si l'état cible
n'est pas déjà atteint: une livraison répétée ou désordonnée est sans effet.
"""
from typing import Any, Callable, Dict, Optional
import logging

from huntkitchen.catalog import repository as catalog_repository
from huntkitchen.checkout import metadata as meta
from huntkitchen.checkout import service as checkout_service
from huntkitchen.orders import repository as orders_repository
from huntkitchen.orders.models import MONEY_MOVED, REFUND_STATES, OrderStatus, PaymentStatus

logger = logging.getLogger(__name__)

# module huntkitchen.webhooks.service
def _order_for(payment_intent: Optional[str], event_type: str) -> Optional[Dict[str, Any]]:
    if not payment_intent:
        logger.info("webhooks.%s without payment_intent, ignored", event_type)
        return None
    order = orders_repository.find_by_payment_intent(payment_intent)
    if order is None:
        logger.info("webhooks.%s no order for payment_intent=%s", event_type, payment_intent)
    return order


def on_checkout_completed(session: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Crée la commande si la session est payée; même chemin idempotent que la page de succès."""
    if session.get("payment_status") != "paid":
        logger.info("webhooks.checkout.session.completed not paid session_id=%s", session.get("id"))
        return None
    return checkout_service.materialize_order(session)


def on_payment_succeeded(intent: Dict[str, Any]) -> None:
    order = _order_for(intent.get("id"), "payment_intent.succeeded")
    if order is None:
        return
    if order.get("payment_status") in REFUND_STATES:
        # Remboursement déjà traité: un succès tardif ne le défait pas
        return
    fields: Dict[str, Any] = {}
    if order.get("payment_status") != PaymentStatus.PAID.value:
        fields["payment_status"] = PaymentStatus.PAID.value
    if order.get("status") == OrderStatus.PENDING.value:
        fields["status"] = OrderStatus.CONFIRMED.value
    if fields:
        orders_repository.update_order(order["id"], fields)
        logger.info("webhooks.payment_intent.succeeded order_id=%s fields=%s", order["id"], sorted(fields))


def on_payment_failed(intent: Dict[str, Any]) -> None:
    order = _order_for(intent.get("id"), "payment_intent.payment_failed")
    if order is None:
        return
    current = order.get("payment_status")
    if current in MONEY_MOVED or current == PaymentStatus.FAILED.value:
        return
    orders_repository.update_order(order["id"], {"payment_status": PaymentStatus.FAILED.value})
    logger.info("webhooks.payment_intent.payment_failed order_id=%s", order["id"])


def restore_inventory(order_id: str) -> int:
    """Réincrémente le stock des variantes suivies; retourne le nombre de lignes restaurées."""
    restored = 0
    for item in orders_repository.list_order_items(order_id):
        product = item.get("product") or {}
        if not product.get("track_inventory") or not item.get("variant_id"):
            continue
        catalog_repository.adjust_variant_inventory(item["variant_id"], int(item.get("quantity") or 0))
        restored += 1
    return restored


def on_charge_refunded(charge: Dict[str, Any]) -> None:
    """
    Remboursement total: REFUNDED + restauration du stock, une seule fois.
    La mise à jour est conditionnelle (payment_status <> REFUNDED): seule la livraison qui
    modifie effectivement la ligne restaure l'inventaire.
    Remboursement partiel: PARTIALLY_REFUNDED, stock inchangé.
    """
    order = _order_for(meta.payment_intent_id(charge), "charge.refunded")
    if order is None:
        return
    amount = int(charge.get("amount") or 0)
    refunded = int(charge.get("amount_refunded") or 0)
    if refunded >= amount and amount > 0:
        updated = orders_repository.update_order(
            order["id"],
            {"payment_status": PaymentStatus.REFUNDED.value, "status": OrderStatus.REFUNDED.value},
            unless=("payment_status", PaymentStatus.REFUNDED.value),
        )
        if not updated:
            return
        restored = restore_inventory(order["id"])
        logger.info("webhooks.charge.refunded full order_id=%s restored_lines=%s", order["id"], restored)
        return
    if order.get("payment_status") in REFUND_STATES:
        return
    orders_repository.update_order(order["id"], {"payment_status": PaymentStatus.PARTIALLY_REFUNDED.value})
    logger.info("webhooks.charge.refunded partial order_id=%s amount_refunded=%s", order["id"], refunded)


def on_dispute_created(dispute: Dict[str, Any]) -> None:
    # Suivi manuel: aucun changement d'état automatique
    logger.warning(
        "webhooks.charge.dispute.created dispute_id=%s charge=%s amount=%s reason=%s",
        dispute.get("id"), dispute.get("charge"), dispute.get("amount"), dispute.get("reason"),
    )


HANDLERS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "checkout.session.completed": on_checkout_completed,
    "payment_intent.succeeded": on_payment_succeeded,
    "payment_intent.payment_failed": on_payment_failed,
    "charge.refunded": on_charge_refunded,
    "charge.dispute.created": on_dispute_created,
}


def handle_event(event: Dict[str, Any]) -> bool:
    """
    Distribue un événement vérifié vers son handler.
    Retour: True si l'événement est géré, False s'il est ignoré (type inconnu).
    """
    event_type = event.get("type") or ""
    handler = HANDLERS.get(event_type)
    if handler is None:
        logger.debug("webhooks.handle_event ignored type=%s", event_type)
        return False
    obj = (event.get("data") or {}).get("object") or {}
    handler(obj)
    return True
