"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
Toute erreur du SDK est traduite en UpstreamError (502).
"""
import logging
import stripe
from typing import Any, Dict, List, Optional
from fastapi import Request

from huntkitchen.config import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET, STRIPE_CURRENCY
from huntkitchen.errors import InternalError, NotFoundError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

# module huntkitchen.checkout.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY si disponible.
    - En absence de clé, les appels Stripe échoueront côté SDK (ex: No API key provided).
    """
    if STRIPE_SECRET_KEY:
        stripe.api_key = STRIPE_SECRET_KEY
    return stripe


def _as_dict(obj: Any) -> Dict[str, Any]:
    # StripeObject -> dict récursif; les dicts simples (tests) passent tels quels
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


def create_session(
    *,
    line_items: List[Dict[str, Any]],
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, str],
    customer_email: Optional[str] = None,
    coupon_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Crée une session Stripe Checkout (mode paiement).
    Retour: dict session (ex: {"id": "cs_test_...", "url": "https://..."})
    """
    require_stripe()
    params: Dict[str, Any] = {
        "mode": "payment",
        "payment_method_types": ["card"],
        "line_items": line_items,
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": metadata,
        "billing_address_collection": "auto",
        "phone_number_collection": {"enabled": True},
    }
    if customer_email:
        params["customer_email"] = customer_email
    if coupon_id:
        params["discounts"] = [{"coupon": coupon_id}]
    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as exc:
        logger.exception("checkout.stripe_client.create_session failed")
        raise UpstreamError("Payment provider rejected the checkout session") from exc
    return _as_dict(session)


def get_session(session_id: str) -> Dict[str, Any]:
    """
    Récupère une session Stripe Checkout par son identifiant.
    Retour: dict session incluant "id", "payment_status", "payment_intent", "metadata", etc.
    """
    require_stripe()
    try:
        session = stripe.checkout.Session.retrieve(session_id)
    except stripe.InvalidRequestError as exc:
        raise NotFoundError("Session not found") from exc
    except stripe.StripeError as exc:
        logger.exception("checkout.stripe_client.get_session failed session_id=%s", session_id)
        raise UpstreamError("Payment provider unavailable") from exc
    return _as_dict(session)


def create_coupon(*, amount_off_cents: int, name: str, currency: str = STRIPE_CURRENCY) -> Dict[str, Any]:
    """Coupon éphémère à usage unique, en montant fixe (centimes)."""
    require_stripe()
    try:
        coupon = stripe.Coupon.create(
            amount_off=int(amount_off_cents),
            currency=currency,
            duration="once",
            name=name[:40],
        )
    except stripe.StripeError as exc:
        logger.exception("checkout.stripe_client.create_coupon failed name=%s", name)
        raise UpstreamError("Payment provider rejected the discount coupon") from exc
    return _as_dict(coupon)


async def parse_event(request: Request) -> Dict[str, Any]:
    """
    Parse et valide un événement Stripe signé (webhook).
    - Lit le body brut + en-tête Stripe-Signature
    - Valide la signature via Webhook.construct_event (STRIPE_WEBHOOK_SECRET)
    Retour: l'événement (dict) si la signature est valide.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        raise ValidationError("No signature", code="INVALID_SIGNATURE")
    if not STRIPE_WEBHOOK_SECRET:
        logger.error("checkout.stripe_client.parse_event STRIPE_WEBHOOK_SECRET is not configured")
        raise InternalError("Webhook secret not configured")
    require_stripe()
    try:
        event = stripe.Webhook.construct_event(payload, sig_header, STRIPE_WEBHOOK_SECRET)
    except (ValueError, stripe.SignatureVerificationError) as exc:
        logger.warning("checkout.stripe_client.parse_event signature verification failed: %s", exc)
        raise ValidationError("Invalid signature", code="INVALID_SIGNATURE") from exc
    return _as_dict(event)
