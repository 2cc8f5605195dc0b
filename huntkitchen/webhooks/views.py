import logging
from typing import Any, Dict

from fastapi import APIRouter, Request

from huntkitchen.checkout import stripe_client
from huntkitchen.webhooks import service as webhooks_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/webhooks", tags=["Webhooks"])

# module huntkitchen.webhooks.views
@router.post("/stripe")
async def stripe_webhook(request: Request) -> Dict[str, Any]:
    """
    Webhook Stripe signé.
    - Signature absente ou invalide: 400 INVALID_SIGNATURE, aucun traitement
    - Types non gérés: accusés de réception sans effet
    """
    event = await stripe_client.parse_event(request)
    handled = webhooks_service.handle_event(event)
    logger.info("webhooks.stripe received id=%s type=%s handled=%s", event.get("id"), event.get("type"), handled)
    return {"received": True}
