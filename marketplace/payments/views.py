import logging
from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool

from marketplace.payments import stripe_client
from marketplace.payments import service as payments_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])

# module marketplace.payments.views
@router.post("/webhook", include_in_schema=False)
async def webhook_stripe(request: Request) -> Dict[str, Any]:
    """
    Webhook Stripe (PaymentIntents du checkout).
    - Signature: valide via stripe_client.parse_event (Stripe-Signature + STRIPE_WEBHOOK_SECRET)
    - Traitement: payments_service.handle_event (succès -> commande payée, échec -> commande annulée + libération)
    - Réponses: {"status": "ok", "order_id": ...} ou {"status": "ignored"}
    - Erreurs: 400 InvalidRequest si signature/payload invalide
    """
    event = await stripe_client.parse_event(request)
    result = await run_in_threadpool(payments_service.handle_event, dict(event))
    logger.info("payments.webhook type=%s result=%s", (event or {}).get("type"), result.get("status"))
    return result
