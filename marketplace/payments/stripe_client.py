"""
Adaptateur Stripe: centralise les appels et la configuration Stripe (Connect, destination charges).
Aucune exception du SDK ne sort d'ici telle quelle: l'appelant reçoit PaymentProcessorError.
"""
from typing import Any, Dict, Optional
import logging

import stripe
from fastapi import Request

from marketplace.config import STRIPE_API_VERSION, STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from marketplace.errors import InvalidRequest, PaymentProcessorError

logger = logging.getLogger(__name__)

# module marketplace.payments.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY si disponible.
    - En absence de clé, les appels Stripe échouent côté SDK (AuthenticationError -> PaymentProcessorError).
    """
    if STRIPE_SECRET_KEY:
        stripe.api_key = STRIPE_SECRET_KEY
    stripe.api_version = STRIPE_API_VERSION
    return stripe


def create_payment_intent(
    *,
    amount: int,
    currency: str,
    application_fee_amount: int,
    destination: str,
    metadata: Dict[str, str],
    idempotency_key: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Crée un PaymentIntent « destination charge »:
    - amount: total débité à l'acheteur (unité mineure)
    - application_fee_amount: part conservée par la plateforme
    - transfer_data.destination: compte connecté du vendeur (reçoit le reste)
    Retour: dict incluant "id", "client_secret", "status".
    """
    require_stripe()
    try:
        intent = stripe.PaymentIntent.create(
            amount=amount,
            currency=currency.lower(),
            application_fee_amount=application_fee_amount,
            transfer_data={"destination": destination},
            automatic_payment_methods={"enabled": True},
            metadata=metadata,
            idempotency_key=idempotency_key,
        )
    except stripe.StripeError as e:
        logger.warning("stripe.create_payment_intent refused code=%s msg=%s", getattr(e, "code", None), getattr(e, "user_message", None) or str(e))
        raise PaymentProcessorError(getattr(e, "user_message", None) or "Paiement refusé par Stripe") from e
    except Exception as e:
        logger.exception("stripe.create_payment_intent failed")
        raise PaymentProcessorError("Stripe indisponible") from e
    return dict(intent)


def cancel_payment_intent(payment_intent_id: str) -> Dict[str, Any]:
    """Annule un PaymentIntent non capturé (compensation du checkout)."""
    require_stripe()
    try:
        return dict(stripe.PaymentIntent.cancel(payment_intent_id))
    except stripe.StripeError as e:
        raise PaymentProcessorError(f"Annulation Stripe impossible: {getattr(e, 'user_message', None) or e}") from e


def retrieve_payment_intent(payment_intent_id: str) -> Dict[str, Any]:
    """Relit un PaymentIntent (statut courant et client_secret)."""
    require_stripe()
    try:
        return dict(stripe.PaymentIntent.retrieve(payment_intent_id))
    except stripe.StripeError as e:
        logger.warning("stripe.retrieve_payment_intent failed intent=%s msg=%s", payment_intent_id, getattr(e, "user_message", None) or str(e))
        raise PaymentProcessorError("Lecture du paiement Stripe impossible") from e


async def parse_event(request: Request):
    """
    Parse et valide un événement Stripe signé (webhook).
    - Lit le body brut + en-tête Stripe-Signature
    - Valide la signature via Webhook.construct_event (STRIPE_WEBHOOK_SECRET)
    Retour: l'objet event si la signature est valide, InvalidRequest sinon.
    """
    require_stripe()
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature") or ""
    if not sig_header:
        raise InvalidRequest("Signature Stripe manquante")
    try:
        return stripe.Webhook.construct_event(payload, sig_header, STRIPE_WEBHOOK_SECRET or "")
    except (ValueError, stripe.SignatureVerificationError) as e:
        raise InvalidRequest("Webhook Stripe invalide") from e
