"""
Module 'payments' (feature-first): point d'entrée public.
Réunit le client Stripe, l'émetteur de paiement partagé, le repository BD et le traitement des webhooks.
"""

from .stripe_client import require_stripe, create_payment_intent, cancel_payment_intent, parse_event
from .issuer import IssuedPayment, check_destination, issue, cancel, to_minor_units
from .repository import insert_payment, get_payment_by_intent, transition_payment
from .service import handle_event

__all__ = [
    # stripe
    "require_stripe",
    "create_payment_intent",
    "cancel_payment_intent",
    "parse_event",
    # issuer
    "IssuedPayment",
    "check_destination",
    "issue",
    "cancel",
    "to_minor_units",
    # repository
    "insert_payment",
    "get_payment_by_intent",
    "transition_payment",
    # webhook
    "handle_event",
]
