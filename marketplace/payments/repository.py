"""
Accès aux données pour la feature 'payments' (table payments).
Le statut initial recopie celui rapporté par Stripe; les transitions suivantes sont conditionnelles.
"""
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional
import logging

import marketplace.infra.supabase_client as supabase_client
from marketplace.errors import StoreError

logger = logging.getLogger(__name__)

# Statuts Stripe d'un PaymentIntent non encore abouti
OPEN_STATUSES = (
    "requires_payment_method",
    "requires_confirmation",
    "requires_action",
    "processing",
    "pending",
)

# module marketplace.payments.repository
def insert_payment(*, order_id: str, payment_intent_id: str, amount: Decimal, currency: str, status: str) -> Dict[str, Any]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("payments")
            .insert({
                "order_id": order_id,
                "stripe_payment_intent_id": payment_intent_id,
                "amount": str(amount),
                "currency": currency,
                "status": status,
            })
            .execute()
        )
        rows = res.data or []
        return rows[0] if isinstance(rows, list) and rows else {"status": "ok"}
    except Exception as e:
        logger.exception("payments.repository.insert_payment failed order_id=%s intent=%s", order_id, payment_intent_id)
        raise StoreError("Enregistrement du paiement impossible") from e


def get_payment_by_intent(payment_intent_id: str) -> Optional[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("payments")
            .select("id, order_id, stripe_payment_intent_id, status")
            .eq("stripe_payment_intent_id", payment_intent_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception as e:
        logger.exception("payments.repository.get_payment_by_intent failed intent=%s", payment_intent_id)
        raise StoreError("Lecture du paiement impossible") from e


def transition_payment(payment_intent_id: str, status: str, from_statuses: Iterable[str] = OPEN_STATUSES) -> List[Dict[str, Any]]:
    """Met à jour le statut seulement depuis un statut ouvert (idempotent face aux rejeux de webhook)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("payments")
            .update({"status": status})
            .eq("stripe_payment_intent_id", payment_intent_id)
            .in_("status", list(from_statuses))
            .execute()
        )
        return res.data or []
    except Exception as e:
        logger.exception("payments.repository.transition_payment failed intent=%s status=%s", payment_intent_id, status)
        raise StoreError("Mise à jour du paiement impossible") from e


def get_payment_for_order(order_id: str) -> Optional[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("payments")
            .select("id, order_id, stripe_payment_intent_id, amount, status")
            .eq("order_id", order_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception as e:
        logger.exception("payments.repository.get_payment_for_order failed order_id=%s", order_id)
        raise StoreError("Lecture du paiement impossible") from e
