"""
Cas d'usage 'payments': traitement des événements Stripe liés aux PaymentIntents du checkout.
- payment_intent.succeeded: paiement -> succeeded, commande pending -> paid, annonce réservée -> sold.
- payment_intent.payment_failed / canceled: paiement -> failed/canceled, commande -> cancelled,
  puis libération de la réservation (compensation d'un paiement abandonné).
Toutes les écritures sont conditionnelles: un événement rejoué ne change plus rien.
"""
from typing import Any, Dict
import logging

from marketplace.inventory import reservation as inventory
from marketplace.inventory.reservation import Reservation
from marketplace.orders import repository as orders_repository
from . import repository

logger = logging.getLogger(__name__)

FAILURE_STATUSES = {
    "payment_intent.payment_failed": "failed",
    "payment_intent.canceled": "canceled",
}


def _reservation_for_order(order_id: str) -> Reservation:
    lines = orders_repository.list_order_lines(order_id)
    listing_id = str(lines[0].get("listing_id")) if lines else ""
    variant_ids = tuple(str(l["variant_id"]) for l in lines if l.get("variant_id"))
    return Reservation(reservation_id=order_id, listing_id=listing_id, variant_ids=variant_ids)


def _payment_for(intent: Dict[str, Any]) -> Dict[str, Any]:
    intent_id = str(intent.get("id") or "")
    payment = repository.get_payment_by_intent(intent_id) if intent_id else None
    if not payment:
        logger.warning("payments.webhook unknown intent=%s", intent_id)
        return {}
    return payment


def handle_payment_succeeded(intent: Dict[str, Any]) -> Dict[str, Any]:
    payment = _payment_for(intent)
    if not payment:
        return {"status": "ignored"}
    order_id = str(payment["order_id"])
    repository.transition_payment(str(intent["id"]), "succeeded")
    if orders_repository.transition_order(order_id, "paid"):
        reservation = _reservation_for_order(order_id)
        if reservation.listing_id:
            inventory.finalize(reservation)
        logger.info("payments.webhook order paid order=%s", order_id)
    return {"status": "ok", "order_id": order_id}


def handle_payment_failed(intent: Dict[str, Any], status: str) -> Dict[str, Any]:
    payment = _payment_for(intent)
    if not payment:
        return {"status": "ignored"}
    order_id = str(payment["order_id"])
    repository.transition_payment(str(intent["id"]), status)
    if orders_repository.transition_order(order_id, "cancelled"):
        reservation = _reservation_for_order(order_id)
        if reservation.listing_id:
            inventory.release(reservation)
        logger.info("payments.webhook order cancelled order=%s status=%s", order_id, status)
    return {"status": "ok", "order_id": order_id}


def handle_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """Aiguille l'événement Stripe; les types non gérés sont ignorés."""
    event_type = (event or {}).get("type") or ""
    intent = ((event or {}).get("data") or {}).get("object") or {}
    if event_type == "payment_intent.succeeded":
        return handle_payment_succeeded(intent)
    if event_type in FAILURE_STATUSES:
        return handle_payment_failed(intent, FAILURE_STATUSES[event_type])
    return {"status": "ignored"}
