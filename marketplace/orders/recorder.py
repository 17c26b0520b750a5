"""
Enregistrement de la commande: en-tête, lignes et paiement.

Ordre pragmatique (PostgREST n'offre pas de transaction multi-requêtes):
réservation (déjà validée) -> paiement émis -> commande écrite ici.
Si les lignes ou le paiement échouent, l'en-tête passe 'cancelled' et l'erreur remonte
pour que l'orchestrateur compense (libération + annulation Stripe).
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from marketplace.errors import LedgerInconsistent, StoreError
from marketplace.payments import repository as payments_repository
from marketplace.payments.issuer import IssuedPayment
from . import repository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderAmounts:
    item_price: Decimal
    total_amount: Decimal
    platform_fee: Decimal
    seller_amount: Decimal
    shipping_cost: Decimal

    def is_balanced(self) -> bool:
        return self.total_amount == self.seller_amount + self.platform_fee + self.shipping_cost

    def to_dict(self) -> Dict[str, str]:
        return {
            "itemPrice": str(self.item_price),
            "totalAmount": str(self.total_amount),
            "platformFee": str(self.platform_fee),
            "sellerAmount": str(self.seller_amount),
            "shippingCost": str(self.shipping_cost),
        }


@dataclass(frozen=True)
class OrderLine:
    listing_id: str
    price: Decimal
    variant_id: Optional[str] = None


def record(
    *,
    order_id: str,
    buyer_id: str,
    seller_id: str,
    amounts: OrderAmounts,
    currency: str,
    shipping_address: Dict[str, Any],
    lines: List[OrderLine],
    payment: IssuedPayment,
) -> str:
    """
    Écrit la commande 'pending' (id = brouillon du checkout), ses lignes puis le paiement.
    Retourne l'identifiant de commande.
    """
    if not lines:
        raise LedgerInconsistent("Une commande sans ligne n'est pas enregistrable")
    if not amounts.is_balanced():
        raise LedgerInconsistent(f"Montants incohérents: {amounts}")

    repository.insert_order({
        "id": order_id,
        "buyer_id": buyer_id,
        "seller_id": seller_id,
        "total_amount": str(amounts.total_amount),
        "platform_fee": str(amounts.platform_fee),
        "seller_amount": str(amounts.seller_amount),
        "currency": currency,
        "status": "pending",
        "shipping_address": shipping_address,
        "shipping_cost": str(amounts.shipping_cost),
        "shipping_status": "awaiting_shipment",
    })
    try:
        repository.insert_order_lines([
            {
                "order_id": order_id,
                "listing_id": line.listing_id,
                "variant_id": line.variant_id,
                "price": str(line.price),
            }
            for line in lines
        ])
        payments_repository.insert_payment(
            order_id=order_id,
            payment_intent_id=payment.processor_reference_id,
            amount=amounts.item_price,
            currency=currency,
            status=payment.status,
        )
    except StoreError:
        logger.error("orders.record incomplete order=%s, cancelling header", order_id)
        try:
            repository.transition_order(order_id, "cancelled")
        except StoreError:
            logger.exception("orders.record cancel header failed order=%s", order_id)
        raise

    logger.info("orders.record order=%s lines=%s total=%s", order_id, len(lines), amounts.total_amount)
    return order_id
