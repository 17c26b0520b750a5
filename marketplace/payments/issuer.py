"""
Émission du paiement partagé (split payment) via Stripe Connect.
L'acheteur est débité du total; Stripe conserve platform_fee_amount comme application fee
et transfère le reste au compte connecté du vendeur (seller = total - platform_fee, implicitement).
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional
import logging

from marketplace.errors import (
    InvalidRequest,
    SellerOnboardingIncomplete,
    SellerPaymentNotConfigured,
    SellerPayoutsDisabled,
)
from marketplace.fees.schedule import round_minor, to_decimal
from . import stripe_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedPayment:
    client_handle: str
    processor_reference_id: str
    status: str


def to_minor_units(amount: Any, digits: int = 2) -> int:
    """Décimal -> entier en unité mineure, arrondi half-up (même règle que le barème)."""
    value = round_minor(to_decimal(amount), digits)
    return int(value.scaleb(digits))


def check_destination(seller: Optional[Dict[str, Any]]) -> str:
    """
    Vérifie l'éligibilité du compte connecté du vendeur et retourne son identifiant.
    Chaque cas d'échec est distinct pour que le client affiche un message précis.
    """
    seller = seller or {}
    account = str(seller.get("stripe_connect_account_id") or "").strip()
    if not account:
        raise SellerPaymentNotConfigured()
    if not seller.get("stripe_onboarding_complete"):
        raise SellerOnboardingIncomplete()
    if not seller.get("can_receive_payments"):
        raise SellerPayoutsDisabled()
    return account


def issue(
    total_charge: Decimal,
    platform_fee_amount: Decimal,
    seller: Optional[Dict[str, Any]],
    currency: str,
    metadata: Dict[str, Any],
    idempotency_key: Optional[str] = None,
) -> IssuedPayment:
    """
    Crée le PaymentIntent partagé.
    - total_charge / platform_fee_amount convertis en unité mineure ici (et uniquement ici).
    - idempotency_key: dérivée du brouillon de commande, un rejeu client ne double pas le débit.
    Erreurs: Seller* (préconditions), PaymentProcessorError (Stripe).
    """
    destination = check_destination(seller)
    amount = to_minor_units(total_charge)
    fee = to_minor_units(platform_fee_amount)
    if amount <= 0 or fee < 0 or fee > amount:
        raise InvalidRequest(f"Montants de paiement incohérents (total={total_charge}, frais={platform_fee_amount})")

    intent = stripe_client.create_payment_intent(
        amount=amount,
        currency=currency,
        application_fee_amount=fee,
        destination=destination,
        metadata={k: "" if v is None else str(v) for k, v in (metadata or {}).items()},
        idempotency_key=idempotency_key,
    )
    logger.info("payments.issue intent=%s amount=%s fee=%s currency=%s", intent.get("id"), amount, fee, currency)
    return IssuedPayment(
        client_handle=str(intent.get("client_secret") or ""),
        processor_reference_id=str(intent.get("id") or ""),
        status=str(intent.get("status") or "requires_payment_method"),
    )


def cancel(processor_reference_id: str) -> None:
    """Compensation: annule le PaymentIntent en attente."""
    if processor_reference_id:
        stripe_client.cancel_payment_intent(processor_reference_id)
        logger.info("payments.cancel intent=%s", processor_reference_id)


def lookup(processor_reference_id: str) -> IssuedPayment:
    """Relit un paiement déjà émis (rejeu d'un checkout, statut après une clé d'idempotence rejouée)."""
    intent = stripe_client.retrieve_payment_intent(processor_reference_id)
    return IssuedPayment(
        client_handle=str(intent.get("client_secret") or ""),
        processor_reference_id=str(intent.get("id") or processor_reference_id),
        status=str(intent.get("status") or ""),
    )
