"""Couche service du checkout (orchestrateur).

États: Validating -> PriceResolved -> Reserved -> PaymentIssued -> Recorded,
avec sortie Rejected(raison) possible depuis chaque état.

Le checkout est une saga: chaque étape à effet de bord enregistre sa compensation,
rejouée en ordre inverse si une étape suivante échoue:
- Reserved       -> inventory.reservation.release (libère les unités)
- PaymentIssued  -> payments.issuer.cancel (annule le PaymentIntent)
Aucune erreur de compensation ne masque l'erreur d'origine (elles sont journalisées).

Avec un clientReferenceId, une tentative rejouée retrouve sa commande:
- commande vivante (pending / paid) -> même réponse, sans nouvelle réservation;
- commande annulée -> nouvelle tentative (brouillon et clé d'idempotence suivants).
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import NAMESPACE_URL, uuid4, uuid5
import logging

from marketplace.errors import (
    InvalidRequest,
    ListingUnavailable,
    PaymentProcessorError,
    SelfPurchaseForbidden,
    StoreError,
    Unauthenticated,
)
from marketplace.fees.schedule import FeeBreakdown, FeeSchedule, round_minor, to_decimal
from marketplace.inventory import reservation as inventory
from marketplace.listings import repository as listings_repository
from marketplace.orders import recorder
from marketplace.orders import repository as orders_repository
from marketplace.orders.recorder import OrderAmounts, OrderLine
from marketplace.payments import issuer
from marketplace.payments import repository as payments_repository
from marketplace.payments.issuer import IssuedPayment

from .models import CheckoutRequest
from .pricing import ResolvedPrice, resolve_price, shipping_cost

logger = logging.getLogger(__name__)

DRAFT_NAMESPACE = uuid5(NAMESPACE_URL, "marketplace/checkout-draft")
MAX_DRAFT_ATTEMPTS = 10
LIVE_ORDER_STATUSES = ("pending", "paid")


@dataclass(frozen=True)
class CheckoutResult:
    order_id: str
    client_secret: str
    payment_intent_id: str
    currency: str
    amounts: OrderAmounts
    buyer_fee: FeeBreakdown
    seller_fee: FeeBreakdown

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orderId": self.order_id,
            "clientSecret": self.client_secret,
            "paymentIntentId": self.payment_intent_id,
            "currency": self.currency,
            "amounts": self.amounts.to_dict(),
            "buyerFeeBreakdown": self.buyer_fee.to_dict(),
            "sellerFeeBreakdown": self.seller_fee.to_dict(),
        }


def draft_id_for(buyer_id: str, request: CheckoutRequest, attempt: int = 0) -> str:
    """
    Identifiant de brouillon (= id de commande, reservation_id et base de la clé d'idempotence).
    Déterministe si le client fournit clientReferenceId: un rejeu réutilise la même clé Stripe.
    attempt > 0: tentative suivante pour la même référence, après une tentative annulée.
    """
    if request.client_reference_id:
        name = f"{buyer_id}:{request.listing_id}:{request.client_reference_id}"
        if attempt:
            name = f"{name}:{attempt}"
        return str(uuid5(DRAFT_NAMESPACE, name))
    return str(uuid4())


def compute_amounts(item_price: Decimal, shipping: Decimal, currency: str) -> Tuple[OrderAmounts, FeeBreakdown, FeeBreakdown]:
    """
    total = prix + frais acheteur + livraison
    platform_fee = frais acheteur + frais vendeur
    seller_amount = prix - frais vendeur
    => total == seller_amount + platform_fee + livraison (au centime)
    """
    buyer_fee = FeeSchedule.for_party("buyer").compute_fee(item_price, currency)
    seller_fee = FeeSchedule.for_party("seller").compute_fee(item_price, currency)
    amounts = OrderAmounts(
        item_price=item_price,
        total_amount=item_price + buyer_fee.total + shipping,
        platform_fee=buyer_fee.total + seller_fee.total,
        seller_amount=item_price - seller_fee.total,
        shipping_cost=shipping,
    )
    return amounts, buyer_fee, seller_fee


def check_chargeable(amounts: OrderAmounts, seller_fee: FeeBreakdown, currency: str) -> None:
    """Le prix doit couvrir les frais vendeur: un versement vendeur nul ou négatif est refusé."""
    if amounts.seller_amount <= 0:
        message = f"Prix inférieur au minimum facturable (frais vendeur {seller_fee.total} {currency})"
        raise InvalidRequest(message, details=[{"field": "itemPrice", "message": message}])


def allocate_line_prices(item_price: Decimal, unit_prices: Dict[str, Decimal], variant_ids: Tuple[str, ...]) -> List[Decimal]:
    """
    Répartit le prix résolu (remise de lot ou offre) sur les lignes au prorata des prix unitaires.
    La dernière ligne absorbe l'écart d'arrondi: la somme des lignes vaut exactement item_price.
    """
    if len(variant_ids) == 1:
        return [item_price]
    base_total = sum((unit_prices[v] for v in variant_ids), Decimal("0"))
    allocated: List[Decimal] = []
    for v in variant_ids[:-1]:
        share = item_price * unit_prices[v] / base_total if base_total > 0 else item_price / len(variant_ids)
        allocated.append(round_minor(share))
    allocated.append(item_price - sum(allocated, Decimal("0")))
    return allocated


def build_lines(listing_id: str, resolved: ResolvedPrice) -> List[OrderLine]:
    if not resolved.variant_ids:
        return [OrderLine(listing_id=listing_id, price=resolved.item_price)]
    prices = allocate_line_prices(resolved.item_price, resolved.unit_prices, resolved.variant_ids)
    return [OrderLine(listing_id=listing_id, price=p, variant_id=v) for v, p in zip(resolved.variant_ids, prices)]


class CheckoutSaga:
    """Une tentative de checkout: état courant + compensations enregistrées."""

    def __init__(self, request: CheckoutRequest, user: Optional[Dict[str, Any]]):
        self.request = request
        self.user = user or {}
        self.state = "Validating"
        self.draft_id: Optional[str] = None
        self._compensations: List[Tuple[str, Callable[[], None]]] = []

    def _enter(self, state: str, **info: Any) -> None:
        self.state = state
        details = " ".join(f"{k}={v}" for k, v in info.items())
        logger.info("checkout.%s draft=%s listing=%s %s", state, self.draft_id, self.request.listing_id, details)

    def _compensate(self) -> None:
        for name, action in reversed(self._compensations):
            try:
                action()
                logger.info("checkout.compensate %s draft=%s", name, self.draft_id)
            except Exception:
                logger.exception("checkout.compensate %s FAILED draft=%s", name, self.draft_id)
        self._compensations.clear()

    def _buyer_id(self) -> str:
        buyer_id = str(self.user.get("id") or "")
        if not buyer_id:
            raise Unauthenticated()
        return buyer_id

    def _resolve_draft(self, buyer_id: str) -> Optional[Dict[str, Any]]:
        """
        Choisit le brouillon de cette tentative.
        Retourne la commande existante si la référence client désigne une commande vivante.
        """
        if not self.request.client_reference_id:
            self.draft_id = draft_id_for(buyer_id, self.request)
            return None
        for attempt in range(MAX_DRAFT_ATTEMPTS):
            draft_id = draft_id_for(buyer_id, self.request, attempt)
            order = orders_repository.get_order(draft_id)
            self.draft_id = draft_id
            if not order:
                return None
            if order.get("status") in LIVE_ORDER_STATUSES:
                return order
            logger.info("checkout.draft superseded draft=%s status=%s", draft_id, order.get("status"))
        raise InvalidRequest("Trop de tentatives pour cette référence client, utilisez un nouveau clientReferenceId")

    def _replay(self, order: Dict[str, Any]) -> CheckoutResult:
        """Même réponse que la tentative d'origine: commande et PaymentIntent déjà enregistrés."""
        order_id = str(order["id"])
        payment_row = payments_repository.get_payment_for_order(order_id)
        if not payment_row:
            raise StoreError("Paiement introuvable pour la commande")
        payment = issuer.lookup(str(payment_row["stripe_payment_intent_id"]))
        currency = str(order.get("currency") or "GBP").upper()
        lines = orders_repository.list_order_lines(order_id)
        item_price = sum((to_decimal(l.get("price"), "price") for l in lines), Decimal("0"))
        amounts = OrderAmounts(
            item_price=item_price,
            total_amount=to_decimal(order.get("total_amount"), "total_amount"),
            platform_fee=to_decimal(order.get("platform_fee"), "platform_fee"),
            seller_amount=to_decimal(order.get("seller_amount"), "seller_amount"),
            shipping_cost=to_decimal(order.get("shipping_cost") or 0, "shipping_cost"),
        )
        self._enter("Recorded", order=order_id, replay=True)
        return CheckoutResult(
            order_id=order_id,
            client_secret=payment.client_handle,
            payment_intent_id=payment.processor_reference_id,
            currency=currency,
            amounts=amounts,
            buyer_fee=FeeSchedule.for_party("buyer").compute_fee(item_price, currency),
            seller_fee=FeeSchedule.for_party("seller").compute_fee(item_price, currency),
        )

    def _validate(self, buyer_id: str) -> Dict[str, Any]:
        listing = listings_repository.get_listing_with_seller(self.request.listing_id)
        if not listing:
            raise ListingUnavailable("Annonce introuvable")
        if str(listing.get("seller_id") or "") == buyer_id:
            raise SelfPurchaseForbidden()
        status = listing.get("status")
        targets_units = bool(self.request.variant_id) or self.request.is_bundle
        # Annonce épuisée + variante demandée: l'erreur précise vient de la résolution du prix
        if status != "active" and not (status == "sold" and targets_units):
            raise ListingUnavailable(f"Annonce non disponible (status={status})")
        # Un vendeur inéligible est rejeté avant toute réservation
        issuer.check_destination(listing.get("seller"))
        return listing

    def _issue_payment(self, **kwargs: Any) -> IssuedPayment:
        """
        Émet le PaymentIntent sous la clé d'idempotence du brouillon.
        Une clé déjà vue rejoue la réponse d'origine de Stripe: si cet intent a été annulé
        (tentative compensée dont l'en-tête n'a pas pu être écrit), une clé dérivée est utilisée.
        """
        key = f"checkout-{self.draft_id}"
        for _ in range(MAX_DRAFT_ATTEMPTS):
            payment = issuer.issue(idempotency_key=key, **kwargs)
            if not self.request.client_reference_id:
                return payment
            if issuer.lookup(payment.processor_reference_id).status != "canceled":
                return payment
            logger.info("checkout.stale_intent draft=%s intent=%s", self.draft_id, payment.processor_reference_id)
            key = f"checkout-{self.draft_id}-after-{payment.processor_reference_id}"
        raise PaymentProcessorError("Paiement déjà annulé pour cette référence client")

    def run(self) -> CheckoutResult:
        try:
            return self._run()
        except Exception as e:
            logger.info("checkout.Rejected draft=%s state=%s reason=%s", self.draft_id, self.state, getattr(e, "kind", type(e).__name__))
            self._compensate()
            raise

    def _run(self) -> CheckoutResult:
        buyer_id = self._buyer_id()
        existing = self._resolve_draft(buyer_id)
        if existing is not None:
            return self._replay(existing)

        listing = self._validate(buyer_id)
        listing_id = str(listing["id"])
        currency = str(listing.get("currency") or "GBP").upper()

        resolved = resolve_price(self.request, buyer_id, listing)
        shipping = shipping_cost(listing, self.request.shipping_address.country)
        amounts, buyer_fee, seller_fee = compute_amounts(resolved.item_price, shipping, currency)
        check_chargeable(amounts, seller_fee, currency)
        self._enter("PriceResolved", source=resolved.source, price=resolved.item_price, shipping=shipping)

        reservation = inventory.reserve(listing_id, resolved.variant_ids, self.draft_id)
        self._compensations.append(("release_reservation", lambda: inventory.release(reservation)))
        self._enter("Reserved", units=len(resolved.variant_ids) or "listing")

        payment = self._issue_payment(
            total_charge=amounts.total_amount,
            platform_fee_amount=amounts.platform_fee,
            seller=listing.get("seller"),
            currency=currency,
            metadata={
                "orderId": self.draft_id,
                "listingId": listing_id,
                "buyerId": buyer_id,
                "sellerId": listing.get("seller_id"),
                "variantIds": ",".join(resolved.variant_ids),
                "offerId": resolved.offer_id or "",
                "shippingCost": str(shipping),
            },
        )
        self._compensations.append(("cancel_payment", lambda: issuer.cancel(payment.processor_reference_id)))
        self._enter("PaymentIssued", intent=payment.processor_reference_id, total=amounts.total_amount)

        order_id = recorder.record(
            order_id=self.draft_id,
            buyer_id=buyer_id,
            seller_id=str(listing.get("seller_id")),
            amounts=amounts,
            currency=currency,
            shipping_address=self.request.shipping_address.model_dump(by_alias=True, exclude_none=True),
            lines=build_lines(listing_id, resolved),
            payment=payment,
        )
        self._compensations.clear()
        self._enter("Recorded", order=order_id)
        return CheckoutResult(
            order_id=order_id,
            client_secret=payment.client_handle,
            payment_intent_id=payment.processor_reference_id,
            currency=currency,
            amounts=amounts,
            buyer_fee=buyer_fee,
            seller_fee=seller_fee,
        )


def create_checkout(request: CheckoutRequest, user: Optional[Dict[str, Any]]) -> CheckoutResult:
    """Point d'entrée du cas d'usage: exécute la saga de checkout pour l'utilisateur authentifié."""
    return CheckoutSaga(request, user).run()
