"""
Résolution du prix d'un checkout (lecture seule, aucune réservation ici).
Ordre de résolution, le premier qui s'applique gagne:
  1) offre acceptée (même acheteur, même annonce) -> montant de l'offre
  2) lot (bundle) -> somme des variantes restantes, remise seulement s'il en reste au moins deux
  3) variante précise -> prix de la variante
  4) prix de base de l'annonce
La disponibilité est revérifiée au moment de la réservation (inventory.reservation).
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import logging

from marketplace import config
from marketplace.errors import NoInventoryAvailable, OfferNotAccepted, VariantAlreadySold, VariantUnavailable
from marketplace.fees.schedule import round_minor, to_decimal
from marketplace.listings import repository

from .models import CheckoutRequest

logger = logging.getLogger(__name__)

MIN_BUNDLE_SIZE = 2


@dataclass(frozen=True)
class ResolvedPrice:
    item_price: Decimal
    source: str  # "offer" | "bundle" | "variant" | "listing"
    variant_ids: Tuple[str, ...] = ()
    unit_prices: Dict[str, Decimal] = field(default_factory=dict)
    offer_id: Optional[str] = None


def _is_sellable(variant: Dict[str, Any]) -> bool:
    return bool(variant.get("is_available")) and not bool(variant.get("is_sold"))


def bundle_price(prices: List[Decimal], discount_percentage: Any) -> Decimal:
    """
    Prix d'un lot: somme des prix, remise appliquée uniquement avec au moins deux unités.
    Un « lot » d'une seule unité n'est jamais remisé, quelle que soit la configuration.
    """
    total = sum(prices, Decimal("0"))
    discount = to_decimal(discount_percentage or 0, "bundle_discount_percentage")
    if len(prices) >= MIN_BUNDLE_SIZE and discount > 0:
        total = total * (Decimal("1") - discount / Decimal("100"))
    return round_minor(total)


def _accepted_offer(offer_id: str, buyer_id: str, listing_id: str) -> Dict[str, Any]:
    offer = repository.get_offer(offer_id)
    if not offer:
        raise OfferNotAccepted("Offre introuvable")
    if str(offer.get("status") or "") != "accepted":
        raise OfferNotAccepted(f"Offre non acceptée (status={offer.get('status')})")
    if str(offer.get("buyer_id") or "") != str(buyer_id) or str(offer.get("listing_id") or "") != str(listing_id):
        raise OfferNotAccepted("Offre appartenant à un autre acheteur ou une autre annonce")
    return offer


def _remaining_variants(listing_id: str) -> List[Dict[str, Any]]:
    variants = [v for v in repository.list_available_variants(listing_id) if _is_sellable(v)]
    if not variants:
        raise NoInventoryAvailable()
    return variants


def _requested_variant(variant_id: str, listing_id: str) -> Dict[str, Any]:
    variant = repository.get_variant(variant_id)
    if not variant or str(variant.get("listing_id") or "") != str(listing_id) or not variant.get("is_available"):
        raise VariantUnavailable()
    if variant.get("is_sold"):
        raise VariantAlreadySold(details=[{"variantId": str(variant["id"])}])
    return variant


def resolve_price(request: CheckoutRequest, buyer_id: str, listing: Dict[str, Any]) -> ResolvedPrice:
    """
    Détermine le prix de l'article et les unités impliquées par la requête.
    - Les unités (variant_ids) sont toujours celles de la requête, même quand une offre fixe le prix.
    - Erreurs: OfferNotAccepted, NoInventoryAvailable, VariantUnavailable, VariantAlreadySold.
    """
    listing_id = str(listing["id"])

    variant_ids: Tuple[str, ...] = ()
    unit_prices: Dict[str, Decimal] = {}
    if request.is_bundle:
        variants = _remaining_variants(listing_id)
        variant_ids = tuple(str(v["id"]) for v in variants)
        unit_prices = {str(v["id"]): round_minor(to_decimal(v.get("variant_price"), "variant_price")) for v in variants}
    elif request.variant_id:
        variant = _requested_variant(request.variant_id, listing_id)
        variant_ids = (str(variant["id"]),)
        unit_prices = {variant_ids[0]: round_minor(to_decimal(variant.get("variant_price"), "variant_price"))}

    if request.offer_id:
        offer = _accepted_offer(request.offer_id, buyer_id, listing_id)
        price = round_minor(to_decimal(offer.get("amount"), "offer.amount"))
        return ResolvedPrice(price, "offer", variant_ids, unit_prices, offer_id=str(offer["id"]))

    if request.is_bundle:
        price = bundle_price(list(unit_prices.values()), listing.get("bundle_discount_percentage"))
        return ResolvedPrice(price, "bundle", variant_ids, unit_prices)

    if request.variant_id:
        return ResolvedPrice(unit_prices[variant_ids[0]], "variant", variant_ids, unit_prices)

    price = round_minor(to_decimal(listing.get("seller_price"), "seller_price"))
    return ResolvedPrice(price, "listing")


def region_class(country: str) -> str:
    code = (country or config.DOMESTIC_COUNTRY).upper()
    if code == config.DOMESTIC_COUNTRY:
        return "domestic"
    if code in config.EUROPE_COUNTRIES:
        return "regional"
    return "international"


SHIPPING_COLUMNS = {
    "domestic": "shipping_cost_uk",
    "regional": "shipping_cost_europe",
    "international": "shipping_cost_international",
}


def shipping_cost(listing: Dict[str, Any], country: str) -> Decimal:
    """Frais de port selon la classe de région de destination; 0 si livraison offerte."""
    if listing.get("free_shipping"):
        return Decimal("0.00")
    column = SHIPPING_COLUMNS[region_class(country)]
    return round_minor(to_decimal(listing.get(column) or 0, column))
