"""
Réservation d'inventaire: marque comme vendue(s) la ou les unités exactes d'un checkout.

Garantie centrale: au plus une réservation réussie par variante, quelle que soit la concurrence.
Elle repose uniquement sur les écritures conditionnelles de inventory.repository
(aucun verrou applicatif: ils ne survivent pas entre processus/réplicas).

- Annonce entière: active -> reserved (gardé par status = 'active').
- Variante(s): is_sold false -> true (gardé par is_sold = false), tout ou rien pour un lot.
- release(): compensation qui n'annule que les unités portant ce reservation_id
  (une annonce épuisée par des ventes de variantes redevient active dès qu'une unité revient;
  une annonce vendue en entier reste vendue).
"""
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple
import logging

from marketplace.errors import ListingUnavailable, VariantAlreadySold
from marketplace.listings import repository as listings_repository
from . import repository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reservation:
    reservation_id: str
    listing_id: str
    variant_ids: Tuple[str, ...] = ()
    listing_status: Optional[str] = None  # statut posé sur l'annonce par cette réservation

    @property
    def is_whole_listing(self) -> bool:
        return not self.variant_ids


def reserve(listing_id: str, variant_ids: Iterable[str], reservation_id: str) -> Reservation:
    """
    Réserve atomiquement les unités d'un checkout.
    - variant_ids vide: l'annonce entière passe active -> reserved.
    - sinon: revérifie l'annonce 'active' puis bascule toutes les variantes en un UPDATE conditionnel.
      Si une seule manque (course perdue), les unités basculées ici sont relâchées et
      VariantAlreadySold est levée: un lot ne devient jamais silencieusement plus petit.
    Erreurs: ListingUnavailable, VariantAlreadySold, StoreError.
    """
    listing_id = str(listing_id)
    ids = tuple(dict.fromkeys(str(v) for v in variant_ids))

    if not ids:
        if not repository.claim_listing(listing_id, reservation_id):
            logger.info("inventory.reserve lost listing=%s reservation=%s", listing_id, reservation_id)
            raise ListingUnavailable("Annonce plus disponible")
        logger.info("inventory.reserve listing=%s reservation=%s", listing_id, reservation_id)
        return Reservation(reservation_id, listing_id, (), "reserved")

    if not repository.guard_listing_active(listing_id):
        listing = listings_repository.get_listing(listing_id) or {}
        if listing.get("status") == "sold":
            # épuisée entre-temps: les unités demandées sont forcément vendues
            raise VariantAlreadySold(details=[{"variantId": v} for v in ids])
        raise ListingUnavailable("Annonce plus disponible")

    claimed = repository.claim_variants(listing_id, ids, reservation_id)
    claimed_ids = {str(r.get("id")) for r in claimed}
    if claimed_ids != set(ids):
        if claimed_ids:
            repository.release_variants(claimed_ids, reservation_id)
        missing = sorted(set(ids) - claimed_ids)
        logger.info("inventory.reserve lost variants=%s listing=%s reservation=%s", missing, listing_id, reservation_id)
        raise VariantAlreadySold(
            "Variante déjà vendue" if len(ids) == 1 else "Une partie du lot vient d'être vendue, veuillez recharger le prix",
            details=[{"variantId": v} for v in missing],
        )

    listing_status = None
    if not listings_repository.list_available_variants(listing_id):
        if repository.mark_listing_sold_out(listing_id, reservation_id):
            listing_status = "sold"
    logger.info("inventory.reserve variants=%s listing=%s reservation=%s", list(ids), listing_id, reservation_id)
    return Reservation(reservation_id, listing_id, ids, listing_status)


def release(reservation: Reservation) -> None:
    """
    Compensation: annule la réservation (variantes et statut d'annonce posés par elle).
    Idempotent: un second appel ne modifie plus aucune ligne.
    """
    if reservation.variant_ids:
        released = repository.release_variants(reservation.variant_ids, reservation.reservation_id)
        logger.info("inventory.release variants=%s reservation=%s", len(released), reservation.reservation_id)
        if released:
            _reopen_if_sold_out_by_variants(reservation)
        return
    repository.release_listing(reservation.listing_id, reservation.reservation_id)


def _reopen_if_sold_out_by_variants(reservation: Reservation) -> None:
    """
    Une unité revient en stock: l'annonce épuisée redevient vendable, mais seulement si
    l'épuisement vient de ventes de variantes (cette réservation ou une autre réservation de variantes).
    Une annonce vendue en entier reste vendue.
    """
    listing = listings_repository.get_listing(reservation.listing_id) or {}
    owner = str(listing.get("reservation_id") or "")
    if listing.get("status") != "sold" or not owner:
        return
    if owner != reservation.reservation_id and not repository.variants_for_reservation(owner):
        logger.info("inventory.release keeps listing sold listing=%s sold_by=%s", reservation.listing_id, owner)
        return
    repository.reopen_sold_out_listing(reservation.listing_id, owner)


def finalize(reservation: Reservation) -> None:
    """Paiement confirmé: l'annonce entière réservée devient vendue."""
    if reservation.is_whole_listing:
        repository.finalize_listing_sale(reservation.listing_id, reservation.reservation_id)
