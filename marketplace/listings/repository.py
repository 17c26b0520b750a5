"""
Accès aux données en lecture pour le checkout: annonces, profils vendeurs, variantes, offres.
- Lectures via le client service-role (les contrôles d'appartenance sont faits côté service).
- Une absence de ligne retourne None / []; une erreur Supabase est encapsulée en StoreError.
"""
from typing import Any, Dict, List, Optional
import logging

import marketplace.infra.supabase_client as supabase_client
from marketplace.errors import StoreError

logger = logging.getLogger(__name__)

LISTING_COLUMNS = (
    "id, seller_id, seller_price, currency, status, reservation_id, free_shipping, "
    "shipping_cost_uk, shipping_cost_europe, shipping_cost_international, bundle_discount_percentage"
)
SELLER_COLUMNS = "id, stripe_connect_account_id, stripe_onboarding_complete, can_receive_payments"
VARIANT_COLUMNS = "id, listing_id, variant_price, is_available, is_sold, sold_at"
OFFER_COLUMNS = "id, listing_id, buyer_id, amount, status, parent_offer_id"


def _first(rows: Any) -> Optional[Dict[str, Any]]:
    if isinstance(rows, list):
        return rows[0] if rows else None
    return rows or None


def _fetch_one(table: str, columns: str, row_id: str) -> Optional[Dict[str, Any]]:
    if not row_id:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(table)
            .select(columns)
            .eq("id", str(row_id))
            .limit(1)
            .execute()
        )
        return _first(res.data)
    except Exception as e:
        logger.exception("listings.repository._fetch_one failed table=%s id=%s", table, row_id)
        raise StoreError(f"Lecture {table} impossible") from e


def get_listing(listing_id: str) -> Optional[Dict[str, Any]]:
    return _fetch_one("listings", LISTING_COLUMNS, listing_id)


def get_seller_profile(seller_id: str) -> Optional[Dict[str, Any]]:
    return _fetch_one("profiles", SELLER_COLUMNS, seller_id)


def get_listing_with_seller(listing_id: str) -> Optional[Dict[str, Any]]:
    """
    Annonce + champs d'éligibilité paiement du vendeur sous la clé 'seller'.
    - Retourne None si l'annonce n'existe pas.
    - 'seller' vaut {} si le profil est introuvable (traité comme paiement non configuré).
    """
    listing = get_listing(listing_id)
    if not listing:
        return None
    seller = get_seller_profile(str(listing.get("seller_id") or "")) or {}
    return {**listing, "seller": seller}


def get_variant(variant_id: str) -> Optional[Dict[str, Any]]:
    return _fetch_one("listing_variants", VARIANT_COLUMNS, variant_id)


def get_offer(offer_id: str) -> Optional[Dict[str, Any]]:
    return _fetch_one("offers", OFFER_COLUMNS, offer_id)


def list_available_variants(listing_id: str) -> List[Dict[str, Any]]:
    """
    Variantes encore vendables d'une annonce (is_available = true et is_sold = false),
    triées par id pour un ordre de lignes stable.
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("listing_variants")
            .select(VARIANT_COLUMNS)
            .eq("listing_id", str(listing_id))
            .eq("is_available", True)
            .eq("is_sold", False)
            .order("id")
            .execute()
        )
        return res.data or []
    except Exception as e:
        logger.exception("listings.repository.list_available_variants failed listing_id=%s", listing_id)
        raise StoreError("Lecture des variantes impossible") from e
