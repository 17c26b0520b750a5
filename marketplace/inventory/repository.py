"""
Écritures conditionnelles sur l'inventaire (tables listings / listing_variants).
Chaque écriture est un UPDATE unique gardé par une condition (compare-and-swap),
jamais une lecture-modification-écriture en deux allers-retours.
Le nombre de lignes retournées par PostgREST sert de « affected count ».
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List
import logging

import marketplace.infra.supabase_client as supabase_client
from marketplace.errors import StoreError

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _rows(res) -> List[Dict[str, Any]]:
    data = getattr(res, "data", None) or []
    return data if isinstance(data, list) else [data]


def claim_listing(listing_id: str, reservation_id: str) -> List[Dict[str, Any]]:
    """Annonce entière: active -> reserved, seulement si encore active."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("listings")
            .update({"status": "reserved", "reservation_id": reservation_id})
            .eq("id", listing_id)
            .eq("status", "active")
            .execute()
        )
        return _rows(res)
    except Exception as e:
        logger.exception("inventory.repository.claim_listing failed listing_id=%s", listing_id)
        raise StoreError("Réservation de l'annonce impossible") from e


def guard_listing_active(listing_id: str) -> List[Dict[str, Any]]:
    """Revérifie 'active' par une écriture gardée sans effet (status -> status)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("listings")
            .update({"status": "active"})
            .eq("id", listing_id)
            .eq("status", "active")
            .execute()
        )
        return _rows(res)
    except Exception as e:
        logger.exception("inventory.repository.guard_listing_active failed listing_id=%s", listing_id)
        raise StoreError("Vérification de l'annonce impossible") from e


def claim_variants(listing_id: str, variant_ids: Iterable[str], reservation_id: str) -> List[Dict[str, Any]]:
    """
    Bascule is_sold: false -> true sur tout l'ensemble en un seul UPDATE gardé par is_sold = false.
    Retourne uniquement les lignes effectivement basculées par cet appel.
    """
    ids = [str(i) for i in variant_ids]
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("listing_variants")
            .update({"is_sold": True, "sold_at": _now_iso(), "reservation_id": reservation_id})
            .in_("id", ids)
            .eq("listing_id", listing_id)
            .eq("is_available", True)
            .eq("is_sold", False)
            .execute()
        )
        return _rows(res)
    except Exception as e:
        logger.exception("inventory.repository.claim_variants failed listing_id=%s ids=%s", listing_id, ids)
        raise StoreError("Réservation des variantes impossible") from e


def release_variants(variant_ids: Iterable[str], reservation_id: str) -> List[Dict[str, Any]]:
    """Annule la bascule, uniquement pour les unités portant ce reservation_id."""
    ids = [str(i) for i in variant_ids]
    if not ids:
        return []
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("listing_variants")
            .update({"is_sold": False, "sold_at": None, "reservation_id": None})
            .in_("id", ids)
            .eq("reservation_id", reservation_id)
            .eq("is_sold", True)
            .execute()
        )
        return _rows(res)
    except Exception as e:
        logger.exception("inventory.repository.release_variants failed ids=%s", ids)
        raise StoreError("Libération des variantes impossible") from e


def mark_listing_sold_out(listing_id: str, reservation_id: str) -> List[Dict[str, Any]]:
    """Toutes les variantes vendues: active -> sold (attribué à la réservation qui a vendu la dernière)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("listings")
            .update({"status": "sold", "reservation_id": reservation_id})
            .eq("id", listing_id)
            .eq("status", "active")
            .execute()
        )
        return _rows(res)
    except Exception as e:
        logger.exception("inventory.repository.mark_listing_sold_out failed listing_id=%s", listing_id)
        raise StoreError("Mise à jour de l'annonce impossible") from e


def finalize_listing_sale(listing_id: str, reservation_id: str) -> List[Dict[str, Any]]:
    """Paiement confirmé: reserved -> sold pour la réservation propriétaire."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("listings")
            .update({"status": "sold"})
            .eq("id", listing_id)
            .eq("reservation_id", reservation_id)
            .eq("status", "reserved")
            .execute()
        )
        return _rows(res)
    except Exception as e:
        logger.exception("inventory.repository.finalize_listing_sale failed listing_id=%s", listing_id)
        raise StoreError("Mise à jour de l'annonce impossible") from e


def release_listing(listing_id: str, reservation_id: str) -> List[Dict[str, Any]]:
    """Remet l'annonce en 'active' si (et seulement si) cette réservation l'avait retirée."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("listings")
            .update({"status": "active", "reservation_id": None})
            .eq("id", listing_id)
            .eq("reservation_id", reservation_id)
            .in_("status", ["reserved", "sold"])
            .execute()
        )
        return _rows(res)
    except Exception as e:
        logger.exception("inventory.repository.release_listing failed listing_id=%s", listing_id)
        raise StoreError("Libération de l'annonce impossible") from e


def variants_for_reservation(reservation_id: str) -> List[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("listing_variants")
            .select("id, listing_id")
            .eq("reservation_id", reservation_id)
            .execute()
        )
        return res.data or []
    except Exception as e:
        logger.exception("inventory.repository.variants_for_reservation failed reservation_id=%s", reservation_id)
        raise StoreError("Lecture des variantes impossible") from e


def reopen_sold_out_listing(listing_id: str, sold_out_by: str) -> List[Dict[str, Any]]:
    """Une variante redevient disponible: l'annonce épuisée par la réservation sold_out_by repasse 'active'."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("listings")
            .update({"status": "active", "reservation_id": None})
            .eq("id", listing_id)
            .eq("reservation_id", sold_out_by)
            .eq("status", "sold")
            .execute()
        )
        return _rows(res)
    except Exception as e:
        logger.exception("inventory.repository.reopen_sold_out_listing failed listing_id=%s", listing_id)
        raise StoreError("Libération de l'annonce impossible") from e
