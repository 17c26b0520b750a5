"""
Accès aux données 'orders' (tables orders + order_items).
- Les montants sont écrits en chaîne décimale (pas de float) pour rester reconstructibles.
- Les transitions de statut sont conditionnelles (gardées par le statut attendu).
"""
from typing import Any, Dict, Iterable, List, Optional
import logging

import marketplace.infra.supabase_client as supabase_client
from marketplace.errors import StoreError

logger = logging.getLogger(__name__)


def insert_order(row: Dict[str, Any]) -> Dict[str, Any]:
    try:
        res = supabase_client.get_service_supabase().table("orders").insert(row).execute()
        rows = res.data or []
        return rows[0] if isinstance(rows, list) and rows else dict(row)
    except Exception as e:
        logger.exception("orders.repository.insert_order failed id=%s", row.get("id"))
        raise StoreError("Création de la commande impossible") from e


def insert_order_lines(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Insertion groupée (un seul INSERT): toutes les lignes ou aucune."""
    try:
        res = supabase_client.get_service_supabase().table("order_items").insert(rows).execute()
        return res.data or []
    except Exception as e:
        logger.exception("orders.repository.insert_order_lines failed order_id=%s", rows[0].get("order_id") if rows else None)
        raise StoreError("Création des lignes de commande impossible") from e


def get_order(order_id: str) -> Optional[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select("*")
            .eq("id", order_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception as e:
        logger.exception("orders.repository.get_order failed id=%s", order_id)
        raise StoreError("Lecture de la commande impossible") from e


def list_order_lines(order_id: str) -> List[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("order_items")
            .select("order_id, listing_id, variant_id, price")
            .eq("order_id", order_id)
            .execute()
        )
        return res.data or []
    except Exception as e:
        logger.exception("orders.repository.list_order_lines failed order_id=%s", order_id)
        raise StoreError("Lecture des lignes de commande impossible") from e


def transition_order(order_id: str, status: str, from_statuses: Iterable[str] = ("pending",)) -> List[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .update({"status": status})
            .eq("id", order_id)
            .in_("status", list(from_statuses))
            .execute()
        )
        return res.data or []
    except Exception as e:
        logger.exception("orders.repository.transition_order failed id=%s status=%s", order_id, status)
        raise StoreError("Mise à jour de la commande impossible") from e
