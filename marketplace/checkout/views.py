# module marketplace.checkout.views

"""Endpoint de l'user story Achat.
- POST /api/v1/checkout: valide la requête (pydantic), exécute la saga de checkout et
  renvoie le client_secret Stripe + l'identifiant de commande.
Sécurité:
- require_user: l'identité de l'appelant vient du jeton Bearer (Supabase Auth).
- optional_rate_limit: limite la fréquence des tentatives de checkout.
Les erreurs métier (CheckoutError) sont traduites en JSON structuré par app_setup.exceptions.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from marketplace.utils.rate_limit import optional_rate_limit
from marketplace.utils.security import require_user

from . import service as checkout_service
from .models import CheckoutRequest

router = APIRouter(prefix="/api/v1/checkout", tags=["Checkout API"])


@router.post("", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def api_create_checkout(req: CheckoutRequest, user: Dict[str, Any] = Depends(require_user)) -> Dict[str, Any]:
    """Crée la commande et le PaymentIntent partagé pour une annonce, une variante ou un lot.
    Étapes (service): validation -> prix -> réservation -> paiement -> enregistrement.
    Les appels Supabase/Stripe sont synchrones: exécutés hors de la boucle d'événements.
    """
    result = await run_in_threadpool(checkout_service.create_checkout, req, user)
    return result.to_dict()
