"""
Taxonomie des erreurs du checkout.
Chaque erreur porte un `kind` stable (lu par les clients pour afficher un message précis)
et le code HTTP correspondant. Aucune n'est rejouée automatiquement.
"""
from typing import Any, Dict, List, Optional


class CheckoutError(Exception):
    kind = "CheckoutError"
    status_code = 400
    default_message = "Erreur de checkout"

    def __init__(self, message: Optional[str] = None, details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details or []

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class Unauthenticated(CheckoutError):
    kind = "Unauthenticated"
    status_code = 401
    default_message = "Non authentifié"


class SelfPurchaseForbidden(CheckoutError):
    kind = "SelfPurchaseForbidden"
    status_code = 403
    default_message = "Impossible d'acheter sa propre annonce"


class ListingUnavailable(CheckoutError):
    kind = "ListingUnavailable"
    status_code = 409
    default_message = "Annonce introuvable ou non disponible"


class VariantUnavailable(CheckoutError):
    kind = "VariantUnavailable"
    status_code = 409
    default_message = "Variante non disponible"


class VariantAlreadySold(CheckoutError):
    kind = "VariantAlreadySold"
    status_code = 409
    default_message = "Variante déjà vendue"


class NoInventoryAvailable(CheckoutError):
    kind = "NoInventoryAvailable"
    status_code = 409
    default_message = "Aucune variante restante pour ce lot"


class OfferNotAccepted(CheckoutError):
    kind = "OfferNotAccepted"
    status_code = 409
    default_message = "Offre non acceptée ou non applicable"


class SellerPaymentNotConfigured(CheckoutError):
    kind = "SellerPaymentNotConfigured"
    status_code = 422
    default_message = "Le vendeur n'a pas configuré les paiements"


class SellerOnboardingIncomplete(CheckoutError):
    kind = "SellerOnboardingIncomplete"
    status_code = 422
    default_message = "Le vendeur n'a pas terminé l'onboarding Stripe"


class SellerPayoutsDisabled(CheckoutError):
    kind = "SellerPayoutsDisabled"
    status_code = 422
    default_message = "Le vendeur ne peut pas recevoir de paiements"


class PaymentProcessorError(CheckoutError):
    kind = "PaymentProcessorError"
    status_code = 502
    default_message = "Le processeur de paiement a refusé la transaction"


class InvalidRequest(CheckoutError):
    kind = "InvalidRequest"
    status_code = 400
    default_message = "Requête invalide"


class UnsupportedCurrency(InvalidRequest):
    default_message = "Devise non supportée"


class StoreError(CheckoutError):
    kind = "StoreError"
    status_code = 503
    default_message = "Erreur d'accès à la base de données"


class TooManyRequests(CheckoutError):
    kind = "TooManyRequests"
    status_code = 429
    default_message = "Trop de tentatives, réessayez plus tard"


class LedgerInconsistent(CheckoutError):
    kind = "LedgerInconsistent"
    status_code = 500
    default_message = "Commande incohérente, enregistrement refusé"
