"""
Cas d'usage 'fees': aperçu des frais pour l'affichage (acheteur + vendeur + revenu plateforme).
Utilise exactement le même FeeSchedule que le checkout: l'aperçu n'est jamais une copie divergente.
"""
from decimal import Decimal
from typing import Any, Dict

from .schedule import FeeSchedule, load_fee_table, round_minor, to_decimal


def estimate_processing_cost(total_amount: Decimal, currency: str) -> Decimal:
    """Coût Stripe estimé (pourcentage + fixe), pour référence interne."""
    table = load_fee_table()
    costs = table.processing_costs.get(currency) or table.processing_costs.get(table.base_currency)
    if not costs:
        return Decimal("0.00")
    return round_minor(costs["fixed"] + total_amount * costs["percent"])


def preview_fees(item_price: Any, currency: str, shipping_cost: Any = 0) -> Dict[str, Any]:
    """
    Construit l'aperçu complet:
    - buyerFeeBreakdown / sellerFeeBreakdown
    - totalBuyerPays = prix + frais acheteur + livraison
    - totalSellerReceives = prix - frais vendeur
    - platformRevenue = frais acheteur + frais vendeur, net du coût Stripe estimé
    """
    buyer_schedule = FeeSchedule.for_party("buyer")
    seller_schedule = FeeSchedule.for_party("seller")
    code = buyer_schedule.resolve_currency(currency)
    price = round_minor(to_decimal(item_price, "itemPrice"))
    shipping = round_minor(to_decimal(shipping_cost or 0, "shippingCost"))

    buyer_fee = buyer_schedule.compute_fee(price, code)
    seller_fee = seller_schedule.compute_fee(price, code)
    total_buyer = price + buyer_fee.total + shipping
    platform_revenue = buyer_fee.total + seller_fee.total
    processing = estimate_processing_cost(total_buyer, code)

    return {
        "currency": code,
        "feeTableVersion": buyer_schedule.table.version,
        "itemPrice": str(price),
        "shippingCost": str(shipping),
        "buyerFeeBreakdown": buyer_fee.to_dict(),
        "sellerFeeBreakdown": seller_fee.to_dict(),
        "totalBuyerPays": str(total_buyer),
        "totalSellerReceives": str(price - seller_fee.total),
        "platformRevenue": str(platform_revenue),
        "stripeProcessingCost": str(processing),
        "netPlatformRevenue": str(platform_revenue - processing),
    }


def fee_table_payload() -> Dict[str, Any]:
    """Table versionnée telle que servie aux calculateurs côté client."""
    return dict(load_fee_table().raw)
