# module marketplace.fees.views
"""Endpoints de la feature Frais.
- GET /table: table de frais versionnée (source unique pour les calculateurs d'affichage).
- POST /preview: aperçu acheteur/vendeur calculé par le barème serveur (faisant autorité).
"""
from decimal import Decimal
from typing import Any, Dict

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from .service import fee_table_payload, preview_fees

router = APIRouter(prefix="/api/v1/fees", tags=["Fees API"])


class FeePreviewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_price: Decimal = Field(alias="itemPrice", gt=0, le=Decimal("1000000"))
    currency: str = Field(default="GBP", min_length=3, max_length=3)
    shipping_cost: Decimal = Field(default=Decimal("0"), alias="shippingCost", ge=0, le=Decimal("1000"))


@router.get("/table")
def get_fee_table() -> Dict[str, Any]:
    return fee_table_payload()


@router.post("/preview")
def post_fee_preview(req: FeePreviewRequest) -> Dict[str, Any]:
    """Aperçu des frais; la devise inconnue suit UNKNOWN_CURRENCY_POLICY (repli ou rejet)."""
    return preview_fees(req.item_price, req.currency, req.shipping_cost)
