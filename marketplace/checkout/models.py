# module marketplace.checkout.models
"""Schémas de la requête/réponse de checkout (validation structurelle à la frontière).
Les champs acceptent le camelCase des clients mobile/web (alias) et le snake_case.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PurchaseType(str, Enum):
    single = "single"
    bundle = "bundle"


class ShippingAddress(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, max_length=200)
    line1: str = Field(min_length=1, max_length=200)
    line2: Optional[str] = Field(default=None, max_length=200)
    city: str = Field(min_length=1, max_length=120)
    state: Optional[str] = Field(default=None, max_length=120)
    postal_code: str = Field(alias="postalCode", min_length=1, max_length=20)
    country: str = Field(min_length=2, max_length=2)

    @field_validator("country")
    def country_code(cls, v: str) -> str:
        code = v.strip().upper()
        if len(code) != 2 or not code.isalpha():
            raise ValueError("Le pays doit être un code ISO à deux lettres")
        return code


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    listing_id: str = Field(alias="listingId", min_length=1)
    shipping_address: ShippingAddress = Field(alias="shippingAddress")
    offer_id: Optional[str] = Field(default=None, alias="offerId")
    purchase_type: PurchaseType = Field(default=PurchaseType.single, alias="purchaseType")
    variant_id: Optional[str] = Field(default=None, alias="variantId")
    # Identifiant fourni par le client pour rejouer la même tentative sans double débit
    client_reference_id: Optional[str] = Field(default=None, alias="clientReferenceId", max_length=128)

    @model_validator(mode="after")
    def bundle_excludes_variant(self) -> "CheckoutRequest":
        if self.purchase_type == PurchaseType.bundle and self.variant_id:
            raise ValueError("variantId et purchaseType=bundle sont exclusifs")
        return self

    @property
    def is_bundle(self) -> bool:
        return self.purchase_type == PurchaseType.bundle
