from decimal import Decimal

import pytest
from pydantic import ValidationError

from marketplace.checkout.models import CheckoutRequest
from marketplace.checkout.pricing import bundle_price, region_class, resolve_price, shipping_cost
from marketplace.errors import NoInventoryAvailable, OfferNotAccepted, VariantAlreadySold, VariantUnavailable
from tests.fakes import BUYER_ID, LISTING_ID, listing_row, marketplace_db, offer_row, shipping_address, variant_row


def _request(**fields) -> CheckoutRequest:
    body = {"listingId": LISTING_ID, "shippingAddress": shipping_address()}
    body.update(fields)
    return CheckoutRequest.model_validate(body)


def test_listing_base_price_when_nothing_else_applies():
    resolved = resolve_price(_request(), BUYER_ID, listing_row())
    assert resolved.item_price == Decimal("50.00")
    assert resolved.source == "listing"
    assert resolved.variant_ids == ()


def test_variant_price(use_db):
    use_db(marketplace_db(variants=[variant_row("v1", "12.00")]))
    resolved = resolve_price(_request(variantId="v1"), BUYER_ID, listing_row())
    assert resolved.item_price == Decimal("12.00")
    assert resolved.source == "variant"
    assert resolved.variant_ids == ("v1",)


@pytest.mark.parametrize("variant", [
    variant_row("v1", "12.00", is_available=False),
    variant_row("v1", "12.00", listing_id="other-listing"),
])
def test_unsellable_or_foreign_variant_is_rejected(use_db, variant):
    use_db(marketplace_db(variants=[variant]))
    with pytest.raises(VariantUnavailable):
        resolve_price(_request(variantId="v1"), BUYER_ID, listing_row())


def test_sold_variant_reports_already_sold(use_db):
    use_db(marketplace_db(variants=[variant_row("v1", "12.00", is_sold=True)]))
    with pytest.raises(VariantAlreadySold):
        resolve_price(_request(variantId="v1"), BUYER_ID, listing_row())


def test_missing_variant_is_rejected():
    with pytest.raises(VariantUnavailable):
        resolve_price(_request(variantId="nope"), BUYER_ID, listing_row())


def test_bundle_of_three_gets_discount(use_db):
    use_db(marketplace_db(variants=[
        variant_row("v1", "10.00"),
        variant_row("v2", "15.00"),
        variant_row("v3", "20.00"),
    ]))
    resolved = resolve_price(_request(purchaseType="bundle"), BUYER_ID, listing_row())
    assert resolved.item_price == Decimal("40.50")
    assert resolved.source == "bundle"
    assert resolved.variant_ids == ("v1", "v2", "v3")


def test_bundle_with_single_remaining_variant_is_not_discounted(use_db):
    use_db(marketplace_db(variants=[
        variant_row("v1", "10.00"),
        variant_row("v2", "15.00", is_sold=True),
        variant_row("v3", "20.00", is_sold=True),
    ]))
    resolved = resolve_price(_request(purchaseType="bundle"), BUYER_ID, listing_row())
    assert resolved.item_price == Decimal("10.00")
    assert resolved.variant_ids == ("v1",)


def test_bundle_with_nothing_left(use_db):
    use_db(marketplace_db(variants=[variant_row("v1", "10.00", is_sold=True)]))
    with pytest.raises(NoInventoryAvailable):
        resolve_price(_request(purchaseType="bundle"), BUYER_ID, listing_row())


def test_accepted_offer_wins_over_listing_price(use_db):
    use_db(marketplace_db(offers=[offer_row(amount="35.00")]))
    resolved = resolve_price(_request(offerId="offer-1"), BUYER_ID, listing_row())
    assert resolved.item_price == Decimal("35.00")
    assert resolved.source == "offer"
    assert resolved.offer_id == "offer-1"


def test_accepted_offer_wins_even_with_variant(use_db):
    use_db(marketplace_db(variants=[variant_row("v1", "50.00")], offers=[offer_row(amount="35.00")]))
    resolved = resolve_price(_request(offerId="offer-1", variantId="v1"), BUYER_ID, listing_row())
    assert resolved.item_price == Decimal("35.00")
    # l'offre fixe le prix, pas les unités réservées
    assert resolved.variant_ids == ("v1",)


@pytest.mark.parametrize("offer", [
    offer_row(status="pending"),
    offer_row(status="declined"),
    offer_row(buyer_id="someone-else"),
    offer_row(listing_id="other-listing"),
])
def test_offer_must_be_accepted_for_this_buyer_and_listing(use_db, offer):
    use_db(marketplace_db(offers=[offer]))
    with pytest.raises(OfferNotAccepted):
        resolve_price(_request(offerId="offer-1"), BUYER_ID, listing_row())


def test_bundle_price_never_discounts_single_unit():
    assert bundle_price([Decimal("10.00")], "50") == Decimal("10.00")
    assert bundle_price([Decimal("10.00"), Decimal("10.00")], "0") == Decimal("20.00")
    assert bundle_price([Decimal("9.99"), Decimal("9.99")], "15") == Decimal("16.98")


@pytest.mark.parametrize("country,region,expected", [
    ("GB", "domestic", Decimal("3.50")),
    ("FR", "regional", Decimal("7.00")),
    ("DE", "regional", Decimal("7.00")),
    ("US", "international", Decimal("12.00")),
])
def test_shipping_by_region_class(country, region, expected):
    assert region_class(country) == region
    assert shipping_cost(listing_row(), country) == expected


def test_free_shipping_listing():
    assert shipping_cost(listing_row(free_shipping=True), "US") == Decimal("0.00")


def test_bundle_and_variant_are_exclusive():
    with pytest.raises(ValidationError):
        _request(purchaseType="bundle", variantId="v1")


def test_country_is_normalised():
    req = _request(shippingAddress=shipping_address(country="fr"))
    assert req.shipping_address.country == "FR"


def test_snake_case_fields_are_accepted():
    req = CheckoutRequest.model_validate({
        "listing_id": LISTING_ID,
        "shipping_address": {"line1": "x", "city": "y", "postal_code": "z", "country": "GB"},
        "variant_id": "v1",
    })
    assert req.variant_id == "v1"
    assert not req.is_bundle
