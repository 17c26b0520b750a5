import pytest

from marketplace.checkout import service as checkout_service
from marketplace.checkout.models import CheckoutRequest
from marketplace.payments import service as payments_service
from tests.fakes import LISTING_ID, marketplace_db, shipping_address, variant_row


def _checkout(buyer, **fields):
    body = {"listingId": LISTING_ID, "shippingAddress": shipping_address()}
    body.update(fields)
    return checkout_service.create_checkout(CheckoutRequest.model_validate(body), buyer)


def _event(event_type, intent_id):
    return {"type": event_type, "data": {"object": {"id": intent_id, "object": "payment_intent"}}}


def test_succeeded_marks_order_paid_and_listing_sold(db, buyer, stripe_fake):
    result = _checkout(buyer)
    out = payments_service.handle_event(_event("payment_intent.succeeded", result.payment_intent_id))

    assert out == {"status": "ok", "order_id": result.order_id}
    assert db.get("orders", result.order_id)["status"] == "paid"
    assert db.rows("payments")[0]["status"] == "succeeded"
    assert db.get("listings", LISTING_ID)["status"] == "sold"


def test_replayed_success_changes_nothing(db, buyer, stripe_fake):
    result = _checkout(buyer)
    event = _event("payment_intent.succeeded", result.payment_intent_id)
    payments_service.handle_event(event)
    db.calls.clear()
    payments_service.handle_event(event)
    assert db.get("orders", result.order_id)["status"] == "paid"
    assert ("listings", "update") not in db.calls


@pytest.mark.parametrize("event_type,payment_status", [
    ("payment_intent.payment_failed", "failed"),
    ("payment_intent.canceled", "canceled"),
])
def test_failure_cancels_order_and_releases_units(use_db, buyer, stripe_fake, event_type, payment_status):
    db = use_db(marketplace_db(variants=[variant_row("v1", "10.00"), variant_row("v2", "10.00")]))
    result = _checkout(buyer, variantId="v1")
    assert db.get("listing_variants", "v1")["is_sold"] is True

    payments_service.handle_event(_event(event_type, result.payment_intent_id))

    assert db.get("orders", result.order_id)["status"] == "cancelled"
    assert db.rows("payments")[0]["status"] == payment_status
    assert db.get("listing_variants", "v1")["is_sold"] is False


def test_failure_after_success_does_not_release(db, buyer, stripe_fake):
    result = _checkout(buyer)
    payments_service.handle_event(_event("payment_intent.succeeded", result.payment_intent_id))
    payments_service.handle_event(_event("payment_intent.canceled", result.payment_intent_id))
    assert db.get("orders", result.order_id)["status"] == "paid"
    assert db.get("listings", LISTING_ID)["status"] == "sold"


def test_unknown_intent_and_event_types_are_ignored(db):
    assert payments_service.handle_event(_event("payment_intent.succeeded", "pi_unknown")) == {"status": "ignored"}
    assert payments_service.handle_event({"type": "charge.refunded", "data": {"object": {}}}) == {"status": "ignored"}
    assert payments_service.handle_event({}) == {"status": "ignored"}
