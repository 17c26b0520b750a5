import hashlib
import hmac
import json
import time

from tests.fakes import LISTING_ID, shipping_address

WEBHOOK_SECRET = "whsec_test"


def _sign(payload: str, secret: str = WEBHOOK_SECRET) -> str:
    ts = int(time.time())
    sig = hmac.new(secret.encode(), f"{ts}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def _checkout(client):
    r = client.post("/api/v1/checkout", json={"listingId": LISTING_ID, "shippingAddress": shipping_address()})
    assert r.status_code == 200, r.text
    return r.json()


def _event(event_type: str, intent_id: str) -> str:
    return json.dumps({
        "id": "evt_1",
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": intent_id, "object": "payment_intent"}},
    })


def test_signed_success_event_marks_order_paid(client, db, stripe_fake, monkeypatch):
    monkeypatch.setattr("marketplace.payments.stripe_client.STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    order = _checkout(client)

    payload = _event("payment_intent.succeeded", order["paymentIntentId"])
    r = client.post(
        "/api/v1/payments/webhook",
        content=payload,
        headers={"stripe-signature": _sign(payload), "content-type": "application/json"},
    )
    assert r.status_code == 200, r.text
    assert r.json() == {"status": "ok", "order_id": order["orderId"]}
    assert db.get("orders", order["orderId"])["status"] == "paid"
    assert db.get("listings", LISTING_ID)["status"] == "sold"


def test_failed_payment_event_releases_listing(client, db, stripe_fake, monkeypatch):
    async def _fake_parse_event(request):
        return json.loads(_event("payment_intent.payment_failed", order["paymentIntentId"]))

    order = _checkout(client)
    monkeypatch.setattr("marketplace.payments.stripe_client.parse_event", _fake_parse_event)
    r = client.post("/api/v1/payments/webhook", content=b"{}")
    assert r.status_code == 200
    assert db.get("orders", order["orderId"])["status"] == "cancelled"
    assert db.get("listings", LISTING_ID)["status"] == "active"


def test_missing_signature_is_400(client):
    r = client.post("/api/v1/payments/webhook", content=b"{}")
    assert r.status_code == 400
    assert r.json()["error"]["kind"] == "InvalidRequest"


def test_bad_signature_is_400(client, monkeypatch):
    monkeypatch.setattr("marketplace.payments.stripe_client.STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    payload = _event("payment_intent.succeeded", "pi_x")
    r = client.post(
        "/api/v1/payments/webhook",
        content=payload,
        headers={"stripe-signature": _sign(payload, secret="whsec_other")},
    )
    assert r.status_code == 400
