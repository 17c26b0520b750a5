from marketplace import config


def test_fee_table_is_served(client):
    r = client.get("/api/v1/fees/table")
    assert r.status_code == 200
    table = r.json()
    assert table["version"] == 1
    assert table["base_currency"] == "GBP"
    assert table["currencies"]["GBP"] == {
        "base_fee": "0.40",
        "percent_threshold": "20.00",
        "percent_rate": "0.01",
        "minor_unit_digits": 2,
    }


def test_preview_matches_checkout_arithmetic(client):
    r = client.post("/api/v1/fees/preview", json={"itemPrice": "30", "currency": "GBP"})
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["buyerFeeBreakdown"] == {"baseFee": "0.40", "percentageFee": "0.10", "total": "0.50"}
    assert data["sellerFeeBreakdown"]["total"] == "0.50"
    assert data["totalBuyerPays"] == "30.50"
    assert data["totalSellerReceives"] == "29.50"
    assert data["platformRevenue"] == "1.00"
    # 0.20 + 1.5% de 30.50
    assert data["stripeProcessingCost"] == "0.66"
    assert data["netPlatformRevenue"] == "0.34"


def test_preview_includes_shipping(client):
    r = client.post("/api/v1/fees/preview", json={"itemPrice": 10, "currency": "USD", "shippingCost": "4.99"})
    data = r.json()
    assert data["currency"] == "USD"
    assert data["buyerFeeBreakdown"]["total"] == "0.50"
    assert data["totalBuyerPays"] == "15.49"


def test_preview_unknown_currency_falls_back(client):
    data = client.post("/api/v1/fees/preview", json={"itemPrice": "30", "currency": "JPY"}).json()
    assert data["currency"] == "GBP"


def test_preview_unknown_currency_rejected_when_configured(client, monkeypatch):
    monkeypatch.setattr(config, "UNKNOWN_CURRENCY_POLICY", "reject")
    r = client.post("/api/v1/fees/preview", json={"itemPrice": "30", "currency": "JPY"})
    assert r.status_code == 400
    assert r.json()["error"]["kind"] == "InvalidRequest"


def test_preview_rejects_non_positive_price(client):
    r = client.post("/api/v1/fees/preview", json={"itemPrice": "0", "currency": "GBP"})
    assert r.status_code == 400
    assert r.json()["error"]["details"][0]["field"] == "itemPrice"
