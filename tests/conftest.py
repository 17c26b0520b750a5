import os

# Avant l'import de l'app: pas de Redis réel, clé service factice (le client est remplacé)
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")
os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("UNKNOWN_CURRENCY_POLICY", "fallback")

import pytest
from typing import Generator, Dict, Any
from fastapi.testclient import TestClient

from marketplace.app import app as fastapi_app
from marketplace.utils.security import require_user
from tests.fakes import BUYER_ID, FakeStripe, marketplace_db

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

@pytest.fixture()
def buyer() -> Dict[str, Any]:
    return {
        "id": BUYER_ID,
        "email": "buyer@example.com",
        "metadata": {"full_name": "Test Buyer"},
        "token": "fake-token",
    }

# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app, buyer):
    app.dependency_overrides[require_user] = lambda: buyer
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)

# Store en mémoire à la place de Supabase pour tous les tests
@pytest.fixture(autouse=True)
def db(monkeypatch):
    fake = marketplace_db()
    monkeypatch.setattr("marketplace.infra.supabase_client.get_service_supabase", lambda: fake)
    monkeypatch.setattr("marketplace.infra.supabase_client.get_supabase", lambda: fake)
    monkeypatch.setattr("marketplace.health.service.get_service_supabase", lambda: fake)
    return fake

@pytest.fixture()
def use_db(monkeypatch):
    """Remplace le store par un autre FakeSupabase (jeu de données propre au test)."""
    def _use(fake):
        monkeypatch.setattr("marketplace.infra.supabase_client.get_service_supabase", lambda: fake)
        monkeypatch.setattr("marketplace.infra.supabase_client.get_supabase", lambda: fake)
        monkeypatch.setattr("marketplace.health.service.get_service_supabase", lambda: fake)
        return fake
    return _use

# Stripe: PaymentIntents enregistrés en mémoire
@pytest.fixture()
def stripe_fake(monkeypatch):
    fake = FakeStripe()
    monkeypatch.setattr("marketplace.payments.stripe_client.create_payment_intent", fake.create_payment_intent)
    monkeypatch.setattr("marketplace.payments.stripe_client.cancel_payment_intent", fake.cancel_payment_intent)
    monkeypatch.setattr("marketplace.payments.stripe_client.retrieve_payment_intent", fake.retrieve_payment_intent)
    return fake
