import os

# Pas de Redis en tests: le lifespan désactive le rate limiting
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import pytest
from typing import Generator, Dict, Any, Optional
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from huntkitchen.app import app as fastapi_app
from huntkitchen.utils.security import get_optional_user
from fakes import FakeShop, FakeStripe

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

# Mock database dependency for all tests
@pytest.fixture(scope="function", autouse=True)
def mock_db_dependency(monkeypatch):
    """Aucun test ne doit joindre Supabase: les clients sont remplacés par des MagicMock."""
    monkeypatch.setattr("huntkitchen.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("huntkitchen.infra.supabase_client.get_service_supabase", lambda: MagicMock())

@pytest.fixture
def shop(monkeypatch) -> FakeShop:
    """Repository en mémoire (paniers, catalogue, commandes) branché sur les services réels."""
    return FakeShop().install(monkeypatch)

@pytest.fixture
def stripe_fake(monkeypatch) -> FakeStripe:
    return FakeStripe().install(monkeypatch)

# Utilisateur courant piloté par le test: None = invité
@pytest.fixture
def current_user(app):
    state: Dict[str, Optional[Dict[str, Any]]] = {"user": None}

    def _login(user_id: str = "test-user", email: str = "test@example.com"):
        state["user"] = {"id": user_id, "email": email, "token": "fake-token"}
        return state["user"]

    app.dependency_overrides[get_optional_user] = lambda: state["user"]
    try:
        yield _login
    finally:
        app.dependency_overrides.pop(get_optional_user, None)
