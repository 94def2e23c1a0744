"""API test fixtures: the full app over an in-memory store."""

import pytest
from starlette.testclient import TestClient

from api.app import build_services, create_app
from core.config import EngineConfig
from core.store import InMemoryRecordStore


# =============================================================================
# APP FIXTURES
# =============================================================================


@pytest.fixture
def engine_config():
    return EngineConfig()


@pytest.fixture
def services(engine_config):
    return build_services(engine_config, InMemoryRecordStore())


@pytest.fixture
def app(services):
    return create_app(services)


@pytest.fixture
def client(app):
    """TestClient that returns 500 responses instead of raising."""
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


# =============================================================================
# PAYLOAD FIXTURES
# =============================================================================


@pytest.fixture
def lead_payload():
    return {
        "name": "Asha Verma",
        "email": "asha@example.com",
        "phone": "+91 98200 00000",
        "source": "Referral",
        "budget": 12_000_000,
        "interest": "urgent buyer",
    }


@pytest.fixture
def create_lead(client, lead_payload):
    """POST a lead and return its wire representation."""
    def _create(**overrides):
        response = client.post("/api/leads", json={**lead_payload, **overrides})
        assert response.status_code == 201, response.text
        return response.json()["data"]
    return _create
