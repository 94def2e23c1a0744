"""Shared test fixtures: actor context, in-memory store and wired services."""

from uuid import uuid4

import pytest

from core.config import EngineConfig
from core.event_bus import EventBus
from core.models import LeadCreate, LeadSource, LeadStage
from core.scoring import ScoringEngine, LeadScorer
from core.services.booking_service import BookingService
from core.services.lead_service import LeadService
from core.stages import BookingStageMachine, LeadStageMachine
from core.stats import StatisticsAggregator
from core.store import InMemoryRecordStore
from utils.timezone import now_utc
from utils.user_context import actor_context, clear_current_actor_id


# =============================================================================
# TEST ACTOR CONSTANTS
# =============================================================================

TEST_ACTOR_ID = "agent-001"
TEST_ACTOR_B_ID = "agent-002"


# =============================================================================
# ACTOR CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_actor_context():
    """Ensure clean actor context before and after each test."""
    clear_current_actor_id()
    yield
    clear_current_actor_id()


@pytest.fixture
def as_test_actor():
    """Run the test as the primary test actor."""
    with actor_context(TEST_ACTOR_ID):
        yield TEST_ACTOR_ID


# =============================================================================
# STORE & SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def scoring():
    engine = ScoringEngine(lead_scorer=LeadScorer())
    yield engine
    engine.close()


@pytest.fixture
def aggregator(store):
    return StatisticsAggregator(store)


@pytest.fixture
def lead_service(store, scoring, aggregator, event_bus, config):
    return LeadService(store, scoring, LeadStageMachine(), aggregator, event_bus, config)


@pytest.fixture
def booking_service(store, aggregator, event_bus, config):
    return BookingService(store, BookingStageMachine(), aggregator, event_bus, config)


# =============================================================================
# DATA FIXTURES
# =============================================================================


@pytest.fixture
def referral_lead_data():
    """The referral lead the scoring tables are documented against."""
    return LeadCreate(
        name="Asha Verma",
        email="asha@example.com",
        phone="+91 98200 00000",
        source=LeadSource.REFERRAL,
        budget=12_000_000,
        interest="urgent buyer",
    )


@pytest.fixture
def make_lead_record():
    """Factory for raw lead records as the store holds them."""
    def _make(**overrides):
        now = now_utc()
        record = {
            "id": uuid4(),
            "name": "Test Lead",
            "email": "lead@example.com",
            "phone": "555-0100",
            "source": LeadSource.WEBSITE,
            "stage": LeadStage.ENQUIRY_RECEIVED,
            "score": 50,
            "interest": None,
            "budget": None,
            "notes": None,
            "assigned_to": None,
            "customer_id": None,
            "stage_date_start": now,
            "attachments": [],
            "is_active": True,
            "created_by": "system",
            "created_at": now,
            "updated_at": now,
        }
        record.update(overrides)
        return record
    return _make
