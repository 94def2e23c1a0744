"""
Application assembly.

build_services() wires the lifecycle components once at startup; the
routers receive them through the services dict, never through globals.

Run with:
    uvicorn api.app:create_app --factory
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.bookings import create_bookings_router
from api.errors import register_error_handlers
from api.leads import create_leads_router
from api.middleware import ActorMiddleware, RequestIDMiddleware
from api.recommendations import create_recommendations_router
from core.config import EngineConfig, load_config
from core.event_bus import EventBus
from core.scoring import LeadScorer, LogisticModelScorer, ScoringEngine
from core.services.booking_service import BookingService
from core.services.lead_service import LeadService
from core.services.recommendation_service import RecommendationService
from core.stages import BookingStageMachine, LeadStageMachine
from core.stats import StatisticsAggregator
from core.store import RecordStore

logger = logging.getLogger(__name__)


def open_record_store(config: EngineConfig) -> RecordStore:
    """PostgreSQL-backed store; the URL comes from config or Vault."""
    from clients.postgres_client import PostgresClient
    from clients.vault_client import get_database_url
    from core.postgres_store import PostgresRecordStore

    database_url = config.database_url or get_database_url()
    store = PostgresRecordStore(PostgresClient(database_url))
    store.ensure_schema()
    return store


def build_scoring_engine(config: EngineConfig) -> ScoringEngine:
    model = None
    if config.model_weights_path is not None:
        model = LogisticModelScorer.from_file(config.model_weights_path)
    return ScoringEngine(
        lead_scorer=LeadScorer(config.lead_scoring_strategy),
        model=model,
        model_timeout_seconds=config.model_timeout_seconds,
    )


def build_services(
    config: EngineConfig,
    store: RecordStore,
    event_bus: EventBus | None = None,
) -> dict:
    """Construct every service the routers need."""
    event_bus = event_bus or EventBus()
    scoring = build_scoring_engine(config)
    aggregator = StatisticsAggregator(store)

    return {
        "lead": LeadService(
            store,
            scoring,
            LeadStageMachine(strict=config.strict_stage_transitions),
            aggregator,
            event_bus,
            config,
        ),
        "booking": BookingService(
            store,
            BookingStageMachine(strict=config.strict_stage_transitions),
            aggregator,
            event_bus,
            config,
        ),
        "recommendation": RecommendationService(scoring),
        "scoring": scoring,
        "event_bus": event_bus,
    }


def create_app(services: dict | None = None) -> FastAPI:
    """FastAPI app with middleware, error handlers and lifecycle routes."""
    if services is None:
        config = load_config()
        services = build_services(config, open_record_store(config))
        logger.info(
            "Services built (strategy=%s, strict_stages=%s)",
            config.lead_scoring_strategy.value,
            config.strict_stage_transitions,
        )

    scoring = services.get("scoring")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if scoring is not None:
            scoring.close()

    app = FastAPI(title="Estate Lifecycle API", lifespan=lifespan)
    app.add_middleware(ActorMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_leads_router(services), prefix="/api")
    app.include_router(create_bookings_router(services), prefix="/api")
    app.include_router(create_recommendations_router(services), prefix="/api")

    return app
