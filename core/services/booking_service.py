"""
Booking service.

Bookings carry a stage and a status derived from it; the status is never
taken from client input. Bookings keep no stage history.
"""

import logging
from typing import Any, Mapping
from uuid import UUID, uuid4

from core.config import EngineConfig
from core.event_bus import EventBus
from core.events import BookingCreated, BookingPricingChanged, BookingStageChanged
from core.exceptions import NotFoundError
from core.filters import ACTIVE_ONLY, ListPage, build_booking_query
from core.models.booking import (
    Booking,
    BookingCreate,
    BookingPricingUpdate,
    BookingStageUpdate,
    PaymentStatus,
    PricingBreakdown,
)
from core.models.stats import BookingStats
from core.services.versioning import write_with_retry
from core.stages import BookingStageMachine, derive_booking_status
from core.stats import StatisticsAggregator
from core.store import RecordStore
from utils.timezone import now_utc
from utils.user_context import get_current_actor_id

logger = logging.getLogger(__name__)

BOOKING_COLLECTION = "bookings"


class BookingService:
    """Service for booking operations."""

    def __init__(
        self,
        store: RecordStore,
        stages: BookingStageMachine,
        stats: StatisticsAggregator,
        event_bus: EventBus,
        config: EngineConfig | None = None,
    ):
        self.store = store
        self.stages = stages
        self.aggregator = stats
        self.event_bus = event_bus
        self.config = config or EngineConfig()

    def create(self, data: BookingCreate) -> Booking:
        """
        Create a booking.

        Status is derived from the initial stage. When no pricing breakdown
        is supplied, one is built from amount and advance amount.
        """
        now = now_utc()
        stage = self.stages.parse(data.stage)
        pricing = data.pricing_breakdown or PricingBreakdown.from_amounts(data.amount, data.advance_amount)

        record = {
            "id": uuid4(),
            "property_id": data.property_id,
            "inventory_id": data.inventory_id,
            "customer_id": data.customer_id,
            "agent_id": data.agent_id,
            "stage": stage,
            "status": derive_booking_status(stage),
            "booking_date": data.booking_date or now,
            "move_in_date": data.move_in_date,
            "move_out_date": data.move_out_date,
            "amount": data.amount,
            "advance_amount": data.advance_amount,
            "payment_method": data.payment_method,
            "payment_status": PaymentStatus.PENDING,
            "notes": data.notes,
            "token_dates": list(data.token_dates),
            "pricing_breakdown": pricing.model_dump(),
            "documents": list(data.documents),
            "is_active": True,
            "created_by": get_current_actor_id(),
            "created_at": now,
            "updated_at": now,
        }
        booking = Booking.model_validate(self.store.insert(BOOKING_COLLECTION, record))

        logger.info("Booking created id=%s stage=%s amount=%s", booking.id, booking.stage.value, booking.amount)
        self.event_bus.publish(BookingCreated.create(booking))
        return booking

    def get(self, booking_id: UUID) -> Booking:
        """
        Get a booking by ID.

        Raises:
            NotFoundError: No active booking with this ID
        """
        return self._load(booking_id)

    def list_filtered(self, params: Mapping[str, Any]) -> ListPage:
        """List bookings matching the recognised filters in params."""
        query = build_booking_query(params, self.config.default_page_size, self.config.max_page_size)
        rows, total = self.store.find(BOOKING_COLLECTION, query.predicate, query.sort, query.page)
        bookings = [Booking.model_validate(row) for row in rows]
        stage_stats = self.aggregator.booking_stage_counts(query.predicate)

        logger.info("Listed %s of %s bookings (page %s)", len(bookings), total, query.page.number)
        return ListPage(items=bookings, total=total, page=query.page, stage_stats=stage_stats)

    def update_stage(self, booking_id: UUID, data: BookingStageUpdate) -> Booking:
        """
        Move a booking to a new stage and re-derive its status.

        Notes, token dates and pricing keep their previous values when omitted.
        """
        def plan(current: Booking):
            change = self.stages.transition(current, data.stage, now_utc())
            changes = dict(change.changes)
            if data.notes is not None:
                changes["notes"] = data.notes
            if data.token_dates is not None:
                changes["token_dates"] = list(data.token_dates)
            if data.pricing_breakdown is not None:
                changes["pricing_breakdown"] = data.pricing_breakdown.model_dump()
            return changes, None

        previous, row = write_with_retry(
            self.store, BOOKING_COLLECTION, "Booking", booking_id, self._load, plan,
            self.config.optimistic_retries,
        )
        booking = Booking.model_validate(row)

        logger.info("Booking stage changed id=%s %s -> %s (status %s)",
                    booking.id, previous.stage.value, booking.stage.value, booking.status.value)
        self.event_bus.publish(BookingStageChanged.create(booking, previous.stage))
        return booking

    def update_pricing(self, booking_id: UUID, data: BookingPricingUpdate) -> Booking:
        """Replace a booking's pricing breakdown."""
        pricing = data.pricing_breakdown.model_dump()

        def plan(current: Booking):
            return {"pricing_breakdown": pricing, "updated_at": now_utc()}, None

        _, row = write_with_retry(
            self.store, BOOKING_COLLECTION, "Booking", booking_id, self._load, plan,
            self.config.optimistic_retries,
        )
        booking = Booking.model_validate(row)

        logger.info("Booking pricing changed id=%s total=%s", booking.id, booking.pricing_breakdown.total_amount)
        self.event_bus.publish(BookingPricingChanged.create(booking))
        return booking

    def stats(self) -> BookingStats:
        """Global statistics over every active booking."""
        return self.aggregator.booking_stats(ACTIVE_ONLY)

    def _load(self, booking_id: UUID) -> Booking:
        row = self.store.get(BOOKING_COLLECTION, booking_id)
        if row is None:
            raise NotFoundError("Booking", booking_id)
        return Booking.model_validate(row)
