"""
Domain events for the lead and booking lifecycle.

Immutable event objects published after a store write has committed.
A service publishes what happened, and handlers (the notification
collaborator, for instance) react without the publisher knowing who is
listening.

Event Categories:
- LeadEvent: Lead lifecycle (create, stage change, score change)
- BookingEvent: Booking lifecycle (create, stage change, pricing change)

Events carry the full domain object so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc
from utils.user_context import get_current_actor_id


@dataclass(frozen=True, kw_only=True)
class EstateEvent:
    """Base class for all lifecycle events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)
    actor_id: str = field(default_factory=get_current_actor_id)


# =============================================================================
# LEAD EVENTS
# =============================================================================


@dataclass(frozen=True)
class LeadEvent(EstateEvent):
    """Events related to lead lifecycle."""
    pass


@dataclass(frozen=True)
class LeadCreated(LeadEvent):
    """A new lead was created and scored."""
    lead: Any = None  # Lead, Any to keep events import-free of models

    @classmethod
    def create(cls, lead: Any) -> "LeadCreated":
        return cls(lead=lead)


@dataclass(frozen=True)
class LeadStageChanged(LeadEvent):
    """A lead moved to a new stage."""
    lead: Any = None
    previous_stage: Any = None

    @classmethod
    def create(cls, lead: Any, previous_stage: Any) -> "LeadStageChanged":
        return cls(lead=lead, previous_stage=previous_stage)


@dataclass(frozen=True)
class LeadScoreChanged(LeadEvent):
    """A lead's score was recomputed or overridden."""
    lead: Any = None
    previous_score: int | None = None

    @classmethod
    def create(cls, lead: Any, previous_score: int) -> "LeadScoreChanged":
        return cls(lead=lead, previous_score=previous_score)


# =============================================================================
# BOOKING EVENTS
# =============================================================================


@dataclass(frozen=True)
class BookingEvent(EstateEvent):
    """Events related to booking lifecycle."""
    pass


@dataclass(frozen=True)
class BookingCreated(BookingEvent):
    """A new booking was created."""
    booking: Any = None

    @classmethod
    def create(cls, booking: Any) -> "BookingCreated":
        return cls(booking=booking)


@dataclass(frozen=True)
class BookingStageChanged(BookingEvent):
    """A booking moved to a new stage (status re-derived)."""
    booking: Any = None
    previous_stage: Any = None

    @classmethod
    def create(cls, booking: Any, previous_stage: Any) -> "BookingStageChanged":
        return cls(booking=booking, previous_stage=previous_stage)


@dataclass(frozen=True)
class BookingPricingChanged(BookingEvent):
    """A booking's pricing breakdown was replaced."""
    booking: Any = None

    @classmethod
    def create(cls, booking: Any) -> "BookingPricingChanged":
        return cls(booking=booking)
