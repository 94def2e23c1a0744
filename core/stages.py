"""
Stage state machines for leads and bookings.

Each machine validates a target stage and produces the paired changes a
stage write consists of. Machines are pure: they never touch the store and
never mutate the entity they are given.

By default any enumerated stage is a legal target from any stage,
including jumps such as Sold -> EnquiryReceived. With strict=True the
machine only accepts edges of its transition graph.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Mapping, TypeVar

from core.exceptions import ValidationError
from core.history import HistoryLog
from core.models.booking import Booking, BookingStage, BookingStatus
from core.models.lead import HistoryEntry, Lead, LeadStage

S = TypeVar("S", bound=Enum)


LEAD_TRANSITIONS: dict[LeadStage, frozenset[LeadStage]] = {
    LeadStage.ENQUIRY_RECEIVED: frozenset({LeadStage.SITE_VISIT, LeadStage.PROPOSAL_SENT, LeadStage.LOST}),
    LeadStage.SITE_VISIT: frozenset({LeadStage.PROPOSAL_SENT, LeadStage.NEGOTIATION, LeadStage.LOST}),
    LeadStage.PROPOSAL_SENT: frozenset({LeadStage.NEGOTIATION, LeadStage.BOOKING, LeadStage.LOST}),
    LeadStage.NEGOTIATION: frozenset({LeadStage.PROPOSAL_SENT, LeadStage.BOOKING, LeadStage.LOST}),
    LeadStage.BOOKING: frozenset({LeadStage.NEGOTIATION, LeadStage.SOLD, LeadStage.LOST}),
    LeadStage.SOLD: frozenset(),
    LeadStage.LOST: frozenset({LeadStage.ENQUIRY_RECEIVED}),
}

BOOKING_TRANSITIONS: dict[BookingStage, frozenset[BookingStage]] = {
    BookingStage.TENTATIVELY_BOOKED: frozenset({BookingStage.CONFIRMED, BookingStage.SOLD, BookingStage.CANCELLED}),
    BookingStage.CONFIRMED: frozenset({BookingStage.SOLD, BookingStage.CANCELLED}),
    BookingStage.SOLD: frozenset(),
    BookingStage.CANCELLED: frozenset({BookingStage.TENTATIVELY_BOOKED}),
}


def derive_booking_status(stage: BookingStage) -> BookingStatus:
    """Booking status is a pure function of stage."""
    stage = BookingStage(stage)
    if stage == BookingStage.SOLD:
        return BookingStatus.CONFIRMED
    if stage == BookingStage.CANCELLED:
        return BookingStatus.CANCELLED
    return BookingStatus.PENDING


@dataclass(frozen=True)
class StageChange:
    """
    Result of a validated transition.

    changes holds the fields to write; history_entry, when set, must be
    appended in the same unit of work as changes.
    """

    previous_stage: Enum
    new_stage: Enum
    changes: dict[str, Any]
    history_entry: HistoryEntry | None = None


class StageMachine(Generic[S]):
    """Validates stage values and transitions for one enumeration."""

    def __init__(
        self,
        stages: type[S],
        initial: S,
        transitions: Mapping[S, frozenset[S]],
        strict: bool = False,
    ):
        self.stages = stages
        self.initial = initial
        self.transitions = transitions
        self.strict = strict

    def parse(self, value: Any) -> S:
        """
        Coerce a raw value to a stage.

        Raises:
            ValidationError: If value is missing or not in the enumeration
        """
        if value is None or value == "":
            raise ValidationError("stage is required", field="stage")
        try:
            return self.stages(value)
        except ValueError:
            valid = ", ".join(s.value for s in self.stages)
            raise ValidationError(f"'{value}' is not a valid stage. Valid stages: {valid}", field="stage") from None

    def allowed_targets(self, current: S) -> frozenset[S]:
        if not self.strict:
            return frozenset(self.stages)
        return self.transitions.get(current, frozenset())

    def validate(self, current: S, target: Any) -> S:
        """
        Check that target is reachable from current under this machine's policy.

        Returns:
            The parsed target stage
        """
        stage = self.parse(target)
        if self.strict and stage not in self.allowed_targets(current):
            raise ValidationError(
                f"Cannot move from {current.value} to {stage.value}",
                field="stage",
            )
        return stage


class LeadStageMachine(StageMachine[LeadStage]):
    """Lead funnel. Every stage write is paired with a history append."""

    def __init__(self, strict: bool = False):
        super().__init__(LeadStage, LeadStage.ENQUIRY_RECEIVED, LEAD_TRANSITIONS, strict)

    def transition(
        self,
        lead: Lead,
        new_stage: Any,
        note: str | None,
        actor_id: str,
        timestamp: datetime,
    ) -> StageChange:
        stage = self.validate(lead.stage, new_stage)
        entry = HistoryLog.entry(
            stage=stage,
            timestamp=timestamp,
            notes=note or f"Stage updated to {stage.value}",
            actor_id=actor_id,
        )
        return StageChange(
            previous_stage=lead.stage,
            new_stage=stage,
            changes={"stage": stage, "stage_date_start": timestamp, "updated_at": timestamp},
            history_entry=entry,
        )


class BookingStageMachine(StageMachine[BookingStage]):
    """Booking lifecycle. Writes stage and the derived status; no history."""

    def __init__(self, strict: bool = False):
        super().__init__(BookingStage, BookingStage.TENTATIVELY_BOOKED, BOOKING_TRANSITIONS, strict)

    def transition(self, booking: Booking, new_stage: Any, timestamp: datetime) -> StageChange:
        stage = self.validate(booking.stage, new_stage)
        return StageChange(
            previous_stage=booking.stage,
            new_stage=stage,
            changes={
                "stage": stage,
                "status": derive_booking_status(stage),
                "updated_at": timestamp,
            },
        )
