"""Booking (reservation / sale) domain models."""

from datetime import date
from enum import Enum
from uuid import UUID

from pydantic import Field

from core.models.base import CamelModel, UtcDatetime


class BookingStage(str, Enum):
    """Lifecycle stage of a booking."""

    SOLD = "Sold"
    TENTATIVELY_BOOKED = "TentativelyBooked"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"


class BookingStatus(str, Enum):
    """Derived from stage; never set directly."""

    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"


class PaymentStatus(str, Enum):
    """Payment progress, owned by the payments collaborator."""

    PENDING = "Pending"
    PARTIAL = "Partial"
    PAID = "Paid"
    REFUNDED = "Refunded"


class PricingBreakdown(CamelModel):
    """Structured price of a booking. Currency-agnostic."""

    base_price: float = Field(..., ge=0)
    advance_amount: float = Field(0, ge=0)
    remaining_amount: float = 0
    taxes: float = Field(0, ge=0)
    total_amount: float = Field(..., ge=0)

    @classmethod
    def from_amounts(cls, amount: float, advance_amount: float | None) -> "PricingBreakdown":
        """Default breakdown when the client supplies none."""
        advance = advance_amount or 0
        return cls(
            base_price=amount,
            advance_amount=advance,
            remaining_amount=amount - advance,
            taxes=0,
            total_amount=amount,
        )


class BookingCreate(CamelModel):
    """Data required to create a booking. Any client-sent status is ignored."""

    property_id: UUID
    inventory_id: UUID | None = None
    customer_id: UUID
    agent_id: str = Field(..., min_length=1, max_length=255)
    stage: BookingStage = BookingStage.TENTATIVELY_BOOKED
    booking_date: UtcDatetime | None = None
    move_in_date: UtcDatetime | None = None
    move_out_date: UtcDatetime | None = None
    amount: float = Field(..., gt=0)
    advance_amount: float | None = Field(None, ge=0)
    payment_method: str | None = Field(None, max_length=50)
    notes: str | None = Field(None, max_length=10000)
    token_dates: list[date] = Field(default_factory=list)
    pricing_breakdown: PricingBreakdown | None = None
    documents: list[str] = Field(default_factory=list)


class BookingStageUpdate(CamelModel):
    """Body of PUT /bookings/{id}/stage."""

    stage: BookingStage
    notes: str | None = Field(None, max_length=10000)
    token_dates: list[date] | None = None
    pricing_breakdown: PricingBreakdown | None = None


class BookingPricingUpdate(CamelModel):
    """Body of PUT /bookings/{id}/pricing."""

    pricing_breakdown: PricingBreakdown


class Booking(CamelModel):
    """Full booking entity as stored."""

    id: UUID
    property_id: UUID
    inventory_id: UUID | None = None
    customer_id: UUID
    agent_id: str
    stage: BookingStage
    status: BookingStatus
    booking_date: UtcDatetime
    move_in_date: UtcDatetime | None = None
    move_out_date: UtcDatetime | None = None
    amount: float
    advance_amount: float | None = None
    payment_method: str | None = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    notes: str | None = None
    token_dates: list[date] = Field(default_factory=list)
    pricing_breakdown: PricingBreakdown
    documents: list[str] = Field(default_factory=list)
    is_active: bool = True
    version: int = 1
    created_by: str
    created_at: UtcDatetime
    updated_at: UtcDatetime
