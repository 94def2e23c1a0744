"""Lead domain models."""

from enum import Enum
from uuid import UUID

from pydantic import ConfigDict, EmailStr, Field

from core.models.base import CamelModel, UtcDatetime


class LeadStage(str, Enum):
    """Position of a lead in the sales funnel."""

    ENQUIRY_RECEIVED = "EnquiryReceived"
    SITE_VISIT = "SiteVisit"
    PROPOSAL_SENT = "ProposalSent"
    NEGOTIATION = "Negotiation"
    BOOKING = "Booking"
    SOLD = "Sold"
    LOST = "Lost"


class LeadSource(str, Enum):
    """Acquisition channel the lead came through."""

    WEBSITE = "Website"
    WHATSAPP = "WhatsApp"
    PHONE = "Phone"
    EMAIL = "Email"
    REFERRAL = "Referral"
    WALK_IN = "WalkIn"
    SOCIAL_MEDIA = "SocialMedia"
    ADVERTISEMENT = "Advertisement"
    OTHER = "Other"


class HistoryEntry(CamelModel):
    """One stage change. Immutable once written."""

    model_config = ConfigDict(frozen=True)

    stage: LeadStage
    date: UtcDatetime
    notes: str | None = None
    user_id: str


class LeadCreate(CamelModel):
    """Data required to create a lead."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=50)
    source: LeadSource
    interest: str | None = Field(None, max_length=2000)
    budget: float | None = Field(None, ge=0)
    notes: str | None = Field(None, max_length=10000)
    assigned_to: str | None = Field(None, max_length=255)
    customer_id: UUID | None = None
    stage: LeadStage = LeadStage.ENQUIRY_RECEIVED
    attachments: list[str] = Field(default_factory=list)


class LeadUpdate(CamelModel):
    """Contact and payload fields. Stage, score and history are not settable here."""

    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, min_length=1, max_length=50)
    source: LeadSource | None = None
    interest: str | None = Field(None, max_length=2000)
    budget: float | None = Field(None, ge=0)
    notes: str | None = Field(None, max_length=10000)
    assigned_to: str | None = Field(None, max_length=255)
    customer_id: UUID | None = None
    attachments: list[str] | None = None


class LeadStageUpdate(CamelModel):
    """Body of PUT /leads/{id}/stage."""

    stage: LeadStage
    notes: str | None = Field(None, max_length=10000)
    attachments: list[str] | None = None


class LeadScoreUpdate(CamelModel):
    """Manual score override."""

    score: int = Field(..., ge=0, le=100)


class Lead(CamelModel):
    """Full lead entity as stored, with its ordered stage history."""

    id: UUID
    name: str
    email: str
    phone: str
    source: LeadSource
    stage: LeadStage
    score: int = Field(..., ge=0, le=100)
    interest: str | None = None
    budget: float | None = None
    notes: str | None = None
    assigned_to: str | None = None
    customer_id: UUID | None = None
    stage_date_start: UtcDatetime
    attachments: list[str] = Field(default_factory=list)
    history: list[HistoryEntry] = Field(default_factory=list)
    is_active: bool = True
    version: int = 1
    created_by: str
    created_at: UtcDatetime
    updated_at: UtcDatetime
