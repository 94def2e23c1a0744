"""Core domain models."""

from core.models.base import CamelModel, stat_key
from core.models.lead import (
    HistoryEntry, Lead, LeadCreate, LeadUpdate, LeadStageUpdate, LeadScoreUpdate, LeadStage, LeadSource,
)
from core.models.booking import (
    Booking, BookingCreate, BookingStageUpdate, BookingPricingUpdate,
    BookingStage, BookingStatus, PaymentStatus, PricingBreakdown,
)
from core.models.property import (
    BudgetRange, BuyerPreferences, PropertyListing, PropertyMatch, RecommendationRequest,
)
from core.models.stats import LeadStats, BookingStats

__all__ = [
    # Base
    "CamelModel", "stat_key",
    # Lead
    "HistoryEntry", "Lead", "LeadCreate", "LeadUpdate", "LeadStageUpdate", "LeadScoreUpdate",
    "LeadStage", "LeadSource",
    # Booking
    "Booking", "BookingCreate", "BookingStageUpdate", "BookingPricingUpdate",
    "BookingStage", "BookingStatus", "PaymentStatus", "PricingBreakdown",
    # Property
    "BudgetRange", "BuyerPreferences", "PropertyListing", "PropertyMatch", "RecommendationRequest",
    # Stats
    "LeadStats", "BookingStats",
]
