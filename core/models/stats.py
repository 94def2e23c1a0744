"""Aggregated statistics returned by the stats endpoints and list meta."""

from core.models.base import CamelModel


class LeadStats(CamelModel):
    total: int
    by_stage: dict[str, int]
    by_source: dict[str, int]
    conversion_rate: float
    average_score: float


class BookingStats(CamelModel):
    total: int
    by_stage: dict[str, int]
    by_status: dict[str, int]
    total_value: float
    average_value: float
    conversion_rate: float
