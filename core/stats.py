"""
Statistics aggregator.

Read-only: scans the records matching a predicate and folds them into
counts and averages. Every enumeration member gets a bucket, reporting 0
when no record falls into it, so sum(by_stage.values()) == total always
holds. Empty sets produce zeroed statistics, never an error.

List endpoints hand the aggregator the exact predicate they paginated
with, so meta.stageStats describes the same set as meta.total.
"""

from enum import Enum
from typing import Any, Iterable

from core.filters import ACTIVE_ONLY, Predicate
from core.models.base import stat_key
from core.models.booking import BookingStage, BookingStatus
from core.models.lead import LeadSource, LeadStage
from core.models.stats import BookingStats, LeadStats
from core.store import RecordStore

LEADS = "leads"
BOOKINGS = "bookings"


def _counts(records: Iterable[dict[str, Any]], field: str, members: type[Enum]) -> dict[str, int]:
    counts = {stat_key(member): 0 for member in members}
    for record in records:
        try:
            member = members(record.get(field))
        except ValueError:
            continue
        counts[stat_key(member)] += 1
    return counts


def _percentage(part: int, whole: int) -> float:
    if whole == 0:
        return 0.0
    return round(part / whole * 100, 2)


def _mean(values: list[float]) -> float:
    if not values:
        return 0.0
    return round(sum(values) / len(values), 2)


class StatisticsAggregator:
    """Counts-by-stage, conversion rate and averages over a filtered set."""

    def __init__(self, store: RecordStore):
        self.store = store

    def lead_stage_counts(self, predicate: Predicate = ACTIVE_ONLY) -> dict[str, int]:
        """meta.stageStats for a lead list page."""
        return _counts(self.store.scan(LEADS, predicate), "stage", LeadStage)

    def booking_stage_counts(self, predicate: Predicate = ACTIVE_ONLY) -> dict[str, int]:
        """meta.stageStats for a booking list page."""
        return _counts(self.store.scan(BOOKINGS, predicate), "stage", BookingStage)

    def lead_stats(self, predicate: Predicate = ACTIVE_ONLY) -> LeadStats:
        records = self.store.scan(LEADS, predicate)
        by_stage = _counts(records, "stage", LeadStage)
        total = len(records)

        return LeadStats(
            total=total,
            by_stage=by_stage,
            by_source=_counts(records, "source", LeadSource),
            conversion_rate=_percentage(by_stage[stat_key(LeadStage.SOLD)], total),
            average_score=_mean([float(r.get("score") or 0) for r in records]),
        )

    def booking_stats(self, predicate: Predicate = ACTIVE_ONLY) -> BookingStats:
        records = self.store.scan(BOOKINGS, predicate)
        by_stage = _counts(records, "stage", BookingStage)
        amounts = [float(r.get("amount") or 0) for r in records]
        total = len(records)

        return BookingStats(
            total=total,
            by_stage=by_stage,
            by_status=_counts(records, "status", BookingStatus),
            total_value=round(sum(amounts), 2),
            average_value=_mean(amounts),
            conversion_rate=_percentage(by_stage[stat_key(BookingStage.SOLD)], total),
        )
