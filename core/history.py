"""
Append-only stage history for leads.

The history log is:
- Append-only (entries are never edited or removed)
- Ordered by creation, never re-sorted
- Never empty once the lead exists (seeded with the creation entry)
- In step with the lead: the last entry's stage is the lead's stage

Entries are frozen pydantic models, and every helper here returns a new
list instead of modifying the one it was given.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Iterable
from uuid import UUID

from core.models.lead import HistoryEntry, LeadStage

if TYPE_CHECKING:
    from core.store import RecordStore

LEAD_COLLECTION = "leads"
CREATION_NOTE = "Lead created"


class HistoryLog:
    """
    Reader over the store's history, plus pure helpers for building entries.

    Usage:
        log = HistoryLog(store)
        entries = log.read(lead_id)

        seed = HistoryLog.creation_entry(LeadStage.ENQUIRY_RECEIVED, now, actor_id)
    """

    def __init__(self, store: "RecordStore"):
        self.store = store

    def read(self, lead_id: UUID) -> list[HistoryEntry]:
        """Full ordered history for one lead. Not paginated."""
        rows = self.store.history(LEAD_COLLECTION, lead_id)
        return [HistoryEntry.model_validate(row) for row in rows]

    def read_many(self, lead_ids: Iterable[UUID]) -> dict[UUID, list[HistoryEntry]]:
        """Histories for a page of leads in one store round trip."""
        rows_by_id = self.store.histories(LEAD_COLLECTION, list(lead_ids))
        return {
            lead_id: [HistoryEntry.model_validate(row) for row in rows]
            for lead_id, rows in rows_by_id.items()
        }

    @staticmethod
    def entry(
        stage: LeadStage,
        timestamp: datetime,
        notes: str | None,
        actor_id: str,
    ) -> HistoryEntry:
        return HistoryEntry(stage=stage, date=timestamp, notes=notes, user_id=actor_id)

    @staticmethod
    def creation_entry(stage: LeadStage, timestamp: datetime, actor_id: str) -> HistoryEntry:
        """The entry every lead's history starts with."""
        return HistoryLog.entry(stage, timestamp, CREATION_NOTE, actor_id)

