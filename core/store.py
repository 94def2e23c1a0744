"""
Record store contract and the in-memory implementation.

The lifecycle core only needs a small surface from persistence: insert,
get, versioned update with an optional history append, history reads,
and predicate-driven find/scan. PostgresRecordStore implements it over
PostgreSQL; InMemoryRecordStore backs development and the test suite.

Records are plain dicts keyed by snake_case field name. Every record
carries an integer "version" that update() compares and bumps.
"""

import copy
import threading
from abc import ABC, abstractmethod
from typing import Any
from uuid import UUID

from core.filters import Page, Predicate, Sort


class VersionConflict(Exception):
    """The stored version no longer matches the version the caller read."""

    def __init__(self, collection: str, record_id: UUID, expected: int, actual: int):
        self.collection = collection
        self.record_id = record_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{collection}/{record_id}: expected version {expected}, found {actual}"
        )


class RecordStore(ABC):
    """Durable storage for lifecycle records."""

    @abstractmethod
    def insert(
        self,
        collection: str,
        record: dict[str, Any],
        history_entry: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Insert a new record (version 1), seeding its history if given."""

    @abstractmethod
    def get(self, collection: str, record_id: UUID) -> dict[str, Any] | None:
        """Active record by ID, or None."""

    @abstractmethod
    def update(
        self,
        collection: str,
        record_id: UUID,
        expected_version: int,
        changes: dict[str, Any],
        history_entry: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """
        Apply changes if the stored version equals expected_version.

        The change, the version bump and the history append are one unit
        of work: either all are visible afterwards or none are.

        Returns:
            The updated record, or None if the record does not exist.

        Raises:
            VersionConflict: Someone else updated the record first
        """

    @abstractmethod
    def history(self, collection: str, record_id: UUID) -> list[dict[str, Any]]:
        """Ordered history entries for one record."""

    @abstractmethod
    def histories(self, collection: str, record_ids: list[UUID]) -> dict[UUID, list[dict[str, Any]]]:
        """Ordered history entries for several records."""

    @abstractmethod
    def find(
        self,
        collection: str,
        predicate: Predicate,
        sort: Sort,
        page: Page,
    ) -> tuple[list[dict[str, Any]], int]:
        """One page of matching records and the total match count."""

    @abstractmethod
    def scan(self, collection: str, predicate: Predicate) -> list[dict[str, Any]]:
        """Every matching record, unordered."""


def sort_records(records: list[dict[str, Any]], sort: Sort) -> list[dict[str, Any]]:
    """Sort by one field; records missing the field go last in either direction."""
    present = [r for r in records if r.get(sort.field) is not None]
    missing = [r for r in records if r.get(sort.field) is None]
    present.sort(key=lambda r: r[sort.field], reverse=sort.descending)
    return present + missing


class InMemoryRecordStore(RecordStore):
    """
    Dict-backed store.

    One lock guards all mutations so compare-and-set plus history append
    is atomic. Reads return deep copies; callers can never reach stored
    state through a returned dict.
    """

    def __init__(self):
        self._records: dict[str, dict[UUID, dict[str, Any]]] = {}
        self._history: dict[str, dict[UUID, list[dict[str, Any]]]] = {}
        self._lock = threading.Lock()

    def _collection(self, collection: str) -> dict[UUID, dict[str, Any]]:
        return self._records.setdefault(collection, {})

    def insert(self, collection, record, history_entry=None):
        stored = copy.deepcopy(record)
        stored["version"] = 1
        with self._lock:
            records = self._collection(collection)
            if stored["id"] in records:
                raise ValueError(f"{collection}/{stored['id']} already exists")
            records[stored["id"]] = stored
            if history_entry is not None:
                self._history.setdefault(collection, {})[stored["id"]] = [copy.deepcopy(history_entry)]
        return copy.deepcopy(stored)

    def get(self, collection, record_id):
        with self._lock:
            record = self._collection(collection).get(record_id)
            if record is None or not record.get("is_active", True):
                return None
            return copy.deepcopy(record)

    def update(self, collection, record_id, expected_version, changes, history_entry=None):
        with self._lock:
            record = self._collection(collection).get(record_id)
            if record is None or not record.get("is_active", True):
                return None
            if record["version"] != expected_version:
                raise VersionConflict(collection, record_id, expected_version, record["version"])

            record.update(copy.deepcopy(changes))
            record["version"] = expected_version + 1
            if history_entry is not None:
                self._history.setdefault(collection, {}).setdefault(record_id, []).append(
                    copy.deepcopy(history_entry)
                )
            return copy.deepcopy(record)

    def history(self, collection, record_id):
        with self._lock:
            return copy.deepcopy(self._history.get(collection, {}).get(record_id, []))

    def histories(self, collection, record_ids):
        with self._lock:
            entries = self._history.get(collection, {})
            return {rid: copy.deepcopy(entries.get(rid, [])) for rid in record_ids}

    def find(self, collection, predicate, sort, page):
        matched = self.scan(collection, predicate)
        ordered = sort_records(matched, sort)
        return ordered[page.offset:page.offset + page.size], len(matched)

    def scan(self, collection, predicate):
        with self._lock:
            return [
                copy.deepcopy(record)
                for record in self._collection(collection).values()
                if predicate.matches(record)
            ]
