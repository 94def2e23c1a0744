"""Optimistic compare-and-set loop shared by the lifecycle services."""

import logging
from typing import Any, Callable
from uuid import UUID

from core.exceptions import ConflictError, NotFoundError
from core.store import RecordStore, VersionConflict

logger = logging.getLogger(__name__)

# plan(current) -> (changes, history_entry or None)
Plan = Callable[[Any], tuple[dict[str, Any], dict[str, Any] | None]]


def write_with_retry(
    store: RecordStore,
    collection: str,
    resource: str,
    record_id: UUID,
    load: Callable[[UUID], Any],
    plan: Plan,
    retries: int,
) -> tuple[Any, dict[str, Any]]:
    """
    Read, plan and conditionally write a record, retrying on version conflicts.

    load() must raise NotFoundError for a missing record. plan() is re-run
    against a fresh read on every attempt, so it must be a pure function of
    the record it receives.

    Returns:
        (record as read before the write, stored row after the write)

    Raises:
        NotFoundError: Record missing, or deleted between read and write
        ConflictError: Every attempt lost the race
    """
    for attempt in range(1, retries + 1):
        current = load(record_id)
        changes, history_entry = plan(current)
        try:
            row = store.update(collection, record_id, current.version, changes, history_entry)
        except VersionConflict as e:
            logger.info("Retrying %s %s after conflict (attempt %s/%s): %s",
                        resource, record_id, attempt, retries, e)
            continue

        if row is None:
            raise NotFoundError(resource, record_id)
        return current, row

    logger.warning("%s %s still conflicting after %s attempts", resource, record_id, retries)
    raise ConflictError(resource, record_id)
