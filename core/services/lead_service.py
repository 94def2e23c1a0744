"""
Lead service.

Owns the lifecycle fields of a lead: stage, score and history. Every
stage write goes through the lead stage machine and is committed together
with its history entry; contact and payload fields pass through untouched.
"""

import logging
from typing import Any, Mapping
from uuid import UUID, uuid4

from core.config import EngineConfig, ScoringStrategy
from core.event_bus import EventBus
from core.events import LeadCreated, LeadScoreChanged, LeadStageChanged
from core.exceptions import NotFoundError, ValidationError
from core.filters import ACTIVE_ONLY, ListPage, build_lead_query
from core.history import LEAD_COLLECTION, HistoryLog
from core.models.lead import Lead, LeadCreate, LeadStageUpdate, LeadUpdate
from core.models.stats import LeadStats
from core.scoring import ScoreResult, ScoringEngine
from core.services.versioning import write_with_retry
from core.stages import LeadStageMachine
from core.stats import StatisticsAggregator
from core.store import RecordStore
from utils.timezone import now_utc
from utils.user_context import get_current_actor_id

logger = logging.getLogger(__name__)

# Changing any of these recomputes the score
SCORING_FIELDS = frozenset({"source", "budget", "interest", "phone", "email"})

# Fields an update may explicitly clear
NULLABLE_FIELDS = frozenset({"interest", "budget", "notes", "assigned_to", "customer_id"})


class LeadService:
    """Service for lead operations."""

    def __init__(
        self,
        store: RecordStore,
        scoring: ScoringEngine,
        stages: LeadStageMachine,
        stats: StatisticsAggregator,
        event_bus: EventBus,
        config: EngineConfig | None = None,
    ):
        self.store = store
        self.scoring = scoring
        self.stages = stages
        self.aggregator = stats
        self.event_bus = event_bus
        self.config = config or EngineConfig()
        self.history = HistoryLog(store)

    def create(self, data: LeadCreate) -> Lead:
        """
        Create a lead, score it and seed its history.

        Args:
            data: Lead creation data

        Returns:
            Created lead with score and one history entry
        """
        actor_id = get_current_actor_id()
        now = now_utc()
        stage = self.stages.parse(data.stage)
        result = self.scoring.score_lead(data)
        seed = HistoryLog.creation_entry(stage, now, actor_id)

        record = {
            "id": uuid4(),
            "name": data.name,
            "email": str(data.email),
            "phone": data.phone,
            "source": data.source,
            "stage": stage,
            "score": result.score,
            "interest": data.interest,
            "budget": data.budget,
            "notes": data.notes,
            "assigned_to": data.assigned_to,
            "customer_id": data.customer_id,
            "stage_date_start": now,
            "attachments": list(data.attachments),
            "is_active": True,
            "created_by": actor_id,
            "created_at": now,
            "updated_at": now,
        }
        row = self.store.insert(LEAD_COLLECTION, record, seed.model_dump())
        lead = Lead.model_validate({**row, "history": [seed]})

        logger.info("Lead created id=%s score=%s stage=%s", lead.id, lead.score, lead.stage.value)
        self.event_bus.publish(LeadCreated.create(lead))
        return lead

    def get(self, lead_id: UUID) -> Lead:
        """
        Get a lead with its full history.

        Raises:
            NotFoundError: No active lead with this ID
        """
        return self._hydrate(self._load(lead_id))

    def list_filtered(self, params: Mapping[str, Any]) -> ListPage:
        """
        List leads matching the recognised filters in params.

        The stage counts in the result are computed over the same predicate
        as the page, not just the page itself.
        """
        query = build_lead_query(params, self.config.default_page_size, self.config.max_page_size)
        rows, total = self.store.find(LEAD_COLLECTION, query.predicate, query.sort, query.page)

        histories = self.history.read_many(row["id"] for row in rows)
        leads = [Lead.model_validate({**row, "history": histories.get(row["id"], [])}) for row in rows]
        stage_stats = self.aggregator.lead_stage_counts(query.predicate)

        logger.info("Listed %s of %s leads (page %s)", len(leads), total, query.page.number)
        return ListPage(items=leads, total=total, page=query.page, stage_stats=stage_stats)

    def update(self, lead_id: UUID, data: LeadUpdate) -> Lead:
        """
        Update contact and payload fields.

        Recomputes the score from the merged record when a scoring input
        changed.
        """
        fields = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None or key in NULLABLE_FIELDS
        }
        if "email" in fields:
            fields["email"] = str(fields["email"])

        def plan(current: Lead):
            changes = dict(fields)
            if SCORING_FIELDS & changes.keys():
                merged = current.model_copy(update=changes)
                changes["score"] = self.scoring.score_lead(merged).score
            changes["updated_at"] = now_utc()
            return changes, None

        previous, row = write_with_retry(
            self.store, LEAD_COLLECTION, "Lead", lead_id, self._load, plan, self.config.optimistic_retries,
        )
        lead = self._hydrate(row)

        logger.info("Lead updated id=%s fields=%s", lead.id, sorted(fields))
        if lead.score != previous.score:
            self.event_bus.publish(LeadScoreChanged.create(lead, previous.score))
        return lead

    def update_stage(self, lead_id: UUID, data: LeadStageUpdate) -> Lead:
        """
        Move a lead to a new stage and append the history entry.

        Notes and attachments keep their previous values when omitted.

        Raises:
            ValidationError: Stage missing, unknown, or (strict mode) not reachable
            NotFoundError: No active lead with this ID
        """
        actor_id = get_current_actor_id()

        def plan(current: Lead):
            change = self.stages.transition(current, data.stage, data.notes, actor_id, now_utc())
            changes = dict(change.changes)
            if data.notes is not None:
                changes["notes"] = data.notes
            if data.attachments is not None:
                changes["attachments"] = list(data.attachments)
            return changes, change.history_entry.model_dump()

        previous, row = write_with_retry(
            self.store, LEAD_COLLECTION, "Lead", lead_id, self._load, plan, self.config.optimistic_retries,
        )
        lead = self._hydrate(row)

        logger.info("Lead stage changed id=%s %s -> %s by %s",
                    lead.id, previous.stage.value, lead.stage.value, actor_id)
        self.event_bus.publish(LeadStageChanged.create(lead, previous.stage))
        return lead

    def set_score(self, lead_id: UUID, score: int) -> Lead:
        """Manual score override."""
        if not isinstance(score, int) or isinstance(score, bool) or not 0 <= score <= 100:
            raise ValidationError("score must be an integer between 0 and 100", field="score")

        def plan(current: Lead):
            return {"score": score, "updated_at": now_utc()}, None

        previous, row = write_with_retry(
            self.store, LEAD_COLLECTION, "Lead", lead_id, self._load, plan, self.config.optimistic_retries,
        )
        lead = self._hydrate(row)

        logger.info("Lead score set id=%s %s -> %s", lead.id, previous.score, lead.score)
        self.event_bus.publish(LeadScoreChanged.create(lead, previous.score))
        return lead

    def rescore(self, lead_id: UUID, strategy: str | None = None) -> tuple[Lead, ScoreResult]:
        """
        Recompute a lead's score, optionally with a named strategy.

        Returns:
            (updated lead, score breakdown)
        """
        chosen = self._strategy(strategy)

        def plan(current: Lead):
            result = self.scoring.score_lead(current, chosen)
            return {"score": result.score, "updated_at": now_utc()}, None

        previous, row = write_with_retry(
            self.store, LEAD_COLLECTION, "Lead", lead_id, self._load, plan, self.config.optimistic_retries,
        )
        lead = self._hydrate(row)
        # Scoring is deterministic, so this reproduces the breakdown that was written
        result = self.scoring.score_lead(lead, chosen)

        logger.info("Lead rescored id=%s strategy=%s %s -> %s",
                    lead.id, (chosen or self.config.lead_scoring_strategy).value, previous.score, lead.score)
        if lead.score != previous.score:
            self.event_bus.publish(LeadScoreChanged.create(lead, previous.score))
        return lead, result

    def stats(self) -> LeadStats:
        """Global statistics over every active lead."""
        return self.aggregator.lead_stats(ACTIVE_ONLY)

    # -------------------------------------------------------------------------
    # internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _strategy(strategy: str | None) -> ScoringStrategy | None:
        if strategy is None or strategy == "":
            return None
        try:
            return ScoringStrategy(strategy)
        except ValueError:
            valid = ", ".join(s.value for s in ScoringStrategy)
            raise ValidationError(f"unknown strategy '{strategy}'. Valid strategies: {valid}",
                                  field="strategy") from None

    def _load(self, lead_id: UUID) -> Lead:
        row = self.store.get(LEAD_COLLECTION, lead_id)
        if row is None:
            raise NotFoundError("Lead", lead_id)
        return Lead.model_validate(row)

    def _hydrate(self, record: Lead | dict[str, Any]) -> Lead:
        lead = record if isinstance(record, Lead) else Lead.model_validate(record)
        return lead.model_copy(update={"history": self.history.read(lead.id)})
