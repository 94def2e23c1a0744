"""Property recommendation service."""

import logging

from core.models.property import PropertyMatch, RecommendationRequest
from core.scoring import ScoringEngine

logger = logging.getLogger(__name__)


class RecommendationService:
    """Ranks candidate listings against a buyer's preferences."""

    def __init__(self, scoring: ScoringEngine):
        self.scoring = scoring

    def recommend(self, request: RecommendationRequest) -> list[PropertyMatch]:
        """
        Score every listing in the request and order best first.

        Never fails because of the predictive model; listings it cannot
        score are scored by the rules instead.
        """
        matches = self.scoring.rank_properties(request.properties, request.preferences)
        model_count = sum(1 for m in matches if m.used_model)
        logger.info("Ranked %s properties (%s by model)", len(matches), model_count)
        return matches
