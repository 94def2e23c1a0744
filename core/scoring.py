"""
Scoring engine for leads and property matches.

Lead scores are a deterministic weighted rule set. Two source-weight tables
exist for the same concept and both are kept as named strategies:

- ENQUIRY: the table the enquiry intake form has always used
  (Website=5 up to Other=45 in steps of five).
- RANKING: the table the lead ranking screen uses (Referral=30 down to
  Other=0).

Property matches are a weighted sum of five [0,1] sub-scores plus a
popularity bonus. When a predictive model is configured and ready, it is
asked first; any failure falls back to the rule-based match without the
caller ever seeing an error.
"""

import json
import logging
import math
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field, astuple
from pathlib import Path
from typing import Any, Protocol

from core.config import ScoringStrategy
from core.exceptions import DependencyError
from core.models.lead import LeadSource
from core.models.property import BuyerPreferences, PropertyListing, PropertyMatch

logger = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 100

ENQUIRY_SOURCE_WEIGHTS: dict[LeadSource, int] = {
    LeadSource.WEBSITE: 5,
    LeadSource.WHATSAPP: 10,
    LeadSource.PHONE: 15,
    LeadSource.EMAIL: 20,
    LeadSource.REFERRAL: 25,
    LeadSource.WALK_IN: 30,
    LeadSource.SOCIAL_MEDIA: 35,
    LeadSource.ADVERTISEMENT: 40,
    LeadSource.OTHER: 45,
}

# WhatsApp has no entry in the ranking table and scores 0 there.
RANKING_SOURCE_WEIGHTS: dict[LeadSource, int] = {
    LeadSource.REFERRAL: 30,
    LeadSource.WALK_IN: 25,
    LeadSource.PHONE: 20,
    LeadSource.WEBSITE: 15,
    LeadSource.SOCIAL_MEDIA: 10,
    LeadSource.ADVERTISEMENT: 5,
    LeadSource.EMAIL: 5,
    LeadSource.OTHER: 0,
}

SOURCE_WEIGHT_TABLES: dict[ScoringStrategy, dict[LeadSource, int]] = {
    ScoringStrategy.ENQUIRY: ENQUIRY_SOURCE_WEIGHTS,
    ScoringStrategy.RANKING: RANKING_SOURCE_WEIGHTS,
}

# Checked top-down; first threshold the budget reaches wins.
BUDGET_TIERS: tuple[tuple[float, int], ...] = (
    (10_000_000, 25),
    (5_000_000, 20),
    (2_000_000, 15),
    (1_000_000, 10),
    (500_000, 5),
)

URGENCY_KEYWORDS: tuple[str, ...] = ("urgent", "immediate", "ready", "buy", "purchase")
URGENCY_BONUS = 15
FULL_CONTACT_BONUS = 10
PARTIAL_CONTACT_BONUS = 5

# Property match weights, summing to 1.0
MATCH_WEIGHTS = {
    "price": 0.40,
    "location": 0.25,
    "type": 0.15,
    "bedrooms": 0.10,
    "amenities": 0.10,
}

RULE_BASED_CONFIDENCE = 0.7


def clamp_score(value: float) -> int:
    """Round and clamp into [0, 100]."""
    return int(min(MAX_SCORE, max(MIN_SCORE, round(value))))


@dataclass(frozen=True)
class ScoreResult:
    """Outcome of one scoring call."""

    score: int
    reasons: list[str] = field(default_factory=list)
    confidence: float | None = None
    conversion_probability: float | None = None
    used_model: bool = False


# =============================================================================
# LEAD SCORING
# =============================================================================


class LeadScorer:
    """
    Rule-based lead scorer.

    Reads source, budget, interest, phone and email from any object that
    has those attributes (LeadCreate, Lead, or a merged update) and never
    mutates it.
    """

    def __init__(self, default_strategy: ScoringStrategy = ScoringStrategy.ENQUIRY):
        self.default_strategy = default_strategy

    def score(self, lead: Any, strategy: ScoringStrategy | None = None) -> ScoreResult:
        """
        Score a lead.

        Args:
            lead: Object exposing source, budget, interest, phone, email
            strategy: Source-weight table; defaults to the configured one

        Returns:
            ScoreResult with score in [0, 100] and one reason per
            component that contributed points, in evaluation order.
        """
        strategy = ScoringStrategy(strategy or self.default_strategy)
        table = SOURCE_WEIGHT_TABLES[strategy]
        total = 0
        reasons: list[str] = []

        source = getattr(lead, "source", None)
        if source is not None:
            source = LeadSource(source)
            points = table.get(source, 0)
            total += points
            reasons.append(f"Source {source.value} ({strategy.value} table): +{points}")

        budget = getattr(lead, "budget", None)
        if budget:
            for threshold, points in BUDGET_TIERS:
                if budget >= threshold:
                    total += points
                    reasons.append(f"Budget at least {threshold:,.0f}: +{points}")
                    break

        interest = getattr(lead, "interest", None)
        if interest:
            lowered = interest.lower()
            if any(keyword in lowered for keyword in URGENCY_KEYWORDS):
                total += URGENCY_BONUS
                reasons.append(f"Urgency keyword in interest: +{URGENCY_BONUS}")

        has_phone = bool(getattr(lead, "phone", None))
        has_email = bool(getattr(lead, "email", None))
        if has_phone and has_email:
            total += FULL_CONTACT_BONUS
            reasons.append(f"Phone and email provided: +{FULL_CONTACT_BONUS}")
        elif has_phone or has_email:
            total += PARTIAL_CONTACT_BONUS
            reasons.append(f"Single contact channel provided: +{PARTIAL_CONTACT_BONUS}")

        return ScoreResult(score=clamp_score(total), reasons=reasons)


# =============================================================================
# PROPERTY MATCHING
# =============================================================================


@dataclass(frozen=True)
class PropertyFeatures:
    """Normalised [0,1] feature vector shared by the rule and model paths."""

    price: float
    location: float
    type: float
    bedrooms: float
    amenities: float
    area: float
    views: float
    inquiries: float
    days_on_market: float

    def as_vector(self) -> list[float]:
        return list(astuple(self))


def _price_fit(price: float, prefs: BuyerPreferences) -> tuple[float, str]:
    if prefs.budget is None:
        return 0.5, "No budget preference provided"
    low, high = prefs.budget.min, prefs.budget.max
    if low <= price <= high:
        return 1.0, "Perfect budget match"
    if price < low * 1.2:
        return 0.75, "Within budget range"
    if price <= high * 1.2:
        return 0.5, "Slightly above preferred budget"
    return 0.1, "Outside budget range"


def _location_fit(listing: PropertyListing, prefs: BuyerPreferences) -> tuple[float, str]:
    if not prefs.locations:
        return 0.6, "No location preference provided"
    location = (listing.location or "").lower()
    if any(str(loc).lower() in location for loc in prefs.locations):
        return 1.0, "Preferred location"
    return 0.4, "Different location"


def _type_fit(listing: PropertyListing, prefs: BuyerPreferences) -> tuple[float, str]:
    if not prefs.property_types:
        return 0.67, "No property type preference provided"
    wanted = {t.lower() for t in prefs.property_types}
    if listing.type and listing.type.lower() in wanted:
        return 1.0, "Preferred property type"
    return 0.33, "Different property type"


def _bedroom_fit(listing: PropertyListing, prefs: BuyerPreferences) -> tuple[float, str]:
    if not prefs.bedrooms:
        return 0.5, "No bedrooms preference provided"
    difference = abs((listing.bedrooms or 0) - prefs.bedrooms)
    if difference == 0:
        return 1.0, "Exact bedroom match"
    if difference == 1:
        return 0.7, "Close bedroom match"
    return 0.3, "Bedroom count differs"


def _amenity_fit(listing: PropertyListing, prefs: BuyerPreferences) -> tuple[float, str | None]:
    if not prefs.amenities:
        return 0.5, "No amenities preference provided"
    available = [a.lower() for a in listing.amenities or []]
    matched = sum(
        1 for wanted in prefs.amenities
        if any(str(wanted).lower() in have for have in available)
    )
    fit = min(1.0, matched / len(prefs.amenities))
    return fit, (f"{matched} preferred amenities available" if matched else None)


def extract_features(listing: PropertyListing, prefs: BuyerPreferences) -> tuple[PropertyFeatures, list[str]]:
    """
    Compute the feature vector and the rule-based reasons for one listing.

    Returns:
        (features, reasons) where reasons follow the sub-score order
        price, location, type, bedrooms, amenities.
    """
    sub_scores = [
        _price_fit(listing.price, prefs),
        _location_fit(listing, prefs),
        _type_fit(listing, prefs),
        _bedroom_fit(listing, prefs),
        _amenity_fit(listing, prefs),
    ]
    fits = [value for value, _ in sub_scores]
    reasons = [reason for _, reason in sub_scores if reason]

    area = 0.5
    if prefs.min_area and listing.area:
        area = 1.0 if listing.area >= prefs.min_area else 0.3

    days = listing.days_on_market if listing.days_on_market is not None else 30
    features = PropertyFeatures(
        price=fits[0],
        location=fits[1],
        type=fits[2],
        bedrooms=fits[3],
        amenities=fits[4],
        area=area,
        views=min(1.0, listing.views / 100),
        inquiries=min(1.0, listing.inquiries / 50),
        days_on_market=min(1.0, days / 365),
    )
    return features, reasons


def popularity_bonus(listing: PropertyListing) -> tuple[int, list[str]]:
    """Small additive bonus for featured and in-demand listings."""
    bonus = 0
    reasons = []
    if listing.is_featured:
        bonus += 5
        reasons.append("Featured property")
    if listing.views > 100:
        bonus += 3
        reasons.append("Popular choice")
    if listing.inquiries > 20:
        bonus += 2
        reasons.append("High demand")
    return bonus, reasons


class PropertyMatchScorer:
    """Rule-based match of a listing against buyer preferences."""

    def score(self, listing: PropertyListing, prefs: BuyerPreferences) -> ScoreResult:
        features, reasons = extract_features(listing, prefs)
        weighted = (
            features.price * MATCH_WEIGHTS["price"]
            + features.location * MATCH_WEIGHTS["location"]
            + features.type * MATCH_WEIGHTS["type"]
            + features.bedrooms * MATCH_WEIGHTS["bedrooms"]
            + features.amenities * MATCH_WEIGHTS["amenities"]
        )
        bonus, bonus_reasons = popularity_bonus(listing)
        score = clamp_score(weighted * 100 + bonus)
        return ScoreResult(
            score=score,
            reasons=reasons + bonus_reasons,
            confidence=RULE_BASED_CONFIDENCE,
            conversion_probability=score / 100,
            used_model=False,
        )


# =============================================================================
# PREDICTIVE MODEL
# =============================================================================


@dataclass(frozen=True)
class ModelPrediction:
    score: float
    confidence: float
    conversion_probability: float


class PredictiveScorer(Protocol):
    """A pluggable model. score and conversion_probability are in [0,1]."""

    def is_ready(self) -> bool: ...

    def predict(self, features: PropertyFeatures) -> ModelPrediction: ...


def feature_confidence(features: PropertyFeatures) -> float:
    """Confidence is higher when the preference sub-scores are decisive (near 0 or 1)."""
    decisive = [features.price, features.location, features.type, features.bedrooms, features.amenities]
    return sum(abs(value - 0.5) * 2 for value in decisive) / len(decisive)


class LogisticModelScorer:
    """
    Logistic model over the nine property features.

    Weights file format:
        {"bias": -1.2, "weights": {"price": 2.1, "location": 1.3, ...}}

    Missing feature weights count as 0. An unreadable file leaves the
    scorer not ready rather than failing startup.
    """

    FEATURE_NAMES = (
        "price", "location", "type", "bedrooms", "amenities",
        "area", "views", "inquiries", "days_on_market",
    )

    def __init__(self, weights: dict[str, float] | None = None, bias: float = 0.0):
        self._weights = weights
        self._bias = bias

    @classmethod
    def from_file(cls, path: Path) -> "LogisticModelScorer":
        try:
            payload = json.loads(Path(path).read_text())
            weights = {name: float(payload["weights"].get(name, 0.0)) for name in cls.FEATURE_NAMES}
            bias = float(payload.get("bias", 0.0))
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Predictive model weights unusable at %s: %s", path, e)
            return cls()
        logger.info("Predictive model loaded from %s", path)
        return cls(weights=weights, bias=bias)

    def is_ready(self) -> bool:
        return self._weights is not None

    def predict(self, features: PropertyFeatures) -> ModelPrediction:
        if self._weights is None:
            raise DependencyError("Predictive scorer", "no weights loaded")
        z = self._bias + sum(
            self._weights[name] * value
            for name, value in zip(self.FEATURE_NAMES, features.as_vector())
        )
        probability = 1 / (1 + math.exp(-z))
        return ModelPrediction(
            score=probability,
            confidence=feature_confidence(features),
            conversion_probability=probability,
        )


def model_reasons(features: PropertyFeatures, probability: float) -> list[str]:
    """Human-readable reasons for a model-backed score."""
    reasons = []
    if features.price > 0.8:
        reasons.append("Excellent price match for your budget")
    elif features.price < 0.3:
        reasons.append("Price outside preferred range")
    if features.location > 0.8:
        reasons.append("Located in your preferred area")
    elif features.location < 0.5:
        reasons.append("Different location than preferred")
    if features.type > 0.8:
        reasons.append("Matches your property type preference")
    if features.bedrooms > 0.8:
        reasons.append("Perfect bedroom count match")
    if features.amenities > 0.7:
        reasons.append("Includes most of your desired amenities")
    if features.views > 0.5:
        reasons.append("Popular property with high interest")
    if features.inquiries > 0.5:
        reasons.append("Many inquiries")

    if probability > 0.8:
        reasons.append("Highly recommended")
    elif probability > 0.6:
        reasons.append("Good match based on your preferences")
    elif probability < 0.4:
        reasons.append("May not fully match your requirements")
    return reasons


# =============================================================================
# ENGINE
# =============================================================================


class ScoringEngine:
    """
    Entry point for all scoring.

    Stateless apart from the optional model and the executor that bounds
    model calls. Construct once at startup and inject into services.
    """

    def __init__(
        self,
        lead_scorer: LeadScorer | None = None,
        match_scorer: PropertyMatchScorer | None = None,
        model: PredictiveScorer | None = None,
        model_timeout_seconds: float = 0.5,
    ):
        self.lead_scorer = lead_scorer or LeadScorer()
        self.match_scorer = match_scorer or PropertyMatchScorer()
        self.model = model
        self.model_timeout_seconds = model_timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="model-scorer") if model else None

    def score_lead(self, lead: Any, strategy: ScoringStrategy | None = None) -> ScoreResult:
        return self.lead_scorer.score(lead, strategy)

    def score_property(self, listing: PropertyListing, prefs: BuyerPreferences) -> ScoreResult:
        """Model-backed match when available, rule-based otherwise."""
        predicted = self._try_model(listing, prefs)
        if predicted is not None:
            return predicted
        return self.match_scorer.score(listing, prefs)

    def rank_properties(
        self,
        listings: list[PropertyListing],
        prefs: BuyerPreferences,
    ) -> list[PropertyMatch]:
        """Score every listing and order best first; ties keep input order."""
        matches = []
        for listing in listings:
            result = self.score_property(listing, prefs)
            matches.append(PropertyMatch(
                property_id=listing.id,
                score=result.score,
                reasons=result.reasons,
                confidence=result.confidence if result.confidence is not None else RULE_BASED_CONFIDENCE,
                conversion_probability=(
                    result.conversion_probability
                    if result.conversion_probability is not None else result.score / 100
                ),
                used_model=result.used_model,
            ))
        return sorted(matches, key=lambda m: m.score, reverse=True)

    def _try_model(self, listing: PropertyListing, prefs: BuyerPreferences) -> ScoreResult | None:
        if self.model is None or self._executor is None:
            return None

        try:
            if not self.model.is_ready():
                return None
            features, _ = extract_features(listing, prefs)
            future = self._executor.submit(self.model.predict, features)
            prediction = future.result(timeout=self.model_timeout_seconds)
        except FutureTimeoutError:
            logger.warning(
                "Predictive scorer timed out after %ss for property %s, using rules",
                self.model_timeout_seconds, listing.id,
            )
            return None
        except Exception as e:
            logger.warning("Predictive scorer failed for property %s, using rules: %s", listing.id, e)
            return None

        probability = min(1.0, max(0.0, prediction.score))
        bonus, bonus_reasons = popularity_bonus(listing)
        return ScoreResult(
            score=clamp_score(probability * 100 + bonus),
            reasons=model_reasons(features, probability) + bonus_reasons,
            confidence=prediction.confidence,
            conversion_probability=prediction.conversion_probability,
            used_model=True,
        )

    def close(self) -> None:
        """Release the model executor."""
        if self._executor is not None:
            self._executor.shutdown(wait=False)
