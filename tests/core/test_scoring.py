"""Tests for core/scoring.py - lead scoring, property matching and the model path."""

import json
import time

import pytest

from core.config import ScoringStrategy
from core.exceptions import DependencyError
from core.models import BuyerPreferences, LeadCreate, LeadSource, PropertyListing
from core.scoring import (
    ENQUIRY_SOURCE_WEIGHTS,
    RANKING_SOURCE_WEIGHTS,
    LeadScorer,
    LogisticModelScorer,
    ModelPrediction,
    PropertyFeatures,
    PropertyMatchScorer,
    ScoringEngine,
    clamp_score,
    extract_features,
)


def _lead(**overrides):
    data = {
        "name": "Test Lead",
        "email": "lead@example.com",
        "phone": "555-0100",
        "source": LeadSource.WEBSITE,
    }
    data.update(overrides)
    return LeadCreate(**data)


@pytest.fixture
def prefs():
    return BuyerPreferences.model_validate({
        "budget": {"min": 4_000_000, "max": 6_000_000},
        "locations": ["Bandra"],
        "propertyTypes": ["Apartment"],
        "bedrooms": 3,
        "amenities": ["pool", "gym"],
    })


@pytest.fixture
def ideal_listing():
    return PropertyListing(
        id="ideal", name="Sea View", price=5_000_000, location="Bandra West, Mumbai",
        type="apartment", bedrooms=3, amenities=["Swimming Pool", "Gym"],
    )


@pytest.fixture
def poor_listing():
    return PropertyListing(
        id="poor", name="Hill Villa", price=9_000_000, location="Thane",
        type="Villa", bedrooms=5, amenities=[],
    )


class _FixedModel:
    def __init__(self, probability=0.9, ready=True):
        self.probability = probability
        self.ready = ready
        self.calls = 0

    def is_ready(self):
        return self.ready

    def predict(self, features):
        self.calls += 1
        return ModelPrediction(score=self.probability, confidence=0.8, conversion_probability=self.probability)


class _BrokenModel(_FixedModel):
    def predict(self, features):
        raise RuntimeError("model crashed")


class _SlowModel(_FixedModel):
    def predict(self, features):
        time.sleep(0.5)
        return super().predict(features)


# =============================================================================
# LEAD SCORING
# =============================================================================


class TestLeadScorerStrategies:

    def test_enquiry_strategy_referral_scenario(self, referral_lead_data):
        result = LeadScorer(ScoringStrategy.ENQUIRY).score(referral_lead_data)
        # 25 referral + 25 budget >= 10M + 15 urgency + 10 phone and email
        assert result.score == 75

    def test_ranking_strategy_referral_scenario(self, referral_lead_data):
        result = LeadScorer(ScoringStrategy.RANKING).score(referral_lead_data)
        # 30 referral + 25 + 15 + 10
        assert result.score == 80

    def test_explicit_strategy_overrides_default(self, referral_lead_data):
        scorer = LeadScorer(ScoringStrategy.ENQUIRY)
        assert scorer.score(referral_lead_data, ScoringStrategy.RANKING).score == 80

    def test_whatsapp_scores_zero_in_ranking_table(self):
        lead = _lead(source=LeadSource.WHATSAPP)
        result = LeadScorer(ScoringStrategy.RANKING).score(lead)
        assert result.score == 10  # contact bonus only
        assert "Source WhatsApp (ranking table): +0" in result.reasons

    def test_every_source_has_an_enquiry_weight(self):
        assert set(ENQUIRY_SOURCE_WEIGHTS) == set(LeadSource)

    def test_ranking_table_ranks_referral_highest(self):
        assert max(RANKING_SOURCE_WEIGHTS, key=RANKING_SOURCE_WEIGHTS.get) == LeadSource.REFERRAL


class TestLeadScorerComponents:

    @pytest.mark.parametrize("budget, points", [
        (10_000_000, 25),
        (5_000_000, 20),
        (2_000_000, 15),
        (1_000_000, 10),
        (500_000, 5),
        (499_999, 0),
    ])
    def test_budget_tiers(self, budget, points):
        base = LeadScorer().score(_lead()).score
        assert LeadScorer().score(_lead(budget=budget)).score == base + points

    def test_urgency_keyword_is_case_insensitive(self):
        base = LeadScorer().score(_lead()).score
        assert LeadScorer().score(_lead(interest="Looking to PURCHASE soon")).score == base + 15

    def test_interest_without_keyword_adds_nothing(self):
        base = LeadScorer().score(_lead()).score
        assert LeadScorer().score(_lead(interest="just browsing")).score == base

    def test_single_contact_channel_gets_partial_bonus(self):
        class Partial:
            source = LeadSource.WEBSITE
            budget = None
            interest = None
            phone = "555-0100"
            email = None

        result = LeadScorer().score(Partial())
        assert result.score == 5 + 5

    def test_reasons_follow_evaluation_order(self, referral_lead_data):
        reasons = LeadScorer().score(referral_lead_data).reasons
        assert reasons[0].startswith("Source Referral")
        assert reasons[1].startswith("Budget")
        assert reasons[2].startswith("Urgency")
        assert reasons[3].startswith("Phone and email")


class TestLeadScoreBounds:

    @pytest.mark.parametrize("source", list(LeadSource))
    @pytest.mark.parametrize("strategy", list(ScoringStrategy))
    def test_score_within_bounds_for_every_source(self, source, strategy):
        lead = _lead(source=source, budget=50_000_000, interest="urgent ready to buy")
        score = LeadScorer().score(lead, strategy).score
        assert 0 <= score <= 100

    def test_clamp_upper(self):
        assert clamp_score(150) == 100

    def test_clamp_lower(self):
        assert clamp_score(-20) == 0

    def test_idempotent(self, referral_lead_data):
        scorer = LeadScorer()
        first = scorer.score(referral_lead_data)
        second = scorer.score(referral_lead_data)
        assert first.score == second.score
        assert first.reasons == second.reasons

    def test_does_not_mutate_input(self, referral_lead_data):
        before = referral_lead_data.model_dump()
        LeadScorer().score(referral_lead_data)
        assert referral_lead_data.model_dump() == before


# =============================================================================
# PROPERTY MATCHING
# =============================================================================


class TestPropertyMatchScorer:

    def test_ideal_listing_scores_full(self, ideal_listing, prefs):
        result = PropertyMatchScorer().score(ideal_listing, prefs)
        assert result.score == 100
        assert "Perfect budget match" in result.reasons
        assert result.used_model is False
        assert result.confidence == 0.7

    def test_poor_listing(self, poor_listing, prefs):
        # 0.1*0.40 + 0.4*0.25 + 0.33*0.15 + 0.3*0.10 + 0.0*0.10 = 0.2195
        result = PropertyMatchScorer().score(poor_listing, prefs)
        assert result.score == 22
        assert "Outside budget range" in result.reasons

    def test_no_preferences_uses_neutral_sub_scores(self, poor_listing):
        result = PropertyMatchScorer().score(poor_listing, BuyerPreferences())
        assert result.score == 55

    def test_popularity_bonus(self, poor_listing):
        popular = poor_listing.model_copy(update={"is_featured": True, "views": 150, "inquiries": 30})
        result = PropertyMatchScorer().score(popular, BuyerPreferences())
        assert result.score == 55 + 10
        assert result.reasons[-3:] == ["Featured property", "Popular choice", "High demand"]

    def test_price_just_below_budget(self, ideal_listing, prefs):
        cheaper = ideal_listing.model_copy(update={"price": 3_500_000})
        features, reasons = extract_features(cheaper, prefs)
        assert features.price == 0.75
        assert "Within budget range" in reasons

    def test_bedroom_off_by_one(self, ideal_listing, prefs):
        features, _ = extract_features(ideal_listing.model_copy(update={"bedrooms": 2}), prefs)
        assert features.bedrooms == 0.7

    def test_partial_amenities(self, ideal_listing, prefs):
        features, _ = extract_features(ideal_listing.model_copy(update={"amenities": ["Gym"]}), prefs)
        assert features.amenities == 0.5

    def test_listing_without_amenities_scores_zero(self, poor_listing, prefs):
        features, reasons = extract_features(poor_listing, prefs)
        assert features.amenities == 0.0
        assert "No amenities preference provided" not in reasons

    def test_no_amenity_preference_is_neutral(self, poor_listing):
        features, reasons = extract_features(poor_listing, BuyerPreferences())
        assert features.amenities == 0.5
        assert "No amenities preference provided" in reasons


# =============================================================================
# PREDICTIVE MODEL PATH
# =============================================================================


class TestModelPath:

    def test_ready_model_is_used(self, ideal_listing, prefs):
        model = _FixedModel(probability=0.9)
        engine = ScoringEngine(model=model)
        try:
            result = engine.score_property(ideal_listing, prefs)
        finally:
            engine.close()

        assert result.used_model is True
        assert result.score == 90
        assert result.confidence == 0.8
        assert "Highly recommended" in result.reasons

    def test_not_ready_model_falls_back(self, ideal_listing, prefs):
        model = _FixedModel(ready=False)
        engine = ScoringEngine(model=model)
        try:
            result = engine.score_property(ideal_listing, prefs)
        finally:
            engine.close()

        assert result.used_model is False
        assert model.calls == 0

    def test_failing_model_falls_back_silently(self, ideal_listing, prefs, caplog):
        engine = ScoringEngine(model=_BrokenModel())
        try:
            result = engine.score_property(ideal_listing, prefs)
        finally:
            engine.close()

        assert result.used_model is False
        assert result.score == 100
        assert "using rules" in caplog.text

    def test_slow_model_times_out_and_falls_back(self, ideal_listing, prefs):
        engine = ScoringEngine(model=_SlowModel(), model_timeout_seconds=0.05)
        try:
            result = engine.score_property(ideal_listing, prefs)
        finally:
            engine.close()

        assert result.used_model is False


class TestLogisticModelScorer:

    def test_loads_weights_from_file(self, tmp_path):
        path = tmp_path / "weights.json"
        path.write_text(json.dumps({"bias": 0.0, "weights": {}}))

        model = LogisticModelScorer.from_file(path)

        assert model.is_ready()
        features = PropertyFeatures(1, 1, 1, 1, 1, 0.5, 0, 0, 0)
        assert model.predict(features).score == pytest.approx(0.5)

    def test_positive_weight_raises_probability(self):
        model = LogisticModelScorer(weights={name: 0.0 for name in LogisticModelScorer.FEATURE_NAMES} | {"price": 4.0})
        high = model.predict(PropertyFeatures(1, 0.5, 0.5, 0.5, 0.5, 0.5, 0, 0, 0))
        low = model.predict(PropertyFeatures(0.1, 0.5, 0.5, 0.5, 0.5, 0.5, 0, 0, 0))
        assert high.score > low.score

    def test_unreadable_file_leaves_model_not_ready(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        model = LogisticModelScorer.from_file(path)

        assert not model.is_ready()
        with pytest.raises(DependencyError):
            model.predict(PropertyFeatures(1, 1, 1, 1, 1, 1, 1, 1, 1))

    def test_missing_file_leaves_model_not_ready(self, tmp_path):
        assert not LogisticModelScorer.from_file(tmp_path / "absent.json").is_ready()


class TestRankProperties:

    def test_best_match_first(self, ideal_listing, poor_listing, prefs):
        engine = ScoringEngine()
        matches = engine.rank_properties([poor_listing, ideal_listing], prefs)
        assert [m.property_id for m in matches] == ["ideal", "poor"]

    def test_ties_keep_input_order(self, poor_listing, prefs):
        twins = [poor_listing.model_copy(update={"id": name}) for name in ("a", "b", "c")]
        matches = ScoringEngine().rank_properties(twins, prefs)
        assert [m.property_id for m in matches] == ["a", "b", "c"]

    def test_rule_based_conversion_probability_tracks_score(self, poor_listing, prefs):
        match = ScoringEngine().rank_properties([poor_listing], prefs)[0]
        assert match.conversion_probability == pytest.approx(match.score / 100)
