"""Tests for RecommendationService."""

import logging

from core.models import BudgetRange, BuyerPreferences, PropertyListing, RecommendationRequest
from core.scoring import ModelPrediction, ScoringEngine
from core.services.recommendation_service import RecommendationService


class BrokenModel:
    def is_ready(self):
        return True

    def predict(self, features):
        raise RuntimeError("model server unreachable")


class ConfidentModel:
    def is_ready(self):
        return True

    def predict(self, features):
        return ModelPrediction(score=0.9, confidence=0.95, conversion_probability=0.9)


def _request():
    return RecommendationRequest(
        preferences=BuyerPreferences(
            budget=BudgetRange(min=4_000_000, max=6_000_000),
            locations=["Bandra"],
            property_types=["Apartment"],
            bedrooms=2,
        ),
        properties=[
            PropertyListing(id="far", price=20_000_000, location="Thane", type="Villa", bedrooms=5),
            PropertyListing(id="ideal", price=5_000_000, location="Bandra West", type="Apartment", bedrooms=2),
        ],
    )


def test_ranks_best_first(scoring):
    matches = RecommendationService(scoring).recommend(_request())

    assert [m.property_id for m in matches] == ["ideal", "far"]
    assert matches[0].score > matches[1].score
    assert not any(m.used_model for m in matches)


def test_empty_listing_set(scoring):
    request = RecommendationRequest(properties=[])
    assert RecommendationService(scoring).recommend(request) == []


def test_model_failure_falls_back_to_rules(caplog):
    engine = ScoringEngine(model=BrokenModel())
    try:
        with caplog.at_level(logging.WARNING, logger="core.scoring"):
            matches = RecommendationService(engine).recommend(_request())
    finally:
        engine.close()

    assert len(matches) == 2
    assert all(m.confidence == 0.7 for m in matches)
    assert "using rules" in caplog.text


def test_model_used_when_ready():
    engine = ScoringEngine(model=ConfidentModel())
    try:
        matches = RecommendationService(engine).recommend(_request())
    finally:
        engine.close()

    assert all(m.used_model for m in matches)
    assert matches[0].confidence == 0.95
