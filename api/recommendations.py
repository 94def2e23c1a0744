"""POST /recommendations: rank candidate properties for a buyer."""

from fastapi import APIRouter, Request

from api.base import dump, success_response
from core.models.property import RecommendationRequest


def create_recommendations_router(services: dict) -> APIRouter:
    router = APIRouter()

    recommendation_svc = services["recommendation"]

    @router.post("/recommendations")
    async def recommend(request: Request, data: RecommendationRequest):
        matches = recommendation_svc.recommend(data)
        return success_response(
            [dump(match) for match in matches],
            meta={"total": len(matches)},
        ).model_dump(mode="json")

    return router
