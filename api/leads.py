"""Lead endpoints: /leads."""

from uuid import UUID

from fastapi import APIRouter, Query, Request

from api.base import dump, success_response
from core.models.lead import LeadCreate, LeadScoreUpdate, LeadStageUpdate, LeadUpdate


def create_leads_router(services: dict) -> APIRouter:
    router = APIRouter()

    lead_svc = services["lead"]

    # -------------------------------------------------------------------------
    # Collection routes (/leads/stats must be registered before /leads/{id})
    # -------------------------------------------------------------------------

    @router.get("/leads/stats")
    async def lead_stats(request: Request):
        stats = lead_svc.stats()
        return success_response(dump(stats)).model_dump(mode="json")

    @router.get("/leads")
    async def list_leads(request: Request):
        page = lead_svc.list_filtered(dict(request.query_params))
        return success_response(
            [dump(lead) for lead in page.items],
            meta=page.meta(),
        ).model_dump(mode="json")

    @router.post("/leads", status_code=201)
    async def create_lead(request: Request, data: LeadCreate):
        lead = lead_svc.create(data)
        return success_response(dump(lead), message="Lead created").model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Single-lead routes
    # -------------------------------------------------------------------------

    @router.get("/leads/{lead_id}")
    async def get_lead(request: Request, lead_id: UUID):
        lead = lead_svc.get(lead_id)
        return success_response(dump(lead)).model_dump(mode="json")

    @router.put("/leads/{lead_id}")
    async def update_lead(request: Request, lead_id: UUID, data: LeadUpdate):
        lead = lead_svc.update(lead_id, data)
        return success_response(dump(lead), message="Lead updated").model_dump(mode="json")

    @router.put("/leads/{lead_id}/stage")
    async def update_lead_stage(request: Request, lead_id: UUID, data: LeadStageUpdate):
        lead = lead_svc.update_stage(lead_id, data)
        return success_response(
            dump(lead),
            message=f"Lead moved to {lead.stage.value}",
        ).model_dump(mode="json")

    @router.put("/leads/{lead_id}/score")
    async def update_lead_score(request: Request, lead_id: UUID, data: LeadScoreUpdate):
        lead = lead_svc.set_score(lead_id, data.score)
        return success_response(dump(lead), message="Lead score updated").model_dump(mode="json")

    @router.post("/leads/{lead_id}/rescore")
    async def rescore_lead(request: Request, lead_id: UUID, strategy: str | None = Query(None)):
        lead, result = lead_svc.rescore(lead_id, strategy)
        return success_response({
            "lead": dump(lead),
            "reasons": result.reasons,
        }).model_dump(mode="json")

    return router
