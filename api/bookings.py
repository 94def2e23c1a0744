"""Booking endpoints: /bookings."""

from uuid import UUID

from fastapi import APIRouter, Request

from api.base import dump, success_response
from core.models.booking import BookingCreate, BookingPricingUpdate, BookingStageUpdate


def create_bookings_router(services: dict) -> APIRouter:
    router = APIRouter()

    booking_svc = services["booking"]

    @router.get("/bookings/stats")
    async def booking_stats(request: Request):
        stats = booking_svc.stats()
        return success_response(dump(stats)).model_dump(mode="json")

    @router.get("/bookings")
    async def list_bookings(request: Request):
        page = booking_svc.list_filtered(dict(request.query_params))
        return success_response(
            [dump(booking) for booking in page.items],
            meta=page.meta(),
        ).model_dump(mode="json")

    @router.post("/bookings", status_code=201)
    async def create_booking(request: Request, data: BookingCreate):
        booking = booking_svc.create(data)
        return success_response(dump(booking), message="Booking created").model_dump(mode="json")

    @router.get("/bookings/{booking_id}")
    async def get_booking(request: Request, booking_id: UUID):
        booking = booking_svc.get(booking_id)
        return success_response(dump(booking)).model_dump(mode="json")

    @router.put("/bookings/{booking_id}/stage")
    async def update_booking_stage(request: Request, booking_id: UUID, data: BookingStageUpdate):
        booking = booking_svc.update_stage(booking_id, data)
        return success_response(
            dump(booking),
            message=f"Booking moved to {booking.stage.value}",
        ).model_dump(mode="json")

    @router.put("/bookings/{booking_id}/pricing")
    async def update_booking_pricing(request: Request, booking_id: UUID, data: BookingPricingUpdate):
        booking = booking_svc.update_pricing(booking_id, data)
        return success_response(dump(booking), message="Pricing updated").model_dump(mode="json")

    return router
