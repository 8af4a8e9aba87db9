"""
Reservation endpoint: lock the range and hand off to the order system.
"""

from fastapi import APIRouter, Depends

from coworking.api.deps import get_services
from coworking.schemas.reservation import ReservationCreate, ReservationResponse
from coworking.services.container import Services

router = APIRouter(prefix="/reservations", tags=["Reservations"])


@router.post("", response_model=ReservationResponse)
async def create_reservation(
    payload: ReservationCreate,
    services: Services = Depends(get_services),
):
    """
    Start checkout for a date range.

    Concurrent attempts for the last free slot are serialized on the
    resource's lock collection; exactly one wins and the others get a 409
    naming the first unavailable date.
    """
    handoff = await services.booking.reserve(payload.resource_id, payload.tier, payload.start, payload.end)
    return ReservationResponse(
        token=handoff.token,
        redirect_url=handoff.redirect_url,
        price=handoff.price,
        range=(handoff.start, handoff.end),
    )
