"""
Public availability endpoints consumed by the calendar widget.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from coworking.api.deps import get_services
from coworking.schemas.availability import MonthAvailabilityResponse, PriceRequest, PriceResponse
from coworking.services.calendar import MonthKey
from coworking.services.container import Services

router = APIRouter(prefix="/availability", tags=["Availability"])


@router.get("/{resource_id}", response_model=MonthAvailabilityResponse)
async def get_month_availability(
    resource_id: int,
    month: Optional[str] = Query(default=None, description="YYYY-MM, defaults to the current month"),
    services: Services = Depends(get_services),
):
    """
    Per-day status for one month of a resource.

    Unexpired locks count as occupied, so dates held by in-progress
    checkouts are never shown as free.
    """
    key = MonthKey.parse(month) if month else MonthKey.current(
        services.availability.settings.TIMEZONE, services.availability.clock()
    )
    resource = await services.resources.get(resource_id)
    days = await services.availability.get_month(resource_id, key)
    return MonthAvailabilityResponse(
        resource_id=resource_id,
        month=str(key),
        availability={day.isoformat(): entry.to_dict() for day, entry in days.items()},
        prices=resource.prices,
    )


@router.post("/calculate-price", response_model=PriceResponse)
async def calculate_price(
    payload: PriceRequest,
    services: Services = Depends(get_services),
):
    """Validate a prospective range and return its price. Takes no lock."""
    quote = await services.booking.quote(payload.resource_id, payload.tier, payload.start_date, payload.end_date)
    return PriceResponse(price=quote.price, range=(quote.start, quote.end))
