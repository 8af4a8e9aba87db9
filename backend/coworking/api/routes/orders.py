"""
Callbacks from the external order system. Signed with HMAC-SHA256 when
ORDER_WEBHOOK_SECRET is set.
"""

from fastapi import APIRouter, Depends

from coworking.api.deps import get_services
from coworking.core.security import verify_webhook_signature
from coworking.models.reservation import OrderLineRecord
from coworking.schemas.order import (
    CartRevalidateRequest,
    CartRevalidateResponse,
    OrderEvent,
    OrderEventResponse,
)
from coworking.services.booking_service import Customer
from coworking.services.container import Services
from coworking.services.reconciliation_service import CartLine

router = APIRouter(tags=["Orders"], dependencies=[Depends(verify_webhook_signature)])


@router.post("/orders/events", response_model=OrderEventResponse)
async def order_event(
    event: OrderEvent,
    services: Services = Depends(get_services),
):
    """
    Order lifecycle: completed/processing finalize, cancelled/refunded
    release. Safe to deliver more than once.
    """
    lines = [
        OrderLineRecord(
            resource_id=line.resource_id,
            token=line.token,
            tier=line.tier,
            start=line.start,
            end=line.end,
            quantity=line.quantity,
        )
        for line in event.lines
    ]
    customer = Customer(name=event.customer.name, email=event.customer.email) if event.customer else None
    outcome = await services.booking.handle_order_event(
        event.order_id,
        event.status,
        lines,
        consent=event.consent,
        customer=customer,
        consent_at=event.consent_at,
    )
    return OrderEventResponse(success=outcome != "failed", order_id=event.order_id, outcome=outcome)


@router.post("/cart/revalidate", response_model=CartRevalidateResponse)
async def revalidate_cart(
    payload: CartRevalidateRequest,
    services: Services = Depends(get_services),
):
    """Refresh, self-heal or evict every reservation line in a cart."""
    lines = [
        CartLine(
            resource_id=line.resource_id,
            token=line.token,
            start=line.start,
            end=line.end,
            quantity=line.quantity,
        )
        for line in payload.lines
    ]
    result = await services.reconciliation.revalidate_cart(lines)
    return CartRevalidateResponse(valid=result.valid, evicted=[e.to_dict() for e in result.evicted])
