from coworking.schemas.availability import (
    DayAvailabilityResponse, MonthAvailabilityResponse, PriceRequest, PriceResponse,
)
from coworking.schemas.reservation import ReservationCreate, ReservationResponse
from coworking.schemas.order import (
    OrderEvent, OrderEventResponse, CartRevalidateRequest, CartRevalidateResponse,
)
from coworking.schemas.resource import (
    ResourceSync, ResourceResponse, LockResponse, ManualBlockCreate, ManualBlocksReplace,
    ManualBlockResponse, RebuildResponse, MaintenanceResponse,
)

__all__ = [
    "DayAvailabilityResponse", "MonthAvailabilityResponse", "PriceRequest", "PriceResponse",
    "ReservationCreate", "ReservationResponse",
    "OrderEvent", "OrderEventResponse", "CartRevalidateRequest", "CartRevalidateResponse",
    "ResourceSync", "ResourceResponse", "LockResponse", "ManualBlockCreate", "ManualBlocksReplace",
    "ManualBlockResponse", "RebuildResponse", "MaintenanceResponse",
]
