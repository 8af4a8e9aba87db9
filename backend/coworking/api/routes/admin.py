"""
Operator endpoints: catalogue sync, lock inspection and force-unlock,
manual blocks, occupancy rebuild and on-demand maintenance.
"""

from datetime import date

from fastapi import APIRouter, Depends, status

from coworking.api.deps import get_services
from coworking.core.errors import InvalidInput
from coworking.core.logging import get_logger
from coworking.core.security import require_admin
from coworking.models.occupancy import ManualBlock
from coworking.models.resource import TIERS
from coworking.schemas.resource import (
    LockResponse,
    MaintenanceResponse,
    ManualBlockCreate,
    ManualBlockResponse,
    ManualBlocksReplace,
    RebuildResponse,
    ResourceResponse,
    ResourceSync,
)
from coworking.services.container import Services

logger = get_logger(__name__)
router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


def _blocks(blocks: list[ManualBlock]) -> list[ManualBlockResponse]:
    return [ManualBlockResponse(date=b.day, reason=b.reason) for b in blocks]


@router.put("/resources/{resource_id}", response_model=ResourceResponse)
async def sync_resource(
    resource_id: int,
    payload: ResourceSync,
    services: Services = Depends(get_services),
):
    """Catalogue sync: push a resource's title, capacity and prices."""
    unknown = set(payload.prices) - set(TIERS)
    if unknown:
        raise InvalidInput(f"Unknown price tiers: {', '.join(sorted(unknown))}")

    resource = await services.resources.save(resource_id, payload.title, payload.capacity, payload.prices)
    return ResourceResponse(
        id=resource.id,
        title=resource.title,
        capacity=resource.capacity,
        prices=resource.prices,
        manual_blocks=sorted(resource.manual_blocks),
    )


@router.get("/resources/{resource_id}/locks", response_model=list[LockResponse])
async def list_locks(resource_id: int, services: Services = Depends(get_services)):
    locks = await services.locks.active_locks(resource_id)
    return [
        LockResponse(
            token=lock.token,
            start=lock.start,
            end=lock.end,
            quantity=lock.quantity,
            lock_type=lock.lock_type,
            expires_at=lock.expires_at,
        )
        for lock in locks
    ]


@router.delete("/resources/{resource_id}/locks/{token}", status_code=status.HTTP_204_NO_CONTENT)
async def force_unlock(resource_id: int, token: str, services: Services = Depends(get_services)):
    """Release a hold immediately. Unknown tokens are a no-op."""
    removed = await services.locks.remove_lock_by_token(resource_id, token)
    logger.warning("lock_force_released", resource_id=resource_id, found=removed)


@router.get("/resources/{resource_id}/blocks", response_model=list[ManualBlockResponse])
async def list_blocks(resource_id: int, services: Services = Depends(get_services)):
    return _blocks(await services.resources.manual_blocks(resource_id))


@router.post("/resources/{resource_id}/blocks", response_model=list[ManualBlockResponse])
async def add_block(resource_id: int, payload: ManualBlockCreate, services: Services = Depends(get_services)):
    return _blocks(await services.resources.add_block(resource_id, payload.date, payload.reason))


@router.put("/resources/{resource_id}/blocks", response_model=list[ManualBlockResponse])
async def replace_blocks(resource_id: int, payload: ManualBlocksReplace, services: Services = Depends(get_services)):
    return _blocks(await services.resources.replace_blocks(resource_id, payload.lines))


@router.delete("/resources/{resource_id}/blocks/{day}", response_model=list[ManualBlockResponse])
async def remove_block(resource_id: int, day: date, services: Services = Depends(get_services)):
    return _blocks(await services.resources.remove_block(resource_id, day))


@router.post("/resources/{resource_id}/rebuild", response_model=RebuildResponse)
async def rebuild_occupancy(resource_id: int, services: Services = Depends(get_services)):
    """Rewrite confirmed occupancy from processed order records."""
    records = await services.reconciliation.rebuild_occupancy(resource_id)
    return RebuildResponse(resource_id=resource_id, records=records)


@router.post("/maintenance", response_model=MaintenanceResponse)
async def run_maintenance(services: Services = Depends(get_services)):
    report = await services.reconciliation.run_maintenance()
    return MaintenanceResponse(**report.to_dict())
