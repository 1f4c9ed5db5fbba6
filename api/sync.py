"""
Sync API Router
Visibility into the offline mutation queue
"""

from typing import List, Optional
from datetime import datetime
from fastapi import APIRouter, Depends

from api.deps import ServiceContainer, get_now, get_services
from api.schemas.sync import (
    ConnectivityUpdate,
    DrainResponse,
    SyncItemResponse,
    SyncStatusResponse,
)


router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(services: ServiceContainer = Depends(get_services)):
    """Online flag, drain in progress, last sync time and queue counts"""
    return SyncStatusResponse.model_validate(await services.sync_service.status())


@router.post("/drain", response_model=DrainResponse)
async def drain_queue(
    services: ServiceContainer = Depends(get_services),
    now: datetime = Depends(get_now)
):
    """Run one drain cycle now; skipped while offline or already draining"""
    result = await services.sync_service.drain(now=now)
    return DrainResponse.model_validate(result)


@router.post("/connectivity", response_model=Optional[DrainResponse])
async def set_connectivity(
    update: ConnectivityUpdate,
    services: ServiceContainer = Depends(get_services)
):
    """Going online starts a drain, whose result is returned"""
    result = await services.sync_service.set_online(update.online)
    return DrainResponse.model_validate(result) if result else None


@router.get("/flagged", response_model=List[SyncItemResponse])
async def get_flagged_items(services: ServiceContainer = Depends(get_services)):
    """Items past the retry threshold, for operator review"""
    items = await services.sync_service.flagged_items()
    return [SyncItemResponse.model_validate(item) for item in items]
