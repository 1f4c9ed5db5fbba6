"""
Doses API Router
Today's resolved dose schedule for a patient
"""

from typing import Optional
from datetime import datetime
from fastapi import APIRouter, Depends, Query

from api.deps import ServiceContainer, get_now, get_services
from api.schemas.dose import (
    DoseList,
    DoseResponse,
    NextDoseResponse,
    DailyStatsResponse,
    DoseStatusResponse,
)


router = APIRouter(prefix="/patients/{patient_id}/doses", tags=["doses"])


@router.get("/today", response_model=DoseList)
async def get_today_doses(
    patient_id: str,
    services: ServiceContainer = Depends(get_services),
    now: datetime = Depends(get_now)
):
    """All of today's doses in clock order"""
    views = await services.schedule_service.get_today_schedule(patient_id, now)
    return DoseList(
        patient_id=patient_id,
        date=now.date().isoformat(),
        doses=[DoseResponse.from_view(v) for v in views]
    )


@router.get("/current", response_model=Optional[DoseResponse])
async def get_current_dose(
    patient_id: str,
    services: ServiceContainer = Depends(get_services),
    now: datetime = Depends(get_now)
):
    """The dose inside its tolerance window, or null"""
    view = await services.schedule_service.get_current_medicine(patient_id, now)
    return DoseResponse.from_view(view) if view else None


@router.get("/next", response_model=Optional[NextDoseResponse])
async def get_next_dose(
    patient_id: str,
    services: ServiceContainer = Depends(get_services),
    now: datetime = Depends(get_now)
):
    """The next pending dose later today, or null"""
    upcoming = await services.schedule_service.get_next_medicine(patient_id, now)
    if upcoming is None:
        return None
    return NextDoseResponse(dose=DoseResponse.from_view(upcoming.view), label=upcoming.label)


@router.get("/stats", response_model=DailyStatsResponse)
async def get_daily_stats(
    patient_id: str,
    services: ServiceContainer = Depends(get_services),
    now: datetime = Depends(get_now)
):
    stats = await services.schedule_service.get_daily_stats(patient_id, now)
    return DailyStatsResponse.from_stats(stats)


@router.get("/status", response_model=DoseStatusResponse)
async def get_dose_status(
    patient_id: str,
    medicine_id: str = Query(...),
    time: str = Query(..., description="Scheduled clock time, HH:MM"),
    services: ServiceContainer = Depends(get_services),
    now: datetime = Depends(get_now)
):
    """Status of one dose; unknown references report "unknown" """
    dose_status = await services.schedule_service.get_dose_status(patient_id, medicine_id, time, now)
    return DoseStatusResponse(
        patient_id=patient_id,
        medicine_id=medicine_id,
        clock_time=time,
        status=dose_status
    )
