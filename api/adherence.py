"""
Adherence API Router
Endpoints for logging doses and reading adherence risk
"""

from datetime import datetime
from fastapi import APIRouter, Depends, Query, status

from api.deps import ServiceContainer, bad_request, get_now, get_services, not_found
from api.schemas.adherence import (
    AdherenceLogCreate,
    AdherenceLogResponse,
    DoseOutcome,
    RiskResponse,
    WeeklySummaryResponse,
)
from errors import RecordNotFoundError
from models import AdherenceStatus
from services.adherence_service import guardian_message, patient_message


router = APIRouter(tags=["adherence"])


@router.post("/adherence/log", response_model=AdherenceLogResponse, status_code=status.HTTP_201_CREATED)
async def log_adherence(
    log_data: AdherenceLogCreate,
    services: ServiceContainer = Depends(get_services),
    now: datetime = Depends(get_now)
):
    """
    Log the outcome of a dose

    - **status**: taken, missed, snoozed, skipped or unwell
    - a second log for the same medicine and scheduled time replaces the first
    """
    medication_service = services.medication_service
    options = dict(
        actual_time=log_data.actual_time,
        symptoms=log_data.symptoms,
        recorded_by=log_data.recorded_by,
        now=now
    )
    if log_data.notes is not None:
        options["notes"] = log_data.notes

    try:
        if log_data.status == DoseOutcome.UNWELL:
            entry = await medication_service.log_dose_unwell(
                log_data.patient_id, log_data.medicine_id, log_data.scheduled_time, **options
            )
        else:
            if log_data.status == DoseOutcome.TAKEN and options["actual_time"] is None:
                options["actual_time"] = now
            entry = await medication_service.log_dose(
                log_data.patient_id, log_data.medicine_id, log_data.scheduled_time,
                AdherenceStatus(log_data.status.value), **options
            )
    except RecordNotFoundError as e:
        raise not_found(e)
    except ValueError as e:
        raise bad_request(e)

    return AdherenceLogResponse.model_validate(entry)


@router.get("/patients/{patient_id}/risk", response_model=RiskResponse)
async def get_risk(
    patient_id: str,
    days: int = Query(7, ge=1, le=90),
    services: ServiceContainer = Depends(get_services),
    now: datetime = Depends(get_now)
):
    """
    Risk level over the trailing window

    Uses the same calculation as the server sweep.
    """
    assessment = await services.adherence_service.assess(patient_id, now, days=days)
    return RiskResponse(
        patient_id=patient_id,
        level=assessment.level,
        consecutive_misses=assessment.consecutive_misses,
        adherence_rate=assessment.adherence_rate,
        missed_today=assessment.missed_today,
        critical_missed=list(assessment.critical_missed),
        escalated=assessment.escalated,
        window_days=days
    )


@router.get("/patients/{patient_id}/weekly-summary", response_model=WeeklySummaryResponse)
async def get_weekly_summary(
    patient_id: str,
    services: ServiceContainer = Depends(get_services),
    now: datetime = Depends(get_now)
):
    try:
        patient = await services.patient_service.get_patient(patient_id)
    except RecordNotFoundError as e:
        raise not_found(e)

    summary = await services.adherence_service.get_weekly_summary(patient_id, now, patient.name)
    data = summary.to_dict()
    data["guardian_message"] = guardian_message(summary)
    data["patient_message"] = patient_message(summary)
    return WeeklySummaryResponse(**data)
