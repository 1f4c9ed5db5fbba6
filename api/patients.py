"""
Patients API Router
Endpoints for patient management
"""

from datetime import datetime
from fastapi import APIRouter, Depends, status

from api.deps import ServiceContainer, bad_request, get_now, get_services, not_found
from api.schemas.patient import (
    PatientCreate,
    PatientUpdate,
    PatientResponse,
    PatientDeleteResponse,
)
from errors import RecordNotFoundError


router = APIRouter(prefix="/patients", tags=["patients"])


@router.post("", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
async def create_patient(
    patient_data: PatientCreate,
    services: ServiceContainer = Depends(get_services),
    now: datetime = Depends(get_now)
):
    """
    Create a new patient

    - **name**: Patient's display name
    - **guardians**: Linked guardian ids
    """
    try:
        patient = await services.patient_service.create_patient(
            name=patient_data.name,
            phone=patient_data.phone,
            language=patient_data.language,
            guardians=patient_data.guardians,
            patient_id=patient_data.id,
            now=now
        )
    except ValueError as e:
        raise bad_request(e)
    return PatientResponse.model_validate(patient)


@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(
    patient_id: str,
    services: ServiceContainer = Depends(get_services)
):
    """Get patient by ID"""
    try:
        patient = await services.patient_service.get_patient(patient_id)
    except RecordNotFoundError as e:
        raise not_found(e)
    return PatientResponse.model_validate(patient)


@router.put("/{patient_id}", response_model=PatientResponse)
async def update_patient(
    patient_id: str,
    patient_data: PatientUpdate,
    services: ServiceContainer = Depends(get_services),
    now: datetime = Depends(get_now)
):
    """Update patient information"""
    try:
        patient = await services.patient_service.update_patient(
            patient_id, patient_data.model_dump(exclude_unset=True), now=now
        )
    except RecordNotFoundError as e:
        raise not_found(e)
    return PatientResponse.model_validate(patient)


@router.delete("/{patient_id}", response_model=PatientDeleteResponse)
async def delete_patient(
    patient_id: str,
    services: ServiceContainer = Depends(get_services),
    now: datetime = Depends(get_now)
):
    """
    Delete a patient

    Their medicines and adherence logs are deleted with them.
    """
    try:
        result = await services.patient_service.delete_patient(patient_id, now=now)
    except RecordNotFoundError as e:
        raise not_found(e)
    return PatientDeleteResponse.model_validate(result)
