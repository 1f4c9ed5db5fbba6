"""
Medicines API Router
Endpoints for adding, editing and removing medicines
"""

from typing import List
from datetime import datetime
from fastapi import APIRouter, Depends, status

from api.deps import ServiceContainer, bad_request, get_now, get_services, not_found
from api.schemas.medicine import MedicineCreate, MedicineUpdate, MedicineResponse
from errors import MalformedScheduleError, RecordNotFoundError


router = APIRouter(tags=["medicines"])


@router.post("/medicines", response_model=MedicineResponse, status_code=status.HTTP_201_CREATED)
async def add_medicine(
    medicine_data: MedicineCreate,
    services: ServiceContainer = Depends(get_services),
    now: datetime = Depends(get_now)
):
    """
    Add a medicine for a patient

    - **schedule**: list of `{time: "HH:MM", time_of_day, frequency, days_of_week}`
    - **is_critical**: a missed dose raises an urgent guardian alert
    """
    data = medicine_data.model_dump()
    try:
        medicine = await services.medication_service.add_medicine(
            patient_id=data["patient_id"],
            name=data["name"],
            dosage=data["dosage"],
            schedule=data["schedule"],
            is_critical=data["is_critical"],
            days_remaining=data["days_remaining"],
            total_days=data["total_days"],
            start_date=data["start_date"],
            end_date=data["end_date"],
            instructions=data["instructions"],
            added_by=data["added_by"],
            medicine_id=data["id"],
            now=now
        )
    except RecordNotFoundError as e:
        raise not_found(e)
    except (MalformedScheduleError, ValueError) as e:
        raise bad_request(e)
    return MedicineResponse.model_validate(medicine)


@router.get("/medicines/{medicine_id}", response_model=MedicineResponse)
async def get_medicine(
    medicine_id: str,
    services: ServiceContainer = Depends(get_services)
):
    try:
        medicine = await services.medication_service.get_medicine(medicine_id)
    except RecordNotFoundError as e:
        raise not_found(e)
    return MedicineResponse.model_validate(medicine)


@router.get("/patients/{patient_id}/medicines", response_model=List[MedicineResponse])
async def list_patient_medicines(
    patient_id: str,
    services: ServiceContainer = Depends(get_services)
):
    medicines = await services.medication_service.get_patient_medicines(patient_id)
    return [MedicineResponse.model_validate(m) for m in medicines]


@router.put("/medicines/{medicine_id}", response_model=MedicineResponse)
async def update_medicine(
    medicine_id: str,
    medicine_data: MedicineUpdate,
    services: ServiceContainer = Depends(get_services),
    now: datetime = Depends(get_now)
):
    """
    Edit a medicine

    Schedule changes apply to doses expanded from now on.
    """
    try:
        medicine = await services.medication_service.update_medicine(
            medicine_id, medicine_data.model_dump(exclude_unset=True), now=now
        )
    except RecordNotFoundError as e:
        raise not_found(e)
    except (MalformedScheduleError, ValueError) as e:
        raise bad_request(e)
    return MedicineResponse.model_validate(medicine)


@router.delete("/medicines/{medicine_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_medicine(
    medicine_id: str,
    services: ServiceContainer = Depends(get_services),
    now: datetime = Depends(get_now)
):
    """Remove a medicine; its adherence history is kept"""
    try:
        await services.medication_service.delete_medicine(medicine_id, now=now)
    except RecordNotFoundError as e:
        raise not_found(e)
