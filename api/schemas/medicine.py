"""
Medicine Schemas
Pydantic models for medicine API requests and responses
"""

from typing import Annotated, Optional, List
from datetime import datetime, date
from pydantic import BaseModel, Field, ConfigDict

from models import TimeOfDay


# ==================== BASE SCHEMAS ====================

class DoseScheduleSchema(BaseModel):
    """One recurring dose time"""
    # Format is checked by the service so a bad time surfaces as a schedule error
    time: str = Field(..., description="24-hour clock time, HH:MM")
    time_of_day: Optional[TimeOfDay] = None
    frequency: str = Field(default="custom", max_length=50)
    days_of_week: Optional[List[Annotated[int, Field(ge=0, le=6)]]] = Field(
        None, min_length=1, max_length=7, description="0=Monday .. 6=Sunday; omit for daily"
    )

    model_config = ConfigDict(from_attributes=True)


# ==================== REQUEST SCHEMAS ====================

class MedicineCreate(BaseModel):
    """Schema for adding a medicine"""
    id: Optional[str] = Field(None, min_length=1, max_length=64)
    patient_id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    dosage: str = Field(default="", max_length=100)
    schedule: List[DoseScheduleSchema] = Field(default_factory=list)
    is_critical: bool = False
    days_remaining: Optional[int] = Field(None, ge=0)
    total_days: Optional[int] = Field(None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    instructions: Optional[str] = None
    added_by: Optional[str] = Field(None, max_length=64)


class MedicineUpdate(BaseModel):
    """Schema for editing a medicine; omitted fields are left unchanged"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    dosage: Optional[str] = Field(None, max_length=100)
    schedule: Optional[List[DoseScheduleSchema]] = None
    is_critical: Optional[bool] = None
    days_remaining: Optional[int] = Field(None, ge=0)
    total_days: Optional[int] = Field(None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    instructions: Optional[str] = None


# ==================== RESPONSE SCHEMAS ====================

class MedicineResponse(BaseModel):
    """Schema for medicine response"""
    id: str
    patient_id: str
    name: str
    dosage: str
    schedule: List[DoseScheduleSchema]
    is_critical: bool
    days_remaining: Optional[int] = None
    total_days: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    instructions: Optional[str] = None
    added_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
