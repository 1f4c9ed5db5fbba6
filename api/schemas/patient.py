"""
Patient Schemas
Pydantic models for patient-related API requests and responses
"""

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict


# ==================== REQUEST SCHEMAS ====================

class PatientCreate(BaseModel):
    """Schema for creating a new patient"""
    id: Optional[str] = Field(None, min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    language: str = Field(default="en", max_length=10)
    guardians: List[str] = Field(default_factory=list)


class PatientUpdate(BaseModel):
    """Schema for updating patient information"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    language: Optional[str] = Field(None, max_length=10)
    guardians: Optional[List[str]] = None


# ==================== RESPONSE SCHEMAS ====================

class PatientResponse(BaseModel):
    """Schema for patient response"""
    id: str
    name: str
    phone: Optional[str] = None
    language: str
    guardians: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PatientDeleteResponse(BaseModel):
    """What a cascading patient delete removed"""
    patient_id: str
    medicines: int
    adherence_logs: int

    model_config = ConfigDict(from_attributes=True)
