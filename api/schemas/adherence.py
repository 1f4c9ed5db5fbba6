"""
Adherence Schemas
Pydantic models for adherence logging, risk and weekly report endpoints
"""

from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict

from models import AdherenceStatus, RecorderRole, RiskLevel


class DoseOutcome(str, Enum):
    """Outcomes a user can report for a dose"""
    TAKEN = "taken"
    MISSED = "missed"
    SNOOZED = "snoozed"
    SKIPPED = "skipped"
    UNWELL = "unwell"


# ==================== REQUEST SCHEMAS ====================

class AdherenceLogCreate(BaseModel):
    """Schema for logging a dose outcome"""
    patient_id: str = Field(..., min_length=1, max_length=64)
    medicine_id: str = Field(..., min_length=1, max_length=64)
    scheduled_time: datetime
    status: DoseOutcome
    actual_time: Optional[datetime] = None
    symptoms: List[str] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=1000)
    recorded_by: RecorderRole = RecorderRole.PATIENT


# ==================== RESPONSE SCHEMAS ====================

class AdherenceLogResponse(BaseModel):
    """Schema for adherence log response"""
    id: str
    patient_id: str
    medicine_id: str
    medicine_name: str
    scheduled_time: datetime
    actual_time: Optional[datetime] = None
    status: AdherenceStatus
    symptoms: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    recorded_by: RecorderRole
    snooze_count: int = 0
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class RiskResponse(BaseModel):
    """Schema for risk assessment"""
    patient_id: str
    level: RiskLevel
    consecutive_misses: int
    adherence_rate: float = Field(..., ge=0, le=1)
    missed_today: int
    critical_missed: List[str] = Field(default_factory=list)
    escalated: bool
    window_days: int


class WeeklySummaryResponse(BaseModel):
    """Schema for the weekly adherence report"""
    patient_id: str
    patient_name: str
    week_start: datetime
    week_end: datetime
    total_doses: int
    taken_doses: int
    missed_doses: int
    adherence_percentage: int
    streak: int
    patterns: Dict[str, Any]
    insights: List[str]
    average_delay_minutes: Optional[float] = None
    on_time_ratio: Optional[float] = None
    guardian_message: str
    patient_message: str
