"""
Dose Schemas
Pydantic models for the daily schedule endpoints
"""

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel

from models import AdherenceStatus, TimeOfDay
from services.dose_status import DailyDoseView, DailyStats, DosePhase, DoseStatus


class DoseResponse(BaseModel):
    """One resolved dose"""
    medicine_id: str
    medicine_name: str
    dosage: str
    is_critical: bool
    clock_time: str
    time_of_day: TimeOfDay
    scheduled_time: datetime
    status: DoseStatus
    phase: DosePhase
    log_status: Optional[AdherenceStatus] = None
    actual_time: Optional[datetime] = None

    @classmethod
    def from_view(cls, view: DailyDoseView) -> "DoseResponse":
        return cls(
            medicine_id=view.medicine_id,
            medicine_name=view.medicine.name,
            dosage=view.medicine.dosage,
            is_critical=view.medicine.is_critical,
            clock_time=view.clock_time,
            time_of_day=view.schedule.bucket,
            scheduled_time=view.scheduled_time,
            status=view.status,
            phase=view.phase,
            log_status=view.log.status if view.log else None,
            actual_time=view.log.actual_time if view.log else None,
        )


class DoseList(BaseModel):
    """Today's doses"""
    patient_id: str
    date: str
    doses: List[DoseResponse]


class NextDoseResponse(BaseModel):
    """Upcoming dose with a human label such as "in 20 minutes" """
    dose: DoseResponse
    label: str


class DailyStatsResponse(BaseModel):
    """Counts for today"""
    taken: int
    missed: int
    pending: int
    total: int
    inferred_missed: int
    adherence_rate: float
    last_taken_at: Optional[datetime] = None

    @classmethod
    def from_stats(cls, stats: DailyStats) -> "DailyStatsResponse":
        return cls(
            taken=stats.taken,
            missed=stats.missed,
            pending=stats.pending,
            total=stats.total,
            inferred_missed=stats.inferred_missed,
            adherence_rate=round(stats.adherence_rate, 4),
            last_taken_at=stats.last_taken_at,
        )


class DoseStatusResponse(BaseModel):
    patient_id: str
    medicine_id: str
    clock_time: str
    status: DoseStatus
