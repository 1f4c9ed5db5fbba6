"""
Services Module
Dose scheduling and adherence state engine for MedDrop
"""

from services.schedule_expander import DoseSeed, DayPlan, ScheduleExpander
from services.dose_status import (
    DoseStatus,
    DosePhase,
    DailyDoseView,
    DailyStats,
    DoseStatusResolver,
)
from services.schedule_service import ScheduleService, NextDose, DaySchedule
from services.adherence_service import (
    AdherenceService,
    RiskAssessment,
    WeeklyPatterns,
    WeeklySummary,
    calculate_adherence_rate,
    count_consecutive_misses,
    classify_risk,
    assess_risk,
)
from services.sync_service import SyncService, SyncQueueItem, DrainResult, SyncStatus
from services.patient_service import PatientService, CascadeResult
from services.medication_service import MedicationService


__all__ = [
    # Schedule
    "DoseSeed",
    "DayPlan",
    "ScheduleExpander",
    "ScheduleService",
    "NextDose",
    "DaySchedule",
    # Status
    "DoseStatus",
    "DosePhase",
    "DailyDoseView",
    "DailyStats",
    "DoseStatusResolver",
    # Adherence
    "AdherenceService",
    "RiskAssessment",
    "WeeklyPatterns",
    "WeeklySummary",
    "calculate_adherence_rate",
    "count_consecutive_misses",
    "classify_risk",
    "assess_risk",
    # Sync
    "SyncService",
    "SyncQueueItem",
    "DrainResult",
    "SyncStatus",
    # Write paths
    "PatientService",
    "CascadeResult",
    "MedicationService",
]
