"""
Medication Service
Medicine write paths and dose logging, all through the offline mutation queue
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence, Union
from dataclasses import replace
from datetime import datetime, date

from config import Collections
from models import AdherenceStatus, RecordType, RecorderRole, SyncAction
from services.sync_service import SyncService
from tools.clock import truncate_to_minute
from tools.record_store import where
from tools.records import (
    AdherenceEntry,
    DoseSchedule,
    MedicineRecord,
    adherence_log_id,
    as_date,
)


logger = logging.getLogger(__name__)


ScheduleInput = Union[DoseSchedule, Dict[str, Any]]

MEDICINE_FIELDS = (
    "name", "dosage", "schedule", "is_critical", "days_remaining", "total_days",
    "start_date", "end_date", "instructions", "added_by",
)

UNWELL_NOTE = "unwell"


def normalize_schedule(entries: Sequence[ScheduleInput], medicine_id: Optional[str] = None) -> tuple:
    """
    Canonical schedule tuple, unique by (time-of-day bucket, clock time).

    Raises:
        MalformedScheduleError: an entry's time is not HH:MM
        ValueError: an entry's days_of_week is empty or out of range
    """
    normalized = []
    seen = set()
    for entry in entries:
        if not isinstance(entry, DoseSchedule):
            entry = DoseSchedule.from_payload(entry)
        entry = entry.normalized(medicine_id)
        if entry.key in seen:
            logger.debug(f"Dropping duplicate schedule entry {entry.key} for {medicine_id}")
            continue
        seen.add(entry.key)
        normalized.append(entry)
    return tuple(normalized)


class MedicationService:
    """
    Service for medicines and adherence logging
    """

    def __init__(self, sync: SyncService, reminders=None):
        self.sync = sync
        self.store = sync.local
        self.reminders = reminders

    async def _resync(self, patient_id: str, now: datetime):
        if self.reminders is not None:
            await self.reminders.resync(patient_id, now)

    # ==================== MEDICINES ====================

    async def get_medicine(self, medicine_id: str) -> MedicineRecord:
        """Raises RecordNotFoundError for an unknown id"""
        return MedicineRecord.from_payload(await self.store.require(Collections.MEDICINES, medicine_id))

    async def get_patient_medicines(self, patient_id: str) -> List[MedicineRecord]:
        documents = await self.store.query(
            Collections.MEDICINES,
            [where("patient_id", "==", patient_id)],
            order_by="created_at"
        )
        return [MedicineRecord.from_payload(d) for d in documents]

    async def add_medicine(
        self,
        patient_id: str,
        name: str,
        dosage: str = "",
        schedule: Sequence[ScheduleInput] = (),
        is_critical: bool = False,
        days_remaining: Optional[int] = None,
        total_days: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        instructions: Optional[str] = None,
        added_by: Optional[str] = None,
        medicine_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> MedicineRecord:
        """
        Add a medicine for a patient

        Args:
            patient_id: Owning patient
            name: Medicine name
            dosage: Dosage text (e.g., "500mg")
            schedule: Dose-time entries, as DoseSchedule or dicts
            is_critical: Missing a dose raises an urgent alert
            days_remaining: Supply left, drives refill alerts
            total_days: Course length
            start_date: First day doses expand
            end_date: Last day doses expand
            instructions: Free text
            added_by: pharmacy / guardian / patient id
            medicine_id: Explicit id; generated when omitted
            now: Creation timestamp

        Returns:
            The stored medicine

        Raises:
            RecordNotFoundError: patient does not exist
            MalformedScheduleError: a schedule time is not HH:MM
        """
        if not name or not name.strip():
            raise ValueError("Medicine name is required")

        now = now or datetime.now()
        await self.store.require(Collections.PATIENTS, patient_id)

        medicine_id = medicine_id or f"med_{uuid.uuid4().hex[:12]}"
        start_date, end_date = as_date(start_date), as_date(end_date)
        if start_date and end_date and end_date < start_date:
            raise ValueError("end_date is before start_date")

        medicine = MedicineRecord(
            id=medicine_id,
            patient_id=patient_id,
            name=name.strip(),
            dosage=dosage or "",
            schedule=normalize_schedule(schedule, medicine_id),
            is_critical=is_critical,
            days_remaining=days_remaining,
            total_days=total_days,
            start_date=start_date,
            end_date=end_date,
            instructions=instructions,
            added_by=added_by,
            created_at=now,
            updated_at=now
        )
        await self.sync.record_mutation(
            RecordType.MEDICINE, SyncAction.CREATE, medicine.id, medicine.to_payload(), now=now
        )
        logger.info(f"Added medicine {medicine.id} ({medicine.name}) for patient {patient_id}")

        await self._resync(patient_id, now)
        return medicine

    async def update_medicine(
        self,
        medicine_id: str,
        changes: Dict[str, Any],
        now: Optional[datetime] = None
    ) -> MedicineRecord:
        """Apply field changes; a new schedule only affects doses expanded from now on"""
        now = now or datetime.now()
        medicine = await self.get_medicine(medicine_id)

        allowed = {k: v for k, v in changes.items() if k in MEDICINE_FIELDS}
        if "schedule" in allowed:
            allowed["schedule"] = normalize_schedule(allowed["schedule"] or (), medicine_id)
        for key in ("start_date", "end_date"):
            if key in allowed:
                allowed[key] = as_date(allowed[key])
        if "name" in allowed and not (allowed["name"] or "").strip():
            raise ValueError("Medicine name is required")

        updated = replace(medicine, updated_at=now, **allowed)
        await self.sync.record_mutation(
            RecordType.MEDICINE, SyncAction.UPDATE, medicine_id, updated.to_payload(), now=now
        )
        logger.info(f"Updated medicine {medicine_id}: {sorted(allowed)}")

        await self._resync(updated.patient_id, now)
        return updated

    async def delete_medicine(self, medicine_id: str, now: Optional[datetime] = None) -> MedicineRecord:
        """Remove a medicine; its adherence logs stay for history"""
        now = now or datetime.now()
        medicine = await self.get_medicine(medicine_id)

        await self.sync.record_mutation(RecordType.MEDICINE, SyncAction.DELETE, medicine_id, now=now)
        logger.info(f"Deleted medicine {medicine_id}")

        await self._resync(medicine.patient_id, now)
        return medicine

    # ==================== DOSE LOGGING ====================

    async def log_dose(
        self,
        patient_id: str,
        medicine_id: str,
        scheduled_time: datetime,
        status: AdherenceStatus,
        actual_time: Optional[datetime] = None,
        symptoms: Sequence[str] = (),
        notes: Optional[str] = None,
        recorded_by: RecorderRole = RecorderRole.PATIENT,
        now: Optional[datetime] = None
    ) -> AdherenceEntry:
        """
        Record the outcome of one dose

        A second log for the same medicine and scheduled minute replaces the
        first; snoozes accumulate in ``snooze_count``.

        Raises:
            RecordNotFoundError: medicine does not exist
        """
        now = now or datetime.now()
        medicine = await self.get_medicine(medicine_id)
        if medicine.patient_id != patient_id:
            raise ValueError(f"Medicine {medicine_id} does not belong to patient {patient_id}")

        scheduled_time = truncate_to_minute(scheduled_time)
        log_id = adherence_log_id(patient_id, medicine_id, scheduled_time)
        existing = await self.store.get(Collections.ADHERENCE_LOGS, log_id)
        previous = AdherenceEntry.from_payload(existing) if existing else None

        snooze_count = previous.snooze_count if previous else 0
        if status == AdherenceStatus.SNOOZED:
            snooze_count += 1

        entry = AdherenceEntry(
            id=log_id,
            patient_id=patient_id,
            medicine_id=medicine_id,
            medicine_name=medicine.name,
            scheduled_time=scheduled_time,
            status=status,
            actual_time=actual_time,
            symptoms=tuple(symptoms or ()),
            notes=notes,
            recorded_by=recorded_by,
            snooze_count=snooze_count,
            created_at=now
        )
        action = SyncAction.UPDATE if previous else SyncAction.CREATE
        await self.sync.record_mutation(
            RecordType.ADHERENCE, action, log_id, entry.to_payload(), now=now
        )
        logger.info(
            f"Logged {status.value} for {medicine_id} at {scheduled_time.isoformat()} "
            f"(patient {patient_id}, by {recorded_by.value})"
        )

        if self.reminders is not None:
            await self.reminders.on_dose_logged(entry, now)
        return entry

    async def log_dose_taken(self, patient_id: str, medicine_id: str, scheduled_time: datetime, **kwargs) -> AdherenceEntry:
        now = kwargs.get("now") or datetime.now()
        kwargs.setdefault("actual_time", now)
        return await self.log_dose(patient_id, medicine_id, scheduled_time, AdherenceStatus.TAKEN, **kwargs)

    async def log_dose_missed(self, patient_id: str, medicine_id: str, scheduled_time: datetime, **kwargs) -> AdherenceEntry:
        return await self.log_dose(patient_id, medicine_id, scheduled_time, AdherenceStatus.MISSED, **kwargs)

    async def log_dose_snoozed(self, patient_id: str, medicine_id: str, scheduled_time: datetime, **kwargs) -> AdherenceEntry:
        return await self.log_dose(patient_id, medicine_id, scheduled_time, AdherenceStatus.SNOOZED, **kwargs)

    async def log_dose_skipped(self, patient_id: str, medicine_id: str, scheduled_time: datetime, **kwargs) -> AdherenceEntry:
        return await self.log_dose(patient_id, medicine_id, scheduled_time, AdherenceStatus.SKIPPED, **kwargs)

    async def log_dose_unwell(
        self,
        patient_id: str,
        medicine_id: str,
        scheduled_time: datetime,
        symptoms: Sequence[str] = (),
        **kwargs
    ) -> AdherenceEntry:
        """
        Patient felt unwell and did not take the dose.

        Stored as ``skipped`` with the symptom tags so it stays out of the
        adherence rate and the miss streak.
        """
        kwargs.setdefault("notes", UNWELL_NOTE)
        return await self.log_dose(
            patient_id, medicine_id, scheduled_time, AdherenceStatus.SKIPPED,
            symptoms=symptoms, **kwargs
        )
