"""
Record snapshots
Immutable views of patient, medicine and adherence-log documents as they
travel between the local store, the sync queue and the remote store.
"""

import hashlib
from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime, date

from pydantic_core import to_jsonable_python

from models import AdherenceStatus, RecorderRole, TimeOfDay
from tools.clock import day_bucket_of, format_clock_time, parse_clock_time, truncate_to_minute


def as_datetime(value: Any) -> Optional[datetime]:
    """Accept a datetime or an ISO string (stores may hand back either)"""
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    raise TypeError(f"Unsupported datetime value: {value!r}")


def as_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise TypeError(f"Unsupported date value: {value!r}")


def encode_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-safe copy of a payload (datetimes become ISO strings)"""
    return to_jsonable_python(payload)


def adherence_log_id(patient_id: str, medicine_id: str, scheduled_time: datetime) -> str:
    """
    Deterministic id for the logical key (medicine, scheduled minute, day).

    A later log for the same dose reuses the id, so the upsert supersedes
    the earlier entry instead of appending a second one.
    """
    minute = truncate_to_minute(scheduled_time).isoformat(timespec="minutes")
    digest = hashlib.sha1(f"{patient_id}|{medicine_id}|{minute}".encode()).hexdigest()
    return f"log_{digest[:24]}"


@dataclass(frozen=True)
class DoseSchedule:
    """One recurring dose-time entry of a medicine"""
    time: str
    time_of_day: Optional[TimeOfDay] = None
    frequency: str = "custom"
    days_of_week: Optional[Tuple[int, ...]] = None  # 0=Monday .. 6=Sunday; None = daily

    @property
    def bucket(self) -> TimeOfDay:
        """Declared bucket, or the one implied by the clock time"""
        return self.time_of_day or day_bucket_of(self.time)

    @property
    def key(self) -> Tuple[str, str]:
        """Uniqueness key within a medicine"""
        return (self.bucket.value, self.time)

    def applies_on(self, day: date) -> bool:
        return self.days_of_week is None or day.weekday() in self.days_of_week

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "DoseSchedule":
        tod = data.get("time_of_day") or data.get("timeOfDay")
        days = data.get("days_of_week")
        if days is None:
            days = data.get("daysOfWeek")
        return cls(
            time=data.get("time"),
            time_of_day=TimeOfDay(tod) if tod else None,
            frequency=data.get("frequency") or "custom",
            days_of_week=tuple(days) if days is not None else None,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "time": self.time,
            "time_of_day": self.time_of_day.value if self.time_of_day else None,
            "frequency": self.frequency,
            "days_of_week": list(self.days_of_week) if self.days_of_week is not None else None,
        }

    def normalized(self, medicine_id: Optional[str] = None) -> "DoseSchedule":
        """
        Canonical HH:MM form and sorted weekdays

        Raises:
            MalformedScheduleError: the time is not HH:MM
            ValueError: days_of_week is empty or holds a value outside 0..6
        """
        t = parse_clock_time(self.time, medicine_id)
        days = self.days_of_week
        if days is not None:
            if not days or any(d not in range(7) for d in days):
                raise ValueError(f"days_of_week must list weekdays 0-6, got {list(days)}")
            days = tuple(sorted(set(days)))
        return DoseSchedule(
            time=format_clock_time(t),
            time_of_day=self.time_of_day or day_bucket_of(t),
            frequency=self.frequency,
            days_of_week=days,
        )


@dataclass(frozen=True)
class MedicineRecord:
    """Snapshot of a medicine document"""
    id: str
    patient_id: str
    name: str
    dosage: str = ""
    schedule: Tuple[DoseSchedule, ...] = ()
    is_critical: bool = False
    days_remaining: Optional[int] = None
    total_days: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    instructions: Optional[str] = None
    added_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_active_on(self, day: date) -> bool:
        if self.start_date and day < self.start_date:
            return False
        if self.end_date and day > self.end_date:
            return False
        return True

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "MedicineRecord":
        return cls(
            id=str(data["id"]),
            patient_id=str(data["patient_id"]),
            name=data.get("name") or "",
            dosage=data.get("dosage") or "",
            schedule=tuple(DoseSchedule.from_payload(s) for s in (data.get("schedule") or [])),
            is_critical=bool(data.get("is_critical")),
            days_remaining=data.get("days_remaining"),
            total_days=data.get("total_days"),
            start_date=as_date(data.get("start_date")),
            end_date=as_date(data.get("end_date")),
            instructions=data.get("instructions"),
            added_by=data.get("added_by"),
            created_at=as_datetime(data.get("created_at")),
            updated_at=as_datetime(data.get("updated_at")),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "name": self.name,
            "dosage": self.dosage,
            "schedule": [s.to_payload() for s in self.schedule],
            "is_critical": self.is_critical,
            "days_remaining": self.days_remaining,
            "total_days": self.total_days,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "instructions": self.instructions,
            "added_by": self.added_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class AdherenceEntry:
    """Snapshot of an adherence log document"""
    id: str
    patient_id: str
    medicine_id: str
    scheduled_time: datetime
    status: AdherenceStatus
    actual_time: Optional[datetime] = None
    medicine_name: str = ""
    symptoms: Tuple[str, ...] = ()
    notes: Optional[str] = None
    recorded_by: RecorderRole = RecorderRole.PATIENT
    snooze_count: int = 0
    created_at: Optional[datetime] = None
    # Synthesised from the clock rather than read from a log
    inferred: bool = False

    @property
    def clock_time(self) -> str:
        return format_clock_time(self.scheduled_time)

    @property
    def logical_key(self) -> Tuple[str, str]:
        return (self.medicine_id, truncate_to_minute(self.scheduled_time).isoformat())

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "AdherenceEntry":
        return cls(
            id=str(data["id"]),
            patient_id=str(data["patient_id"]),
            medicine_id=str(data["medicine_id"]),
            scheduled_time=as_datetime(data["scheduled_time"]),
            status=AdherenceStatus(data["status"]),
            actual_time=as_datetime(data.get("actual_time")),
            medicine_name=data.get("medicine_name") or "",
            symptoms=tuple(data.get("symptoms") or ()),
            notes=data.get("notes"),
            recorded_by=RecorderRole(data.get("recorded_by") or RecorderRole.PATIENT.value),
            snooze_count=data.get("snooze_count") or 0,
            created_at=as_datetime(data.get("created_at")),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "medicine_id": self.medicine_id,
            "medicine_name": self.medicine_name,
            "scheduled_time": self.scheduled_time,
            "actual_time": self.actual_time,
            "status": self.status.value,
            "symptoms": list(self.symptoms),
            "notes": self.notes,
            "recorded_by": self.recorded_by.value,
            "snooze_count": self.snooze_count,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class PatientRecord:
    """Snapshot of a patient document"""
    id: str
    name: str
    phone: Optional[str] = None
    language: str = "en"
    guardians: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "PatientRecord":
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            phone=data.get("phone"),
            language=data.get("language") or "en",
            guardians=list(data.get("guardians") or []),
            created_at=as_datetime(data.get("created_at")),
            updated_at=as_datetime(data.get("updated_at")),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "language": self.language,
            "guardians": list(self.guardians),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
