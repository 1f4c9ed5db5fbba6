"""
Database Models
SQLAlchemy ORM models for the MedDrop local store, plus the domain enums
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, Text, Index, JSON
from datetime import datetime
from enum import Enum as PyEnum

from database import Base


# ==================== ENUMS ====================

class AdherenceStatus(str, PyEnum):
    """Outcome recorded for a single dose"""
    TAKEN = "taken"
    MISSED = "missed"
    SNOOZED = "snoozed"
    SKIPPED = "skipped"


class TimeOfDay(str, PyEnum):
    """Coarse time-of-day bucket of a schedule entry"""
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


class RecorderRole(str, PyEnum):
    """Who recorded an adherence log entry"""
    PATIENT = "patient"
    GUARDIAN = "guardian"
    FAMILY = "family"


class RecordType(str, PyEnum):
    """Record types carried by the offline mutation queue"""
    PATIENT = "patient"
    MEDICINE = "medicine"
    ADHERENCE = "adherence"


class SyncAction(str, PyEnum):
    """Mutation kinds carried by the offline mutation queue"""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class RiskLevel(str, PyEnum):
    """Discrete adherence risk"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AlertTier(str, PyEnum):
    """Guardian-facing alert tiers, most severe first"""
    URGENT = "urgent"
    IMPORTANT = "important"
    INFO = "info"


class AlertKind(str, PyEnum):
    """What triggered an alert"""
    ADHERENCE_RISK = "adherence_risk"
    INACTIVITY = "inactivity"
    REFILL = "refill"
    WEEKLY_SUMMARY = "weekly_summary"


# ==================== MODELS ====================

class Patient(Base):
    """Patient profile"""
    __tablename__ = "patients"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(32))
    language = Column(String(16), default="en")
    guardians = Column(JSON, default=list)  # guardian ids

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class Medicine(Base):
    """A prescribed medicine and its recurring dose schedule"""
    __tablename__ = "medicines"

    id = Column(String(64), primary_key=True)
    # No FK: medicines may arrive from sync before their patient does
    patient_id = Column(String(64), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    dosage = Column(String(100))
    # [{"time": "08:00", "time_of_day": "morning", "frequency": "BD", "days_of_week": null}]
    schedule = Column(JSON, default=list)
    is_critical = Column(Boolean, default=False)

    days_remaining = Column(Integer)
    total_days = Column(Integer)
    start_date = Column(Date)
    end_date = Column(Date)

    instructions = Column(Text)
    added_by = Column(String(32))

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        Index("ix_medicines_patient_critical", "patient_id", "is_critical"),
    )


class AdherenceLog(Base):
    """One recorded outcome per (medicine, scheduled minute)"""
    __tablename__ = "adherence_logs"

    id = Column(String(64), primary_key=True)
    patient_id = Column(String(64), nullable=False)
    medicine_id = Column(String(64), nullable=False)
    medicine_name = Column(String(255))

    scheduled_time = Column(DateTime, nullable=False)
    actual_time = Column(DateTime)
    status = Column(String(20), nullable=False)  # taken, missed, snoozed, skipped

    symptoms = Column(JSON, default=list)
    notes = Column(Text)
    recorded_by = Column(String(20), default="patient")
    snooze_count = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.now)

    __table_args__ = (
        Index("ix_adherence_patient_scheduled", "patient_id", "scheduled_time"),
        Index("ix_adherence_patient_created", "patient_id", "created_at"),
        Index("ix_adherence_medicine", "medicine_id"),
    )


class SyncQueueEntry(Base):
    """Durable, ordered log of local mutations awaiting remote apply"""
    __tablename__ = "sync_queue"

    id = Column(String(64), primary_key=True)
    sequence = Column(Integer, nullable=False)

    record_type = Column(String(20), nullable=False)
    record_id = Column(String(64), nullable=False)
    action = Column(String(10), nullable=False)
    payload = Column(JSON)

    enqueued_at = Column(DateTime, nullable=False, default=datetime.now)
    synced = Column(Boolean, default=False)
    synced_at = Column(DateTime)
    retry_count = Column(Integer, default=0)
    last_error = Column(Text)
    flagged = Column(Boolean, default=False)

    __table_args__ = (
        Index("ix_sync_queue_synced_sequence", "synced", "sequence"),
    )


class AlertRecord(Base):
    """Guardian alert, keyed by a deterministic id so re-runs never duplicate"""
    __tablename__ = "alerts"

    id = Column(String(64), primary_key=True)
    patient_id = Column(String(64), nullable=False, index=True)
    tier = Column(String(16), nullable=False)
    kind = Column(String(32), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    context = Column(JSON, default=dict)
    day = Column(String(10))  # ISO date the alert is keyed on
    action_taken = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.now)
