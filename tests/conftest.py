"""
Pytest Configuration and Shared Fixtures
========================================

This module provides shared fixtures for all MedDrop tests.
Fixtures include record stores, sinks, the service container, a fixed clock
and the FastAPI test client.
"""

import os
import sys
from datetime import datetime, date, timedelta
from typing import Any, Dict, Generator, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import build_engine, drop_db, init_db
from actions.alert_engine import AlertSink
from config import Collections
from api.deps import ServiceContainer, get_now, get_services
from models import AdherenceStatus, AlertTier
from tools.notification_service import LocalNotificationSink
from tools.record_store import InMemoryRecordStore
from tools.records import AdherenceEntry, DoseSchedule, MedicineRecord, adherence_log_id
from tools.sql_record_store import SqlRecordStore
from app import app


# Wednesday
TODAY = date(2024, 3, 6)


# ==================== DATABASE FIXTURES ====================

@pytest.fixture(scope="function")
def test_engine():
    """Create a test database engine with in-memory SQLite"""
    engine = build_engine("sqlite:///:memory:")
    init_db(engine)

    yield engine

    drop_db(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def sql_store(session_factory) -> SqlRecordStore:
    """Local durable store over the in-memory database"""
    return SqlRecordStore(session_factory)


@pytest.fixture
def memory_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def remote_store() -> InMemoryRecordStore:
    """Stand-in for the shared remote document store"""
    return InMemoryRecordStore()


# ==================== SINKS ====================

class RecordingAlertSink(AlertSink):
    """Alert sink that remembers every alert it was asked to deliver"""

    def __init__(self):
        self.alerts: List[Dict[str, Any]] = []

    async def raise_alert(self, patient_id, tier, title, message, context) -> None:
        self.alerts.append({
            "patient_id": patient_id,
            "tier": tier,
            "title": title,
            "message": message,
            "context": context,
        })

    def tiers(self) -> List[AlertTier]:
        return [a["tier"] for a in self.alerts]


@pytest.fixture
def notification_sink() -> LocalNotificationSink:
    return LocalNotificationSink()


@pytest.fixture
def alert_sink() -> RecordingAlertSink:
    return RecordingAlertSink()


# ==================== SERVICES ====================

@pytest.fixture
def services(sql_store, remote_store, notification_sink, alert_sink) -> ServiceContainer:
    """Fully wired engine over the in-memory database and fake remote"""
    return ServiceContainer(
        local_store=sql_store,
        remote_store=remote_store,
        notification_sink=notification_sink,
        alert_sink=alert_sink
    )


@pytest.fixture
def memory_services(memory_store, remote_store, notification_sink, alert_sink) -> ServiceContainer:
    """Same engine with a dict-backed local store"""
    return ServiceContainer(
        local_store=memory_store,
        remote_store=remote_store,
        notification_sink=notification_sink,
        alert_sink=alert_sink
    )


# ==================== CLOCK ====================

@pytest.fixture
def current_datetime() -> datetime:
    """Fixed evaluation instant: 08:10 on a Wednesday"""
    return datetime.combine(TODAY, datetime.min.time()).replace(hour=8, minute=10)


# ==================== API FIXTURES ====================

@pytest.fixture(scope="function")
def client(services: ServiceContainer, current_datetime: datetime) -> Generator[TestClient, None, None]:
    """Create a FastAPI test client with the engine and clock overridden"""
    app.dependency_overrides[get_services] = lambda: services
    app.dependency_overrides[get_now] = lambda: current_datetime

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ==================== SAMPLE DATA ====================

def make_medicine(
    medicine_id: str = "med_1",
    patient_id: str = "pat_1",
    times: tuple = ("08:00", "20:00"),
    name: str = "Metformin",
    is_critical: bool = False,
    created_at: Optional[datetime] = None,
    **kwargs
) -> MedicineRecord:
    return MedicineRecord(
        id=medicine_id,
        patient_id=patient_id,
        name=name,
        dosage=kwargs.pop("dosage", "500mg"),
        schedule=tuple(DoseSchedule(time=t) for t in times),
        is_critical=is_critical,
        created_at=created_at or datetime(2024, 1, 1, 9, 0),
        **kwargs
    )


def make_log(
    status: AdherenceStatus,
    scheduled_time: datetime,
    medicine_id: str = "med_1",
    patient_id: str = "pat_1",
    created_at: Optional[datetime] = None,
    **kwargs
) -> AdherenceEntry:
    return AdherenceEntry(
        id=adherence_log_id(patient_id, medicine_id, scheduled_time),
        patient_id=patient_id,
        medicine_id=medicine_id,
        scheduled_time=scheduled_time,
        status=status,
        created_at=created_at or scheduled_time,
        **kwargs
    )


def at(hour: int, minute: int = 0, day: date = TODAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


def days_ago(n: int, hour: int, minute: int = 0) -> datetime:
    return at(hour, minute, TODAY - timedelta(days=n))


async def seed_patient(store, patient_id: str = "pat_1", name: str = "Asha", **extra):
    await store.upsert(Collections.PATIENTS, patient_id, {
        "id": patient_id,
        "name": name,
        "language": "en",
        "guardians": extra.pop("guardians", ["grd_1"]),
        "created_at": extra.pop("created_at", datetime(2024, 1, 1, 9, 0)),
        **extra,
    })


async def seed_medicine(store, medicine: MedicineRecord):
    await store.upsert(Collections.MEDICINES, medicine.id, medicine.to_payload())


async def seed_logs(store, entries):
    for entry in entries:
        await store.upsert(Collections.ADHERENCE_LOGS, entry.id, entry.to_payload())


# ==================== PYTEST CONFIGURATION ====================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "api: mark test as an API test")
    config.addinivalue_line("markers", "database: mark test as requiring database")
