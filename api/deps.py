"""
API Dependencies
Common dependencies for FastAPI endpoints
"""

import logging
from typing import Optional
from datetime import datetime
from functools import lru_cache
from fastapi import HTTPException, status

from config import settings
from errors import MalformedScheduleError, RecordNotFoundError
from actions.alert_engine import AlertSink, LoggingAlertSink, RiskSweep
from actions.reminder_engine import ReminderReconciler
from services.adherence_service import AdherenceService
from services.medication_service import MedicationService
from services.patient_service import PatientService
from services.schedule_service import ScheduleService
from services.sync_service import SyncService
from tools.notification_service import LocalNotificationSink, NotificationSink
from tools.record_store import RecordStore
from tools.remote_record_store import HttpRecordStore
from tools.sql_record_store import SqlRecordStore


logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Wires the engine together

    Every collaborator can be passed in, which is how tests swap in
    in-memory stores and sinks.
    """

    def __init__(
        self,
        local_store: Optional[RecordStore] = None,
        remote_store: Optional[RecordStore] = None,
        notification_sink: Optional[NotificationSink] = None,
        alert_sink: Optional[AlertSink] = None,
        online: bool = True
    ):
        self.local_store = local_store or SqlRecordStore()
        if remote_store is None and settings.REMOTE_STORE_URL:
            remote_store = HttpRecordStore()
        self.remote_store = remote_store

        self.notification_sink = notification_sink or LocalNotificationSink()
        self.alert_sink = alert_sink or LoggingAlertSink()

        self.schedule_service = ScheduleService(self.local_store)
        self.adherence_service = AdherenceService(self.schedule_service)
        self.sync_service = SyncService(self.local_store, self.remote_store, online=online)
        self.reminders = ReminderReconciler(self.schedule_service, self.notification_sink)
        self.patient_service = PatientService(self.sync_service, self.reminders)
        self.medication_service = MedicationService(self.sync_service, self.reminders)
        self.risk_sweep = RiskSweep(self.local_store, self.adherence_service, self.alert_sink)

    async def close(self):
        if isinstance(self.remote_store, HttpRecordStore):
            await self.remote_store.close()


@lru_cache()
def get_services() -> ServiceContainer:
    """Service container dependency"""
    return ServiceContainer()


def get_now() -> datetime:
    """Evaluation instant for time-dependent endpoints"""
    return datetime.now()


def not_found(e: RecordNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def bad_request(e: Exception) -> HTTPException:
    if isinstance(e, MalformedScheduleError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
