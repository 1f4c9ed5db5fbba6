"""
Reminder Engine
Keeps the platform's local notifications in line with the dose schedule:
every pending future dose has exactly one reminder, and resolved doses
have none.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from config import Collections, get_settings
from models import AdherenceStatus
from services.dose_status import DailyDoseView
from services.schedule_service import ScheduleService
from tools.clock import format_clock_time, start_of_day, truncate_to_minute
from tools.notification_service import NotificationPriority, NotificationSink
from tools.records import AdherenceEntry, MedicineRecord


logger = logging.getLogger(__name__)
settings = get_settings()


class ReminderState(str, Enum):
    """Lifecycle of the reminder for one dose"""
    UNSCHEDULED = "unscheduled"
    SCHEDULED = "scheduled"
    FIRED = "fired"
    RESOLVED = "resolved"


REMINDER_TEMPLATES = {
    "due": {
        "title": "Medicine Reminder",
        "message": "Time to take {medicine_name}{dosage}",
    },
    "critical": {
        "title": "Important Medicine Reminder",
        "message": "Time to take {medicine_name}{dosage}. This medicine must not be missed",
    },
    "snoozed": {
        "title": "Snoozed Reminder",
        "message": "Time to take {medicine_name}",
    },
}


def dose_key(medicine_id: str, scheduled_time: datetime) -> str:
    return f"{medicine_id}@{truncate_to_minute(scheduled_time).isoformat(timespec='minutes')}"


@dataclass
class Reminder:
    """Reminder tracked for one dose (or one snooze of it)"""
    key: str
    patient_id: str
    medicine_id: str
    scheduled_time: datetime
    target_time: datetime
    handle: Optional[str] = None
    state: ReminderState = ReminderState.UNSCHEDULED
    snooze: bool = False
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "patient_id": self.patient_id,
            "medicine_id": self.medicine_id,
            "scheduled_time": self.scheduled_time.isoformat(),
            "target_time": self.target_time.isoformat(),
            "handle": self.handle,
            "state": self.state.value,
            "snooze": self.snooze,
            "payload": self.payload,
        }


@dataclass(frozen=True)
class ResyncResult:
    patient_id: str
    cancelled: int
    scheduled: int
    days: int


def build_payload(medicine: MedicineRecord, scheduled_time: datetime, template: str) -> Dict[str, Any]:
    """Notification content for one dose"""
    if template == "due" and medicine.is_critical:
        template = "critical"
    text = REMINDER_TEMPLATES[template]
    dosage = f" ({medicine.dosage})" if medicine.dosage else ""
    return {
        "title": text["title"],
        "body": text["message"].format(medicine_name=medicine.name, dosage=dosage),
        "patient_id": medicine.patient_id,
        "medicine_id": medicine.id,
        "medicine_name": medicine.name,
        "scheduled_time": scheduled_time.isoformat(),
        "clock_time": format_clock_time(scheduled_time),
        "is_critical": medicine.is_critical,
        "priority": (
            NotificationPriority.HIGH if medicine.is_critical else NotificationPriority.NORMAL
        ).value,
        "snoozed": template == "snoozed",
    }


class ReminderReconciler:
    """
    Reminder reconciler

    ``resync`` cancels every dose reminder held for a patient and schedules
    one per pending future dose over the look-ahead window. Snooze reminders
    are one-offs and survive a resync until their dose is resolved.
    """

    def __init__(
        self,
        schedule_service: ScheduleService,
        sink: NotificationSink,
        lookahead_days: Optional[int] = None,
        snooze_minutes: Optional[int] = None
    ):
        self.schedule_service = schedule_service
        self.sink = sink
        self.lookahead_days = (
            lookahead_days if lookahead_days is not None
            else settings.REMINDER_LOOKAHEAD_DAYS
        )
        self.snooze_minutes = (
            snooze_minutes if snooze_minutes is not None
            else settings.DEFAULT_SNOOZE_MINUTES
        )
        self._reminders: Dict[str, Reminder] = {}
        self._snoozes: Dict[str, Reminder] = {}

    # ==================== QUERIES ====================

    def state_of(self, medicine_id: str, scheduled_time: datetime) -> ReminderState:
        reminder = self._reminders.get(dose_key(medicine_id, scheduled_time))
        return reminder.state if reminder else ReminderState.UNSCHEDULED

    def scheduled(self, patient_id: Optional[str] = None) -> List[Reminder]:
        """Dose reminders currently waiting to fire"""
        return sorted(
            (
                r for r in self._reminders.values()
                if r.state == ReminderState.SCHEDULED
                and (patient_id is None or r.patient_id == patient_id)
            ),
            key=lambda r: (r.target_time, r.key)
        )

    def snoozed(self, patient_id: Optional[str] = None) -> List[Reminder]:
        return [
            r for r in self._snoozes.values()
            if r.state == ReminderState.SCHEDULED
            and (patient_id is None or r.patient_id == patient_id)
        ]

    # ==================== PLANNING ====================

    def _snooze_pending(self, key: str) -> bool:
        snooze = self._snoozes.get(key)
        return snooze is not None and snooze.state == ReminderState.SCHEDULED

    def plan(self, views: Sequence[DailyDoseView], now: datetime) -> List[Reminder]:
        """
        Reminders the given views call for, without touching the sink

        A dose whose snooze reminder is still waiting is covered by that
        one-off and gets no second notification.
        """
        planned = []
        for view in views:
            key = dose_key(view.medicine_id, view.scheduled_time)
            if not view.needs_reminder(now) or self._snooze_pending(key):
                continue
            planned.append(Reminder(
                key=key,
                patient_id=view.medicine.patient_id,
                medicine_id=view.medicine_id,
                scheduled_time=view.scheduled_time,
                target_time=view.scheduled_time,
                payload=build_payload(view.medicine, view.scheduled_time, "due")
            ))
        return planned

    def _schedule(self, reminder: Reminder) -> Reminder:
        reminder.handle = self.sink.schedule(reminder.target_time, reminder.payload)
        reminder.state = ReminderState.SCHEDULED
        return reminder

    def _cancel(self, reminder: Reminder, state: ReminderState = ReminderState.UNSCHEDULED):
        if reminder.state == ReminderState.SCHEDULED and reminder.handle:
            self.sink.cancel(reminder.handle)
            reminder.state = state

    async def resync(self, patient_id: str, now: datetime) -> ResyncResult:
        """
        Full resync of a patient's reminders

        Args:
            patient_id: Patient ID
            now: Evaluation instant

        Returns:
            How many reminders were cancelled and scheduled
        """
        cancelled = 0
        for reminder in self.scheduled(patient_id):
            self._cancel(reminder)
            cancelled += 1
        self._prune(patient_id, now)

        medicines = await self.schedule_service.load_medicines(patient_id)
        scheduled = 0
        resolved_keys = set()
        for offset in range(self.lookahead_days):
            day = now.date() + timedelta(days=offset)
            day_schedule = await self.schedule_service.resolve_day(patient_id, day, now, medicines)
            for view in day_schedule.views:
                key = dose_key(view.medicine_id, view.scheduled_time)
                if not view.is_pending:
                    resolved_keys.add(key)
                    existing = self._reminders.get(key)
                    if existing and existing.state == ReminderState.UNSCHEDULED:
                        existing.state = ReminderState.RESOLVED
            for reminder in self.plan(day_schedule.views, now):
                self._reminders[reminder.key] = self._schedule(reminder)
                scheduled += 1

        for key, snooze in list(self._snoozes.items()):
            if snooze.patient_id == patient_id and key in resolved_keys:
                self._cancel(snooze, ReminderState.RESOLVED)

        logger.info(
            f"Reminder resync for patient {patient_id}: cancelled {cancelled}, scheduled {scheduled}"
        )
        return ResyncResult(
            patient_id=patient_id,
            cancelled=cancelled,
            scheduled=scheduled,
            days=self.lookahead_days
        )

    def _prune(self, patient_id: str, now: datetime) -> int:
        """
        Forget a patient's reminders for doses before today. A snooze that
        has not fired yet is kept until it does.
        """
        today = start_of_day(now)
        pruned = 0
        for tracked in (self._reminders, self._snoozes):
            for key, reminder in list(tracked.items()):
                if (
                    reminder.patient_id == patient_id
                    and reminder.scheduled_time < today
                    and reminder.state != ReminderState.SCHEDULED
                ):
                    del tracked[key]
                    pruned += 1
        if pruned:
            logger.debug(f"Pruned {pruned} past reminders for patient {patient_id}")
        return pruned

    async def reset(self):
        """Drop every notification on the device, tracked or not"""
        self.sink.cancel_all()
        self._reminders.clear()
        self._snoozes.clear()

    # ==================== EVENTS ====================

    def on_dose_resolved(self, medicine_id: str, scheduled_time: datetime) -> bool:
        """
        Cancel the reminder of a dose that was taken or missed before it
        fired. Returns True when a pending notification was cancelled.
        """
        key = dose_key(medicine_id, scheduled_time)
        cancelled = False
        reminder = self._reminders.get(key)
        if reminder is not None:
            cancelled = reminder.state == ReminderState.SCHEDULED
            self._cancel(reminder, ReminderState.RESOLVED)
            if reminder.state == ReminderState.UNSCHEDULED:
                reminder.state = ReminderState.RESOLVED
        snooze = self._snoozes.get(key)
        if snooze is not None:
            self._cancel(snooze, ReminderState.RESOLVED)
        if cancelled:
            logger.info(f"Cancelled reminder for resolved dose {key}")
        return cancelled

    async def on_dose_logged(self, entry: AdherenceEntry, now: datetime) -> ResyncResult:
        """React to a new log, then resync the patient"""
        if entry.status == AdherenceStatus.SNOOZED:
            medicine = await self.schedule_service.store.get(Collections.MEDICINES, entry.medicine_id)
            if medicine is not None:
                self.snooze(MedicineRecord.from_payload(medicine), entry.scheduled_time, now)
        else:
            self.on_dose_resolved(entry.medicine_id, entry.scheduled_time)
        return await self.resync(entry.patient_id, now)

    def mark_fired(self, handle: str) -> Optional[Reminder]:
        """The platform delivered a notification; nothing is left to cancel"""
        for reminder in list(self._reminders.values()) + list(self._snoozes.values()):
            if reminder.handle == handle and reminder.state == ReminderState.SCHEDULED:
                reminder.state = ReminderState.FIRED
                logger.debug(f"Reminder {reminder.key} fired")
                return reminder
        return None

    def snooze(
        self,
        medicine: MedicineRecord,
        scheduled_time: datetime,
        now: datetime,
        minutes: Optional[int] = None
    ) -> Reminder:
        """Schedule a single one-off reminder ``minutes`` from now"""
        if minutes is None:
            minutes = self.snooze_minutes
        key = dose_key(medicine.id, scheduled_time)

        previous = self._snoozes.get(key)
        if previous is not None:
            self._cancel(previous)

        dose_reminder = self._reminders.get(key)
        if dose_reminder is not None:
            self._cancel(dose_reminder)

        reminder = self._schedule(Reminder(
            key=key,
            patient_id=medicine.patient_id,
            medicine_id=medicine.id,
            scheduled_time=truncate_to_minute(scheduled_time),
            target_time=now + timedelta(minutes=minutes),
            snooze=True,
            payload=build_payload(medicine, scheduled_time, "snoozed")
        ))
        self._snoozes[key] = reminder
        logger.info(f"Snoozed {key} for {minutes} minutes")
        return reminder
