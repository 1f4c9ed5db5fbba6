"""
Schedule Service
Read side of the daily schedule: loads medicines and logs from a record
store and runs them through the expander and the status resolver.
"""

import logging
from typing import List, Optional
from dataclasses import dataclass
from datetime import datetime, date

from config import Collections
from errors import MalformedScheduleError, RecordNotFoundError
from services.dose_status import DailyDoseView, DailyStats, DoseStatus, DoseStatusResolver
from services.schedule_expander import DayPlan, ScheduleExpander
from tools.clock import day_bounds, describe_time_until, format_clock_time, parse_clock_time
from tools.record_store import RecordStore, where
from tools.records import AdherenceEntry, MedicineRecord


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NextDose:
    """Upcoming dose with its human label"""
    view: DailyDoseView
    label: str


@dataclass(frozen=True)
class DaySchedule:
    """Resolved day plus the logs it was resolved against"""
    plan: DayPlan
    views: List[DailyDoseView]
    logs: List[AdherenceEntry]


class ScheduleService:
    """
    Service for the daily dose schedule

    Shared by the patient-local view and the server sweep so both derive
    dose status from the same code.
    """

    def __init__(
        self,
        store: RecordStore,
        expander: Optional[ScheduleExpander] = None,
        resolver: Optional[DoseStatusResolver] = None
    ):
        self.store = store
        self.expander = expander or ScheduleExpander()
        self.resolver = resolver or DoseStatusResolver()

    async def load_medicines(self, patient_id: str) -> List[MedicineRecord]:
        documents = await self.store.query(
            Collections.MEDICINES,
            [where("patient_id", "==", patient_id)]
        )
        return [MedicineRecord.from_payload(d) for d in documents]

    async def load_logs(self, patient_id: str, start: datetime, end: datetime) -> List[AdherenceEntry]:
        """Adherence logs with scheduled_time in [start, end)"""
        documents = await self.store.query(
            Collections.ADHERENCE_LOGS,
            [
                where("patient_id", "==", patient_id),
                where("scheduled_time", ">=", start),
                where("scheduled_time", "<", end),
            ],
            order_by="scheduled_time"
        )
        return [AdherenceEntry.from_payload(d) for d in documents]

    async def resolve_day(
        self,
        patient_id: str,
        day: date,
        now: datetime,
        medicines: Optional[List[MedicineRecord]] = None
    ) -> DaySchedule:
        if medicines is None:
            medicines = await self.load_medicines(patient_id)
        start, end = day_bounds(day)
        logs = await self.load_logs(patient_id, start, end)
        plan = self.expander.expand_all(medicines, day)
        views = self.resolver.resolve(plan.seeds, logs, now)
        return DaySchedule(plan=plan, views=views, logs=logs)

    async def get_today_schedule(self, patient_id: str, now: datetime) -> List[DailyDoseView]:
        """
        Today's doses in clock order

        Args:
            patient_id: Patient ID
            now: Evaluation instant

        Returns:
            Resolved dose views; empty when the patient has no medicines
        """
        day = await self.resolve_day(patient_id, now.date(), now)
        return day.views

    async def get_current_medicine(self, patient_id: str, now: datetime) -> Optional[DailyDoseView]:
        views = await self.get_today_schedule(patient_id, now)
        return self.resolver.current_dose(views)

    async def get_next_medicine(self, patient_id: str, now: datetime) -> Optional[NextDose]:
        views = await self.get_today_schedule(patient_id, now)
        view = self.resolver.next_dose(views, now)
        if view is None:
            return None
        return NextDose(view=view, label=describe_time_until(now, view.scheduled_time))

    async def get_daily_stats(self, patient_id: str, now: datetime) -> DailyStats:
        views = await self.get_today_schedule(patient_id, now)
        return self.resolver.daily_stats(views)

    async def get_dose_status(
        self,
        patient_id: str,
        medicine_id: str,
        clock_time: str,
        now: datetime
    ) -> DoseStatus:
        """
        Status of a single dose today

        Dangling references and malformed input resolve to UNKNOWN instead of
        raising, so a single bad reference cannot blank a dashboard.
        """
        try:
            document = await self.store.require(Collections.MEDICINES, medicine_id)
        except RecordNotFoundError as e:
            logger.warning(f"Dose status requested for missing record: {e}")
            return DoseStatus.UNKNOWN

        medicine = MedicineRecord.from_payload(document)
        if medicine.patient_id != patient_id:
            logger.warning(f"Medicine {medicine_id} does not belong to patient {patient_id}")
            return DoseStatus.UNKNOWN

        try:
            wanted = format_clock_time(parse_clock_time(clock_time, medicine_id))
            seeds = self.expander.expand(medicine, now.date())
        except MalformedScheduleError as e:
            logger.warning(f"Cannot resolve dose status: {e}")
            return DoseStatus.UNKNOWN

        seed = next((s for s in seeds if s.clock_time == wanted), None)
        if seed is None:
            return DoseStatus.UNKNOWN

        start, end = day_bounds(now.date())
        logs = [
            entry for entry in await self.load_logs(patient_id, start, end)
            if entry.medicine_id == medicine_id
        ]
        return self.resolver.resolve([seed], logs, now)[0].status
