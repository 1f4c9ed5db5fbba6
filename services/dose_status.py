"""
Dose Status Resolver
Matches expanded doses against the day's adherence logs and classifies each
one from the logs and the wall clock.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from config import get_settings
from models import AdherenceStatus
from services.schedule_expander import DoseSeed
from tools.clock import is_past_tolerance, is_within_tolerance, truncate_to_minute
from tools.records import AdherenceEntry, DoseSchedule, MedicineRecord, adherence_log_id


logger = logging.getLogger(__name__)
settings = get_settings()


class DoseStatus(str, Enum):
    """Exclusive status of a dose at one evaluation instant"""
    TAKEN = "taken"
    MISSED = "missed"
    PENDING = "pending"
    # Dangling medicine/patient reference
    UNKNOWN = "unknown"


class DosePhase(str, Enum):
    """Finer position of a dose relative to the clock"""
    LOGGED = "logged"        # taken or missed by an explicit log
    CURRENT = "current"      # pending, inside the tolerance window
    UPCOMING = "upcoming"    # pending, before the tolerance window opens
    OVERDUE = "overdue"      # past the window with no log: missed by time
    DEFERRED = "deferred"    # past the window, snoozed or skipped


@dataclass(frozen=True)
class DailyDoseView:
    """Resolved, read-only projection of one dose"""
    medicine: MedicineRecord
    schedule: DoseSchedule
    scheduled_time: datetime
    status: DoseStatus
    phase: DosePhase
    log: Optional[AdherenceEntry] = None

    @property
    def medicine_id(self) -> str:
        return self.medicine.id

    @property
    def clock_time(self) -> str:
        return self.schedule.time

    @property
    def is_pending(self) -> bool:
        return self.status == DoseStatus.PENDING

    @property
    def inferred_missed(self) -> bool:
        return self.phase == DosePhase.OVERDUE

    @property
    def deferred(self) -> bool:
        """A snoozed or skipped log exists for this dose"""
        return self.log is not None and self.log.status in (
            AdherenceStatus.SNOOZED, AdherenceStatus.SKIPPED
        )

    def needs_reminder(self, now: datetime) -> bool:
        """Pending with a future scheduled time"""
        return self.is_pending and self.scheduled_time > now


@dataclass(frozen=True)
class DailyStats:
    """Counts behind the "today" card"""
    taken: int = 0
    missed: int = 0
    pending: int = 0
    total: int = 0
    inferred_missed: int = 0
    last_taken_at: Optional[datetime] = None

    @property
    def adherence_rate(self) -> float:
        resolved = self.taken + self.missed
        return self.taken / resolved if resolved else 1.0


def _log_recency(entry: AdherenceEntry):
    stamp = entry.created_at or entry.actual_time or datetime.min
    return stamp


def index_logs(logs: Iterable[AdherenceEntry]) -> Dict[Tuple[str, datetime], AdherenceEntry]:
    """
    Logs keyed by (medicine id, scheduled minute).

    Duplicates for the same key resolve to the most recently written entry;
    equal stamps keep the later one in input order.
    """
    index: Dict[Tuple[str, datetime], AdherenceEntry] = {}
    for entry in sorted(logs, key=_log_recency):
        index[(entry.medicine_id, truncate_to_minute(entry.scheduled_time))] = entry
    return index


class DoseStatusResolver:
    """
    Classify doses as taken / missed / pending

    Pure and re-entrant: every method takes "now" explicitly and keeps no
    state between calls.
    """

    def __init__(
        self,
        early_tolerance_minutes: Optional[int] = None,
        late_tolerance_minutes: Optional[int] = None
    ):
        self.early_tolerance = (
            early_tolerance_minutes if early_tolerance_minutes is not None
            else settings.DOSE_EARLY_TOLERANCE_MINUTES
        )
        self.late_tolerance = (
            late_tolerance_minutes if late_tolerance_minutes is not None
            else settings.DOSE_LATE_TOLERANCE_MINUTES
        )

    def classify(self, seed: DoseSeed, log: Optional[AdherenceEntry], now: datetime) -> DailyDoseView:
        """Status of one dose given its matching log (if any)"""
        if log is not None and log.status == AdherenceStatus.TAKEN:
            status, phase = DoseStatus.TAKEN, DosePhase.LOGGED
        elif log is not None and log.status == AdherenceStatus.MISSED:
            status, phase = DoseStatus.MISSED, DosePhase.LOGGED
        elif is_within_tolerance(now, seed.scheduled_time, self.early_tolerance, self.late_tolerance):
            status, phase = DoseStatus.PENDING, DosePhase.CURRENT
        elif not is_past_tolerance(now, seed.scheduled_time, self.late_tolerance):
            status, phase = DoseStatus.PENDING, DosePhase.UPCOMING
        elif log is None:
            status, phase = DoseStatus.MISSED, DosePhase.OVERDUE
        else:
            status, phase = DoseStatus.PENDING, DosePhase.DEFERRED

        return DailyDoseView(
            medicine=seed.medicine,
            schedule=seed.schedule,
            scheduled_time=seed.scheduled_time,
            status=status,
            phase=phase,
            log=log
        )

    def resolve(
        self,
        seeds: Sequence[DoseSeed],
        logs: Iterable[AdherenceEntry],
        now: datetime
    ) -> List[DailyDoseView]:
        """Views for every seed, in seed order"""
        index = index_logs(logs)
        return [self.classify(seed, index.get(seed.key), now) for seed in seeds]

    def current_dose(self, views: Sequence[DailyDoseView]) -> Optional[DailyDoseView]:
        """First dose inside its tolerance window"""
        for view in views:
            if view.phase == DosePhase.CURRENT:
                return view
        return None

    def next_dose(self, views: Sequence[DailyDoseView], now: datetime) -> Optional[DailyDoseView]:
        """First pending dose still ahead of ``now``, other than the current one"""
        current = self.current_dose(views)
        for view in views:
            if view is current:
                continue
            if view.is_pending and view.scheduled_time > now:
                return view
        return None

    def daily_stats(self, views: Sequence[DailyDoseView]) -> DailyStats:
        taken = [v for v in views if v.status == DoseStatus.TAKEN]
        last_taken = [
            v.log.actual_time or v.scheduled_time for v in taken if v.log is not None
        ]
        return DailyStats(
            taken=len(taken),
            missed=sum(1 for v in views if v.status == DoseStatus.MISSED),
            pending=sum(1 for v in views if v.status == DoseStatus.PENDING),
            total=len(views),
            inferred_missed=sum(1 for v in views if v.inferred_missed),
            last_taken_at=max(last_taken) if last_taken else None
        )

    def effective_entries(
        self,
        views: Sequence[DailyDoseView],
        logs: Iterable[AdherenceEntry]
    ) -> List[AdherenceEntry]:
        """
        The log window as the calculator should see it.

        Overdue doses with no log are added as inferred ``missed`` entries, so
        daily counts and miss streaks agree with what the dashboard shows.
        """
        entries = list(index_logs(logs).values())
        for view in views:
            if not view.inferred_missed:
                continue
            entries.append(AdherenceEntry(
                id=adherence_log_id(view.medicine.patient_id, view.medicine_id, view.scheduled_time),
                patient_id=view.medicine.patient_id,
                medicine_id=view.medicine_id,
                medicine_name=view.medicine.name,
                scheduled_time=view.scheduled_time,
                status=AdherenceStatus.MISSED,
                inferred=True
            ))
        return entries
