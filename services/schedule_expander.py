"""
Schedule Expander
Turns a medicine's recurring dose-time entries into the concrete doses due
on one calendar day.
"""

import logging
from typing import List, Sequence, Tuple
from dataclasses import dataclass, field
from datetime import datetime, date

from errors import MalformedScheduleError
from tools.clock import at_clock_time
from tools.records import DoseSchedule, MedicineRecord


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DoseSeed:
    """One dose of one medicine on one day, before any log is consulted"""
    medicine: MedicineRecord
    schedule: DoseSchedule
    scheduled_time: datetime

    @property
    def medicine_id(self) -> str:
        return self.medicine.id

    @property
    def patient_id(self) -> str:
        return self.medicine.patient_id

    @property
    def clock_time(self) -> str:
        return self.schedule.time

    @property
    def key(self) -> Tuple[str, datetime]:
        return (self.medicine.id, self.scheduled_time)


@dataclass(frozen=True)
class DayPlan:
    """Every dose due on a day, plus the medicines whose schedule was rejected"""
    day: date
    seeds: Tuple[DoseSeed, ...] = ()
    rejected: Tuple[str, ...] = field(default_factory=tuple)


def _creation_rank(indexed: Tuple[int, MedicineRecord]):
    index, medicine = indexed
    # Medicines without a creation stamp sort after stamped ones, in input order
    return (medicine.created_at is None, medicine.created_at or datetime.min, index)


class ScheduleExpander:
    """
    Pure schedule expansion

    Output is ordered by clock time, then by medicine creation order, so the
    same medicines and day always give the same list.
    """

    def expand(self, medicine: MedicineRecord, day: date) -> List[DoseSeed]:
        """
        Doses of a single medicine on ``day``.

        Raises:
            MalformedScheduleError: any schedule entry has an unparseable time.
                The medicine then has no valid doses for the day.
        """
        if not medicine.is_active_on(day):
            return []

        normalized = [entry.normalized(medicine.id) for entry in medicine.schedule]

        seen = set()
        seeds = []
        for entry in normalized:
            if entry.key in seen:
                continue
            seen.add(entry.key)
            if not entry.applies_on(day):
                continue
            seeds.append(DoseSeed(
                medicine=medicine,
                schedule=entry,
                scheduled_time=at_clock_time(day, entry.time)
            ))

        # One dose per clock time per day
        by_time = {}
        for seed in seeds:
            by_time.setdefault(seed.scheduled_time, seed)

        return sorted(by_time.values(), key=lambda s: s.scheduled_time)

    def expand_all(self, medicines: Sequence[MedicineRecord], day: date) -> DayPlan:
        """
        Doses of every medicine on ``day``.

        A malformed medicine is logged and reported in ``rejected``; the others
        still expand.
        """
        seeds: List[DoseSeed] = []
        rejected: List[str] = []

        for _, medicine in sorted(enumerate(medicines), key=_creation_rank):
            try:
                seeds.extend(self.expand(medicine, day))
            except MalformedScheduleError as e:
                logger.warning(f"Skipping medicine {medicine.id} on {day.isoformat()}: {e}")
                rejected.append(medicine.id)

        # Stable sort keeps creation order for doses at the same minute
        seeds.sort(key=lambda s: s.scheduled_time)
        return DayPlan(day=day, seeds=tuple(seeds), rejected=tuple(rejected))
