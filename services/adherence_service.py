"""
Adherence Service
Adherence rate, miss streaks, risk classification and weekly pattern mining.

The calculations are pure folds over a window of AdherenceEntry values and
return immutable results; AdherenceService only loads the window.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple
from dataclasses import dataclass, field
from datetime import datetime, date, timedelta
from collections import Counter

from models import AdherenceStatus, RiskLevel, TimeOfDay
from services.schedule_service import ScheduleService
from tools.clock import WEEKDAY_NAMES, day_bounds, day_bucket_of, minute_offset, start_of_day


logger = logging.getLogger(__name__)


# Risk ladder; guardian-facing alerts key off these exact values
HIGH_RISK_CONSECUTIVE_MISSES = 3
HIGH_RISK_ADHERENCE_RATE = 0.60
MEDIUM_RISK_CONSECUTIVE_MISSES = 1
MEDIUM_RISK_ADHERENCE_RATE = 0.80

MAX_STREAK_DAYS = 30
ON_TIME_MINUTES = 30


# ==================== RESULTS ====================

@dataclass(frozen=True)
class RiskAssessment:
    """Derived risk for a log window"""
    level: RiskLevel
    consecutive_misses: int
    adherence_rate: float
    # A critical medicine was missed today
    critical_missed: Tuple[str, ...] = ()
    missed_today: int = 0

    @property
    def escalated(self) -> bool:
        return bool(self.critical_missed) or self.consecutive_misses >= HIGH_RISK_CONSECUTIVE_MISSES

    def to_dict(self) -> Dict:
        return {
            "level": self.level.value,
            "consecutive_misses": self.consecutive_misses,
            "adherence_rate": round(self.adherence_rate, 4),
            "critical_missed": list(self.critical_missed),
            "missed_today": self.missed_today,
            "escalated": self.escalated,
        }


@dataclass(frozen=True)
class WeeklyPatterns:
    """Where and when misses cluster"""
    missed_by_weekday: Dict[str, int] = field(default_factory=dict)
    missed_by_time_of_day: Dict[str, int] = field(default_factory=dict)
    top_missed_weekdays: Tuple[Tuple[str, int], ...] = ()
    evening_exceeds_morning: bool = False
    symptom_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def top_symptom(self) -> Optional[str]:
        if not self.symptom_counts:
            return None
        return sorted(self.symptom_counts.items(), key=lambda kv: (-kv[1], kv[0]))[0][0]

    def to_dict(self) -> Dict:
        return {
            "missed_by_weekday": dict(self.missed_by_weekday),
            "missed_by_time_of_day": dict(self.missed_by_time_of_day),
            "top_missed_weekdays": [{"day": d, "count": c} for d, c in self.top_missed_weekdays],
            "evening_exceeds_morning": self.evening_exceeds_morning,
            "symptom_counts": dict(self.symptom_counts),
        }


@dataclass(frozen=True)
class TimingConsistency:
    """How close to schedule the taken doses were"""
    sample_size: int = 0
    average_delay_minutes: Optional[float] = None
    on_time_ratio: Optional[float] = None


@dataclass(frozen=True)
class WeeklySummary:
    """Periodic report sent to guardians and the patient"""
    patient_id: str
    patient_name: str
    week_start: datetime
    week_end: datetime
    total_doses: int
    taken_doses: int
    missed_doses: int
    adherence_percentage: int
    streak: int
    patterns: WeeklyPatterns
    insights: Tuple[str, ...]
    timing: TimingConsistency = TimingConsistency()

    def to_dict(self) -> Dict:
        return {
            "patient_id": self.patient_id,
            "patient_name": self.patient_name,
            "week_start": self.week_start.isoformat(),
            "week_end": self.week_end.isoformat(),
            "total_doses": self.total_doses,
            "taken_doses": self.taken_doses,
            "missed_doses": self.missed_doses,
            "adherence_percentage": self.adherence_percentage,
            "streak": self.streak,
            "patterns": self.patterns.to_dict(),
            "insights": list(self.insights),
            "average_delay_minutes": self.timing.average_delay_minutes,
            "on_time_ratio": self.timing.on_time_ratio,
        }


# ==================== PURE CALCULATIONS ====================

def _count(entries: Iterable, status: AdherenceStatus) -> int:
    return sum(1 for e in entries if e.status == status)


def calculate_adherence_rate(entries: Iterable) -> float:
    """
    taken / (taken + missed); snoozed and skipped entries are left out.

    Returns 1.0 when no entry is taken or missed.
    """
    entries = list(entries)
    taken = _count(entries, AdherenceStatus.TAKEN)
    missed = _count(entries, AdherenceStatus.MISSED)
    if taken + missed == 0:
        return 1.0
    return taken / (taken + missed)


def count_consecutive_misses(entries: Iterable) -> int:
    """
    Length of the current miss streak.

    Walks entries newest first by scheduled time, counting misses until the
    first taken entry. Snoozed and skipped entries neither break nor extend it.
    """
    ordered = sorted(
        entries,
        key=lambda e: (e.scheduled_time, e.created_at or datetime.min),
        reverse=True
    )
    streak = 0
    for entry in ordered:
        if entry.status == AdherenceStatus.TAKEN:
            break
        if entry.status == AdherenceStatus.MISSED:
            streak += 1
    return streak


def classify_risk(consecutive_misses: int, adherence_rate: float) -> RiskLevel:
    if consecutive_misses >= HIGH_RISK_CONSECUTIVE_MISSES or adherence_rate < HIGH_RISK_ADHERENCE_RATE:
        return RiskLevel.HIGH
    if consecutive_misses >= MEDIUM_RISK_CONSECUTIVE_MISSES or adherence_rate < MEDIUM_RISK_ADHERENCE_RATE:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def assess_risk(
    entries: Iterable,
    critical_medicine_ids: Iterable[str] = (),
    today: Optional[date] = None
) -> RiskAssessment:
    """
    Risk for a log window.

    A missed dose of a critical medicine on ``today`` escalates the level to
    HIGH whatever the rate.
    """
    entries = list(entries)
    rate = calculate_adherence_rate(entries)
    consecutive = count_consecutive_misses(entries)
    level = classify_risk(consecutive, rate)

    critical: Set[str] = set(critical_medicine_ids)
    missed_today = []
    if today is not None:
        start, end = day_bounds(today)
        missed_today = [
            e for e in entries
            if e.status == AdherenceStatus.MISSED and start <= e.scheduled_time < end
        ]
    critical_missed = tuple(sorted({e.medicine_id for e in missed_today if e.medicine_id in critical}))

    if critical_missed:
        level = RiskLevel.HIGH

    return RiskAssessment(
        level=level,
        consecutive_misses=consecutive,
        adherence_rate=rate,
        critical_missed=critical_missed,
        missed_today=len(missed_today)
    )


def mine_weekly_patterns(entries: Iterable) -> WeeklyPatterns:
    entries = list(entries)
    missed = [e for e in entries if e.status == AdherenceStatus.MISSED]

    by_weekday = Counter(e.scheduled_time.weekday() for e in missed)
    by_bucket = Counter(day_bucket_of(e.scheduled_time).value for e in missed)
    symptoms = Counter(s for e in entries for s in e.symptoms)

    # Ties go to the earlier weekday
    top = sorted(by_weekday.items(), key=lambda kv: (-kv[1], kv[0]))[:2]

    return WeeklyPatterns(
        missed_by_weekday={WEEKDAY_NAMES[d]: n for d, n in sorted(by_weekday.items())},
        missed_by_time_of_day=dict(by_bucket),
        top_missed_weekdays=tuple((WEEKDAY_NAMES[d], n) for d, n in top),
        evening_exceeds_morning=(
            by_bucket.get(TimeOfDay.EVENING.value, 0) > by_bucket.get(TimeOfDay.MORNING.value, 0)
        ),
        symptom_counts=dict(symptoms)
    )


def generate_insights(adherence_percentage: int, patterns: WeeklyPatterns) -> List[str]:
    """Human-readable lines for the weekly report"""
    insights = []

    if adherence_percentage >= 95:
        insights.append("Excellent adherence! Keep up the great work!")
    elif adherence_percentage >= 85:
        insights.append("Good adherence, but there's room for improvement")
    elif adherence_percentage >= 70:
        insights.append("Adherence needs attention. Consider setting more reminders")
    else:
        insights.append("Low adherence detected. Immediate intervention recommended")

    if patterns.top_missed_weekdays:
        day, _ = patterns.top_missed_weekdays[0]
        insights.append(f"Most misses on {day}. Consider extra reminders on this day")

    if patterns.evening_exceeds_morning:
        insights.append("Evening medicines are often missed. Set stronger evening reminders")

    if patterns.top_symptom:
        insights.append(f"Frequent symptom: {patterns.top_symptom}. Consider consulting doctor")

    return insights


def calculate_day_streak(entries: Iterable, today: date, max_days: int = MAX_STREAK_DAYS) -> int:
    """
    Consecutive days, counting back from ``today``, on which every logged
    dose was taken. A day with no logs ends the streak.
    """
    by_day: Dict[date, List] = {}
    for entry in entries:
        by_day.setdefault(entry.scheduled_time.date(), []).append(entry)

    streak = 0
    for offset in range(max_days):
        day_entries = by_day.get(today - timedelta(days=offset))
        if not day_entries:
            break
        if all(e.status == AdherenceStatus.TAKEN for e in day_entries):
            streak += 1
        else:
            break
    return streak


def calculate_timing_consistency(entries: Iterable, on_time_minutes: int = ON_TIME_MINUTES) -> TimingConsistency:
    delays = [
        minute_offset(e.actual_time, e.scheduled_time)
        for e in entries
        if e.status == AdherenceStatus.TAKEN and e.actual_time is not None
    ]
    if not delays:
        return TimingConsistency()
    on_time = sum(1 for d in delays if abs(d) <= on_time_minutes)
    return TimingConsistency(
        sample_size=len(delays),
        average_delay_minutes=round(sum(delays) / len(delays), 1),
        on_time_ratio=round(on_time / len(delays), 4)
    )


def build_weekly_summary(
    patient_id: str,
    patient_name: str,
    entries: Sequence,
    week_start: datetime,
    week_end: datetime,
    streak: int
) -> WeeklySummary:
    rate = calculate_adherence_rate(entries)
    percentage = int(round(rate * 100))
    patterns = mine_weekly_patterns(entries)
    return WeeklySummary(
        patient_id=patient_id,
        patient_name=patient_name,
        week_start=week_start,
        week_end=week_end,
        total_doses=len(entries),
        taken_doses=_count(entries, AdherenceStatus.TAKEN),
        missed_doses=_count(entries, AdherenceStatus.MISSED),
        adherence_percentage=percentage,
        streak=streak,
        patterns=patterns,
        insights=tuple(generate_insights(percentage, patterns)),
        timing=calculate_timing_consistency(entries)
    )


def guardian_message(summary: WeeklySummary) -> str:
    streak = f"{summary.streak}-day streak!" if summary.streak > 0 else "No current streak"
    return (
        f"{summary.patient_name}: {summary.adherence_percentage}% adherence "
        f"({summary.taken_doses}/{summary.total_doses} doses). {streak}"
    )


def patient_message(summary: WeeklySummary) -> str:
    if summary.adherence_percentage >= 95:
        return f"Perfect week! You took {summary.taken_doses} out of {summary.total_doses} medicines!"
    return (
        f"You took {summary.taken_doses} out of {summary.total_doses} medicines this week "
        f"({summary.adherence_percentage}%)"
    )


# ==================== SERVICE ====================

class AdherenceService:
    """
    Loads log windows for a patient and runs the calculations over them

    Today's overdue doses without a log count as missed here exactly as they
    do on the dashboard.
    """

    def __init__(self, schedule_service: ScheduleService):
        self.schedule_service = schedule_service

    async def get_window(self, patient_id: str, now: datetime, days: int = 7, medicines=None) -> List:
        """
        Effective adherence entries for the last ``days`` calendar days

        Args:
            patient_id: Patient ID
            now: Evaluation instant; the window ends with today
            days: Window length in days, today included

        Returns:
            Logged entries plus inferred misses for today
        """
        today_start = start_of_day(now)
        window_start = today_start - timedelta(days=max(days, 1) - 1)

        earlier = await self.schedule_service.load_logs(patient_id, window_start, today_start)
        today = await self.schedule_service.resolve_day(patient_id, now.date(), now, medicines)
        return earlier + self.schedule_service.resolver.effective_entries(today.views, today.logs)

    async def assess(self, patient_id: str, now: datetime, days: int = 7) -> RiskAssessment:
        medicines = await self.schedule_service.load_medicines(patient_id)
        entries = await self.get_window(patient_id, now, days, medicines)
        critical = [m.id for m in medicines if m.is_critical]
        assessment = assess_risk(entries, critical, today=now.date())
        logger.debug(
            f"Risk for patient {patient_id}: {assessment.level.value} "
            f"(rate={assessment.adherence_rate:.2f}, streak={assessment.consecutive_misses})"
        )
        return assessment

    async def get_adherence_rate(self, patient_id: str, now: datetime, days: int = 30) -> float:
        return calculate_adherence_rate(await self.get_window(patient_id, now, days))

    async def get_day_streak(self, patient_id: str, now: datetime) -> int:
        entries = await self.get_window(patient_id, now, MAX_STREAK_DAYS)
        return calculate_day_streak(entries, now.date())

    async def get_weekly_summary(
        self,
        patient_id: str,
        now: datetime,
        patient_name: str = ""
    ) -> WeeklySummary:
        week_start = now - timedelta(days=7)
        entries = [
            e for e in await self.get_window(patient_id, now, 8)
            if e.scheduled_time >= week_start
        ]
        streak_window = await self.get_window(patient_id, now, MAX_STREAK_DAYS)
        return build_weekly_summary(
            patient_id=patient_id,
            patient_name=patient_name,
            entries=entries,
            week_start=week_start,
            week_end=now,
            streak=calculate_day_streak(streak_window, now.date())
        )
