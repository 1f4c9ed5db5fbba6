"""
Alert Engine
Server-side risk sweep: re-runs the adherence calculator for every patient
and raises guardian alerts through an external sink.
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime, date, timedelta

from config import Collections, get_settings
from models import AlertKind, AlertTier, RiskLevel
from services.adherence_service import (
    AdherenceService,
    RiskAssessment,
    guardian_message,
    patient_message,
)
from tools.record_store import RecordStore, where
from tools.records import MedicineRecord, PatientRecord, as_datetime


logger = logging.getLogger(__name__)
settings = get_settings()


ALERT_TEMPLATES = {
    AlertTier.URGENT: {
        "title": "URGENT: Medicine Adherence Risk",
        "message": "{patient_name} has missed {missed} doses today",
    },
    AlertTier.IMPORTANT: {
        "title": "Attention Needed",
        "message": "{patient_name} missed {missed} doses today",
    },
    AlertTier.INFO: {
        "title": "Weekly Adherence Report",
        "message": "{summary}",
    },
    "critical": {
        "title": "URGENT: Critical Medicine Missed",
        "message": "{patient_name} missed a critical medicine today: {medicines}",
    },
    "streak": {
        "title": "URGENT: Medicine Adherence Risk",
        "message": "{patient_name} has missed {streak} doses in a row",
    },
    "inactivity": {
        "title": "Patient App Inactive",
        "message": "{patient_name}'s app has been inactive for {days} days",
    },
    "refill_urgent": {
        "title": "Medicine Refill Needed",
        "message": "{medicine_name} for {patient_name} runs out in {days} days",
    },
    "refill_warning": {
        "title": "Medicine Running Out Soon",
        "message": "{medicine_name} for {patient_name} has {days} days left",
    },
}


def alert_id(patient_id: str, day: date, kind: AlertKind, subject: str = "") -> str:
    """Same patient, day and kind always give the same id"""
    raw = f"{patient_id}|{day.isoformat()}|{kind.value}|{subject}"
    return f"alert_{hashlib.sha1(raw.encode()).hexdigest()[:20]}"


def risk_alert_tier(
    assessment: RiskAssessment,
    important_missed_doses: Optional[int] = None
) -> Optional[AlertTier]:
    """
    Map an assessment onto an alert tier

    A critical miss or a streak of three escalates straight to URGENT.
    Enough misses today raise IMPORTANT whatever the ladder says.
    """
    threshold = (
        important_missed_doses if important_missed_doses is not None
        else settings.IMPORTANT_MISSED_DOSES
    )
    if assessment.escalated or assessment.level == RiskLevel.HIGH:
        return AlertTier.URGENT
    if assessment.missed_today >= threshold:
        return AlertTier.IMPORTANT
    return None


class AlertSink(ABC):
    """Delivery of guardian alerts (push, SMS, ...)"""

    @abstractmethod
    async def raise_alert(
        self,
        patient_id: str,
        tier: AlertTier,
        title: str,
        message: str,
        context: Dict[str, Any]
    ) -> None:
        """Deliver one alert"""


class LoggingAlertSink(AlertSink):
    """Writes alerts to the log; used when no delivery channel is configured"""

    async def raise_alert(self, patient_id, tier, title, message, context) -> None:
        log = logger.warning if tier == AlertTier.URGENT else logger.info
        log(f"[ALERT:{tier.value}] patient {patient_id}: {title} - {message}")


@dataclass
class SweepReport:
    """What one sweep run did"""
    patients: int = 0
    raised: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patients": self.patients,
            "raised": list(self.raised),
            "skipped": list(self.skipped),
            "failed": list(self.failed),
        }


class RiskSweep:
    """
    Periodic risk sweep

    Alert records use deterministic ids, so re-running the sweep on the same
    day creates no duplicates and notifies nobody twice. One patient's
    failure is logged and does not stop the others.
    """

    def __init__(
        self,
        store: RecordStore,
        adherence_service: AdherenceService,
        sink: AlertSink,
        inactivity_hours: Optional[int] = None,
        important_missed_doses: Optional[int] = None,
        refill_urgent_days: Optional[int] = None,
        refill_warning_days: Optional[int] = None
    ):
        self.store = store
        self.adherence_service = adherence_service
        self.sink = sink
        self.inactivity_hours = (
            inactivity_hours if inactivity_hours is not None
            else settings.INACTIVITY_HOURS
        )
        self.important_missed_doses = (
            important_missed_doses if important_missed_doses is not None
            else settings.IMPORTANT_MISSED_DOSES
        )
        self.refill_urgent_days = (
            refill_urgent_days if refill_urgent_days is not None
            else settings.REFILL_URGENT_DAYS
        )
        self.refill_warning_days = (
            refill_warning_days if refill_warning_days is not None
            else settings.REFILL_WARNING_DAYS
        )

    async def _patients(self) -> List[PatientRecord]:
        documents = await self.store.query(Collections.PATIENTS, order_by="created_at")
        return [PatientRecord.from_payload(d) for d in documents]

    async def _raise(
        self,
        report: SweepReport,
        patient: PatientRecord,
        tier: AlertTier,
        kind: AlertKind,
        template: Dict[str, str],
        values: Dict[str, Any],
        context: Dict[str, Any],
        now: datetime,
        subject: str = ""
    ) -> bool:
        record_id = alert_id(patient.id, now.date(), kind, subject)
        if await self.store.get(Collections.ALERTS, record_id) is not None:
            report.skipped.append(record_id)
            return False

        title = template["title"]
        message = template["message"].format(patient_name=patient.name, **values)
        # Persist before delivery so a retried sweep never notifies twice
        await self.store.upsert(Collections.ALERTS, record_id, {
            "id": record_id,
            "patient_id": patient.id,
            "tier": tier.value,
            "kind": kind.value,
            "title": title,
            "message": message,
            "context": context,
            "day": now.date().isoformat(),
            "action_taken": False,
            "created_at": now,
        })
        await self.sink.raise_alert(patient.id, tier, title, message, context)
        report.raised.append(record_id)
        logger.info(f"Raised {tier.value} {kind.value} alert for patient {patient.id}")
        return True

    # ==================== CHECKS ====================

    async def check_risk(self, report: SweepReport, patient: PatientRecord, now: datetime) -> Optional[RiskAssessment]:
        assessment = await self.adherence_service.assess(patient.id, now)
        tier = risk_alert_tier(assessment, self.important_missed_doses)
        if tier is None:
            return assessment

        if assessment.critical_missed:
            template = ALERT_TEMPLATES["critical"]
        elif tier == AlertTier.URGENT and assessment.missed_today == 0:
            template = ALERT_TEMPLATES["streak"]
        else:
            template = ALERT_TEMPLATES[tier]

        await self._raise(
            report, patient, tier, AlertKind.ADHERENCE_RISK, template,
            {
                "missed": assessment.missed_today,
                "streak": assessment.consecutive_misses,
                "medicines": ", ".join(assessment.critical_missed),
            },
            assessment.to_dict(),
            now,
            subject=tier.value
        )
        return assessment

    async def check_inactivity(self, report: SweepReport, patient: PatientRecord, now: datetime) -> bool:
        latest = await self.store.query(
            Collections.ADHERENCE_LOGS,
            [where("patient_id", "==", patient.id)],
            order_by="created_at",
            descending=True,
            limit=1
        )
        if not latest:
            return False
        last_activity = as_datetime(latest[0].get("created_at"))
        if last_activity is None:
            return False

        idle = now - last_activity
        if idle < timedelta(hours=self.inactivity_hours):
            return False

        return await self._raise(
            report, patient, AlertTier.URGENT, AlertKind.INACTIVITY,
            ALERT_TEMPLATES["inactivity"],
            {"days": int(idle.total_seconds() // 86400)},
            {"last_activity": last_activity.isoformat(), "idle_hours": round(idle.total_seconds() / 3600, 1)},
            now
        )

    async def check_refills(self, report: SweepReport, patient: PatientRecord, now: datetime) -> int:
        raised = 0
        medicines = await self.adherence_service.schedule_service.load_medicines(patient.id)
        for medicine in medicines:
            tier = self._refill_tier(medicine)
            if tier is None:
                continue
            template = ALERT_TEMPLATES["refill_urgent" if tier == AlertTier.URGENT else "refill_warning"]
            if await self._raise(
                report, patient, tier, AlertKind.REFILL, template,
                {"medicine_name": medicine.name, "days": medicine.days_remaining},
                {"medicine_id": medicine.id, "days_remaining": medicine.days_remaining},
                now,
                subject=medicine.id
            ):
                raised += 1
        return raised

    def _refill_tier(self, medicine: MedicineRecord) -> Optional[AlertTier]:
        if medicine.days_remaining is None:
            return None
        if medicine.days_remaining <= self.refill_urgent_days:
            return AlertTier.URGENT
        if medicine.days_remaining <= self.refill_warning_days:
            return AlertTier.IMPORTANT
        return None

    # ==================== RUNS ====================

    async def sweep_patient(self, report: SweepReport, patient: PatientRecord, now: datetime):
        await self.check_risk(report, patient, now)
        await self.check_inactivity(report, patient, now)
        await self.check_refills(report, patient, now)

    async def run(self, now: Optional[datetime] = None) -> SweepReport:
        """
        Sweep every patient once

        Args:
            now: Evaluation instant (defaults to the wall clock)

        Returns:
            SweepReport listing raised, skipped and failed work
        """
        now = now or datetime.now()
        report = SweepReport()
        for patient in await self._patients():
            report.patients += 1
            try:
                await self.sweep_patient(report, patient, now)
            except Exception:
                logger.exception(f"Risk sweep failed for patient {patient.id}")
                report.failed.append(patient.id)

        logger.info(
            f"Risk sweep done: {report.patients} patients, {len(report.raised)} alerts raised, "
            f"{len(report.failed)} failures"
        )
        return report

    async def run_weekly_summary(self, now: Optional[datetime] = None) -> SweepReport:
        """Send the weekly report for every patient with logs this week"""
        now = now or datetime.now()
        report = SweepReport()
        for patient in await self._patients():
            report.patients += 1
            try:
                summary = await self.adherence_service.get_weekly_summary(patient.id, now, patient.name)
                if summary.total_doses == 0:
                    continue
                context = summary.to_dict()
                context["patient_message"] = patient_message(summary)
                await self._raise(
                    report, patient, AlertTier.INFO, AlertKind.WEEKLY_SUMMARY,
                    ALERT_TEMPLATES[AlertTier.INFO],
                    {"summary": guardian_message(summary)},
                    context,
                    now
                )
            except Exception:
                logger.exception(f"Weekly summary failed for patient {patient.id}")
                report.failed.append(patient.id)
        return report
