"""
Actions Module
Engines that act on the adherence state: reminders and alerts
"""

from .reminder_engine import (
    Reminder,
    ReminderState,
    ReminderReconciler,
    ResyncResult,
    REMINDER_TEMPLATES,
    dose_key,
)

from .alert_engine import (
    AlertSink,
    LoggingAlertSink,
    RiskSweep,
    SweepReport,
    ALERT_TEMPLATES,
    alert_id,
    risk_alert_tier,
)


__all__ = [
    # Reminder Engine
    "Reminder",
    "ReminderState",
    "ReminderReconciler",
    "ResyncResult",
    "REMINDER_TEMPLATES",
    "dose_key",

    # Alert Engine
    "AlertSink",
    "LoggingAlertSink",
    "RiskSweep",
    "SweepReport",
    "ALERT_TEMPLATES",
    "alert_id",
    "risk_alert_tier",
]
