"""
Tools Package
Leaf utilities for the MedDrop engine: clock helpers, record snapshots,
record stores and the notification sink
"""

from .clock import (
    parse_clock_time,
    format_clock_time,
    at_clock_time,
    day_bounds,
    start_of_day,
    is_within_tolerance,
    is_past_tolerance,
    day_bucket_of,
    weekday_name,
)

from .records import (
    DoseSchedule,
    MedicineRecord,
    AdherenceEntry,
    PatientRecord,
    adherence_log_id,
    encode_payload,
)

from .record_store import (
    Filter,
    where,
    RecordStore,
    InMemoryRecordStore,
)

from .sql_record_store import SqlRecordStore

from .remote_record_store import HttpRecordStore

from .notification_service import (
    NotificationSink,
    LocalNotificationSink,
    ScheduledNotification,
    NotificationState,
    NotificationPriority,
)

__all__ = [
    # Clock
    "parse_clock_time",
    "format_clock_time",
    "at_clock_time",
    "day_bounds",
    "start_of_day",
    "is_within_tolerance",
    "is_past_tolerance",
    "day_bucket_of",
    "weekday_name",

    # Records
    "DoseSchedule",
    "MedicineRecord",
    "AdherenceEntry",
    "PatientRecord",
    "adherence_log_id",
    "encode_payload",

    # Stores
    "Filter",
    "where",
    "RecordStore",
    "InMemoryRecordStore",
    "SqlRecordStore",
    "HttpRecordStore",

    # Notifications
    "NotificationSink",
    "LocalNotificationSink",
    "ScheduledNotification",
    "NotificationState",
    "NotificationPriority",
]
