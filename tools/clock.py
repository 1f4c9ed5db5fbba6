"""
Clock / TimeWindow utility
Pure helpers that map schedule clock strings and "now" onto comparable
minute offsets, day boundaries and time-of-day buckets.
"""

from typing import Optional, Tuple, Union
from datetime import datetime, date, time, timedelta

from errors import MalformedScheduleError
from models import TimeOfDay


ClockValue = Union[str, time]

WEEKDAY_NAMES = [
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"
]


def parse_clock_time(value: ClockValue, medicine_id: Optional[str] = None) -> time:
    """
    Parse an ``HH:MM`` schedule string into a ``datetime.time``.

    Raises:
        MalformedScheduleError: value is not a valid 24-hour clock time
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str):
        raise MalformedScheduleError(value, medicine_id)

    text = value.strip()
    parts = text.split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts) or len(parts[1]) != 2:
        raise MalformedScheduleError(value, medicine_id)

    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise MalformedScheduleError(value, medicine_id)
    return time(hour, minute)


def format_clock_time(value: Union[time, datetime]) -> str:
    """Render a time or datetime as ``HH:MM``"""
    return f"{value.hour:02d}:{value.minute:02d}"


def minutes_of_day(value: ClockValue) -> int:
    """Minutes since midnight for a clock value"""
    t = parse_clock_time(value)
    return t.hour * 60 + t.minute


def at_clock_time(day: date, value: ClockValue) -> datetime:
    """Concrete datetime for a clock value on a given day"""
    return datetime.combine(day, parse_clock_time(value))


def truncate_to_minute(moment: datetime) -> datetime:
    return moment.replace(second=0, microsecond=0)


def start_of_day(moment: Union[date, datetime]) -> datetime:
    day = moment.date() if isinstance(moment, datetime) else moment
    return datetime.combine(day, time.min)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """[start, end) of a calendar day"""
    start = start_of_day(day)
    return start, start + timedelta(days=1)


def minute_offset(now: datetime, scheduled: datetime) -> float:
    """Signed minutes from the scheduled moment to now (positive once past)"""
    return (now - scheduled).total_seconds() / 60


def is_within_tolerance(
    now: datetime,
    scheduled: datetime,
    early_minutes: int = 30,
    late_minutes: int = 30
) -> bool:
    """True while now sits inside [scheduled - early, scheduled + late]"""
    offset = minute_offset(now, scheduled)
    return -early_minutes <= offset <= late_minutes


def is_past_tolerance(now: datetime, scheduled: datetime, late_minutes: int = 30) -> bool:
    """True once now is strictly beyond scheduled + late"""
    return minute_offset(now, scheduled) > late_minutes


def day_bucket_of(value: Union[ClockValue, datetime]) -> TimeOfDay:
    """
    Coarse time-of-day bucket.

    morning < 12:00 <= afternoon < 17:00 <= evening < 21:00 <= night
    """
    hour = value.hour if isinstance(value, (datetime, time)) else parse_clock_time(value).hour
    if hour < 12:
        return TimeOfDay.MORNING
    if hour < 17:
        return TimeOfDay.AFTERNOON
    if hour < 21:
        return TimeOfDay.EVENING
    return TimeOfDay.NIGHT


def weekday_name(moment: Union[date, datetime]) -> str:
    return WEEKDAY_NAMES[moment.weekday()]


def describe_time_until(now: datetime, scheduled: datetime) -> str:
    """Human label used for the "next medicine" card"""
    minutes = int(minute_offset(scheduled, now))
    if minutes < 60:
        return f"in {max(minutes, 0)} minutes"
    return f"at {format_clock_time(scheduled)}"
