"""Recurrence matching for time-based notification rules.

Schedules use a compact subset of iCalendar RRULE syntax, for example
``FREQ=DAILY;BYHOUR=7;BYMINUTE=10`` or ``FREQ=WEEKLY;BYDAY=SU;BYHOUR=16``.
Only FREQ (DAILY, WEEKLY), BYHOUR, BYMINUTE and BYDAY are understood; other
keys are ignored.
"""
from dataclasses import dataclass
from datetime import datetime

from dateutil import tz

# Must stay below half the scheduler interval so one occurrence fires once.
MINUTE_TOLERANCE = 7
MINUTES_PER_DAY = 24 * 60

SUPPORTED_FREQUENCIES = {"DAILY", "WEEKLY"}
WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


@dataclass(frozen=True)
class LocalTime:
    """Wall-clock breakdown of an instant in the rule owner's zone."""

    year: int
    month: int
    day: int
    hour: int
    minute: int
    weekday: str  # Mon, Tue, ...


def local_time(reference: datetime, timezone_name: str | None) -> LocalTime:
    """Convert a naive-UTC (or aware) instant to local wall-clock time.

    Unknown or missing zone names fall back to UTC.
    """
    zone = tz.gettz(timezone_name) if timezone_name else None
    if zone is None:
        zone = tz.UTC
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=tz.UTC)
    local = reference.astimezone(zone)
    return LocalTime(
        year=local.year,
        month=local.month,
        day=local.day,
        hour=local.hour,
        minute=local.minute,
        weekday=WEEKDAYS[local.weekday()],
    )


def parse_schedule(schedule: str) -> dict[str, str]:
    """Split ``KEY=VALUE;...`` into an upper-cased mapping."""
    parts: dict[str, str] = {}
    for segment in schedule.split(";"):
        key, sep, value = segment.partition("=")
        key, value = key.strip().upper(), value.strip().upper()
        if sep and key and value:
            parts[key] = value
    return parts


def _offset(current: int, target: int, period: int) -> int:
    """Signed distance from ``target`` to ``current`` on a clock of ``period``."""
    return (current - target + period // 2) % period - period // 2


def matches_schedule(local: LocalTime, schedule: str) -> bool:
    """Return True when every constraint present in ``schedule`` holds.

    The minute tolerance is measured on the clock, so an occurrence at 16:00
    matches a tick at 15:55. When that crosses midnight, BYDAY is checked
    against the day the occurrence falls on.
    """
    parts = parse_schedule(schedule)

    freq = parts.get("FREQ")
    if freq not in SUPPORTED_FREQUENCIES:
        return False

    try:
        hour = int(parts["BYHOUR"]) if "BYHOUR" in parts else None
        minute = int(parts["BYMINUTE"]) if "BYMINUTE" in parts else None
    except ValueError:
        return False
    if (hour is not None and not 0 <= hour < 24) or (minute is not None and not 0 <= minute < 60):
        return False

    day_shift = 0
    if minute is None:
        if hour is not None and local.hour != hour:
            return False
    elif hour is None:
        if abs(_offset(local.minute, minute, 60)) > MINUTE_TOLERANCE:
            return False
    else:
        now = local.hour * 60 + local.minute
        offset = _offset(now, hour * 60 + minute, MINUTES_PER_DAY)
        if abs(offset) > MINUTE_TOLERANCE:
            return False
        day_shift = (now - offset) // MINUTES_PER_DAY

    if freq == "WEEKLY" and "BYDAY" in parts:
        weekday = WEEKDAYS[(WEEKDAYS.index(local.weekday) + day_shift) % 7]
        days = {day.strip() for day in parts["BYDAY"].split(",")}
        return weekday[:2].upper() in days

    return True
