"""
Next fire time calculation for report schedules.

Every calculation starts from the current wall clock, never from the last
run, so late or slow runs do not push later runs further out.
"""
import logging
import re
from datetime import datetime, time, timedelta
from typing import Any, Optional, Tuple

logger = logging.getLogger(__name__)

SCHEDULE_TYPES = ('daily', 'weekly', 'monthly')

# Monthly schedules advance by a fixed 30 days, not by calendar month
DAYS_PER_MONTH = 30

_TIME_RE = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)$')


def normalize_repeat_every(value: Any) -> int:
    """Clamp the repeat multiplier to an integer >= 1 (invalid values become 1)."""
    try:
        repeat = int(value)
    except (TypeError, ValueError):
        return 1
    return max(1, repeat)


def parse_time_of_day(value: Optional[str]) -> Optional[Tuple[int, int]]:
    """Parse "HH:MM" into (hour, minute); None when unset or malformed."""
    if not value:
        return None
    match = _TIME_RE.match(str(value).strip())
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def normalize_weekday(value: Any) -> Optional[int]:
    """Return weekday 0-6 (0=Sunday) or None when unset/invalid."""
    if value is None or value == '':
        return None
    try:
        weekday = int(value)
    except (TypeError, ValueError):
        return None
    return weekday if 0 <= weekday <= 6 else None


def weekday_of(moment: datetime) -> int:
    """Weekday index with 0=Sunday, 1=Monday ... 6=Saturday."""
    return moment.isoweekday() % 7


def repeat_interval(schedule_type: Optional[str], repeat_every: Any) -> Optional[timedelta]:
    """Period registered with the timer for a schedule type and multiplier."""
    repeat = normalize_repeat_every(repeat_every)
    if schedule_type == 'daily':
        return timedelta(days=repeat)
    if schedule_type == 'weekly':
        return timedelta(weeks=repeat)
    if schedule_type == 'monthly':
        return timedelta(days=DAYS_PER_MONTH * repeat)
    return None


def is_configured(schedule: Any) -> bool:
    """A schedule can be timed only with a known type and a valid time of day."""
    return (
        getattr(schedule, 'schedule_type', None) in SCHEDULE_TYPES
        and parse_time_of_day(getattr(schedule, 'time_of_day', None)) is not None
    )


def compute_next_fire_time(schedule: Any, now: Optional[datetime] = None) -> Optional[datetime]:
    """Calculate the next fire time of a schedule.

    Only the cadence is read: schedule_type, repeat_every, time_of_day and
    weekday. The same inputs always give the same result.

    Args:
        schedule: ReportSchedule or any object with the cadence attributes
        now: Reference instant (defaults to datetime.now())

    Returns:
        Next fire time, or None if the schedule is not configured
    """
    if now is None:
        now = datetime.now()

    schedule_type = getattr(schedule, 'schedule_type', None)
    parsed_time = parse_time_of_day(getattr(schedule, 'time_of_day', None))
    if not schedule_type or parsed_time is None:
        return None
    if schedule_type not in SCHEDULE_TYPES:
        logger.warning(f"Unknown schedule type: {schedule_type}")
        return None

    hour, minute = parsed_time
    repeat = normalize_repeat_every(getattr(schedule, 'repeat_every', 1))
    candidate = datetime.combine(now.date(), time(hour, minute), tzinfo=now.tzinfo)

    weekday = normalize_weekday(getattr(schedule, 'weekday', None))
    if schedule_type == 'weekly' and weekday is not None:
        days_ahead = (weekday - weekday_of(now) + 7) % 7
        if days_ahead == 0 and candidate <= now:
            # Always one week, whatever repeat_every says
            days_ahead = 7
        return candidate + timedelta(days=days_ahead)

    if candidate > now:
        return candidate
    return candidate + repeat_interval(schedule_type, repeat)
