"""Clock-time arithmetic for delay propagation and overnight services.

The live feed only carries a time of day, never a date, so every estimate has
to be placed on a calendar day relative to the current moment.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

from .models import NO_TIME

MINUTES_PER_DAY = 24 * 60

# Hours before LATE_NIGHT_END count as the tail of the previous service day;
# hours from EVENING_START onwards may be followed by such a tail.
LATE_NIGHT_END = 4
EVENING_START = 18


def parse_clock(value: str) -> Tuple[int, int]:
    """
    Parse a zero-padded HH:MM string.

    Raises:
        ValueError: If the value is not a valid 24-hour clock time.
    """
    try:
        hours_str, minutes_str = value.strip().split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid clock time: {value!r}") from None
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Invalid clock time: {value!r}")
    return hours, minutes


def format_clock(hours: int, minutes: int) -> str:
    return f"{hours:02d}:{minutes:02d}"


def estimate(scheduled_time: Optional[str], delay_minutes: int) -> str:
    """
    Apply a delay to a scheduled clock time.

    Args:
        scheduled_time: Zero-padded HH:MM, or None when the stop is untimed.
        delay_minutes: Minutes late (0 means on schedule).

    Returns:
        The delayed time as HH:MM, wrapping past midnight, or NO_TIME when
        there is no scheduled time.
    """
    if not scheduled_time:
        return NO_TIME
    if delay_minutes < 0:
        raise ValueError(f"Delay must not be negative: {delay_minutes}")

    hours, minutes = parse_clock(scheduled_time)
    total = (hours * 60 + minutes + delay_minutes) % MINUTES_PER_DAY
    return format_clock(total // 60, total % 60)


def resolve_calendar_day(estimated_time: str, now: datetime) -> date:
    """Infer which calendar day a bare HH:MM belongs to, relative to now."""
    candidate_hour, _ = parse_clock(estimated_time)
    today = now.date()

    if now.hour < LATE_NIGHT_END and candidate_hour >= EVENING_START:
        # Late-night run that started yesterday evening
        return today - timedelta(days=1)
    if now.hour >= EVENING_START and candidate_hour < LATE_NIGHT_END:
        return today + timedelta(days=1)
    return today


def resolve_instant(estimated_time: str, now: datetime) -> datetime:
    """Combine an HH:MM estimate with its inferred calendar day."""
    hours, minutes = parse_clock(estimated_time)
    day = resolve_calendar_day(estimated_time, now)
    return datetime.combine(day, time(hours, minutes), tzinfo=now.tzinfo)
