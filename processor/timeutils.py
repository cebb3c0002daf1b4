"""Wall-clock time helpers for HH:MM[:SS] strings."""
from datetime import datetime, time
from typing import Optional
from zoneinfo import ZoneInfo

SECONDS_PER_DAY = 24 * 60 * 60
LAST_SECOND_OF_DAY = SECONDS_PER_DAY - 1


def parse_time_to_seconds(time_str: str) -> int:
    """
    Convert a HH:MM or HH:MM:SS string into seconds from midnight.

    Raises:
        ValueError: If the string is not a valid wall-clock time
    """
    if not isinstance(time_str, str):
        raise ValueError(f"Invalid time format: {time_str!r}")

    parts = time_str.strip().split(':')
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time format: {time_str!r}")

    try:
        hours, minutes = int(parts[0]), int(parts[1])
        seconds = int(parts[2]) if len(parts) == 3 else 0
    except ValueError:
        raise ValueError(f"Invalid time format: {time_str!r}") from None

    if not (0 <= hours < 24 and 0 <= minutes < 60 and 0 <= seconds < 60):
        raise ValueError(f"Invalid time format: {time_str!r}")

    return hours * 3600 + minutes * 60 + seconds


def format_seconds(total_seconds: int) -> str:
    """Format seconds from midnight as HH:MM:SS, clamped to the day."""
    total_seconds = min(max(int(total_seconds), 0), LAST_SECOND_OF_DAY)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def adjust_time_by_minutes(time_str: str, minute_delta: float) -> str:
    """
    Shift a wall-clock time by a (possibly fractional) number of minutes.

    The result is clamped to [00:00:00, 23:59:59].

    Raises:
        ValueError: If time_str is malformed
    """
    total = parse_time_to_seconds(time_str)
    return format_seconds(total + round(minute_delta * 60))


def split_iso_datetime(value: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """
    Split an upstream ISO timestamp into (YYYY-MM-DD, HH:MM:SS) wall-clock parts.

    The UTC offset, if any, is ignored: upstream timestamps are already local.

    Returns:
        (date, time) or (None, None) if the value cannot be parsed
    """
    if not isinstance(value, str) or not value.strip():
        return None, None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None, None
    return parsed.date().isoformat(), parsed.time().replace(microsecond=0).isoformat()


def local_start(date_str: str, time_str: str, tz: ZoneInfo) -> datetime:
    """Combine a date and wall-clock time into an aware datetime in ``tz``."""
    seconds = parse_time_to_seconds(time_str)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    day = datetime.strptime(date_str, '%Y-%m-%d').date()
    return datetime.combine(day, time(hours, minutes, secs), tzinfo=tz)
