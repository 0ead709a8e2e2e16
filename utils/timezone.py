"""UTC-everywhere time handling. Local time only at display and window boundaries."""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def _zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (KeyError, ValueError):
        raise ValueError(f"Unknown timezone: {tz_name}")


def to_local(dt: datetime, tz_name: str) -> datetime:
    """
    Convert UTC datetime to local timezone for display.

    ONLY use this at display boundaries - when rendering for humans.
    All internal operations should remain in UTC.

    Raises:
        ValueError: If datetime is naive or timezone name is invalid
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime. Datetime must be timezone-aware."
        )
    return dt.astimezone(_zone(tz_name))


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 datetime string to UTC datetime.

    Raises ValueError if string has no timezone info.
    """
    dt = datetime.fromisoformat(iso_string)
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot parse naive datetime string. "
            "Include timezone offset (e.g., 'Z' or '+00:00')."
        )
    return to_utc(dt)


def combine_local(day: str, clock: str, tz_name: str) -> datetime:
    """
    Combine a local date ("2025-03-14") and wall-clock time ("14:30") into UTC.

    Raises ValueError on malformed input or unknown timezone.
    """
    local_date = date.fromisoformat(day)
    local_time = time.fromisoformat(clock)
    return to_utc(datetime.combine(local_date, local_time, tzinfo=_zone(tz_name)))


def start_of_day(now: datetime, tz_name: str) -> datetime:
    """Midnight of `now`'s local day, returned in UTC."""
    local = to_local(now, tz_name)
    return to_utc(local.replace(hour=0, minute=0, second=0, microsecond=0))


def start_of_week(now: datetime, tz_name: str) -> datetime:
    """Midnight of the most recent local Sunday, returned in UTC."""
    local = to_local(now, tz_name)
    days_since_sunday = (local.weekday() + 1) % 7
    sunday = local - timedelta(days=days_since_sunday)
    return to_utc(sunday.replace(hour=0, minute=0, second=0, microsecond=0))


def minutes_between(start: datetime, end: datetime) -> float:
    """Elapsed minutes from start to end (negative if end precedes start)."""
    return (end - start).total_seconds() / 60
