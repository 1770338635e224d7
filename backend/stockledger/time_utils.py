from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" or "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def is_bare_date(value: Optional[str]) -> bool:
    """True for "YYYY-MM-DD" with no time part."""
    if value is None:
        return False
    s = value.strip()
    return len(s) == 10 and "T" not in s and " " not in s


def start_of_day(value: Optional[date]) -> Optional[datetime]:
    """Bare dates become midnight of that day; datetimes pass through."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def end_of_day(value: Optional[date]) -> Optional[datetime]:
    """
    Stretch a bare date to the last microsecond of that day.

    Date-range filters treat end dates as inclusive of the whole day, so
    date(2026, 3, 1) as an end bound must match transactions at 17:45 that
    day. Datetimes are returned unchanged, midnight included.
    """
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(value, time.max)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
