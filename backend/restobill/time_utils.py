from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.utcnow()


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" and "YYYY-MM-DDTHH:MM" (naive) are interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


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


def add_months(dt: datetime, months: int = 1) -> datetime:
    """Calendar-month shift; Jan 31 + 1 month lands on the last day of February."""
    return dt + relativedelta(months=months)


def add_days(dt: datetime, days: int) -> datetime:
    return dt + timedelta(days=days)


def days_until(end: Optional[datetime], now: Optional[datetime] = None) -> int:
    """Whole days (rounded up) from now until end, never negative."""
    if end is None:
        return 0
    now = now or utcnow()
    seconds = (end - now).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / 86400)
