from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional

ISO_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc)
    return dt_utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a strict 'YYYY-MM-DD' string.

    - None / "" -> None
    - anything else that is not exactly a calendar date raises ValueError
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    if not ISO_DATE_RE.fullmatch(s):
        raise ValueError(f"Not an ISO date: {value!r}")
    return date.fromisoformat(s)


def current_week_start(today: Optional[date] = None) -> str:
    """Monday of the week containing `today`, as 'YYYY-MM-DD'."""
    today = today or utcnow().date()
    monday = today - timedelta(days=today.weekday())
    return monday.isoformat()


def current_month_start(today: Optional[date] = None) -> str:
    """First day of the month containing `today`, as 'YYYY-MM-DD'."""
    today = today or utcnow().date()
    return today.replace(day=1).isoformat()
