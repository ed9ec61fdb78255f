"""
Date and time utilities for event scheduling and monthly views.

Everything is stored as naive UTC. Admins type local club times, and
members read local club times, so conversion happens only at the edges.
"""

import re
from datetime import date, datetime, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from patota.config import Config

_MONTH_RE = re.compile(r'^\s*(\d{4})-(\d{1,2})\s*$')

_DATETIME_FORMATS = (
    '%Y-%m-%d %H:%M',
    '%Y-%m-%dT%H:%M',
    '%d/%m/%Y %H:%M',
)


def utcnow() -> datetime:
    """Current time as naive UTC, the storage convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def club_zone(tz_name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(tz_name or Config.CLUB_TIMEZONE)


def to_utc(local_dt: datetime, tz_name: Optional[str] = None) -> datetime:
    """Interpret a naive club-local datetime and return it as naive UTC."""
    if local_dt.tzinfo is None:
        local_dt = local_dt.replace(tzinfo=club_zone(tz_name))
    return local_dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_local(utc_dt: datetime, tz_name: Optional[str] = None) -> datetime:
    """Convert a stored naive UTC datetime to an aware club-local datetime."""
    if utc_dt.tzinfo is None:
        utc_dt = utc_dt.replace(tzinfo=timezone.utc)
    return utc_dt.astimezone(club_zone(tz_name))


def parse_event_datetime(text: str, tz_name: Optional[str] = None) -> datetime:
    """
    Parse a club-local date/time typed by an admin into naive UTC.

    Supported formats:
    - 2026-10-24 19:30
    - 2026-10-24T19:30
    - 24/10/2026 19:30

    Raises:
        ValueError: If the format is invalid
    """
    cleaned = text.strip()
    for fmt in _DATETIME_FORMATS:
        try:
            parsed = datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
        return to_utc(parsed, tz_name)
    raise ValueError(
        f"Invalid date/time '{text}'. Use YYYY-MM-DD HH:MM or DD/MM/YYYY HH:MM"
    )


def parse_month(text: str) -> Tuple[int, int]:
    """Parse 'YYYY-MM' into (year, month)."""
    match = _MONTH_RE.match(text or '')
    if not match:
        raise ValueError(f"Invalid month '{text}'. Use YYYY-MM, e.g. 2026-10")
    year, month = int(match.group(1)), int(match.group(2))
    validate_month(year, month)
    return year, month


def validate_month(year: int, month: int) -> None:
    if not isinstance(year, int) or not isinstance(month, int):
        raise ValueError("Year and month must be integers")
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    if not 2000 <= year <= 2100:
        raise ValueError(f"Year out of range: {year}")


def period_key(year: int, month: int) -> str:
    """Billing period key, e.g. '2026-03'."""
    validate_month(year, month)
    return f"{year}-{month:02d}"


def due_date_for(year: int, month: int, due_day: int) -> date:
    return date(year, month, due_day)


def month_bounds(year: int, month: int, tz_name: Optional[str] = None) -> Tuple[datetime, datetime]:
    """
    Half-open [start, end) bounds of a club-local calendar month, as naive UTC.
    """
    validate_month(year, month)
    start_local = datetime(year, month, 1)
    if month == 12:
        end_local = datetime(year + 1, 1, 1)
    else:
        end_local = datetime(year, month + 1, 1)
    return to_utc(start_local, tz_name), to_utc(end_local, tz_name)


def format_local(utc_dt: Optional[datetime], fmt: str = '%d/%m/%Y %H:%M', tz_name: Optional[str] = None) -> str:
    if utc_dt is None:
        return '-'
    return to_local(utc_dt, tz_name).strftime(fmt)
