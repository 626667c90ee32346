"""
Date and time helpers for ClinicFlow.

Timestamps are persisted as naive UTC datetimes (what BSON round-trips).
Calendar days and appointment wall-clock times are expressed in the clinic's
local time zone.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def clinic_tz(tz_name: Optional[str] = None) -> ZoneInfo:
    """Resolve the clinic time zone (settings default when not given)."""
    if tz_name is None:
        from ..config import get_settings

        tz_name = get_settings().clinic.timezone
    return ZoneInfo(tz_name)


def to_clinic_local(moment: datetime, tz_name: Optional[str] = None) -> datetime:
    """Convert a timestamp to naive clinic-local wall-clock time.

    Naive input is treated as UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(clinic_tz(tz_name)).replace(tzinfo=None)


def clinic_now(tz_name: Optional[str] = None) -> datetime:
    """Current clinic-local wall-clock time (naive)."""
    return to_clinic_local(datetime.now(timezone.utc), tz_name)


def clinic_date_of(moment: datetime, tz_name: Optional[str] = None) -> date:
    """Clinic calendar day that a UTC timestamp falls on."""
    return to_clinic_local(moment, tz_name).date()


def clinic_today(tz_name: Optional[str] = None) -> date:
    return clinic_now(tz_name).date()


def clinic_day_bounds_utc(day: date, tz_name: Optional[str] = None) -> Tuple[datetime, datetime]:
    """Naive UTC [start, end) bounds of a clinic calendar day."""
    tz = clinic_tz(tz_name)
    start_local = datetime.combine(day, time.min, tzinfo=tz)
    end_local = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return (
        start_local.astimezone(timezone.utc).replace(tzinfo=None),
        end_local.astimezone(timezone.utc).replace(tzinfo=None),
    )


def parse_hhmm(value: str) -> time:
    """Parse an ``HH:MM`` 24h string."""
    try:
        parsed = datetime.strptime(value, "%H:%M")
    except (TypeError, ValueError):
        raise ValueError(f"Time must be in HH:MM format, got {value!r}")
    return parsed.time()


def format_day(day: date) -> str:
    return day.strftime("%Y-%m-%d")


def parse_day(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string."""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValueError(f"Date must be in YYYY-MM-DD format, got {value!r}")
