from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context

from .errors import ValidationError

DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MONTH_KEY_RE = re.compile(r"^\d{4}-\d{2}$")

DEFAULT_BUSINESS_TIMEZONE = "Asia/Kolkata"


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
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

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

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


# =============================================================================
# BUSINESS CALENDAR
# =============================================================================
#
# sale_date and the hourly breakdown are business-local (BUSINESS_TIMEZONE),
# while occurred_at is stored UTC-naive. sale_date is derived exactly once,
# when the transaction is created.

def business_tz(tz_name: str | None = None) -> ZoneInfo:
    if tz_name is None:
        if has_app_context():
            tz_name = current_app.config.get("BUSINESS_TIMEZONE", DEFAULT_BUSINESS_TIMEZONE)
        else:
            tz_name = DEFAULT_BUSINESS_TIMEZONE
    return ZoneInfo(tz_name)


def to_business_time(dt: datetime, tz_name: str | None = None) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(business_tz(tz_name))


def business_date(dt: datetime, tz_name: str | None = None) -> str:
    """Calendar day (YYYY-MM-DD) of a UTC instant in the business timezone."""
    return to_business_time(dt, tz_name).strftime("%Y-%m-%d")


def business_hour(dt: datetime, tz_name: str | None = None) -> int:
    """Hour 0-23 of a UTC instant in the business timezone."""
    return to_business_time(dt, tz_name).hour


def hour_key(hour: int) -> str:
    return f"{hour:02d}"


def business_today(tz_name: str | None = None) -> str:
    return business_date(utcnow(), tz_name)


def current_business_month(tz_name: str | None = None) -> str:
    return business_today(tz_name)[:7]


def parse_date_key(value, field: str = "date") -> str:
    """Validate a YYYY-MM-DD key and return it unchanged."""
    if not isinstance(value, str) or not DATE_KEY_RE.match(value):
        raise ValidationError(f"{field} must be a YYYY-MM-DD date")
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field} is not a valid calendar date")
    return value


def parse_month_key(value, field: str = "month") -> str:
    """Validate a YYYY-MM key and return it unchanged."""
    if not isinstance(value, str) or not MONTH_KEY_RE.match(value):
        raise ValidationError(f"{field} must be a YYYY-MM month")
    month_num = int(value[5:7])
    if month_num < 1 or month_num > 12:
        raise ValidationError(f"{field} has an invalid month number")
    return value


def month_bounds(month: str) -> tuple[str, str]:
    """First and last day (inclusive) of a YYYY-MM month as date keys."""
    year, month_num = int(month[:4]), int(month[5:7])
    last_day = calendar.monthrange(year, month_num)[1]
    return f"{month}-01", f"{month}-{last_day:02d}"


def previous_month(month: str) -> str:
    first = date(int(month[:4]), int(month[5:7]), 1)
    prev = first - timedelta(days=1)
    return prev.strftime("%Y-%m")

