"""Timestamp helpers shared by the filters, the API client and the store."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

# Month arithmetic everywhere uses a fixed 30-day month.
DAYS_PER_MONTH = 30
MONTH = timedelta(days=DAYS_PER_MONTH)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime, date, None]) -> Optional[datetime]:
    """Coerce API/DB timestamps into timezone-aware UTC datetimes.

    Accepts RFC3339 strings ("2024-05-01T12:00:00Z"), date-only strings,
    naive datetimes (assumed UTC) and dates. Returns None for empty or
    unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        cleaned = str(value).strip()
        if re.fullmatch(r"\d{4}-\d{2}-\d{2}", cleaned):
            cleaned = f"{cleaned}T00:00:00+00:00"
        if cleaned.endswith("Z"):
            cleaned = cleaned[:-1] + "+00:00"
        # Python < 3.11 rejects fractional seconds that aren't 3 or 6 digits
        cleaned = re.sub(r"\.(\d{1,6})\d*", lambda m: "." + m.group(1).ljust(6, "0"), cleaned)
        try:
            dt = datetime.fromisoformat(cleaned)
        except ValueError:
            return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_rfc3339(dt: datetime) -> str:
    """Format datetimes as RFC3339 strings for the YouTube API."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt.replace(microsecond=0).isoformat().replace("+00:00", "Z")


def months_ago(now: datetime, months: float) -> datetime:
    return now - MONTH * months


def date_key(dt: datetime) -> str:
    """Calendar day (UTC) used in snapshot keys: YYYY-MM-DD."""
    return parse_timestamp(dt).date().isoformat()


def day_of_year(when: Union[datetime, date, None] = None) -> int:
    when = when or utcnow()
    return when.timetuple().tm_yday
