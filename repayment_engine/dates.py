"""
Calendar helpers shared by every schedule and overdue calculation.
"""

from datetime import date, datetime, timezone
from typing import Optional, Union
import calendar


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, clamping the day to the end of shorter months"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_iso_date(value: Union[str, date, None]) -> Optional[date]:
    """
    Parse an ISO-8601 date. Datetime strings are truncated to their date part.

    Raises:
        ValueError: If the value is not a valid ISO date
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Expected an ISO date string, got {type(value).__name__}")
    return date.fromisoformat(value.strip()[:10])


def parse_iso_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are assumed to be UTC"""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value
