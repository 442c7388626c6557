"""Calendar helpers for streaks and daily activity, evaluated in the learner timezone"""
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def today_in(timezone_name: str, now: Optional[datetime] = None) -> date:
    """
    Current calendar date in the given timezone.

    Args:
        timezone_name: IANA timezone name, e.g. 'Europe/Istanbul'
        now: Reference instant (defaults to the current UTC time). Naive values
             are taken as UTC.

    Returns:
        The local date at `now`
    """
    if now is None:
        now = utc_now()
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(timezone_name)).date()


def is_yesterday(day: Optional[date], today: date) -> bool:
    """True when `day` is exactly one calendar day before `today`."""
    if day is None:
        return False
    return today - day == timedelta(days=1)


def days_since(day: Optional[date], today: date) -> Optional[int]:
    if day is None:
        return None
    return (today - day).days


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Drop tzinfo after converting to UTC so stored and fresh timestamps compare."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
