"""Date manipulation utilities"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Tuple, Union

THURSDAY = 3  # date.weekday()
FINANCIAL_YEAR_START_MONTH = 4  # India: April 1 - March 31


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how timestamps are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Aware datetimes are converted to UTC; naive ones are assumed to be UTC already"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def month_bucket(on: Union[date, datetime]) -> str:
    """Two-digit year + two-digit month, e.g. 2026-02-15 -> "2602" """
    return f"{on.year % 100:02d}{on.month:02d}"


def financial_year_start_year(on: Union[date, datetime]) -> int:
    return on.year if on.month >= FINANCIAL_YEAR_START_MONTH else on.year - 1


def financial_year_label(on: Union[date, datetime]) -> str:
    """Indian financial year label: 2025-05-01 -> "2025-26", 2026-03-31 -> "2025-26" """
    start = financial_year_start_year(on)
    return f"{start}-{(start + 1) % 100:02d}"


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max)


def weekly_cycle_bounds(now: datetime) -> Tuple[datetime, datetime]:
    """
    Billing cycle containing the most recent Thursday (today if Thursday).

    Cycles run Friday 00:00:00 through Thursday 23:59:59.999999.
    """
    days_back = (now.weekday() - THURSDAY) % 7
    cycle_end_day = now.date() - timedelta(days=days_back)
    cycle_start_day = cycle_end_day - timedelta(days=6)
    return start_of_day(cycle_start_day), end_of_day(cycle_end_day)
