"""
Period Engine

Derives the coverage end date of a membership fee from its start date and
billing term, and provides calendar-date conversion helpers:
- MONTHLY: the fee covers the rest of the calendar month of its start
- YEARLY: the fee covers one year, ending the day before the anniversary
- ISO (YYYY-MM-DD) round trip and Belgian (DD/MM/YYYY) display

Dates are calendar dates, never instants: time-of-day and timezone
information is dropped on the way in.
"""
import calendar
import re
from datetime import date, datetime, timedelta
from typing import List, Union
from zoneinfo import ZoneInfo

from lidgeld.core.config import settings
from lidgeld.models.period import PaymentTerm, Period

DateLike = Union[date, datetime, str]

_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


def end_of_monthly_period(start: date) -> date:
    """Return the last calendar day of the month containing ``start``."""
    last_day = calendar.monthrange(start.year, start.month)[1]
    return date(start.year, start.month, last_day)


def end_of_yearly_period(start: date) -> date:
    """
    Return the day before the first anniversary of ``start``.

    A Feb 29 start has no anniversary in a non-leap year; the anniversary
    rolls over to Mar 1, so the period ends on Feb 28.
    """
    try:
        anniversary = start.replace(year=start.year + 1)
    except ValueError:
        anniversary = date(start.year + 1, 3, 1)
    return anniversary - timedelta(days=1)


def calculate_end_date(start: date, term: Union[PaymentTerm, str]) -> date:
    """
    Calculate the end date of a fee period.

    Raises:
        ValueError: If ``term`` is not a known payment term
    """
    term = PaymentTerm(term)
    if isinstance(start, datetime):
        start = start.date()
    if term == PaymentTerm.MONTHLY:
        return end_of_monthly_period(start)
    return end_of_yearly_period(start)


def to_iso(value: Union[date, datetime]) -> str:
    """Render a calendar date as YYYY-MM-DD (time and timezone are dropped)."""
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def from_iso(value: str) -> date:
    """
    Parse a YYYY-MM-DD string into a date.

    Full ISO datetime strings (e.g. ``2024-01-31T23:59:59.999Z``) are accepted
    and reduced to their date part.

    Raises:
        ValueError: If the text is not an ISO date
    """
    text = value.strip()
    if not _ISO_DATE.match(text):
        raise ValueError(f"Invalid ISO date: {value!r}")
    if len(text) == 10:
        return date.fromisoformat(text)
    if text[10] != "T":
        raise ValueError(f"Invalid ISO date: {value!r}")
    return datetime.fromisoformat(text.replace("Z", "+00:00")).date()


def _as_date(value: DateLike) -> date:
    if isinstance(value, str):
        return from_iso(value)
    if isinstance(value, datetime):
        return value.date()
    return value


def format_date_be(value: DateLike) -> str:
    """Format a date the Belgian way (DD/MM/YYYY)."""
    return _as_date(value).strftime("%d/%m/%Y")


def today_be() -> date:
    """Today's calendar date in the configured timezone (Europe/Brussels)."""
    return datetime.now(ZoneInfo(settings.TIMEZONE)).date()


# ============ Rolling periods ============

def period_for(start: date, term: Union[PaymentTerm, str]) -> Period:
    """Build the fee period starting on ``start``."""
    return Period(start=start, end=calculate_end_date(start, term))


def next_period(period: Period, term: Union[PaymentTerm, str]) -> Period:
    """The period that starts the day after ``period`` ends."""
    return period_for(period.end + timedelta(days=1), term)


def generate_periods(start: date, term: Union[PaymentTerm, str], count: int) -> List[Period]:
    """
    Generate ``count`` contiguous periods starting on ``start``.

    Consecutive periods never share a day, so they never overlap.
    """
    periods: List[Period] = []
    if count <= 0:
        return periods

    current = period_for(start, term)
    periods.append(current)
    while len(periods) < count:
        current = next_period(current, term)
        periods.append(current)
    return periods


def current_period(anchor: date, as_of: date, term: Union[PaymentTerm, str]) -> Period:
    """
    Find the period of the anchor-based sequence that contains ``as_of``.

    If the anchor lies in the future the first period is returned.
    """
    period = period_for(anchor, term)
    while period.end < as_of:
        period = next_period(period, term)
    return period
