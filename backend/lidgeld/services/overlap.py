"""
Overlap Detector

Two fee periods overlap when they share at least one calendar day. Periods
are closed intervals, so a period ending on the 31st overlaps one starting
on the 31st.
"""
from datetime import date, datetime
from typing import Iterable, List, Optional, Union

from lidgeld.models.fee import Fee
from lidgeld.services.period import from_iso

DateInput = Union[date, datetime, str]


def _to_date(value: DateInput) -> Optional[date]:
    """Normalize a date, datetime or ISO string; None when unusable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return from_iso(value)
        except ValueError:
            return None
    return None


def overlaps(
    start1: DateInput,
    end1: DateInput,
    start2: DateInput,
    end2: DateInput,
) -> bool:
    """
    Check whether [start1, end1] and [start2, end2] share a day.

    Any date that cannot be read makes the comparison False.
    """
    s1, e1, s2, e2 = (_to_date(v) for v in (start1, end1, start2, end2))
    if s1 is None or e1 is None or s2 is None or e2 is None:
        return False
    return s1 <= e2 and s2 <= e1


def find_overlapping_fees(
    start: DateInput,
    end: DateInput,
    fees: Iterable[Fee],
    exclude_fee_id: Optional[str] = None,
) -> List[Fee]:
    """
    Return the fees whose period overlaps the candidate period.

    ``fees`` should be the existing fees of a single member.
    """
    return [
        fee for fee in fees
        if fee.id != exclude_fee_id
        and overlaps(start, end, fee.period_start, fee.period_end)
    ]
