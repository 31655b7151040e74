"""
Fee period value types.

A fee period is a closed calendar-date interval: both ``start`` and ``end``
are covered by the fee.
"""
from dataclasses import dataclass
from datetime import date
from enum import Enum


class PaymentTerm(str, Enum):
    """Billing term of a membership fee."""
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


@dataclass(frozen=True)
class Period:
    """Inclusive date interval covered by one membership fee."""
    start: date
    end: date

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(
                f"Period end {self.end.isoformat()} lies before start {self.start.isoformat()}"
            )

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def days(self) -> int:
        """Number of calendar days covered, both ends included."""
        return (self.end - self.start).days + 1
