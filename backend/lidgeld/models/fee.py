from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from lidgeld.models.period import PaymentTerm, Period


class PaymentMethod(str, Enum):
    """How a fee or transaction is paid."""
    SEPA = "SEPA"                      # SEPA direct debit (domiciliëring)
    OVERSCHRIJVING = "OVERSCHRIJVING"  # Bank transfer
    BANCONTACT = "BANCONTACT"
    CASH = "CASH"


class FeeStatus(str, Enum):
    """Payment status of a membership fee."""
    OPEN = "OPEN"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


@dataclass
class Fee:
    """
    One membership fee (lidgeld) covering a single period for one member.

    The period is fixed once the fee exists; amount, method, status and note
    may change.
    """
    id: str
    member_id: str
    amount: Decimal
    term: PaymentTerm
    method: PaymentMethod
    period: Period
    status: FeeStatus = FeeStatus.OPEN
    member_number: Optional[str] = None
    member_name: Optional[str] = None
    iban: Optional[str] = None
    has_mandate: bool = False
    mandate_id: Optional[str] = None
    mandate_signed_on: Optional[date] = None
    note: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    paid_at: Optional[datetime] = None

    def __post_init__(self):
        if self.iban:
            # Normalize IBAN: remove spaces, uppercase
            self.iban = self.iban.replace(" ", "").upper()

    @property
    def period_start(self) -> date:
        return self.period.start

    @property
    def period_end(self) -> date:
        return self.period.end
