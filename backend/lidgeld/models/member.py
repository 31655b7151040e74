from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from lidgeld.models.fee import PaymentMethod
from lidgeld.models.period import PaymentTerm


class MemberCategory(str, Enum):
    """Membership category."""
    STUDENT = "STUDENT"
    STANDAARD = "STANDAARD"
    SENIOR = "SENIOR"


@dataclass
class Member:
    """
    Member record with the financial settings the fee generator needs.

    ``billing_anchor`` is the start date of the member's first fee period;
    later periods follow on from it without gaps.
    """
    id: str
    member_number: str
    first_name: str
    last_name: str
    category: MemberCategory = MemberCategory.STANDAARD
    active: bool = True
    iban: Optional[str] = None
    has_mandate: bool = False
    mandate_id: Optional[str] = None
    mandate_signed_on: Optional[date] = None
    preferred_term: PaymentTerm = PaymentTerm.YEARLY
    preferred_method: PaymentMethod = PaymentMethod.OVERSCHRIJVING
    monthly_amount: Decimal = Decimal("0")
    yearly_amount: Decimal = Decimal("0")
    billing_anchor: Optional[date] = None

    def __post_init__(self):
        if self.iban:
            self.iban = self.iban.replace(" ", "").upper()

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def fee_amount(self) -> Decimal:
        """Amount due per period for the member's preferred term."""
        if self.preferred_term == PaymentTerm.YEARLY:
            return self.yearly_amount
        return self.monthly_amount
