from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional


class TransactionType(str, Enum):
    """Direction of a financial transaction."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class BankFileType(str, Enum):
    """Supported bank statement file formats."""
    CSV = "CSV"
    MT940 = "MT940"
    CODA = "CODA"
    UNKNOWN = "UNKNOWN"


class BankPreset(str, Enum):
    """Banks with a known CSV export layout."""
    KBC = "KBC"
    ING = "ING"
    BNP_PARIBAS_FORTIS = "BNP_PARIBAS_FORTIS"


class TransactionStatus(str, Enum):
    """Processing state of an imported bank transaction."""
    ONTVANGEN = "ONTVANGEN"  # Imported, not yet processed
    GEMATCHT = "GEMATCHT"    # Linked to a fee or category
    GEBOEKT = "GEBOEKT"      # Booked


class MatchStatus(str, Enum):
    """Outcome of automatic matching, by score."""
    VOORGESTELD = "VOORGESTELD"                      # score >= 70
    GEDEELTELIJK_GEMATCHT = "GEDEELTELIJK_GEMATCHT"  # score >= 40
    ONTVANGEN = "ONTVANGEN"                          # no usable match


@dataclass
class BankTransaction:
    """
    An imported bank movement as seen by the matcher.

    ``amount`` is unsigned; ``type`` gives the direction. ``booking_date`` is
    None when the statement date could not be read.
    """
    id: str
    amount: Decimal
    type: TransactionType
    booking_date: Optional[date] = None
    description: str = ""
    counterparty: Optional[str] = None
    iban: Optional[str] = None
    reference: Optional[str] = None
    status: TransactionStatus = TransactionStatus.ONTVANGEN

    def __post_init__(self):
        if self.iban:
            # Normalize IBAN: remove spaces, uppercase
            self.iban = self.iban.replace(" ", "").upper()

    @property
    def is_credit(self) -> bool:
        return self.type == TransactionType.INCOME
