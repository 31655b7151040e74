"""
Base Parser Interface for Bank Statement Files

Every supported format (CSV, MT940, CODA) decodes raw text into the same
``(headers, rows)`` shape so the column mapping and normalization steps do
not need to know where a row came from.
"""
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from lidgeld.models.fee import PaymentMethod
from lidgeld.models.transaction import BankFileType
from lidgeld.schemas.imports import ImportedRow, ParseResult
from lidgeld.services.money import IBAN_LENGTHS

logger = logging.getLogger(__name__)

_IBAN_PREFIX = re.compile(r"[A-Z]{2}\d{2}[A-Z0-9]{11,30}")

# Columns exposed by the bank-native formats (MT940, CODA)
STATEMENT_HEADERS = [
    "datum",
    "valutadatum",
    "bedrag",
    "type",
    "omschrijving",
    "tegenpartij",
    "iban",
    "referentie",
]


class StatementFormatError(ValueError):
    """Raised inside a parser when the file does not follow its format."""
    pass


@dataclass
class StatementLine:
    """
    One booked movement decoded from a bank-native statement.

    ``amount`` is unsigned; the direction is carried by ``is_debit`` the way
    the bank formats themselves report it.
    """
    booking_date: date
    amount: Decimal
    is_debit: bool
    description: str = ""
    value_date: Optional[date] = None
    counterparty_name: Optional[str] = None
    counterparty_iban: Optional[str] = None
    reference: Optional[str] = None

    def __post_init__(self):
        if self.counterparty_iban:
            # Normalize IBAN: remove spaces, uppercase
            self.counterparty_iban = self.counterparty_iban.replace(" ", "").upper()

    def to_row(self) -> ImportedRow:
        return {
            "datum": self.booking_date.isoformat(),
            "valutadatum": (self.value_date or self.booking_date).isoformat(),
            "bedrag": f"{self.amount:.2f}".replace(".", ","),
            "type": "D" if self.is_debit else "C",
            "omschrijving": self.description,
            "tegenpartij": self.counterparty_name or "",
            "iban": self.counterparty_iban or "",
            "referentie": self.reference or "",
        }


def two_digit_year(yy: int) -> int:
    """Y2K pivot: 00-49 -> 2000-2049, 50-99 -> 1950-1999."""
    return 2000 + yy if yy < 50 else 1900 + yy


def account_to_iban(text: str) -> Optional[str]:
    """
    Pull an IBAN out of an account field.

    Bank formats pad the field or append the currency code
    (BE68539007547034EUR); both are cut off using the country length.
    """
    for part in re.split(r"[/\s]", (text or "").strip()):
        candidate = _IBAN_PREFIX.match(part.upper())
        if candidate:
            iban = candidate.group(0)
            expected_length = IBAN_LENGTHS.get(iban[:2])
            if expected_length and len(iban) > expected_length:
                iban = iban[:expected_length]
            return iban
    return None


class BankStatementFormat(ABC):
    """
    Abstract base class for bank statement formats.

    Subclasses implement ``_decode``; ``parse`` wraps it so that callers
    always get a ParseResult and never an exception.
    """

    file_type: BankFileType
    default_method: PaymentMethod = PaymentMethod.SEPA
    extensions: Tuple[str, ...] = ()
    format_name: str = ""
    failure_message: str = "Fout bij het parseren van het bestand"

    def matches_extension(self, filename: Optional[str]) -> bool:
        return bool(filename) and filename.lower().endswith(self.extensions)

    @abstractmethod
    def can_parse(self, content: str, filename: Optional[str] = None) -> bool:
        """Check whether the content looks like this format."""
        pass

    @abstractmethod
    def _decode(self, content: str) -> Tuple[List[str], List[ImportedRow], Optional[str]]:
        """
        Decode file content.

        Returns:
            Tuple of (headers, rows, account_iban)

        Raises:
            StatementFormatError: With a user-facing message when the file is invalid
        """
        pass

    def parse(self, content: str) -> ParseResult:
        try:
            headers, rows, account_iban = self._decode(content or "")
        except StatementFormatError as e:
            logger.info("%s file rejected: %s", self.format_name, e)
            return ParseResult.failure(str(e), self.file_type)
        except (ValueError, IndexError, ArithmeticError) as e:
            logger.warning("%s file could not be decoded: %s", self.format_name, e)
            return ParseResult.failure(self.failure_message, self.file_type)

        return ParseResult(
            success=True,
            headers=headers,
            rows=rows,
            file_type=self.file_type,
            account_iban=account_iban,
        )
