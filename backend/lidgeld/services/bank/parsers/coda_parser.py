"""
CODA Parser - Belgian Coded Statement of Account

Parses CODA files (Febelfin standard, version 2) as delivered by Belgian
banks. Every record is a fixed-width line of 128 characters; the first
character(s) identify the record:

- 0   Header
- 1   Old balance (account number)
- 21  Movement
- 22  Movement continued (communication, customer reference, BIC)
- 23  Movement continued (counterparty account and name)
- 31/32/33  Information records
- 4   Free communication
- 8   New balance
- 9   Trailer

Positions in the comments below are 1-based, as in the Febelfin documentation.
"""
import re
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from lidgeld.models.transaction import BankFileType
from lidgeld.schemas.imports import ImportedRow, ParseResult

from .base_parser import (
    STATEMENT_HEADERS,
    BankStatementFormat,
    StatementFormatError,
    StatementLine,
    account_to_iban,
    two_digit_year,
)

RECORD_LENGTH = 128

_HEADER = re.compile(r"^0\d{8}")
_AMOUNT = re.compile(r"[0-9]{15}")
_DATE = re.compile(r"[0-9]{6}")
_WHITESPACE = re.compile(r"\s+")


def _field(line: str, start: int, end: int) -> str:
    """Characters at 1-based positions start..end (inclusive)."""
    return line[start - 1:end]


def format_structured_communication(digits: str) -> str:
    """Belgian structured communication (OGM): +++123/4567/89012+++"""
    return f"+++{digits[:3]}/{digits[3:7]}/{digits[7:12]}+++"


class CODAFormat(BankStatementFormat):
    """Parser for Belgian CODA bank statements."""

    file_type = BankFileType.CODA
    extensions = (".cod", ".coda")
    format_name = "CODA"
    failure_message = "Fout bij het parseren van CODA bestand"

    def can_parse(self, content: str, filename: Optional[str] = None) -> bool:
        if self.matches_extension(filename):
            return True
        return bool(_HEADER.match((content or "").lstrip()))

    def _decode(self, content: str) -> Tuple[List[str], List[ImportedRow], Optional[str]]:
        records = [
            line.rstrip("\r\n").ljust(RECORD_LENGTH)
            for line in content.splitlines()
            if line.strip()
        ]
        if not records or not records[0].startswith("0"):
            raise StatementFormatError("Geen geldig CODA bestand: header record ontbreekt")

        account_iban = None
        movements: List[Dict] = []
        current: Optional[Dict] = None

        for record in records:
            record_type = record[0]

            if record_type == "1":
                account_iban = account_iban or self._parse_old_balance(record)
                continue

            if record_type != "2":
                continue

            article = record[1]
            if article == "1":
                current = self._parse_movement(record)
                # Globalisation details repeat the total of a detail number 0000 movement
                if current["detail"] != "0000":
                    current = None
                else:
                    movements.append(current)
            elif article == "2" and current:
                self._parse_movement_continued(record, current)
            elif article == "3" and current:
                self._parse_counterparty(record, current)

        if not movements:
            raise StatementFormatError("Geen transacties gevonden in het CODA bestand")

        rows = [self._create_transaction(movement).to_row() for movement in movements]
        return list(STATEMENT_HEADERS), rows, account_iban

    def _parse_old_balance(self, record: str) -> Optional[str]:
        """Account number, pos 6-42. Structure 2 (Belgian IBAN) and 3 (foreign IBAN) hold an IBAN."""
        if _field(record, 2, 2) not in ("2", "3"):
            return None
        return account_to_iban(_field(record, 6, 42))

    def _parse_movement(self, record: str) -> Dict:
        """Record 21."""
        amount_digits = _field(record, 33, 47)
        if not _AMOUNT.fullmatch(amount_digits):
            raise StatementFormatError(f"Ongeldig bedrag in CODA bestand: {amount_digits.strip()}")

        value_date = self._parse_coda_date(_field(record, 48, 53))
        entry_date = self._parse_coda_date(_field(record, 116, 121)) or value_date
        if entry_date is None:
            raise StatementFormatError("Ongeldige datum in CODA bestand")

        movement = {
            "sequence": _field(record, 3, 6),
            "detail": _field(record, 7, 10),
            "bank_reference": _field(record, 11, 31).strip(),
            "is_debit": _field(record, 32, 32) == "1",
            # 15 digits, the last three are decimals
            "amount": Decimal(amount_digits) / Decimal(1000),
            "value_date": value_date or entry_date,
            "booking_date": entry_date,
            "transaction_code": _field(record, 54, 61),
            "structured": None,
            "communication": [],
            "customer_reference": None,
            "counterparty_name": None,
            "counterparty_iban": None,
        }

        communication = _field(record, 63, 115)
        if _field(record, 62, 62) == "1" and communication[:3] == "101":
            movement["structured"] = format_structured_communication(communication[3:15])
        else:
            movement["communication"].append(communication)
        return movement

    def _parse_movement_continued(self, record: str, movement: Dict) -> None:
        """Record 22."""
        if movement["structured"] is None:
            movement["communication"].append(_field(record, 11, 63))
        customer_reference = _field(record, 64, 98).strip()
        if customer_reference:
            movement["customer_reference"] = customer_reference

    def _parse_counterparty(self, record: str, movement: Dict) -> None:
        """Record 23."""
        movement["counterparty_iban"] = account_to_iban(_field(record, 11, 47))
        movement["counterparty_name"] = _field(record, 48, 82).strip() or None
        if movement["structured"] is None:
            movement["communication"].append(_field(record, 83, 125))

    def _parse_coda_date(self, ddmmyy: str) -> Optional[date]:
        """DDMMYY; all zeros means no date."""
        if not _DATE.fullmatch(ddmmyy) or ddmmyy == "000000":
            return None
        return date(two_digit_year(int(ddmmyy[4:6])), int(ddmmyy[2:4]), int(ddmmyy[0:2]))

    def _create_transaction(self, movement: Dict) -> StatementLine:
        if movement["structured"]:
            description = movement["structured"]
            reference = movement["structured"]
        else:
            # Communication is cut at fixed positions, words may span two records
            description = _WHITESPACE.sub(" ", "".join(movement["communication"])).strip()
            reference = movement["customer_reference"] or movement["bank_reference"] or None

        return StatementLine(
            booking_date=movement["booking_date"],
            value_date=movement["value_date"],
            amount=movement["amount"],
            is_debit=movement["is_debit"],
            description=description,
            counterparty_name=movement["counterparty_name"],
            counterparty_iban=movement["counterparty_iban"],
            reference=reference,
        )


def parse_coda(content: str) -> ParseResult:
    """Parse CODA content into headers and rows; never raises."""
    return CODAFormat().parse(content)
