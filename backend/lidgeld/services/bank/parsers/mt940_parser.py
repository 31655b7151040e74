"""
MT940 Parser - SWIFT Bank Statement Format

Parses MT940 text files (Customer Statement Message), the export most
Belgian and Dutch banks offer next to CODA.

Format: Plain text with tags like :20:, :25:, :28C:, :60F:, :61:, :86:, :62F:
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

_TAG = re.compile(r"^:(?P<tag>\d{2}[A-Z]?):(?P<value>.*)$")

# :61: YYMMDD[MMDD](C|D|RC|RD)[funds code]amount(N|S|F)xxx customer-ref[//bank-ref]
_STATEMENT_LINE = re.compile(
    r"^(?P<value_date>\d{6})"
    r"(?P<entry_date>\d{4})?"
    r"(?P<mark>RC|RD|C|D)"
    r"(?P<funds_code>[A-Z])?"
    r"(?P<amount>\d[\d,]*)"
    r"(?P<type_code>[NSF][A-Z0-9]{3})"
    r"(?P<rest>.*)$"
)

_SUBFIELD = {
    "name": re.compile(r"/NAME/([^/]+)"),
    "iban": re.compile(r"/IBAN/([A-Z]{2}[0-9A-Z ]+)"),
    "remi": re.compile(r"/REMI/(?:USTD//)?([^/]+)"),
    "eref": re.compile(r"/EREF/([^/]+)"),
}


class MT940Format(BankStatementFormat):
    """
    Parser for MT940 SWIFT bank statements.

    Each statement contains:
    - :20: Transaction Reference Number
    - :25: Account Identification
    - :28C: Statement Number
    - :60F: / :60M: Opening Balance
    - :61: Statement Line (one per transaction)
    - :86: Information to Account Owner (may span several lines)
    - :62F: / :62M: Closing Balance
    """

    file_type = BankFileType.MT940
    extensions = (".sta", ".mt940", ".940")
    format_name = "MT940"
    failure_message = "Fout bij het parseren van MT940 bestand"

    def can_parse(self, content: str, filename: Optional[str] = None) -> bool:
        if self.matches_extension(filename):
            return True
        content = content or ""
        return ":20:" in content and ":25:" in content

    def _decode(self, content: str) -> Tuple[List[str], List[ImportedRow], Optional[str]]:
        if ":20:" not in content or ":61:" not in content:
            raise StatementFormatError("Geen geldig MT940 bestand: :20: of :61: tag ontbreekt")

        account_iban = self._extract_account_iban(content)
        lines = self._parse_transactions(content)
        if not lines:
            raise StatementFormatError("Geen transacties gevonden in het MT940 bestand")

        return list(STATEMENT_HEADERS), [line.to_row() for line in lines], account_iban

    def _extract_account_iban(self, content: str) -> Optional[str]:
        """Extract account IBAN from :25: tag."""
        match = re.search(r":25:([^\r\n]+)", content)
        if not match:
            return None
        # Format can be: :25:BE68539007547034 or :25:KREDBEBB/BE68539007547034EUR
        return account_to_iban(match.group(1))

    def _parse_transactions(self, content: str) -> List[StatementLine]:
        """Collect one StatementLine per :61: tag, with its :86: information."""
        transactions: List[StatementLine] = []
        current: Optional[Dict] = None
        info_lines: List[str] = []
        in_info = False

        for raw in content.splitlines():
            line = raw.strip()
            # SWIFT block envelopes {1:...}{4: and the closing -}
            if not line or line.startswith("{") or line == "-}" or line == "-":
                continue

            tag_match = _TAG.match(line)
            if not tag_match:
                if in_info:
                    info_lines.append(line)
                continue

            tag, value = tag_match.group("tag"), tag_match.group("value").strip()
            in_info = False

            if tag == "61":
                if current:
                    transactions.append(self._create_transaction(current, info_lines))
                current = self._parse_statement_line(value)
                info_lines = []
            elif tag == "86" and current:
                info_lines = [value] if value else []
                in_info = True
            elif tag.startswith("62") and current:
                transactions.append(self._create_transaction(current, info_lines))
                current = None
                info_lines = []

        # Statement without closing balance
        if current:
            transactions.append(self._create_transaction(current, info_lines))

        return transactions

    def _parse_statement_line(self, data: str) -> Dict:
        """
        Parse :61: statement line.

        Example: 2501150115D123,45NTRFNONREF//1234567890

        RC (reversal of credit) books money out, RD (reversal of debit)
        books money in.
        """
        match = _STATEMENT_LINE.match(data)
        if not match:
            raise StatementFormatError(f"Ongeldige :61: regel: {data}")

        value_date = self._parse_mt940_date(match.group("value_date"))
        booking_date = value_date
        if match.group("entry_date"):
            booking_date = self._entry_date(value_date, match.group("entry_date"))

        mark = match.group("mark")
        is_debit = mark in ("D", "RC")

        customer_ref, _, bank_ref = match.group("rest").partition("//")
        customer_ref = customer_ref.strip()
        reference = customer_ref if customer_ref and customer_ref != "NONREF" else bank_ref.strip()

        return {
            "booking_date": booking_date,
            "value_date": value_date,
            "amount": self._parse_amount(match.group("amount")),
            "is_debit": is_debit,
            "reference": reference or None,
        }

    def _parse_mt940_date(self, yymmdd: str) -> date:
        return date(two_digit_year(int(yymmdd[:2])), int(yymmdd[2:4]), int(yymmdd[4:6]))

    def _entry_date(self, value_date: date, mmdd: str) -> date:
        """Entry date carries no year; it may fall in the year before or after the value date."""
        month, day = int(mmdd[:2]), int(mmdd[2:4])
        year = value_date.year
        if value_date.month == 12 and month == 1:
            year += 1
        elif value_date.month == 1 and month == 12:
            year -= 1
        return date(year, month, day)

    def _parse_amount(self, text: str) -> Decimal:
        """MT940 amounts use a comma as decimal separator and no grouping."""
        if text.count(",") > 1:
            raise StatementFormatError(f"Ongeldig bedrag in MT940 bestand: {text}")
        whole, _, fraction = text.partition(",")
        return Decimal(f"{whole}.{fraction or '0'}")

    def _create_transaction(self, data: Dict, info_lines: List[str]) -> StatementLine:
        info = " ".join(info_lines)
        fields = {}
        for key, pattern in _SUBFIELD.items():
            match = pattern.search(info)
            if match:
                fields[key] = match.group(1).strip()

        if "remi" in fields:
            description = fields["remi"]
        else:
            description = re.sub(r"^/[A-Z]{3,4}/", "", info).strip()

        return StatementLine(
            booking_date=data["booking_date"],
            value_date=data["value_date"],
            amount=data["amount"],
            is_debit=data["is_debit"],
            description=description,
            counterparty_name=fields.get("name"),
            counterparty_iban=fields.get("iban"),
            reference=data["reference"] or fields.get("eref"),
        )


def parse_mt940(content: str) -> ParseResult:
    """Parse MT940 content into headers and rows; never raises."""
    return MT940Format().parse(content)
