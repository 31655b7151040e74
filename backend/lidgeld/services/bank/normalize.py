"""
Statement Row Normalization

Turns mapped statement rows (from any format) into canonical transactions.

Values that cannot be read are never fatal: they are replaced by a default
and the row carries a warning, so the preview can show what was guessed.
Rows are never dropped.
"""
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Dict, Generic, Iterable, List, Optional, TypeVar

from lidgeld.core.config import settings
from lidgeld.models.fee import PaymentMethod
from lidgeld.models.transaction import BankFileType, BankPreset, TransactionType
from lidgeld.schemas.imports import (
    CanonicalTransaction,
    ImportedRow,
    ImportMapping,
    NormalizedRow,
)
from lidgeld.services.money import normalize_iban

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DAY_FIRST_DATE = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4})$")
_EIGHT_DIGITS = re.compile(r"^\d{8}$")
_THOUSANDS_GROUPED = re.compile(r"^\d{1,3}(?:[.,]\d{3})+$")
_AMOUNT_NOISE = re.compile(r"EUR|[^\d.,]")

DEBIT_MARKERS = {"D", "DEBET", "DEBIT", "DBIT"}
DEFAULT_TYPE_COLUMN = "type"

METHOD_BY_FILE_TYPE = {
    BankFileType.CSV: PaymentMethod.OVERSCHRIJVING,
    BankFileType.MT940: PaymentMethod.SEPA,
    BankFileType.CODA: PaymentMethod.SEPA,
}


@dataclass(frozen=True)
class CoercedValue(Generic[T]):
    """A value read from user data, with a note when it had to be guessed."""
    value: T
    defaulted: bool = False
    reason: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "CoercedValue[T]":
        return cls(value=value)

    @classmethod
    def guessed(cls, value: T, reason: str) -> "CoercedValue[T]":
        return cls(value=value, defaulted=True, reason=reason)


def _valid_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


# ============ Field coercion ============

def normalize_date(text: str) -> CoercedValue[str]:
    """
    Bring a statement date to YYYY-MM-DD.

    Supported: YYYY-MM-DD, DD/MM/YYYY (also with - or .), and 8-digit
    YYYYMMDD / DDMMYYYY. An 8-digit value that is a valid date both ways
    is read as YYYYMMDD when it starts with "20" and flagged as ambiguous.
    Unreadable text is passed through unchanged and flagged.
    """
    raw = (text or "").strip()

    if _ISO_DATE.match(raw) and _valid_date(int(raw[:4]), int(raw[5:7]), int(raw[8:10])):
        return CoercedValue.ok(raw)

    match = _DAY_FIRST_DATE.match(raw)
    if match:
        day, month, year = (int(part) for part in match.groups())
        parsed = _valid_date(year, month, day)
        if parsed:
            return CoercedValue.ok(parsed.isoformat())

    if _EIGHT_DIGITS.match(raw):
        year_first = _valid_date(int(raw[:4]), int(raw[4:6]), int(raw[6:8]))
        day_first = _valid_date(int(raw[4:8]), int(raw[2:4]), int(raw[:2]))
        if year_first and day_first:
            chosen = year_first if raw.startswith("20") else day_first
            return CoercedValue.guessed(
                chosen.isoformat(),
                f"Datum '{raw}' is dubbelzinnig, gelezen als {chosen.isoformat()}",
            )
        if year_first or day_first:
            return CoercedValue.ok((year_first or day_first).isoformat())

    return CoercedValue.guessed(raw, f"Datum '{raw}' niet herkend")


def normalize_amount(text: str) -> CoercedValue[float]:
    """
    Read an amount as an unsigned euro value.

    Currency symbols, signs and D/C markers are ignored (the direction is
    decided by is_debit). When both '.' and ',' appear the later one is the
    decimal separator; a separator followed only by groups of three digits
    is a thousands separator. Unreadable text gives 0.0, flagged.
    """
    raw = (text or "").strip()
    cleaned = _AMOUNT_NOISE.sub("", raw.upper())
    invalid = CoercedValue.guessed(0.0, f"Bedrag '{raw}' ongeldig, 0,00 gebruikt")

    if not any(char.isdigit() for char in cleaned):
        return invalid

    if "." in cleaned and "," in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            # European: 1.234,56
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            # US: 1,234.56
            cleaned = cleaned.replace(",", "")
    elif _THOUSANDS_GROUPED.match(cleaned):
        cleaned = cleaned.replace(".", "").replace(",", "")
    else:
        cleaned = cleaned.replace(",", ".")

    try:
        value = abs(float(cleaned))
    except ValueError:
        return invalid
    return CoercedValue.ok(value)


def is_debit(amount_text: str, row: ImportedRow, type_column: Optional[str] = None) -> bool:
    """
    Decide whether a row books money out.

    A '-' in the amount, an amount starting with 'D', or a debit marker
    (D, Debet, Debit, DBIT) in the type column all mean debit.
    """
    amount_text = (amount_text or "").strip()
    if "-" in amount_text or amount_text.upper().startswith("D"):
        return True
    marker = (row.get(type_column or DEFAULT_TYPE_COLUMN) or "").strip().upper()
    return marker in DEBIT_MARKERS


# ============ Rows ============

def _optional_cell(row: ImportedRow, column: Optional[str]) -> Optional[str]:
    if not column:
        return None
    return (row.get(column) or "").strip() or None


def normalize_row(
    row: ImportedRow,
    mapping: ImportMapping,
    file_type: BankFileType,
) -> NormalizedRow:
    warnings: List[str] = []

    for column in (mapping.date_column, mapping.amount_column):
        if column not in row:
            warnings.append(f"Kolom '{column}' ontbreekt in deze rij")

    amount_text = row.get(mapping.amount_column, "")
    booking_date = normalize_date(row.get(mapping.date_column, ""))
    amount = normalize_amount(amount_text)
    for coerced in (booking_date, amount):
        if coerced.defaulted:
            warnings.append(coerced.reason)

    description = ""
    if mapping.description_column:
        description = (row.get(mapping.description_column) or "").strip()

    category = settings.DEFAULT_IMPORT_CATEGORY
    if mapping.category_column:
        category = (row.get(mapping.category_column) or "").strip()
        if not category:
            category = settings.DEFAULT_IMPORT_CATEGORY
            warnings.append(f"Geen categorie, '{category}' gebruikt")

    iban = normalize_iban(_optional_cell(row, mapping.iban_column) or "")

    debit = is_debit(amount_text, row, mapping.type_column)
    transaction = CanonicalTransaction(
        date=booking_date.value,
        type=TransactionType.EXPENSE if debit else TransactionType.INCOME,
        category=category,
        amount=amount.value,
        method=METHOD_BY_FILE_TYPE.get(BankFileType(file_type), PaymentMethod.OVERSCHRIJVING),
        description=description,
        counterparty=_optional_cell(row, mapping.counterparty_column),
        iban=iban or None,
        reference=_optional_cell(row, mapping.reference_column),
    )
    return NormalizedRow(transaction=transaction, warnings=warnings)


def normalize_rows(
    rows: Iterable[ImportedRow],
    mapping: ImportMapping,
    file_type: BankFileType,
) -> List[NormalizedRow]:
    """Normalize every row; the result has exactly one entry per input row."""
    normalized = [normalize_row(row, mapping, file_type) for row in rows]
    flagged = sum(1 for row in normalized if row.warnings)
    if flagged:
        logger.info("Normalized %d rows, %d with coerced values", len(normalized), flagged)
    return normalized


# ============ Column mapping ============

COLUMN_ALIASES: Dict[str, List[str]] = {
    "date_column": ["datum", "date", "boekingsdatum", "booking_date", "transactiedatum", "uitvoeringsdatum"],
    "amount_column": ["bedrag", "amount", "montant", "bedrag_eur"],
    "description_column": ["omschrijving", "description", "mededeling", "communicatie", "beschrijving"],
    "category_column": ["categorie", "category"],
    "type_column": ["type", "af_bij", "af/bij", "debet/credit", "d/c", "credit_debet"],
    "counterparty_column": ["tegenpartij", "naam_tegenpartij", "naam_van_de_tegenpartij", "counterparty"],
    "iban_column": ["iban", "rekening_tegenpartij", "tegenrekening", "rekeningnummer_tegenpartij", "counterparty_iban"],
    "reference_column": ["referentie", "reference", "ref", "gestructureerde_mededeling"],
}

# Column positions (0-based) in the CSV exports of the major Belgian banks
BANK_PRESETS: Dict[BankPreset, Dict[str, int]] = {
    BankPreset.KBC: {
        "date_column": 2,
        "amount_column": 7,
        "description_column": 8,
        "counterparty_column": 4,
        "iban_column": 5,
        "reference_column": 9,
    },
    BankPreset.ING: {
        "date_column": 0,
        "amount_column": 6,
        "description_column": 8,
        "counterparty_column": 2,
        "iban_column": 3,
        "reference_column": 7,
    },
    BankPreset.BNP_PARIBAS_FORTIS: {
        "date_column": 1,
        "amount_column": 3,
        "description_column": 4,
        "counterparty_column": 5,
        "reference_column": 6,
    },
}


def _normalize_header(header: str) -> str:
    return header.strip().lower().replace(" ", "_").replace("-", "_")


def suggest_mapping(
    headers: Iterable[str],
    bank: Optional[BankPreset] = None,
) -> Optional[ImportMapping]:
    """
    Propose a column mapping from well-known Dutch and English header names.

    With a ``bank`` the columns of that bank's export layout are taken by
    position; header names fill in whatever the layout does not cover.
    Returns None when no date or amount column can be recognised.
    """
    headers = list(headers)
    normalized = {}
    for header in headers:
        if header:
            normalized.setdefault(_normalize_header(header), header)

    resolved: Dict[str, str] = {}
    if bank is not None:
        for field, position in BANK_PRESETS[BankPreset(bank)].items():
            if position < len(headers) and headers[position]:
                resolved[field] = headers[position]

    for field, options in COLUMN_ALIASES.items():
        if field in resolved:
            continue
        for option in options:
            header = normalized.get(option)
            if header and header not in resolved.values():
                resolved[field] = header
                break

    if not resolved.get("date_column") or not resolved.get("amount_column"):
        return None
    return ImportMapping(**resolved)
