"""
Money Input Parser

Belgian amounts use a comma as decimal separator and a period for thousands
grouping (1.234,56). Input handling is split in two steps so a form can
redisplay what the user is typing while keeping a clean numeric value:

- euro_input_mask: keystroke-level cleanup of the text shown in the field
- parse_euro_input: the numeric value behind that text

Neither step raises: unusable text parses to 0.
"""
import math
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

_NOT_DIGIT_OR_COMMA = re.compile(r"[^\d,]")
_NOT_ALNUM = re.compile(r"[^A-Za-z0-9]")
_IBAN_SHAPE = re.compile(r"^[A-Z]{2}\d{2}[A-Z0-9]{11,30}$")

# IBAN lengths for the countries members typically bank in
IBAN_LENGTHS = {
    "AT": 20, "BE": 16, "CH": 21, "DE": 22, "DK": 18, "ES": 24,
    "FI": 18, "FR": 27, "GB": 22, "IE": 22, "IT": 27, "LU": 20,
    "MA": 28, "NL": 18, "NO": 15, "PL": 28, "PT": 25, "SE": 24,
    "TN": 24, "TR": 26,
}


def euro_input_mask(raw: str) -> str:
    """
    Clean typed amount text for redisplay.

    Keeps digits and the first comma, drops everything else and cuts the
    decimals to two digits. Applying the mask twice changes nothing.
    """
    cleaned = _NOT_DIGIT_OR_COMMA.sub("", raw or "")
    if "," not in cleaned:
        return cleaned
    whole, _, fraction = cleaned.partition(",")
    fraction = fraction.replace(",", "")[:2]
    return f"{whole},{fraction}"


def parse_euro_input(masked: str) -> float:
    """
    Convert (masked) amount text into a euro amount.

    Thousands separators and currency symbols are ignored:
    "1.234,56" -> 1234.56, "€ 25,50" -> 25.5. Empty or unusable text -> 0.0.
    """
    if not masked:
        return 0.0

    cleaned = _NOT_DIGIT_OR_COMMA.sub("", masked)
    standardized = cleaned.replace(",", ".", 1)
    try:
        value = float(standardized)
    except ValueError:
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return value


def format_currency_be(amount: Union[float, int, Decimal]) -> str:
    """
    Format an amount in euro using Belgian (nl-BE) conventions.

    Example: 1234.5 -> "€ 1.234,50"
    """
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    # Format with US-style thousand separators first, then swap , and .
    formatted = f"{abs(value):,.2f}"
    belgian = formatted.replace(",", "\x00").replace(".", ",").replace("\x00", ".")
    return f"€ {sign}{belgian}"


# ============ IBAN ============

def normalize_iban(raw: str) -> str:
    """Remove spaces and punctuation, uppercase."""
    return _NOT_ALNUM.sub("", raw or "").upper()


def format_iban(raw: str) -> str:
    """Input mask for IBAN fields: groups of four characters (BE68 5390 0754 7034)."""
    cleaned = normalize_iban(raw)
    return " ".join(cleaned[i:i + 4] for i in range(0, len(cleaned), 4))


def is_valid_iban(raw: str) -> bool:
    """ISO 13616 check: shape, known country length and mod-97 checksum."""
    iban = normalize_iban(raw)
    if not _IBAN_SHAPE.match(iban):
        return False

    expected_length = IBAN_LENGTHS.get(iban[:2])
    if expected_length is not None and len(iban) != expected_length:
        return False

    rearranged = iban[4:] + iban[:4]
    numeric = "".join(str(int(char, 36)) for char in rearranged)
    return int(numeric) % 97 == 1
