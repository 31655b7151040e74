"""
Statement file detection and upload checks.
"""
from typing import List, Optional

from lidgeld.core.config import settings
from lidgeld.models.transaction import BankFileType
from lidgeld.services.bank.parsers import FORMATS


def detect_file_type(content: str, filename: Optional[str] = None) -> BankFileType:
    """
    Guess the statement format.

    The file extension decides when it is a known one; otherwise the content
    is checked for a CODA header record, MT940 tags, or CSV separators.
    """
    if filename:
        for statement_format in FORMATS:
            if statement_format.matches_extension(filename):
                return statement_format.file_type

    for statement_format in FORMATS:
        if statement_format.can_parse((content or "").strip()):
            return statement_format.file_type

    return BankFileType.UNKNOWN


def validate_file(
    filename: str,
    content: str,
    file_type: Optional[BankFileType] = None,
    size: Optional[int] = None,
) -> List[str]:
    """
    Check an upload before parsing.

    Returns a list of Dutch error messages; an empty list means the file
    may be parsed.
    """
    errors: List[str] = []
    content = content or ""

    if not filename or not filename.strip():
        errors.append("Bestandsnaam is verplicht")

    if size is None:
        size = len(content.encode("utf-8"))
    if size > settings.MAX_UPLOAD_SIZE:
        max_mb = settings.MAX_UPLOAD_SIZE // (1024 * 1024)
        errors.append(f"Bestand is te groot (maximaal {max_mb} MB)")

    if not content.strip():
        errors.append("Bestand is leeg")
        return errors

    if file_type is None:
        file_type = detect_file_type(content, filename)

    if file_type == BankFileType.UNKNOWN:
        errors.append("Onbekend bestandsformaat: gebruik CSV, MT940 of CODA")
    elif file_type == BankFileType.CSV:
        lines = [line for line in content.splitlines() if line.strip()]
        if len(lines) < 2:
            errors.append("CSV bestand moet minimaal 2 lijnen bevatten")

    return errors
