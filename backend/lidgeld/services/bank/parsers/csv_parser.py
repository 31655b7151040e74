"""
CSV Parser - Generic bank exports

Belgian banks export CSV with ';' as separator (the comma is the decimal
separator), international exports use ','. The separator is taken from the
header line; the column meaning is decided later by the user's mapping.
"""
import csv
import io
from typing import List, Optional, Tuple

from lidgeld.models.fee import PaymentMethod
from lidgeld.models.transaction import BankFileType
from lidgeld.schemas.imports import ImportedRow, ParseResult

from .base_parser import BankStatementFormat, StatementFormatError


def detect_delimiter(header_line: str) -> str:
    """';' when the header has more semicolons than commas, else ','."""
    return ";" if header_line.count(";") > header_line.count(",") else ","


class CSVFormat(BankStatementFormat):
    """Parser for delimited text exports with a header row."""

    file_type = BankFileType.CSV
    default_method = PaymentMethod.OVERSCHRIJVING
    extensions = (".csv",)
    format_name = "CSV"
    failure_message = "Fout bij het parseren van CSV bestand"

    def can_parse(self, content: str, filename: Optional[str] = None) -> bool:
        if self.matches_extension(filename):
            return True
        first_line = next((line for line in (content or "").splitlines() if line.strip()), "")
        if not first_line or first_line.startswith(":"):
            return False
        return ";" in first_line or "," in first_line

    def _decode(self, content: str) -> Tuple[List[str], List[ImportedRow], Optional[str]]:
        content = content.lstrip("\ufeff")
        lines = [line for line in content.splitlines() if line.strip()]
        if len(lines) < 2:
            raise StatementFormatError("CSV moet minimaal een header en één rij bevatten")

        delimiter = detect_delimiter(lines[0])
        reader = csv.reader(io.StringIO(content), delimiter=delimiter)

        headers: Optional[List[str]] = None
        rows: List[ImportedRow] = []
        try:
            for cells in reader:
                if not any(cell.strip() for cell in cells):
                    continue
                if headers is None:
                    headers = [cell.strip() for cell in cells]
                    duplicates = sorted({h for h in headers if headers.count(h) > 1})
                    if duplicates:
                        raise StatementFormatError(
                            f"Dubbele kolomnamen in CSV header: {', '.join(repr(h) for h in duplicates)}"
                        )
                    continue
                if len(cells) != len(headers):
                    raise StatementFormatError(
                        f"Lijn {reader.line_num} heeft {len(cells)} kolommen, "
                        f"verwacht {len(headers)}"
                    )
                rows.append({
                    header: cell.strip()
                    for header, cell in zip(headers, cells)
                })
        except csv.Error as e:
            raise StatementFormatError(f"{self.failure_message}: {e}") from e

        if not headers or not rows:
            raise StatementFormatError("CSV moet minimaal een header en één rij bevatten")

        return headers, rows, None


def parse_csv(content: str) -> ParseResult:
    """Parse CSV content into headers and rows; never raises."""
    return CSVFormat().parse(content)
