"""Bank statement parsers."""
from typing import List

from lidgeld.models.transaction import BankFileType
from lidgeld.schemas.imports import ParseResult

from .base_parser import STATEMENT_HEADERS, BankStatementFormat, StatementFormatError, StatementLine
from .coda_parser import CODAFormat, parse_coda
from .csv_parser import CSVFormat, parse_csv
from .mt940_parser import MT940Format, parse_mt940

# Most specific first: CODA and MT940 content would also pass the CSV check
FORMATS: List[BankStatementFormat] = [CODAFormat(), MT940Format(), CSVFormat()]


def get_format(file_type: BankFileType) -> BankStatementFormat:
    for statement_format in FORMATS:
        if statement_format.file_type == file_type:
            return statement_format
    raise ValueError(f"Onondersteund bestandstype: {getattr(file_type, 'value', file_type)}")


def parse_statement(content: str, file_type: BankFileType) -> ParseResult:
    """Parse content with the parser for ``file_type``; unknown types give a failed result."""
    try:
        statement_format = get_format(file_type)
    except ValueError as e:
        return ParseResult.failure(str(e), BankFileType.UNKNOWN)
    return statement_format.parse(content)


__all__ = [
    "STATEMENT_HEADERS",
    "BankStatementFormat",
    "StatementFormatError",
    "StatementLine",
    "CODAFormat",
    "CSVFormat",
    "MT940Format",
    "FORMATS",
    "get_format",
    "parse_coda",
    "parse_csv",
    "parse_mt940",
    "parse_statement",
]
