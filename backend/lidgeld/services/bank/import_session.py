"""
Import Session

Drives one statement import through its steps:
- UPLOAD → MAPPING → PREVIEW → COMPLETE
- Back: MAPPING → UPLOAD, PREVIEW → MAPPING

A session belongs to a single user action and holds no shared state.
"""
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from lidgeld.core.config import settings
from lidgeld.core.exceptions import ImportSessionError
from lidgeld.models.transaction import BankFileType, BankPreset
from lidgeld.schemas.imports import (
    CanonicalTransaction,
    ImportedRow,
    ImportMapping,
    NormalizedRow,
    ParseResult,
)
from lidgeld.services.bank.detection import detect_file_type, validate_file
from lidgeld.services.bank.normalize import normalize_rows, suggest_mapping
from lidgeld.services.bank.parsers import parse_statement
from lidgeld.services.logging import structured_logger


class ImportStep(str, Enum):
    UPLOAD = "UPLOAD"
    MAPPING = "MAPPING"
    PREVIEW = "PREVIEW"
    COMPLETE = "COMPLETE"


# Allowed moves between steps
TRANSITIONS: Dict[ImportStep, Set[ImportStep]] = {
    ImportStep.UPLOAD: {ImportStep.MAPPING},
    ImportStep.MAPPING: {ImportStep.PREVIEW, ImportStep.UPLOAD},
    ImportStep.PREVIEW: {ImportStep.COMPLETE, ImportStep.MAPPING},
    ImportStep.COMPLETE: set(),
}

BACK = {
    ImportStep.MAPPING: ImportStep.UPLOAD,
    ImportStep.PREVIEW: ImportStep.MAPPING,
}

SubmitTransactions = Callable[[List[CanonicalTransaction]], object]


class ImportSession:
    """
    State machine for a single bank statement import.

    Key features:
    - Parse errors keep the session at UPLOAD with a displayable message
    - Mapping normalizes every row, not only the previewed ones
    - Confirmed transactions are handed to a submit callback
    """

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        """Start over from UPLOAD, dropping all file data."""
        self.step = ImportStep.UPLOAD
        self.filename: Optional[str] = None
        self.file_type: Optional[BankFileType] = None
        self.headers: List[str] = []
        self.rows: List[ImportedRow] = []
        self.error: Optional[str] = None
        self.suggested_mapping: Optional[ImportMapping] = None
        self.mapping: Optional[ImportMapping] = None
        self.normalized: List[NormalizedRow] = []

    def _move(self, target: ImportStep) -> None:
        if target not in TRANSITIONS[self.step]:
            raise ImportSessionError(
                f"Cannot move import from {self.step.value} to {target.value}"
            )
        self.step = target

    # ============ Steps ============

    def upload(
        self,
        filename: str,
        content: str,
        file_type: Optional[BankFileType] = None,
        bank: Optional[BankPreset] = None,
    ) -> ParseResult:
        """
        Parse an uploaded file.

        On success the session moves to MAPPING; on failure it stays at
        UPLOAD and ``error`` holds the message to show. ``bank`` selects a
        known CSV layout for the suggested mapping.
        """
        if self.step != ImportStep.UPLOAD:
            raise ImportSessionError(f"Cannot upload a file at step {self.step.value}")

        self.filename = filename
        self.file_type = BankFileType(file_type) if file_type else detect_file_type(content, filename)

        errors = validate_file(filename, content, self.file_type)
        if errors:
            result = ParseResult.failure("; ".join(errors), self.file_type)
        else:
            result = parse_statement(content, self.file_type)

        if not result.success:
            self.error = result.error
            structured_logger.import_failed(filename, self.file_type.value, result.error)
            return result

        self.error = None
        self.headers = result.headers
        self.rows = result.rows
        self.suggested_mapping = suggest_mapping(result.headers, bank)
        structured_logger.import_parsed(filename, self.file_type.value, len(result.rows))
        self._move(ImportStep.MAPPING)
        return result

    def apply_mapping(self, mapping: ImportMapping) -> List[NormalizedRow]:
        """Normalize all rows with the chosen mapping and move to PREVIEW."""
        if self.step != ImportStep.MAPPING:
            raise ImportSessionError(f"Cannot apply a mapping at step {self.step.value}")

        for column in (mapping.date_column, mapping.amount_column):
            if column not in self.headers:
                raise ImportSessionError(f"Kolom '{column}' bestaat niet in het bestand")

        self.mapping = mapping
        self.normalized = normalize_rows(self.rows, mapping, self.file_type)
        structured_logger.import_normalized(self.file_type.value, len(self.normalized), self.flagged_count)
        self._move(ImportStep.PREVIEW)
        return self.normalized

    def confirm(self, submit: Optional[SubmitTransactions] = None) -> List[CanonicalTransaction]:
        """Finish the import; the transactions are passed to ``submit`` when given."""
        if self.step != ImportStep.PREVIEW:
            raise ImportSessionError(f"Cannot confirm an import at step {self.step.value}")

        transactions = self.transactions
        if submit is not None:
            submit(transactions)
        self._move(ImportStep.COMPLETE)
        structured_logger.import_completed(self.filename, len(transactions))
        return transactions

    def back(self) -> ImportStep:
        """Go one step back (MAPPING → UPLOAD, PREVIEW → MAPPING)."""
        target = BACK.get(self.step)
        if target is None:
            raise ImportSessionError(f"Cannot go back from step {self.step.value}")
        self._move(target)
        if target == ImportStep.MAPPING:
            self.normalized = []
        return self.step

    # ============ Views ============

    @property
    def transactions(self) -> List[CanonicalTransaction]:
        return [row.transaction for row in self.normalized]

    @property
    def preview_rows(self) -> List[NormalizedRow]:
        """First normalized rows shown before confirming."""
        return self.normalized[:settings.IMPORT_PREVIEW_ROWS]

    @property
    def sample_rows(self) -> List[ImportedRow]:
        """First raw rows shown while choosing the mapping."""
        return self.rows[:settings.IMPORT_PREVIEW_ROWS]

    @property
    def flagged_count(self) -> int:
        return sum(1 for row in self.normalized if row.warnings)
