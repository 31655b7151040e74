"""
Bank Statement Import Schemas

Pydantic schemas for:
- Parse results (headers + rows) of uploaded statement files
- Column mapping chosen by the user
- Canonical transactions produced by normalization
- Match rules and match suggestions for imported transactions
"""
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from lidgeld.models.fee import PaymentMethod
from lidgeld.models.transaction import (
    BankFileType,
    BankPreset,
    MatchStatus,
    TransactionStatus,
    TransactionType,
)


ImportedRow = Dict[str, str]


class ParseResult(BaseModel):
    """Outcome of decoding one uploaded file. Failures carry a user-facing message."""
    success: bool
    headers: List[str] = Field(default_factory=list)
    rows: List[ImportedRow] = Field(default_factory=list)
    error: Optional[str] = None
    file_type: Optional[BankFileType] = None
    account_iban: Optional[str] = Field(None, description="Account the statement belongs to (MT940/CODA)")

    @classmethod
    def failure(cls, error: str, file_type: Optional[BankFileType] = None) -> "ParseResult":
        return cls(success=False, error=error, file_type=file_type)


class ImportMapping(BaseModel):
    """Which source column feeds which transaction field."""
    date_column: str = Field(..., min_length=1, description="Column holding the booking date")
    amount_column: str = Field(..., min_length=1, description="Column holding the amount")
    description_column: Optional[str] = Field(None, description="Column holding the description")
    category_column: Optional[str] = Field(None, description="Column holding the category")
    type_column: Optional[str] = Field(
        None,
        description="Column holding a debit/credit flag (D/C, Debet/Credit); defaults to 'type'",
    )
    counterparty_column: Optional[str] = Field(None, description="Column holding the counterparty name")
    iban_column: Optional[str] = Field(None, description="Column holding the counterparty IBAN")
    reference_column: Optional[str] = Field(None, description="Column holding the payment reference")


class CanonicalTransaction(BaseModel):
    """Transaction in the shape the finance module stores."""
    date: str = Field(..., description="Booking date as YYYY-MM-DD (raw text when unreadable)")
    type: TransactionType
    category: str
    amount: float = Field(..., ge=0)
    method: PaymentMethod
    description: str = ""
    counterparty: Optional[str] = None
    iban: Optional[str] = None
    reference: Optional[str] = None


class NormalizedRow(BaseModel):
    """A normalized transaction plus the coercions applied to get there."""
    transaction: CanonicalTransaction
    warnings: List[str] = Field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.warnings


# ============ API request/response ============

class ImportParseRequest(BaseModel):
    """Uploaded file content, already read as text by the client."""
    filename: str = Field(..., min_length=1)
    content: str
    file_type: Optional[BankFileType] = Field(None, description="Declared format; detected when omitted")
    bank: Optional[BankPreset] = Field(None, description="Bank whose CSV column layout should be used")


class ImportParseResponse(BaseModel):
    result: ParseResult
    suggested_mapping: Optional[ImportMapping] = None
    preview_rows: List[ImportedRow] = Field(default_factory=list)


class ImportNormalizeRequest(BaseModel):
    file_type: BankFileType
    rows: List[ImportedRow]
    mapping: ImportMapping


class ImportNormalizeResponse(BaseModel):
    rows: List[NormalizedRow]
    total: int
    flagged: int = Field(..., description="Rows with at least one coercion warning")


# ============ Matching ============

class MatchRule(BaseModel):
    """
    User-defined matching rule.

    All given criteria must hold. Rules with a higher priority are tried
    first; the first rule that holds is applied.
    """
    name: str = Field(..., min_length=1)
    priority: int = 100
    active: bool = True
    contains: List[str] = Field(default_factory=list, description="Any of these words in the description")
    iban: Optional[str] = Field(None, description="Part of the counterparty IBAN")
    target_amount: Optional[Decimal] = Field(None, ge=0)
    amount_tolerance: Decimal = Field(Decimal("0"), ge=0)
    category_id: Optional[str] = None
    vendor_id: Optional[str] = None
    fee_id: Optional[str] = None
    member_id: Optional[str] = None


class MatchTransaction(CanonicalTransaction):
    """Canonical transaction with the identity and state the matcher needs."""
    id: Optional[str] = Field(None, description="Assigned from the position when omitted")
    status: TransactionStatus = TransactionStatus.ONTVANGEN


class MatchResult(BaseModel):
    """Suggested match for one transaction."""
    transaction_id: str
    matched_fee_id: Optional[str] = None
    matched_member_id: Optional[str] = None
    category_id: Optional[str] = None
    vendor_id: Optional[str] = None
    match_score: int = Field(..., ge=0, le=100)
    status: MatchStatus
    reasons: List[str] = Field(default_factory=list)


class MatchRequest(BaseModel):
    """Imported transactions to match against the open fees."""
    transactions: List[MatchTransaction]
    existing: List[MatchTransaction] = Field(
        default_factory=list,
        description="Transactions imported earlier, used for duplicate detection",
    )
    rules: List[MatchRule] = Field(default_factory=list)


class MatchResponse(BaseModel):
    results: List[MatchResult]
    total: int
    suggested: int
    partial: int
