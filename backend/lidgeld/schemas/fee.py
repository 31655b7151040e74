"""
Membership Fee Schemas

Pydantic schemas for:
- Period calculation
- Fee creation / update / payment
- Overlap checks
- Fee generation runs
- SEPA batches
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from lidgeld.models.fee import FeeStatus, PaymentMethod
from lidgeld.models.period import PaymentTerm
from lidgeld.services.money import is_valid_iban, normalize_iban

GenerationStrategy = Literal["current", "catchup"]


def _clean_iban(v: Optional[str]) -> Optional[str]:
    if v:
        v = normalize_iban(v)
        if not v:
            return None
        if not is_valid_iban(v):
            raise ValueError("Ongeldig IBAN")
    return v if v else None


# ============ Period Schemas ============

class PeriodRequest(BaseModel):
    """Start date and term of a fee period."""
    start: date
    term: PaymentTerm


class PeriodResponse(BaseModel):
    """Calculated fee period."""
    term: PaymentTerm
    start: date
    end: date
    days: int
    start_display: str = Field(..., description="Start date as DD/MM/YYYY")
    end_display: str = Field(..., description="End date as DD/MM/YYYY")


# ============ Fee Schemas ============

class CreateFeeRequest(BaseModel):
    """Request to create a fee for one member."""
    member_id: str = Field(..., min_length=1)
    term: PaymentTerm
    method: PaymentMethod
    amount: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    period_start: date
    period_end: Optional[date] = Field(None, description="Derived from start and term when omitted")
    iban: Optional[str] = Field(None, max_length=34)
    note: Optional[str] = Field(None, max_length=2000)

    @field_validator('iban')
    @classmethod
    def validate_iban(cls, v: Optional[str]) -> Optional[str]:
        """Normalize and checksum-validate IBAN if provided."""
        return _clean_iban(v)

    @field_validator('note')
    @classmethod
    def trim_note(cls, v: Optional[str]) -> Optional[str]:
        if v:
            v = v.strip()
        return v if v else None

    @model_validator(mode="after")
    def validate_dates(self):
        if self.period_end and self.period_end < self.period_start:
            raise ValueError("Einddatum mag niet voor de startdatum liggen.")
        return self

    @model_validator(mode="after")
    def validate_sepa_requirements(self):
        if self.method == PaymentMethod.SEPA and not self.iban:
            raise ValueError("IBAN is verplicht voor SEPA-domiciliëring.")
        return self


class UpdateFeeRequest(BaseModel):
    """Changes to an existing fee. The period cannot be changed."""
    amount: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    method: Optional[PaymentMethod] = None
    status: Optional[FeeStatus] = None
    iban: Optional[str] = Field(None, max_length=34)
    note: Optional[str] = Field(None, max_length=2000)

    @field_validator('iban')
    @classmethod
    def validate_iban(cls, v: Optional[str]) -> Optional[str]:
        return _clean_iban(v)


class MarkPaidRequest(BaseModel):
    paid_at: Optional[datetime] = Field(None, description="Defaults to now")


class FeeResponse(BaseModel):
    """Fee details."""
    id: str
    member_id: str
    member_number: Optional[str] = None
    member_name: Optional[str] = None
    amount: Decimal
    term: PaymentTerm
    method: PaymentMethod
    status: FeeStatus
    period_start: date
    period_end: date
    iban: Optional[str] = None
    has_mandate: bool = False
    mandate_id: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime
    paid_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FeeCreatedResponse(BaseModel):
    """Created fee plus non-blocking warnings (e.g. overlapping periods)."""
    fee: FeeResponse
    warnings: List[str] = Field(default_factory=list)


class FeeListResponse(BaseModel):
    fees: List[FeeResponse]
    total_count: int


# ============ Overlap Schemas ============

class OverlapCheckRequest(BaseModel):
    """Candidate period for a member."""
    member_id: str = Field(..., min_length=1)
    period_start: date
    period_end: date
    exclude_fee_id: Optional[str] = Field(None, description="Fee being edited, ignored in the check")

    @model_validator(mode="after")
    def validate_dates(self):
        if self.period_end < self.period_start:
            raise ValueError("Einddatum mag niet voor de startdatum liggen.")
        return self


class OverlapCheckResponse(BaseModel):
    overlaps: bool
    conflicts: List[FeeResponse] = Field(default_factory=list)


# ============ Generation Schemas ============

class GenerateFeesRequest(BaseModel):
    """Run the fee generator for all active members."""
    as_of: Optional[date] = Field(None, description="Reference date; defaults to today in Brussels")
    strategy: GenerationStrategy = Field(
        "current",
        description="current: only the period containing as_of; catchup: all missing periods up to as_of",
    )


class GenerationReportResponse(BaseModel):
    generated: List[FeeResponse]
    skipped_members: List[str] = Field(default_factory=list)
    errors: Dict[str, str] = Field(default_factory=dict, description="Error per member id")


# ============ SEPA Schemas ============

class SepaBatchRequest(BaseModel):
    """Build a direct-debit batch from open SEPA fees."""
    fee_ids: Optional[List[str]] = Field(None, description="Restrict to these fees; all open SEPA fees when omitted")
    collection_date: Optional[date] = None


class SepaBatchResponse(BaseModel):
    batch_ref: str
    count: int
    total: Decimal
    warnings: List[str] = Field(default_factory=list)
    xml: str
