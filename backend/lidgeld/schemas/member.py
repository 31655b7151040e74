"""
Member Schemas

Pydantic schemas for registering members and reading their fee settings.
"""
from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from lidgeld.models.fee import PaymentMethod
from lidgeld.models.member import MemberCategory
from lidgeld.models.period import PaymentTerm
from lidgeld.schemas.fee import _clean_iban


class CreateMemberRequest(BaseModel):
    """Request to register a member with the settings used for fee generation."""
    member_number: str = Field(..., min_length=1, max_length=50)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    category: MemberCategory = MemberCategory.STANDAARD
    active: bool = True
    iban: Optional[str] = Field(None, max_length=34)
    has_mandate: bool = False
    mandate_id: Optional[str] = Field(None, max_length=35)
    mandate_signed_on: Optional[date] = None
    preferred_term: PaymentTerm = PaymentTerm.YEARLY
    preferred_method: PaymentMethod = PaymentMethod.OVERSCHRIJVING
    monthly_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    yearly_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    billing_anchor: Optional[date] = Field(None, description="Start of the first fee period")

    @field_validator('member_number', 'first_name', 'last_name')
    @classmethod
    def trim_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Mag niet leeg zijn.")
        return v

    @field_validator('iban')
    @classmethod
    def validate_iban(cls, v: Optional[str]) -> Optional[str]:
        return _clean_iban(v)

    @model_validator(mode="after")
    def validate_mandate(self):
        if self.has_mandate and not self.mandate_id:
            raise ValueError("Mandaatreferentie is verplicht bij een mandaat.")
        if self.preferred_method == PaymentMethod.SEPA and not self.iban:
            raise ValueError("IBAN is verplicht voor SEPA-domiciliëring.")
        return self


class MemberResponse(BaseModel):
    """Member details."""
    id: str
    member_number: str
    first_name: str
    last_name: str
    full_name: str
    category: MemberCategory
    active: bool
    iban: Optional[str] = None
    has_mandate: bool
    mandate_id: Optional[str] = None
    mandate_signed_on: Optional[date] = None
    preferred_term: PaymentTerm
    preferred_method: PaymentMethod
    monthly_amount: Decimal
    yearly_amount: Decimal
    billing_anchor: Optional[date] = None

    class Config:
        from_attributes = True


class MemberListResponse(BaseModel):
    members: List[MemberResponse]
    total_count: int
