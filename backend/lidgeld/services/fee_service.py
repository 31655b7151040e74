"""
Fee Service

Creates and maintains membership fees:
- Derives the period end from start date and term
- Reports overlapping periods of the same member as warnings
- Updates amount / method / status and records payments

An overlapping period never blocks creation: the administrator decides.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from lidgeld.core.exceptions import FeeNotFoundError, MemberNotFoundError
from lidgeld.models.fee import Fee, FeeStatus, PaymentMethod
from lidgeld.models.member import Member
from lidgeld.models.period import Period
from lidgeld.repositories import FeeRepository, MemberRepository, new_fee_id
from lidgeld.schemas.fee import CreateFeeRequest, OverlapCheckRequest, UpdateFeeRequest
from lidgeld.services.logging import structured_logger
from lidgeld.services.overlap import find_overlapping_fees
from lidgeld.services.period import calculate_end_date, format_date_be


@dataclass
class FeeDraft:
    """What creating a fee would produce, before anything is stored."""
    member: Member
    period: Period
    overlapping: List[Fee] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def overlapping_fee_ids(self) -> List[str]:
        return [fee.id for fee in self.overlapping]


def overlap_warning(fee: Fee) -> str:
    return (
        f"Periode overlapt met bestaand lidgeld "
        f"{format_date_be(fee.period_start)} - {format_date_be(fee.period_end)}"
    )


class FeeService:
    """Service for creating, updating and paying membership fees."""

    def __init__(self, fee_repository: FeeRepository, member_repository: MemberRepository):
        self.fees = fee_repository
        self.members = member_repository

    def get_member(self, member_id: str) -> Member:
        member = self.members.get(member_id)
        if not member:
            raise MemberNotFoundError(f"Member {member_id} not found")
        return member

    def get_fee(self, fee_id: str) -> Fee:
        fee = self.fees.get(fee_id)
        if not fee:
            raise FeeNotFoundError(f"Fee {fee_id} not found")
        return fee

    def list_fees(
        self,
        member_id: Optional[str] = None,
        status: Optional[FeeStatus] = None,
    ) -> List[Fee]:
        return self.fees.list(member_id=member_id, status=status)

    def find_overlaps(self, request: OverlapCheckRequest) -> List[Fee]:
        """Existing fees of the member whose period shares a day with the candidate."""
        self.get_member(request.member_id)
        return find_overlapping_fees(
            request.period_start,
            request.period_end,
            self.fees.list_for_member(request.member_id),
            exclude_fee_id=request.exclude_fee_id,
        )

    def draft(self, request: CreateFeeRequest) -> FeeDraft:
        """Resolve member and period, and collect overlap warnings."""
        member = self.get_member(request.member_id)
        end = request.period_end or calculate_end_date(request.period_start, request.term)
        period = Period(start=request.period_start, end=end)

        overlapping = find_overlapping_fees(
            period.start,
            period.end,
            self.fees.list_for_member(member.id),
        )
        return FeeDraft(
            member=member,
            period=period,
            overlapping=overlapping,
            warnings=[overlap_warning(fee) for fee in overlapping],
        )

    def create(self, request: CreateFeeRequest) -> Tuple[Fee, List[str]]:
        """
        Create an OPEN fee.

        Returns:
            Tuple of (fee, warnings)
        """
        draft = self.draft(request)
        member = draft.member

        fee = Fee(
            id=new_fee_id(),
            member_id=member.id,
            member_number=member.member_number,
            member_name=member.full_name,
            amount=request.amount,
            term=request.term,
            method=request.method,
            period=draft.period,
            status=FeeStatus.OPEN,
            iban=request.iban or member.iban,
            has_mandate=member.has_mandate,
            mandate_id=member.mandate_id,
            mandate_signed_on=member.mandate_signed_on,
            note=request.note,
        )
        self.fees.add(fee)

        if draft.overlapping:
            structured_logger.fee_overlap_detected(
                member.id, draft.period.start, draft.period.end, draft.overlapping_fee_ids
            )
        structured_logger.fee_created(
            fee.id, member.id, fee.period_start, fee.period_end, fee.amount, fee.term.value
        )
        return fee, draft.warnings

    def update(self, fee_id: str, request: UpdateFeeRequest) -> Fee:
        """Apply the fields set in the request; the period stays as it is."""
        fee = self.get_fee(fee_id)
        changes = {
            key: value
            for key, value in request.model_dump(exclude_unset=True).items()
            if value is not None or key == "note"
        }

        method = changes.get("method", fee.method)
        iban = changes.get("iban", fee.iban)
        if method == PaymentMethod.SEPA and not iban:
            raise ValueError("IBAN is verplicht voor SEPA-domiciliëring.")

        for key, value in changes.items():
            setattr(fee, key, value)

        if changes.get("status") == FeeStatus.PAID and fee.paid_at is None:
            fee.paid_at = datetime.now(timezone.utc)
        elif "status" in changes and changes["status"] != FeeStatus.PAID:
            fee.paid_at = None

        return self.fees.save(fee)

    def mark_paid(self, fee_id: str, paid_at: Optional[datetime] = None) -> Fee:
        fee = self.get_fee(fee_id)
        fee.status = FeeStatus.PAID
        fee.paid_at = paid_at or datetime.now(timezone.utc)
        self.fees.save(fee)
        structured_logger.fee_paid(fee.id, fee.member_id, fee.paid_at)
        return fee
