"""
Fee Generator

Creates the open fees of all active members for the periods that are due.
Periods follow on from each member's billing anchor without gaps:

- current: only the period containing the reference date
- catchup: every period from the anchor up to the reference date

Periods already covered by a fee of the member are never generated again.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Union

from lidgeld.models.fee import Fee, FeeStatus, PaymentMethod
from lidgeld.models.member import Member
from lidgeld.models.period import PaymentTerm, Period
from lidgeld.repositories import FeeRepository, MemberRepository, new_fee_id
from lidgeld.schemas.fee import GenerationStrategy
from lidgeld.services.logging import structured_logger
from lidgeld.services.overlap import overlaps
from lidgeld.services.period import current_period, next_period, period_for, today_be

logger = logging.getLogger(__name__)


@dataclass
class GenerationReport:
    """Outcome of a generation run."""
    generated: List[Fee] = field(default_factory=list)
    skipped_members: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)


def periods_to_generate(
    anchor: date,
    as_of: date,
    term: Union[PaymentTerm, str],
    existing_fees: Iterable[Fee],
    strategy: GenerationStrategy = "current",
) -> List[Period]:
    """
    Periods of the anchor-based sequence that still need a fee.

    Nothing is due before the anchor. A period is skipped when a fee
    already starts on the same day or when its days overlap an existing fee.
    """
    if anchor > as_of:
        return []

    existing = list(existing_fees)
    existing_starts = {fee.period_start for fee in existing}

    if strategy == "current":
        candidates = [current_period(anchor, as_of, term)]
    elif strategy == "catchup":
        candidates = []
        period = period_for(anchor, term)
        while period.start <= as_of:
            candidates.append(period)
            period = next_period(period, term)
    else:
        raise ValueError(f"Unknown generation strategy: {strategy}")

    return [
        period for period in candidates
        if period.start not in existing_starts
        and not any(overlaps(period.start, period.end, fee.period_start, fee.period_end) for fee in existing)
    ]


class FeeGenerator:
    """Generates open fees for members based on their financial settings."""

    def __init__(self, fee_repository: FeeRepository, member_repository: MemberRepository):
        self.fees = fee_repository
        self.members = member_repository

    def _method_for(self, member: Member) -> PaymentMethod:
        if member.preferred_method == PaymentMethod.SEPA and not (member.has_mandate and member.iban):
            # No usable mandate: the member pays by transfer until one is signed
            return PaymentMethod.OVERSCHRIJVING
        return member.preferred_method

    def generate_for_member(
        self,
        member: Member,
        as_of: date,
        strategy: GenerationStrategy = "current",
    ) -> List[Fee]:
        """Create the missing fees of one member. Members without anchor or amount get none."""
        amount: Decimal = member.fee_amount
        if member.billing_anchor is None or amount <= 0:
            return []

        periods = periods_to_generate(
            member.billing_anchor,
            as_of,
            member.preferred_term,
            self.fees.list_for_member(member.id),
            strategy,
        )

        created = []
        for period in periods:
            fee = Fee(
                id=new_fee_id(),
                member_id=member.id,
                member_number=member.member_number,
                member_name=member.full_name,
                amount=amount,
                term=member.preferred_term,
                method=self._method_for(member),
                period=period,
                status=FeeStatus.OPEN,
                iban=member.iban,
                has_mandate=member.has_mandate,
                mandate_id=member.mandate_id,
                mandate_signed_on=member.mandate_signed_on,
            )
            created.append(self.fees.add(fee))
        return created

    def generate_all(
        self,
        as_of: Optional[date] = None,
        strategy: GenerationStrategy = "current",
    ) -> GenerationReport:
        """
        Generate fees for every active member.

        A failure for one member is recorded in the report and generation
        continues with the next member.
        """
        as_of = as_of or today_be()
        report = GenerationReport()

        for member in self.members.list_active():
            if member.billing_anchor is None or member.fee_amount <= 0:
                logger.info("Skipping member %s: no billing anchor or zero amount", member.id)
                report.skipped_members.append(member.id)
                continue

            try:
                report.generated.extend(self.generate_for_member(member, as_of, strategy))
            except Exception as e:
                logger.exception("Fee generation failed for member %s", member.id)
                report.errors[member.id] = str(e)
                structured_logger.fee_generation_failed(member.id, str(e))

        structured_logger.fees_generated(
            strategy,
            as_of,
            generated=len(report.generated),
            skipped_members=len(report.skipped_members),
            errors=len(report.errors),
        )
        return report
