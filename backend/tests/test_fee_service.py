"""
Tests for the fee service and fee schemas.

Covers fee creation (period derivation, overlap warnings, member details),
updates, payments and the validation rules of the request schemas.
"""
import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from pydantic import ValidationError

from lidgeld.core.exceptions import FeeNotFoundError, MemberNotFoundError
from lidgeld.models.fee import FeeStatus, PaymentMethod
from lidgeld.models.period import PaymentTerm
from lidgeld.repositories import InMemoryFeeRepository
from lidgeld.schemas.fee import CreateFeeRequest, OverlapCheckRequest, UpdateFeeRequest
from lidgeld.services.fee_service import FeeService

VALID_IBAN_BE = "BE68539007547034"
VALID_IBAN_NL = "NL91ABNA0417164300"


@pytest.fixture
def service(fee_repository, member_repository) -> FeeService:
    return FeeService(fee_repository, member_repository)


def monthly_request(start: date, **overrides) -> CreateFeeRequest:
    data = {
        "member_id": "member-1",
        "term": PaymentTerm.MONTHLY,
        "method": PaymentMethod.OVERSCHRIJVING,
        "amount": Decimal("10.00"),
        "period_start": start,
    }
    data.update(overrides)
    return CreateFeeRequest(**data)


class TestCreateFee:
    """Tests for creating fees."""

    def test_end_date_is_derived(self, service):
        fee, warnings = service.create(monthly_request(date(2025, 1, 15)))

        assert fee.period_start == date(2025, 1, 15)
        assert fee.period_end == date(2025, 1, 31)
        assert fee.status == FeeStatus.OPEN
        assert warnings == []

    def test_explicit_end_date_is_kept(self, service):
        fee, _ = service.create(monthly_request(date(2025, 1, 1), period_end=date(2025, 1, 10)))
        assert fee.period_end == date(2025, 1, 10)

    def test_member_details_are_copied(self, service):
        request = CreateFeeRequest(
            member_id="member-2",
            term=PaymentTerm.YEARLY,
            method=PaymentMethod.SEPA,
            amount=Decimal("60.00"),
            period_start=date(2025, 9, 15),
            iban=VALID_IBAN_BE,
        )

        fee, _ = service.create(request)

        assert fee.member_number == "M0002"
        assert fee.member_name == "Fatima El Amrani"
        assert fee.has_mandate is True
        assert fee.mandate_id == "MNDT-0002"
        assert fee.period_end == date(2026, 9, 14)

    def test_member_iban_used_when_request_has_none(self, service, member_repository):
        member_repository.get("member-1").iban = VALID_IBAN_NL

        fee, _ = service.create(monthly_request(date(2025, 1, 1)))

        assert fee.iban == VALID_IBAN_NL

    def test_overlap_is_a_warning(self, service, fee_repository):
        service.create(monthly_request(date(2025, 1, 1)))

        fee, warnings = service.create(monthly_request(date(2025, 1, 31)))

        assert warnings == ["Periode overlapt met bestaand lidgeld 01/01/2025 - 31/01/2025"]
        assert fee_repository.get(fee.id) is fee
        assert len(fee_repository.list_for_member("member-1")) == 2

    def test_adjacent_periods_have_no_warning(self, service):
        service.create(monthly_request(date(2025, 1, 1)))

        _, warnings = service.create(monthly_request(date(2025, 2, 1)))

        assert warnings == []

    def test_other_members_fees_do_not_overlap(self, service):
        service.create(monthly_request(date(2025, 1, 1)))

        _, warnings = service.create(monthly_request(
            date(2025, 1, 1),
            member_id="member-3",
        ))

        assert warnings == []

    def test_unknown_member(self, service):
        with pytest.raises(MemberNotFoundError):
            service.create(monthly_request(date(2025, 1, 1), member_id="nobody"))

    def test_draft_does_not_store(self, service, fee_repository):
        draft = service.draft(monthly_request(date(2025, 1, 1)))

        assert draft.period.end == date(2025, 1, 31)
        assert fee_repository.list() == []


class TestFindOverlaps:
    """Tests for the overlap check used by the fee form."""

    def test_lists_conflicts(self, service):
        existing, _ = service.create(monthly_request(date(2025, 1, 1)))

        conflicts = service.find_overlaps(OverlapCheckRequest(
            member_id="member-1",
            period_start=date(2025, 1, 20),
            period_end=date(2025, 2, 19),
        ))

        assert conflicts == [existing]

    def test_edited_fee_is_excluded(self, service):
        existing, _ = service.create(monthly_request(date(2025, 1, 1)))

        conflicts = service.find_overlaps(OverlapCheckRequest(
            member_id="member-1",
            period_start=date(2025, 1, 1),
            period_end=date(2025, 1, 31),
            exclude_fee_id=existing.id,
        ))

        assert conflicts == []


class TestUpdateAndPay:
    """Tests for updating fees and recording payments."""

    def test_update_amount_and_note(self, service):
        fee, _ = service.create(monthly_request(date(2025, 1, 1), note="Eerste maand"))

        updated = service.update(fee.id, UpdateFeeRequest(amount=Decimal("12.50"), note=None))

        assert updated.amount == Decimal("12.50")
        assert updated.note is None
        assert updated.period_end == date(2025, 1, 31)

    def test_status_paid_sets_paid_at(self, service):
        fee, _ = service.create(monthly_request(date(2025, 1, 1)))

        updated = service.update(fee.id, UpdateFeeRequest(status=FeeStatus.PAID))
        assert updated.paid_at is not None

        reopened = service.update(fee.id, UpdateFeeRequest(status=FeeStatus.OPEN))
        assert reopened.paid_at is None

    def test_switch_to_sepa_requires_iban(self, service):
        fee, _ = service.create(monthly_request(date(2025, 1, 1)))

        with pytest.raises(ValueError, match="IBAN is verplicht"):
            service.update(fee.id, UpdateFeeRequest(method=PaymentMethod.SEPA))
        assert service.get_fee(fee.id).method == PaymentMethod.OVERSCHRIJVING

    def test_mark_paid(self, service):
        fee, _ = service.create(monthly_request(date(2025, 1, 1)))
        paid_at = datetime(2025, 1, 20, 10, 0, tzinfo=timezone.utc)

        paid = service.mark_paid(fee.id, paid_at)

        assert paid.status == FeeStatus.PAID
        assert paid.paid_at == paid_at

    def test_unknown_fee(self, service):
        with pytest.raises(FeeNotFoundError):
            service.mark_paid("fee_missing")

    def test_list_filters(self, service):
        first, _ = service.create(monthly_request(date(2025, 1, 1)))
        service.create(monthly_request(date(2025, 2, 1)))
        service.mark_paid(first.id)

        assert [fee.id for fee in service.list_fees(status=FeeStatus.PAID)] == [first.id]
        assert len(service.list_fees(member_id="member-1")) == 2
        assert service.list_fees(member_id="member-2") == []


class TestFeeSchemas:
    """Tests for request validation."""

    def test_sepa_requires_iban(self):
        with pytest.raises(ValidationError, match="IBAN is verplicht"):
            monthly_request(date(2025, 1, 1), method=PaymentMethod.SEPA)

    def test_invalid_iban(self):
        with pytest.raises(ValidationError, match="Ongeldig IBAN"):
            monthly_request(date(2025, 1, 1), iban="BE00123")

    def test_iban_is_normalized(self):
        request = monthly_request(date(2025, 1, 1), iban="be68 5390 0754 7034")
        assert request.iban == VALID_IBAN_BE

    def test_end_before_start(self):
        with pytest.raises(ValidationError, match="Einddatum"):
            monthly_request(date(2025, 2, 1), period_end=date(2025, 1, 31))

    def test_negative_amount(self):
        with pytest.raises(ValidationError):
            monthly_request(date(2025, 1, 1), amount=Decimal("-1"))

    def test_overlap_check_dates(self):
        with pytest.raises(ValidationError):
            OverlapCheckRequest(
                member_id="member-1",
                period_start=date(2025, 2, 1),
                period_end=date(2025, 1, 1),
            )


class TestInMemoryFeeRepository:
    """Tests for the in-memory storage adapter."""

    def test_duplicate_id_is_rejected(self, service):
        fee, _ = service.create(monthly_request(date(2025, 1, 1)))
        repository = InMemoryFeeRepository([fee])

        with pytest.raises(ValueError):
            repository.add(fee)

    def test_list_is_ordered_by_period_start(self, service, fee_repository):
        service.create(monthly_request(date(2025, 3, 1)))
        service.create(monthly_request(date(2025, 1, 1)))

        starts = [fee.period_start for fee in fee_repository.list()]

        assert starts == [date(2025, 1, 1), date(2025, 3, 1)]


class TestInMemoryMemberRepository:
    """Tests for member lookups."""

    def test_get_by_number(self, member_repository, sepa_member):
        assert member_repository.get_by_number("M0002") is sepa_member
        assert member_repository.get_by_number("M9999") is None

    def test_inactive_members_are_not_listed(self, member_repository, unbilled_member):
        unbilled_member.active = False

        numbers = [member.member_number for member in member_repository.list_active()]

        assert numbers == ["M0001", "M0002"]
