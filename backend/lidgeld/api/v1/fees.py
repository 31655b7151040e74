"""
Membership Fee API Endpoints

Endpoints for:
- Period calculation and overlap checks (new-fee form)
- Fee listing / creation / update / payment
- Fee generation runs
- SEPA direct-debit batches
"""
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from lidgeld.core.exceptions import FeeNotFoundError, MemberNotFoundError, SepaBatchError
from lidgeld.models.fee import FeeStatus
from lidgeld.schemas.fee import (
    CreateFeeRequest,
    FeeCreatedResponse,
    FeeListResponse,
    FeeResponse,
    GenerateFeesRequest,
    GenerationReportResponse,
    MarkPaidRequest,
    OverlapCheckRequest,
    OverlapCheckResponse,
    PeriodRequest,
    PeriodResponse,
    SepaBatchRequest,
    SepaBatchResponse,
    UpdateFeeRequest,
)
from lidgeld.services.period import format_date_be, period_for
from lidgeld.services.sepa import generate_batch
from lidgeld.api.v1.deps import FeeGeneratorDep, FeeServiceDep

router = APIRouter()


def _not_found(exc: Exception) -> HTTPException:
    if isinstance(exc, MemberNotFoundError):
        return HTTPException(status_code=404, detail={"code": "MEMBER_NOT_FOUND", "message": "Lid niet gevonden."})
    return HTTPException(status_code=404, detail={"code": "FEE_NOT_FOUND", "message": "Lidgeld niet gevonden."})


@router.post("/period", response_model=PeriodResponse)
async def calculate_period(request: PeriodRequest):
    """
    Calculate the period a fee starting on ``start`` covers.

    - MONTHLY: until the last day of that calendar month
    - YEARLY: until the day before the first anniversary
    """
    period = period_for(request.start, request.term)
    return PeriodResponse(
        term=request.term,
        start=period.start,
        end=period.end,
        days=period.days,
        start_display=format_date_be(period.start),
        end_display=format_date_be(period.end),
    )


@router.post("/overlap-check", response_model=OverlapCheckResponse)
async def check_overlap(request: OverlapCheckRequest, service: FeeServiceDep):
    """List the member's existing fees that share at least one day with the period."""
    try:
        conflicts = service.find_overlaps(request)
    except MemberNotFoundError as exc:
        raise _not_found(exc) from exc

    return OverlapCheckResponse(
        overlaps=bool(conflicts),
        conflicts=[FeeResponse.model_validate(fee) for fee in conflicts],
    )


@router.get("", response_model=FeeListResponse)
async def list_fees(
    service: FeeServiceDep,
    member_id: Optional[str] = Query(None, description="Filter by member"),
    fee_status: Optional[FeeStatus] = Query(None, alias="status", description="Filter by status"),
):
    fees = service.list_fees(member_id=member_id, status=fee_status)
    return FeeListResponse(
        fees=[FeeResponse.model_validate(fee) for fee in fees],
        total_count=len(fees),
    )


@router.post("", response_model=FeeCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_fee(request: CreateFeeRequest, service: FeeServiceDep):
    """
    Create an open fee for a member.

    The period end is derived from start and term when not given.
    Overlapping periods are reported in ``warnings`` but do not block creation.
    """
    try:
        fee, warnings = service.create(request)
    except MemberNotFoundError as exc:
        raise _not_found(exc) from exc

    return FeeCreatedResponse(fee=FeeResponse.model_validate(fee), warnings=warnings)


@router.patch("/{fee_id}", response_model=FeeResponse)
async def update_fee(fee_id: str, request: UpdateFeeRequest, service: FeeServiceDep):
    try:
        fee = service.update(fee_id, request)
    except FeeNotFoundError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail={"code": "INVALID_FEE", "message": str(exc)}) from exc

    return FeeResponse.model_validate(fee)


@router.post("/{fee_id}/paid", response_model=FeeResponse)
async def mark_fee_paid(fee_id: str, service: FeeServiceDep, request: Optional[MarkPaidRequest] = None):
    """Mark a fee as paid (defaults to now)."""
    paid_at = request.paid_at if request else None
    try:
        fee = service.mark_paid(fee_id, paid_at)
    except FeeNotFoundError as exc:
        raise _not_found(exc) from exc

    return FeeResponse.model_validate(fee)


@router.post("/generate", response_model=GenerationReportResponse)
async def generate_fees(request: GenerateFeesRequest, generator: FeeGeneratorDep):
    """
    Generate open fees for all active members.

    Members without billing anchor or amount are listed in ``skipped_members``;
    failures are reported per member without stopping the run.
    """
    report = generator.generate_all(as_of=request.as_of, strategy=request.strategy)
    return GenerationReportResponse(
        generated=[FeeResponse.model_validate(fee) for fee in report.generated],
        skipped_members=report.skipped_members,
        errors=report.errors,
    )


@router.post("/sepa-batch", response_model=SepaBatchResponse)
async def create_sepa_batch(request: SepaBatchRequest, service: FeeServiceDep):
    """
    Build a pain.008 direct-debit file for open SEPA fees.

    Fees without mandate or valid IBAN are left out and reported in ``warnings``.
    """
    fees = service.list_fees(status=FeeStatus.OPEN)
    if request.fee_ids is not None:
        wanted = set(request.fee_ids)
        fees = [fee for fee in fees if fee.id in wanted]

    try:
        batch = generate_batch(fees, collection_date=request.collection_date)
    except SepaBatchError as exc:
        raise HTTPException(status_code=409, detail={"code": "SEPA_BATCH_FAILED", "message": str(exc)}) from exc

    return SepaBatchResponse(
        batch_ref=batch.batch_ref,
        count=batch.count,
        total=batch.total,
        warnings=batch.warnings,
        xml=batch.xml,
    )
