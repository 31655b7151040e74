"""
Bank Statement Import API Endpoints

Endpoints for:
- Parsing an uploaded statement file (CSV, MT940, CODA)
- Normalizing mapped rows into transactions
- Matching imported transactions to open fees
"""
from fastapi import APIRouter

from lidgeld.models.transaction import BankFileType, MatchStatus
from lidgeld.schemas.imports import (
    ImportNormalizeRequest,
    ImportNormalizeResponse,
    ImportParseRequest,
    ImportParseResponse,
    MatchRequest,
    MatchResponse,
)
from lidgeld.services.bank.import_session import ImportSession
from lidgeld.services.bank.matching import to_bank_transaction
from lidgeld.services.bank.normalize import normalize_rows
from lidgeld.services.logging import structured_logger
from lidgeld.api.v1.deps import MatchingEngineDep

router = APIRouter()


@router.post("/parse", response_model=ImportParseResponse)
async def parse_import_file(request: ImportParseRequest):
    """
    Parse an uploaded statement file.

    The format is detected from extension and content unless given.
    A file that cannot be read is not an HTTP error: the response carries
    ``result.success = false`` and a Dutch message to show to the user.
    """
    session = ImportSession()
    result = session.upload(request.filename, request.content, request.file_type, request.bank)
    if not result.success:
        return ImportParseResponse(result=result)

    return ImportParseResponse(
        result=result,
        suggested_mapping=session.suggested_mapping,
        preview_rows=session.sample_rows,
    )


@router.post("/normalize", response_model=ImportNormalizeResponse)
async def normalize_import_rows(request: ImportNormalizeRequest):
    """
    Turn mapped rows into canonical transactions.

    Every row is returned; values that had to be guessed are listed in the
    row's ``warnings``.
    """
    rows = normalize_rows(request.rows, request.mapping, BankFileType(request.file_type))
    flagged = sum(1 for row in rows if row.warnings)
    structured_logger.import_normalized(request.file_type.value, len(rows), flagged)
    return ImportNormalizeResponse(rows=rows, total=len(rows), flagged=flagged)


@router.post("/match", response_model=MatchResponse)
async def match_transactions(request: MatchRequest, engine: MatchingEngineDep):
    """
    Suggest which open fee or expense category each transaction belongs to.

    Transactions without an ``id`` are numbered ``tx-1``, ``tx-2``, ... in
    request order. ``existing`` holds earlier imports for duplicate checks.
    Nothing is booked; confirmed fee matches are marked paid separately.
    """
    transactions = [
        to_bank_transaction(tx, tx.id or f"tx-{index}", tx.status)
        for index, tx in enumerate(request.transactions, start=1)
    ]
    existing = [
        to_bank_transaction(tx, tx.id or f"existing-{index}", tx.status)
        for index, tx in enumerate(request.existing, start=1)
    ]

    results = engine.suggest_batch(transactions, request.rules, existing)
    return MatchResponse(
        results=results,
        total=len(results),
        suggested=sum(1 for r in results if r.status == MatchStatus.VOORGESTELD),
        partial=sum(1 for r in results if r.status == MatchStatus.GEDEELTELIJK_GEMATCHT),
    )
