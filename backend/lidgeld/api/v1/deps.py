from typing import Annotated

from fastapi import Depends, Request

from lidgeld.repositories import FeeRepository, MemberRepository
from lidgeld.services.bank.matching import FeeMatchingEngine
from lidgeld.services.fee_generator import FeeGenerator
from lidgeld.services.fee_service import FeeService


# =============================================================================
# Storage: application-scoped repositories (see main.py)
# =============================================================================

def get_fee_repository(request: Request) -> FeeRepository:
    return request.app.state.fee_repository


def get_member_repository(request: Request) -> MemberRepository:
    return request.app.state.member_repository


FeeRepo = Annotated[FeeRepository, Depends(get_fee_repository)]
MemberRepo = Annotated[MemberRepository, Depends(get_member_repository)]


# =============================================================================
# Services
# =============================================================================

def get_fee_service(fees: FeeRepo, members: MemberRepo) -> FeeService:
    return FeeService(fees, members)


def get_fee_generator(fees: FeeRepo, members: MemberRepo) -> FeeGenerator:
    return FeeGenerator(fees, members)


FeeServiceDep = Annotated[FeeService, Depends(get_fee_service)]
FeeGeneratorDep = Annotated[FeeGenerator, Depends(get_fee_generator)]


def get_matching_engine(fees: FeeRepo, members: MemberRepo) -> FeeMatchingEngine:
    return FeeMatchingEngine(fees, members)


MatchingEngineDep = Annotated[FeeMatchingEngine, Depends(get_matching_engine)]
