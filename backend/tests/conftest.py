"""
Pytest configuration and fixtures for backend tests.

Provides common test fixtures for the async API client, in-memory
repositories, and members with different financial settings.
"""
import pytest
import pytest_asyncio
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator

from httpx import ASGITransport, AsyncClient

from lidgeld.main import app
from lidgeld.api.v1.deps import get_fee_repository, get_member_repository
from lidgeld.models.fee import PaymentMethod
from lidgeld.models.member import Member, MemberCategory
from lidgeld.models.period import PaymentTerm
from lidgeld.repositories import InMemoryFeeRepository, InMemoryMemberRepository


@pytest.fixture
def monthly_member() -> Member:
    """Member paying monthly by transfer, billed from 1 January 2025."""
    return Member(
        id="member-1",
        member_number="M0001",
        first_name="Yusuf",
        last_name="Aydin",
        preferred_term=PaymentTerm.MONTHLY,
        preferred_method=PaymentMethod.OVERSCHRIJVING,
        monthly_amount=Decimal("10.00"),
        yearly_amount=Decimal("120.00"),
        billing_anchor=date(2025, 1, 1),
    )


@pytest.fixture
def sepa_member() -> Member:
    """Member paying yearly by direct debit with a signed mandate."""
    return Member(
        id="member-2",
        member_number="M0002",
        first_name="Fatima",
        last_name="El Amrani",
        category=MemberCategory.SENIOR,
        iban="BE68 5390 0754 7034",
        has_mandate=True,
        mandate_id="MNDT-0002",
        mandate_signed_on=date(2024, 9, 1),
        preferred_term=PaymentTerm.YEARLY,
        preferred_method=PaymentMethod.SEPA,
        yearly_amount=Decimal("60.00"),
        billing_anchor=date(2024, 9, 15),
    )


@pytest.fixture
def unbilled_member() -> Member:
    """Active member without billing anchor (not yet set up for fees)."""
    return Member(
        id="member-3",
        member_number="M0003",
        first_name="Adam",
        last_name="Janssens",
        category=MemberCategory.STUDENT,
    )


@pytest.fixture
def fee_repository() -> InMemoryFeeRepository:
    return InMemoryFeeRepository()


@pytest.fixture
def member_repository(monthly_member, sepa_member, unbilled_member) -> InMemoryMemberRepository:
    return InMemoryMemberRepository([monthly_member, sepa_member, unbilled_member])


@pytest_asyncio.fixture(scope="function")
async def async_client(
    fee_repository: InMemoryFeeRepository,
    member_repository: InMemoryMemberRepository,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with fresh in-memory storage."""
    app.dependency_overrides[get_fee_repository] = lambda: fee_repository
    app.dependency_overrides[get_member_repository] = lambda: member_repository

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()
