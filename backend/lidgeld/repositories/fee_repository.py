"""
Fee Repository

Storage port for membership fees, with an in-memory adapter used by the
API process and the tests.
"""
import uuid
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from lidgeld.models.fee import Fee, FeeStatus


def new_fee_id() -> str:
    return f"fee_{uuid.uuid4().hex}"


class FeeRepository(ABC):
    """Abstract storage for fees."""

    @abstractmethod
    def get(self, fee_id: str) -> Optional[Fee]:
        """Return the fee or None."""
        pass

    @abstractmethod
    def add(self, fee: Fee) -> Fee:
        """Store a new fee."""
        pass

    @abstractmethod
    def save(self, fee: Fee) -> Fee:
        """Store changes to an existing fee."""
        pass

    @abstractmethod
    def list(
        self,
        member_id: Optional[str] = None,
        status: Optional[FeeStatus] = None,
    ) -> List[Fee]:
        """Fees ordered by period start, optionally filtered."""
        pass

    def list_for_member(self, member_id: str) -> List[Fee]:
        return self.list(member_id=member_id)


class InMemoryFeeRepository(FeeRepository):
    """Dict-backed fee storage."""

    def __init__(self, fees: Optional[List[Fee]] = None):
        self._fees: Dict[str, Fee] = {}
        for fee in fees or []:
            self.add(fee)

    def get(self, fee_id: str) -> Optional[Fee]:
        return self._fees.get(fee_id)

    def add(self, fee: Fee) -> Fee:
        if not fee.id:
            fee.id = new_fee_id()
        if fee.id in self._fees:
            raise ValueError(f"Fee {fee.id} already exists")
        self._fees[fee.id] = fee
        return fee

    def save(self, fee: Fee) -> Fee:
        if fee.id not in self._fees:
            raise KeyError(fee.id)
        self._fees[fee.id] = fee
        return fee

    def list(
        self,
        member_id: Optional[str] = None,
        status: Optional[FeeStatus] = None,
    ) -> List[Fee]:
        fees = [
            fee for fee in self._fees.values()
            if (member_id is None or fee.member_id == member_id)
            and (status is None or fee.status == status)
        ]
        return sorted(fees, key=lambda fee: (fee.period_start, fee.member_id))
