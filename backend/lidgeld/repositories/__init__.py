"""Storage ports and in-memory adapters."""
from .fee_repository import FeeRepository, InMemoryFeeRepository, new_fee_id
from .member_repository import InMemoryMemberRepository, MemberRepository, new_member_id

__all__ = [
    "FeeRepository",
    "InMemoryFeeRepository",
    "new_fee_id",
    "MemberRepository",
    "InMemoryMemberRepository",
    "new_member_id",
]
