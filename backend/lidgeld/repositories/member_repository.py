"""
Member Repository

Storage of members for the fee services. Members are registered through
the members API or seeded by the caller of the in-memory adapter.
"""
import uuid
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from lidgeld.models.member import Member


def new_member_id() -> str:
    return f"mem_{uuid.uuid4().hex}"


class MemberRepository(ABC):
    """Abstract storage for members."""

    @abstractmethod
    def add(self, member: Member) -> Member:
        pass

    @abstractmethod
    def get(self, member_id: str) -> Optional[Member]:
        pass

    @abstractmethod
    def get_by_number(self, member_number: str) -> Optional[Member]:
        pass

    @abstractmethod
    def list_active(self) -> List[Member]:
        """Active members ordered by member number."""
        pass


class InMemoryMemberRepository(MemberRepository):
    """Dict-backed member storage."""

    def __init__(self, members: Optional[List[Member]] = None):
        self._members: Dict[str, Member] = {member.id: member for member in members or []}

    def add(self, member: Member) -> Member:
        self._members[member.id] = member
        return member

    def get(self, member_id: str) -> Optional[Member]:
        return self._members.get(member_id)

    def get_by_number(self, member_number: str) -> Optional[Member]:
        return next(
            (member for member in self._members.values() if member.member_number == member_number),
            None,
        )

    def list_active(self) -> List[Member]:
        return sorted(
            (member for member in self._members.values() if member.active),
            key=lambda member: member.member_number,
        )
