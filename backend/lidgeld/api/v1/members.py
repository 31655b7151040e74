"""
Member API Endpoints

Endpoints for:
- Registering a member with the fee settings the generator uses
- Listing active members and reading one member
"""
from fastapi import APIRouter, HTTPException, status

from lidgeld.models.member import Member
from lidgeld.repositories import new_member_id
from lidgeld.schemas.member import CreateMemberRequest, MemberListResponse, MemberResponse
from lidgeld.api.v1.deps import MemberRepo

router = APIRouter()


@router.post("", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def register_member(request: CreateMemberRequest, members: MemberRepo):
    """
    Register a member.

    Member numbers are unique; registering a number twice returns 409.
    """
    if members.get_by_number(request.member_number):
        raise HTTPException(
            status_code=409,
            detail={
                "code": "MEMBER_EXISTS",
                "message": f"Lidnummer {request.member_number} is al in gebruik.",
            },
        )

    member = members.add(Member(id=new_member_id(), **request.model_dump()))
    return MemberResponse.model_validate(member)


@router.get("", response_model=MemberListResponse)
async def list_members(members: MemberRepo):
    """Active members ordered by member number."""
    active = members.list_active()
    return MemberListResponse(
        members=[MemberResponse.model_validate(member) for member in active],
        total_count=len(active),
    )


@router.get("/{member_id}", response_model=MemberResponse)
async def get_member(member_id: str, members: MemberRepo):
    member = members.get(member_id)
    if member is None:
        raise HTTPException(status_code=404, detail={"code": "MEMBER_NOT_FOUND", "message": "Lid niet gevonden."})
    return MemberResponse.model_validate(member)
