"""
Team management API routes.

Membership changes are owner/admin gated; role changes and ownership
transfer are owner only. Authorization failures surface as 403, lost
concurrent updates as 409.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from teamchat.api.deps import get_team_service
from teamchat.middleware.auth import get_current_user_id
from teamchat.models import TeamRole
from teamchat.schemas import TeamMemberResponse, TeamResponse
from teamchat.services import TeamService

router = APIRouter(prefix="/api/v1/teams", tags=["teams"])


# Pydantic schemas
class TeamCreate(BaseModel):
    """Schema for creating a new team."""

    name: str = Field(..., min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=500)


class TeamUpdate(BaseModel):
    """Schema for updating a team."""

    name: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = None


class MemberAdd(BaseModel):
    user_id: UUID
    role: str = TeamRole.MEMBER.value


class RoleUpdate(BaseModel):
    role: str


class TransferOwner(BaseModel):
    new_owner_id: UUID


@router.get("", response_model=List[TeamResponse])
async def list_teams(
    current_user_id: UUID = Depends(get_current_user_id),
    service: TeamService = Depends(get_team_service),
):
    """List active teams the current user created or belongs to, newest first."""
    return await service.list_teams(current_user_id)


@router.post("", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
async def create_team(
    team: TeamCreate,
    current_user_id: UUID = Depends(get_current_user_id),
    service: TeamService = Depends(get_team_service),
):
    """
    Create a new team. The caller becomes its owner.

    Args:
        team: Team data
        current_user_id: Authenticated user
        service: Team service

    Returns:
        Created team
    """
    return await service.create_team(current_user_id, team.name, team.description)


@router.get("/{team_id}", response_model=TeamResponse)
async def get_team(
    team_id: UUID,
    current_user_id: UUID = Depends(get_current_user_id),
    service: TeamService = Depends(get_team_service),
):
    """Get a team the current user is a member of."""
    return await service.get_team(team_id, current_user_id)


@router.put("/{team_id}", response_model=TeamResponse)
async def update_team(
    team_id: UUID,
    team_update: TeamUpdate,
    current_user_id: UUID = Depends(get_current_user_id),
    service: TeamService = Depends(get_team_service),
):
    """
    Update team details.

    Requires the owner or admin role.
    """
    return await service.update_team(
        team_id,
        current_user_id,
        name=team_update.name,
        description=team_update.description,
        avatar=team_update.avatar,
    )


@router.delete("/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_team(
    team_id: UUID,
    current_user_id: UUID = Depends(get_current_user_id),
    service: TeamService = Depends(get_team_service),
):
    """
    Soft delete a team.

    Only the owner can delete the team.
    """
    await service.delete_team(team_id, current_user_id)


@router.post(
    "/{team_id}/members",
    response_model=TeamMemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    team_id: UUID,
    body: MemberAdd,
    current_user_id: UUID = Depends(get_current_user_id),
    service: TeamService = Depends(get_team_service),
):
    """Invite a user into the team as admin or member."""
    return await service.add_member(team_id, current_user_id, body.user_id, body.role)


@router.put("/{team_id}/members/{user_id}/role", response_model=TeamMemberResponse)
async def change_member_role(
    team_id: UUID,
    user_id: UUID,
    body: RoleUpdate,
    current_user_id: UUID = Depends(get_current_user_id),
    service: TeamService = Depends(get_team_service),
):
    """
    Change a member's role.

    Only the owner can change roles, and the owner role itself only moves
    through the transfer-owner route.
    """
    return await service.change_member_role(team_id, current_user_id, user_id, body.role)


@router.delete("/{team_id}/members/{user_id}", response_model=TeamResponse)
async def remove_member(
    team_id: UUID,
    user_id: UUID,
    current_user_id: UUID = Depends(get_current_user_id),
    service: TeamService = Depends(get_team_service),
):
    """Remove a member from the team. The owner cannot be removed."""
    return await service.remove_member(team_id, current_user_id, user_id)


@router.post("/{team_id}/transfer-owner", response_model=TeamResponse)
async def transfer_ownership(
    team_id: UUID,
    body: TransferOwner,
    current_user_id: UUID = Depends(get_current_user_id),
    service: TeamService = Depends(get_team_service),
):
    """
    Transfer team ownership to another member.

    The previous owner is demoted to admin in the same write.
    """
    return await service.transfer_ownership(team_id, current_user_id, body.new_owner_id)
