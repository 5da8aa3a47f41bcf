"""
Team lifecycle: creation, membership and the owner/admin/member hierarchy.

Every operation loads the team aggregate, asks the authorization engine,
mutates the member table in memory and writes the aggregate back with one
version-guarded save. Events are published only after the save succeeded.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from teamchat import authorization
from teamchat.errors import (
    AccessDeniedError,
    DuplicateMemberError,
    MemberNotFoundError,
    NotOwnerError,
    TeamNotFoundError,
    ValidationError,
)
from teamchat.models import Team, TeamMember, TeamRole
from teamchat.realtime.notifications import EventPublisher
from teamchat.repositories import TeamRepository
from teamchat.schemas import team_document, team_member_document

logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500


def _validate_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
        raise ValidationError(
            f"Team name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters"
        )
    return name


def _validate_description(description: Optional[str]) -> Optional[str]:
    if description is None:
        return None
    description = description.strip()
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")
    return description


class TeamService:
    """Team operations for one request."""

    def __init__(self, db: AsyncSession, publisher: EventPublisher):
        self.teams = TeamRepository(db)
        self.publisher = publisher

    async def _load(self, team_id: UUID) -> Team:
        team = await self.teams.find_by_id(team_id)
        if team is None:
            raise TeamNotFoundError(team_id)
        return team

    async def create_team(
        self, creator_id: UUID, name: str, description: Optional[str] = None
    ) -> Team:
        team = Team(
            name=_validate_name(name),
            description=_validate_description(description),
            created_by=creator_id,
            owner_id=creator_id,
            is_active=True,
            members=[TeamMember(user_id=creator_id, role=TeamRole.OWNER.value)],
        )
        await self.teams.create(team)
        logger.info(f"Team {team.id} created by {creator_id}")

        document = team_document(team)
        await self.publisher.to_team(team.id, "team:created", document)
        await self.publisher.to_user(creator_id, "team:invited", document)
        return team

    async def list_teams(self, user_id: UUID) -> list[Team]:
        return await self.teams.find_for_user(user_id)

    async def get_team(self, team_id: UUID, user_id: UUID) -> Team:
        team = await self._load(team_id)
        if not authorization.can_view_team(team, user_id):
            raise AccessDeniedError()
        return team

    async def update_team(
        self,
        team_id: UUID,
        user_id: UUID,
        name: Optional[str] = None,
        description: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> Team:
        team = await self._load(team_id)
        if not authorization.can_update_team(team, user_id):
            raise AccessDeniedError()

        if name is not None:
            team.name = _validate_name(name)
        if description is not None:
            team.description = _validate_description(description)
        if avatar is not None:
            team.avatar = avatar

        await self.teams.save(team)
        await self.publisher.to_team(team.id, "team:updated", team_document(team))
        return team

    async def delete_team(self, team_id: UUID, user_id: UUID) -> Team:
        team = await self._load(team_id)
        if not authorization.can_delete_team(team, user_id):
            raise NotOwnerError("Only the owner can delete the team")

        await self.teams.soft_delete(team)
        logger.info(f"Team {team.id} deleted by {user_id}")
        await self.publisher.to_team(team.id, "team:deleted", {"id": str(team.id)})
        return team

    async def add_member(
        self, team_id: UUID, requester_id: UUID, user_id: UUID, role: str = TeamRole.MEMBER.value
    ) -> TeamMember:
        team = await self._load(team_id)
        if not authorization.can_invite(team, requester_id):
            raise AccessDeniedError()
        if role not in authorization.ASSIGNABLE_ROLES:
            raise ValidationError(f"Invalid role '{role}'")
        if authorization.get_member(team, user_id) is not None:
            raise DuplicateMemberError(user_id)

        member = TeamMember(user_id=user_id, role=role)
        team.members.append(member)
        await self.teams.save(team)
        logger.info(f"Team {team.id}: {requester_id} added {user_id} as {role}")

        payload = {"teamId": str(team.id), "member": team_member_document(member)}
        await self.publisher.to_team(team.id, "team:member:added", payload)
        await self.publisher.to_user(user_id, "team:invited", payload)
        return member

    async def change_member_role(
        self, team_id: UUID, requester_id: UUID, target_user_id: UUID, role: str
    ) -> TeamMember:
        team = await self._load(team_id)
        member = authorization.change_role(team, requester_id, target_user_id, role)
        await self.teams.save(team)
        logger.info(f"Team {team.id}: {target_user_id} is now {role}")

        await self.publisher.to_team(
            team.id,
            "team:member:roleChanged",
            {
                "teamId": str(team.id),
                "memberId": str(member.id),
                "userId": str(target_user_id),
                "role": role,
            },
        )
        await self.publisher.to_user(
            target_user_id, "team:roleChanged", {"teamId": str(team.id), "role": role}
        )
        return member

    async def remove_member(self, team_id: UUID, requester_id: UUID, target_user_id: UUID) -> Team:
        team = await self._load(team_id)
        # Non-managers learn nothing about who is on the team
        if authorization.get_role(team, requester_id) not in authorization.MANAGER_ROLES:
            raise AccessDeniedError()
        if authorization.get_member(team, target_user_id) is None:
            raise MemberNotFoundError(target_user_id)
        member = authorization.remove_member(team, requester_id, target_user_id)
        member_id = member.id

        await self.teams.save(team)
        logger.info(f"Team {team.id}: {requester_id} removed {target_user_id}")

        await self.publisher.to_team(
            team.id,
            "team:member:removed",
            {"teamId": str(team.id), "memberId": str(member_id), "userId": str(target_user_id)},
        )
        await self.publisher.to_user(target_user_id, "team:removed", {"teamId": str(team.id)})
        return team

    async def transfer_ownership(self, team_id: UUID, requester_id: UUID, new_owner_id: UUID) -> Team:
        team = await self._load(team_id)
        authorization.transfer_ownership(team, requester_id, new_owner_id)
        # Both member entries and owner_id go out in the same versioned write
        await self.teams.save(team)

        await self.publisher.to_team(
            team.id,
            "team:owner:transferred",
            {
                "teamId": str(team.id),
                "oldOwnerId": str(requester_id),
                "newOwnerId": str(new_owner_id),
            },
        )
        await self.publisher.to_user(
            new_owner_id, "team:roleChanged", {"teamId": str(team.id), "role": TeamRole.OWNER.value}
        )
        await self.publisher.to_user(
            requester_id, "team:roleChanged", {"teamId": str(team.id), "role": TeamRole.ADMIN.value}
        )
        return team
