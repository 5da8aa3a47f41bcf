"""Team persistence."""

from uuid import UUID

from sqlalchemy import or_, select

from teamchat.models import Team, TeamMember
from teamchat.repositories.base import Repository


class TeamRepository(Repository[Team]):
    model = Team

    async def find_for_user(self, user_id: UUID) -> list[Team]:
        """Active teams the user created or belongs to, newest first."""
        member_of = select(TeamMember.team_id).where(TeamMember.user_id == user_id)
        return await self.find(
            or_(Team.created_by == user_id, Team.id.in_(member_of)),
            Team.is_active.is_(True),
            order_by=[Team.created_at.desc()],
        )
