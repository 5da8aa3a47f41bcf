"""
Team model with its embedded member/role table.

A team has exactly one owner while it is active. The owner is tracked both
by the member role and by ``owner_id``; ``created_by`` keeps the original
creator and is informational only after an ownership transfer.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from teamchat.models.base import Base, utc_now


class TeamRole(str, Enum):
    """Roles within a team, highest first."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class Team(Base):
    """
    Team model grouping users under a single owner.
    """

    __tablename__ = "teams"

    # Primary key
    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)

    # Team details
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    avatar: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Ownership
    created_by: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False, index=True)
    owner_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False, index=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    # Optimistic concurrency token, bumped on every save
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    # Relationships
    members: Mapped[list["TeamMember"]] = relationship(
        "TeamMember",
        back_populates="team",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TeamMember.joined_at",
    )

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name={self.name}, owner_id={self.owner_id})>"

    def soft_delete(self) -> None:
        """Soft delete the team."""
        self.is_active = False


class TeamMember(Base):
    """
    Membership of a user in a team.

    The user itself is managed by the auth service; only its id is stored.
    """

    __tablename__ = "team_members"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)

    team_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=TeamRole.MEMBER.value)
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    team: Mapped["Team"] = relationship("Team", back_populates="members")

    __table_args__ = (UniqueConstraint("team_id", "user_id", name="uq_team_member_user"),)

    def __repr__(self) -> str:
        return f"<TeamMember(team_id={self.team_id}, user_id={self.user_id}, role={self.role})>"
