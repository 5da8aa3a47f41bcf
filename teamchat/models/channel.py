"""
Channel model: a message venue, optionally scoped to a team or project.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from teamchat.models.base import Base, utc_now


class ChannelType(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    DIRECT = "direct"


class ChannelRole(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


class Channel(Base):
    """
    Channel model.

    ``last_message_at`` only moves forward. Posting a message advances it
    with a conditional UPDATE outside the version guard; the version only
    protects the channel and its member list.
    """

    __tablename__ = "channels"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ChannelType.PUBLIC.value, index=True
    )

    # Optional scoping
    team_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("teams.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    project_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True), nullable=True, index=True
    )

    created_by: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False, index=True)
    last_message_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    members: Mapped[list["ChannelMember"]] = relationship(
        "ChannelMember",
        back_populates="channel",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ChannelMember.joined_at",
    )

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    def __repr__(self) -> str:
        return f"<Channel(id={self.id}, name={self.name}, type={self.type})>"

    @property
    def is_public(self) -> bool:
        return self.type == ChannelType.PUBLIC

    def soft_delete(self) -> None:
        """Soft delete the channel."""
        self.is_active = False


class ChannelMember(Base):
    """Membership of a user in a channel."""

    __tablename__ = "channel_members"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)

    channel_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("channels.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=ChannelRole.MEMBER.value)
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    channel: Mapped["Channel"] = relationship("Channel", back_populates="members")

    __table_args__ = (UniqueConstraint("channel_id", "user_id", name="uq_channel_member_user"),)

    def __repr__(self) -> str:
        return f"<ChannelMember(channel_id={self.channel_id}, user_id={self.user_id})>"
