"""
Authorization engine.

Pure decision logic over a team's (or channel's) member-role table. Nothing
here touches the database or the network; the mutating helpers change the
loaded aggregate in memory and the caller persists it with a single save.

Team role hierarchy:
- owner: exactly one per active team; may change roles and transfer ownership
- admin: may invite and remove non-owner members
- member: no management rights
"""

import logging
from typing import Optional
from uuid import UUID

from teamchat.errors import (
    AccessDeniedError,
    NotOwnerError,
    OwnerRemovalError,
    TargetNotMemberError,
    ValidationError,
)
from teamchat.models import Channel, ChannelMember, ChannelRole, Team, TeamMember, TeamRole

logger = logging.getLogger(__name__)

MANAGER_ROLES = {TeamRole.OWNER.value, TeamRole.ADMIN.value}
ASSIGNABLE_ROLES = {TeamRole.ADMIN.value, TeamRole.MEMBER.value}


# --- team role table -------------------------------------------------------


def get_member(team: Team, user_id: UUID) -> Optional[TeamMember]:
    for member in team.members:
        if member.user_id == user_id:
            return member
    return None


def get_role(team: Team, user_id: UUID) -> Optional[str]:
    member = get_member(team, user_id)
    return member.role if member else None


def owner_count(team: Team) -> int:
    return sum(1 for m in team.members if m.role == TeamRole.OWNER)


def is_owner(team: Team, user_id: UUID) -> bool:
    return get_role(team, user_id) == TeamRole.OWNER


def can_view_team(team: Team, requester_id: UUID) -> bool:
    return get_member(team, requester_id) is not None or team.created_by == requester_id


def can_invite(team: Team, requester_id: UUID) -> bool:
    """Owners and admins may add members."""
    return get_role(team, requester_id) in MANAGER_ROLES


def can_update_team(team: Team, requester_id: UUID) -> bool:
    return get_role(team, requester_id) in MANAGER_ROLES


def can_delete_team(team: Team, requester_id: UUID) -> bool:
    return is_owner(team, requester_id)


def can_change_role(team: Team, requester_id: UUID) -> bool:
    """
    Only the owner may change roles.

    Keeping role changes with a single principal prevents admins from
    promoting each other into a privilege-escalation chain.
    """
    return is_owner(team, requester_id)


def can_remove_member(team: Team, requester_id: UUID, target_user_id: UUID) -> bool:
    """Owners and admins may remove anyone except the owner."""
    if get_role(team, requester_id) not in MANAGER_ROLES:
        return False
    return get_role(team, target_user_id) != TeamRole.OWNER


def can_transfer_ownership(team: Team, requester_id: UUID) -> bool:
    return is_owner(team, requester_id)


# --- mutations (in memory, persisted by the caller) -----------------------


def transfer_ownership(team: Team, requester_id: UUID, new_owner_id: UUID) -> Team:
    """
    Move the owner role from the requester to another member.

    Both member entries and ``owner_id`` are changed together on the loaded
    aggregate; the caller must write it back with one save so the swap is
    either fully applied or not at all.

    Raises:
        NotOwnerError: Requester is not the current owner
        TargetNotMemberError: New owner is not a member of the team
        ValidationError: Requester is transferring to themselves
    """
    if not can_transfer_ownership(team, requester_id):
        raise NotOwnerError("Only the owner can transfer ownership")

    new_owner = get_member(team, new_owner_id)
    if new_owner is None:
        raise TargetNotMemberError(new_owner_id)
    if new_owner_id == requester_id:
        raise ValidationError("Ownership is already held by this member")

    old_owner = get_member(team, requester_id)
    old_owner.role = TeamRole.ADMIN.value
    new_owner.role = TeamRole.OWNER.value
    team.owner_id = new_owner_id

    logger.info(f"Team {team.id}: ownership {requester_id} -> {new_owner_id}")
    return team


def change_role(team: Team, requester_id: UUID, target_user_id: UUID, new_role: str) -> TeamMember:
    """
    Change a member's role.

    The owner role is never granted or taken away here; that only happens
    through transfer_ownership, which keeps exactly one owner.

    Raises:
        NotOwnerError: Requester is not the owner
        TargetNotMemberError: Target is not a member
        ValidationError: Role is unknown, is ``owner``, or target is the owner
    """
    if not can_change_role(team, requester_id):
        raise NotOwnerError("Only the owner can change roles")
    if new_role == TeamRole.OWNER:
        raise ValidationError("Use ownership transfer to assign the owner role")
    if new_role not in ASSIGNABLE_ROLES:
        raise ValidationError(f"Invalid role '{new_role}'")

    target = get_member(team, target_user_id)
    if target is None:
        raise TargetNotMemberError(target_user_id)
    if target.role == TeamRole.OWNER:
        raise ValidationError("The owner's role can only change through ownership transfer")

    target.role = new_role
    return target


def remove_member(team: Team, requester_id: UUID, target_user_id: UUID) -> TeamMember:
    """
    Detach a member from the team.

    Raises:
        AccessDeniedError: Requester is neither owner nor admin
        TargetNotMemberError: Target is not a member
        OwnerRemovalError: Target is the owner
    """
    if get_role(team, requester_id) not in MANAGER_ROLES:
        raise AccessDeniedError()
    target = get_member(team, target_user_id)
    if target is None:
        raise TargetNotMemberError(target_user_id)
    if not can_remove_member(team, requester_id, target_user_id):
        raise OwnerRemovalError()

    team.members.remove(target)
    return target


# --- channel role table ----------------------------------------------------


def get_channel_member(channel: Channel, user_id: UUID) -> Optional[ChannelMember]:
    for member in channel.members:
        if member.user_id == user_id:
            return member
    return None


def can_read_channel(channel: Channel, user_id: UUID) -> bool:
    """Public channels are readable by any authenticated user."""
    if channel.is_public:
        return True
    return get_channel_member(channel, user_id) is not None or channel.created_by == user_id


def can_post(channel: Channel, user_id: UUID) -> bool:
    return can_read_channel(channel, user_id)


def can_manage_channel(channel: Channel, user_id: UUID) -> bool:
    if channel.created_by == user_id:
        return True
    member = get_channel_member(channel, user_id)
    return member is not None and member.role == ChannelRole.ADMIN
