"""
Domain errors for the team chat service.

Every error carries the HTTP status it maps to, so route handlers can let
them propagate and the application exception handler renders a structured
response. Anything that is not a TeamChatError is an unexpected failure and
becomes a generic 500.
"""

from typing import Optional


class TeamChatError(Exception):
    """Base class for client-correctable errors."""

    status_code: int = 400
    code: str = "bad_request"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class NotFoundError(TeamChatError):
    status_code = 404
    code = "not_found"


class TeamNotFoundError(NotFoundError):
    def __init__(self, team_id):
        super().__init__(f"Team {team_id} not found")


class ChannelNotFoundError(NotFoundError):
    def __init__(self, channel_id):
        super().__init__(f"Channel {channel_id} not found")


class MessageNotFoundError(NotFoundError):
    def __init__(self, message_id):
        super().__init__(f"Message {message_id} not found")


class MemberNotFoundError(NotFoundError):
    def __init__(self, user_id):
        super().__init__(f"Member {user_id} not found")


class AccessDeniedError(TeamChatError):
    status_code = 403
    code = "access_denied"

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class ValidationError(TeamChatError):
    status_code = 400
    code = "validation_error"


class DuplicateReactionError(TeamChatError):
    status_code = 409
    code = "duplicate_reaction"

    def __init__(self, emoji: str):
        super().__init__(f"Already reacted with {emoji}")


class DuplicateMemberError(TeamChatError):
    status_code = 409
    code = "duplicate_member"

    def __init__(self, user_id):
        super().__init__(f"User {user_id} is already a member")


class NotOwnerError(TeamChatError):
    status_code = 403
    code = "not_owner"

    def __init__(self, message: str = "Only the owner can perform this action"):
        super().__init__(message)


class TargetNotMemberError(TeamChatError):
    status_code = 400
    code = "target_not_member"

    def __init__(self, user_id):
        super().__init__(f"User {user_id} must be an existing team member")


class OwnerRemovalError(TeamChatError):
    status_code = 400
    code = "owner_removal"

    def __init__(self):
        super().__init__("Cannot remove the owner; transfer ownership first")


class ConcurrentModificationError(TeamChatError):
    status_code = 409
    code = "concurrent_modification"

    def __init__(self, entity: str):
        super().__init__(f"{entity} was modified concurrently; reload and retry")


class AuthenticationError(TeamChatError):
    status_code = 401
    code = "authentication_error"

    def __init__(self, message: str = "Authentication error"):
        super().__init__(message)
