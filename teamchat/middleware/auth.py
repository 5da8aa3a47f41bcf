"""
Bearer token authentication for the REST API.

Identity is established by the auth service; routes only need the caller's
user id, so there is no user table lookup here.
"""

from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from teamchat.errors import AuthenticationError
from teamchat.security import authenticate_token

# HTTP Bearer token scheme
security = HTTPBearer()


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> UUID:
    """
    Validate the bearer token and return the caller's user id.

    Raises:
        HTTPException: If the token is invalid or expired
    """
    try:
        return authenticate_token(credentials.credentials)
    except AuthenticationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
