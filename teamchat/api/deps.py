"""
Shared FastAPI dependencies for the API routers.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from teamchat.database import get_db
from teamchat.realtime import EventPublisher, RealtimeGateway
from teamchat.services import ChatService, TeamService


def get_gateway(request: Request) -> RealtimeGateway:
    """The process-wide gateway created in the application lifespan."""
    return request.app.state.gateway


def get_publisher(gateway: RealtimeGateway = Depends(get_gateway)) -> EventPublisher:
    return EventPublisher(gateway)


def get_team_service(
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
) -> TeamService:
    return TeamService(db, publisher)


def get_chat_service(
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
) -> ChatService:
    return ChatService(db, publisher)
