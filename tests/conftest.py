"""
Pytest configuration and fixtures for team chat tests.

Provides fixtures for:
- Database session (file-based SQLite)
- Realtime gateway with recording sockets
- Test client
- User ids and JWT tokens
"""

import json
import os
from typing import AsyncGenerator, Optional
from uuid import uuid4

# Settings are read at import time
os.environ.setdefault("TEAMCHAT_ENVIRONMENT", "test")
os.environ.setdefault("TEAMCHAT_DATABASE_URL", "sqlite+aiosqlite:///test_db.sqlite")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from teamchat.api.deps import get_gateway
from teamchat.database import get_db
from teamchat.main import app
from teamchat.models import Base
from teamchat.realtime import EventPublisher, RealtimeGateway
from teamchat.security import create_access_token

# Test database URL (use file-based SQLite for tests to ensure table persistence)
TEST_DATABASE_URL = "sqlite+aiosqlite:///test_db.sqlite"


class FakeWebSocket:
    """In-memory stand-in for a Starlette WebSocket that records frames."""

    def __init__(self, token: Optional[str] = None, headers: Optional[dict] = None, fail_send=False):
        self.query_params = {"token": token} if token else {}
        self.headers = headers or {}
        self.fail_send = fail_send
        self.accepted = False
        self.closed_code = None
        self.closed_reason = None
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def close(self, code: int = 1000, reason: Optional[str] = None):
        self.closed_code = code
        self.closed_reason = reason

    async def send_text(self, data: str):
        if self.fail_send:
            raise RuntimeError("socket is gone")
        self.sent.append(json.loads(data))

    def events(self, name: Optional[str] = None) -> list:
        if name is None:
            return self.sent
        return [frame for frame in self.sent if frame["event"] == name]


@pytest_asyncio.fixture
async def test_engine():
    """Create test database engine."""
    # Remove old test database if exists
    if os.path.exists("test_db.sqlite"):
        os.remove("test_db.sqlite")

    engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()

    # Clean up test database file
    if os.path.exists("test_db.sqlite"):
        os.remove("test_db.sqlite")


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway() -> RealtimeGateway:
    return RealtimeGateway()


@pytest.fixture
def publisher(gateway) -> EventPublisher:
    return EventPublisher(gateway)


@pytest.fixture
def owner_id():
    return uuid4()


@pytest.fixture
def admin_id():
    return uuid4()


@pytest.fixture
def member_id():
    return uuid4()


@pytest.fixture
def outsider_id():
    return uuid4()


@pytest.fixture
def token_for():
    """Build a bearer token for a user id."""

    def _token(user_id) -> str:
        return create_access_token(user_id=user_id)

    return _token


@pytest.fixture
def auth_headers(token_for):
    def _headers(user_id) -> dict:
        return {"Authorization": f"Bearer {token_for(user_id)}"}

    return _headers


@pytest.fixture
def listen(gateway, token_for):
    """Connect a recording socket for a user and optionally join rooms."""

    async def _listen(user_id, *rooms):
        websocket = FakeWebSocket(token=token_for(user_id))
        connection = await gateway.connect(websocket)
        for room in rooms:
            gateway.join(connection, room)
        return websocket

    return _listen


@pytest_asyncio.fixture
async def client(test_db: AsyncSession, gateway: RealtimeGateway) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database session and gateway overrides."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_socket():
    """Factory for recording sockets."""
    return FakeWebSocket
