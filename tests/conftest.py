"""Pytest configuration and shared fixtures for all tests"""
from dataclasses import dataclass
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from auth.tokens import create_access_token
from domain.constants import HireStatus, UserRole
from domain.models import HireRequest, Identity, User
from gateway.connection_registry import ConnectionRegistry
from gateway.session import ChatSession
from server import create_app
from services.container import ChatContainer
from settings import Settings


@dataclass
class Cast:
    """Seeded users and hire requests"""
    buyer: User
    student: User
    stranger: User
    admin: User
    accepted: HireRequest
    pending: HireRequest


@pytest.fixture
def test_settings():
    """Settings against an in-memory database"""
    return Settings(
        _env_file=None,
        database_path=":memory:",
        jwt_secret="test-secret-key-for-chat-tests-0123456789",
        storage_timeout_seconds=2.0,
    )


@pytest.fixture
async def container(test_settings):
    """A started ChatContainer for each test"""
    container = ChatContainer(test_settings)
    await container.start()
    yield container
    await container.stop()


@pytest.fixture
async def cast(container):
    """Buyer, student, stranger and admin plus an accepted and a pending hire"""
    buyer = await container.users.create_user("Bea Buyer", UserRole.BUYER, user_id="buyer-1")
    student = await container.users.create_user("Sam Student", UserRole.STUDENT, user_id="student-1")
    stranger = await container.users.create_user("Stan Stranger", UserRole.BUYER, user_id="stranger-1")
    admin = await container.users.create_user("Ada Admin", UserRole.ADMIN, user_id="admin-1")
    accepted = await container.hire_requests.create(
        buyer.user_id, student.user_id, status=HireStatus.ACCEPTED, hire_id="h1"
    )
    pending = await container.hire_requests.create(
        buyer.user_id, student.user_id, status=HireStatus.PENDING, hire_id="h2"
    )
    return Cast(buyer, student, stranger, admin, accepted, pending)


@pytest.fixture
def token_for(test_settings):
    """Mint an access token for a user"""
    def _token_for(user: User) -> str:
        return create_access_token(user.user_id, user.role, test_settings)
    return _token_for


@pytest.fixture
async def api_client(container, test_settings):
    """HTTP client bound to the ASGI app (lifespan is managed by the container fixture)"""
    app = create_app(test_settings, container)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def mock_websocket():
    """Create a mock WebSocket for testing"""
    ws = AsyncMock()
    ws.accept = AsyncMock()
    ws.send_text = AsyncMock()
    ws.close = AsyncMock()
    ws.query_params = {}
    ws.headers = {}
    return ws


@pytest.fixture
def connect(container, token_for):
    """Open an authenticated gateway session for a user over a mock websocket"""
    async def _connect(user: User) -> ChatSession:
        ws = AsyncMock()
        ws.query_params = {"token": token_for(user)}
        ws.headers = {}
        session = ChatSession(websocket=ws)
        assert await container.gateway.authenticate(session)
        return session
    return _connect


@pytest.fixture
def registry():
    """Create a ConnectionRegistry instance for testing"""
    return ConnectionRegistry()


@pytest.fixture
def make_session():
    """Build an authenticated session over a fresh mock websocket"""
    def _make_session(user_id: str, role: UserRole = UserRole.BUYER) -> ChatSession:
        ws = AsyncMock()
        ws.query_params = MagicMock()
        session = ChatSession(websocket=ws)
        session.authenticate(Identity(user_id=user_id, role=role))
        return session
    return _make_session
